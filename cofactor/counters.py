"""Optional progress counters incremented as a side effect of a sweep.

A missing counter is a no-op, so the engine never checks for one before
incrementing.
"""

COUNTER_NAMES = (
    'users',
    'items',
    'skipped_users',
    'skipped_items',
    'theta_trainable_features',
    'theta_total_features',
    'beta_trainable_features',
    'beta_total_features',
)


class Counter:
    def __init__(self, name, value=0):
        self.name = name
        self.value = value

    def increment(self, n=1):
        self.value += n

    def __repr__(self):
        return f"Counter({self.name!r}, {self.value})"


def incr(counter, n=1):
    if counter is not None and n:
        counter.increment(n)


def new_counters(names=COUNTER_NAMES):
    """Return a dict of fresh counters, one per name."""
    return {name: Counter(name) for name in names}


def counter_values(counters):
    return {name: c.value for name, c in counters.items()}
