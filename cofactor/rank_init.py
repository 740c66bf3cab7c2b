# Initialization of latent factor vectors.
#
# Two schemes are supported:
#   - random:   each coordinate ~ U[-max_init_value, +max_init_value]
#   - gaussian: each coordinate ~ N(0, max(init_stddev, stddev_floor))
#
# Gaussian is the default; a small but non-vanishing spread keeps the first
# Gram matrices well conditioned.

import numpy as np

from cofactor.errors import InvalidConfigError


class RankInitScheme:
    RANDOM = 'random'
    GAUSSIAN = 'gaussian'

    _ALIASES = {
        'random': RANDOM,
        'uniform': RANDOM,
        'gaussian': GAUSSIAN,
        'normal': GAUSSIAN,
    }

    def __init__(self, kind=GAUSSIAN, max_init_value=1.0, init_stddev=0.01, stddev_floor=0.0):
        if kind not in (self.RANDOM, self.GAUSSIAN):
            raise InvalidConfigError(f"Unsupported rank init scheme: {kind!r}")
        if max_init_value <= 0:
            raise InvalidConfigError(f"max_init_value must be positive: {max_init_value}")
        if init_stddev < 0 or stddev_floor < 0:
            raise InvalidConfigError("Initial standard deviation must be non-negative")
        self.kind = kind
        self.max_init_value = float(max_init_value)
        self.init_stddev = float(init_stddev)
        self.stddev_floor = float(stddev_floor)

    @classmethod
    def resolve(cls, name, **kwargs):
        """Build a scheme from its option name ('random', 'gaussian', ...)."""
        kind = cls._ALIASES.get(str(name).strip().lower())
        if kind is None:
            raise InvalidConfigError(f"{name!r} is not a supported rank init scheme")
        return cls(kind, **kwargs)

    @property
    def stddev(self):
        return max(self.init_stddev, self.stddev_floor)

    def new_vector(self, factor, rng):
        """Return a fresh vector of length `factor` drawn from `rng`."""
        if self.kind == self.RANDOM:
            return rng.uniform(-self.max_init_value, self.max_init_value, size=factor)
        return rng.normal(0.0, self.stddev, size=factor)

    def __repr__(self):
        if self.kind == self.RANDOM:
            return f"RankInitScheme('random', max_init_value={self.max_init_value})"
        return f"RankInitScheme('gaussian', stddev={self.stddev})"
