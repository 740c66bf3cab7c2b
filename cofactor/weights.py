# Per-entity parameter tables owned by one engine instance.
#
# Weights maps an entity key to a float vector of exactly `factor` entries;
# BiasTable maps an entity key to a scalar. A missing key means the entity
# was never registered (not trainable), never "zero".

import numpy as np


class Weights(dict):
    """key -> numpy vector of length `factor`, in registration order."""

    def __init__(self, factor=None, items=None):
        super().__init__()
        self.factor = factor
        if items:
            for key, vec in dict(items).items():
                self[key] = vec

    def __setitem__(self, key, vec):
        vec = np.array(vec, dtype=float)
        if vec.ndim != 1:
            raise ValueError(f"Weight vector for {key!r} must be 1-D, got shape {vec.shape}")
        # factor may be unset while unpickling: items are restored before __dict__
        factor = getattr(self, 'factor', None)
        if factor is None:
            self.factor = vec.shape[0]
        elif vec.shape[0] != factor:
            raise ValueError(
                f"Weight vector for {key!r} has {vec.shape[0]} entries, expected {self.factor}"
            )
        super().__setitem__(key, vec)

    def register(self, keys, rank_init, rng):
        """Create an initial vector for every key not yet present.

        Returns:
            Number of newly created entries.
        """
        added = 0
        for key in keys:
            if key in self:
                continue
            super().__setitem__(key, rank_init.new_vector(self.factor, rng))
            added += 1
        return added

    def keys_list(self):
        return list(self.keys())

    def as_matrix(self, keys=None):
        """Stack the vectors of `keys` (default: all) into a (n, factor) array."""
        keys = self.keys_list() if keys is None else keys
        if not keys:
            return np.zeros((0, self.factor or 0))
        return np.vstack([self[k] for k in keys])


class BiasTable(dict):
    """key -> float scalar, initialised lazily to `initial`."""

    def __init__(self, items=None, initial=0.0):
        super().__init__()
        self.initial = float(initial)
        if items:
            for key, value in dict(items).items():
                self[key] = float(value)

    def register(self, keys):
        added = 0
        for key in keys:
            if key not in self:
                self[key] = self.initial
                added += 1
        return added
