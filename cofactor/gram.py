# Weighted Gram matrices for the closed-form ALS solves.
#
# The system matrix of every per-entity update is
#
#     M = c0 * W^T W  +  lambda * I  +  (c1 - c0) * sum_{k in observed} w_k w_k^T
#
# The first two terms cover every entity on the other side and are identical
# for all rows of a sweep, so they are built once (O(n * F^2)) as a read-only
# "background" matrix. Each row only adds its own correction over the
# entities it actually interacted with (O(|observed| * F^2)) into a fresh copy.

import numpy as np


def weighted_gram(weights, factor, weight):
    """weight * W^T W over every vector in `weights`."""
    W = weights.as_matrix() if len(weights) else np.zeros((0, factor))
    return weight * (W.T @ W)


def weighted_gram_subset(keys, weights, factor, weight):
    """weight * sum of w_k w_k^T over the registered keys in `keys`.

    Keys missing from `weights` contribute nothing.
    """
    present = [k for k in keys if k in weights]
    if not present:
        return np.zeros((factor, factor))
    W = weights.as_matrix(present)
    return weight * (W.T @ W)


def with_ridge(gram, lam):
    """Return a copy of `gram` with `lam` added to every diagonal entry."""
    out = np.array(gram, dtype=float, copy=True)
    out[np.diag_indices_from(out)] += lam
    return out


def background_gram(weights, factor, c0, lam):
    """Sweep-level c0 * W^T W + lam * I, frozen against accidental writes."""
    gram = with_ridge(weighted_gram(weights, factor, c0), lam)
    gram.setflags(write=False)
    return gram


def corrected_system(background, correction):
    """background + correction as a new, writable array."""
    return np.add(background, correction)
