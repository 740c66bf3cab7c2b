# Small dense linear-algebra helpers shared by the ALS solves.
#
# Vectors and matrices are plain numpy arrays of length / shape `factor`.
# Every per-entity update in the engine reduces to solve(M, rhs) with M
# symmetric positive-definite (weighted Gram matrix + ridge), so a Cholesky
# factorization is enough.

import numpy as np
from scipy.linalg import LinAlgError, cho_factor, cho_solve

from cofactor.errors import MalformedSystemError


def dot_product(u, v):
    return float(np.dot(u, v))


def add_in_place(dst, src, scale=1.0):
    """dst += scale * src, for 1-D vectors or 2-D matrices of equal shape.

    Returns dst so calls can be chained.
    """
    if np.shape(dst) != np.shape(src):
        raise ValueError(f"Shape mismatch: {np.shape(dst)} vs {np.shape(src)}")
    dst += scale * np.asarray(src, dtype=float)
    return dst


def l2_norm(v):
    return float(np.sqrt(np.dot(v, v)))


def solve(M, rhs):
    """Solve M x = rhs for a symmetric positive-definite M.

    Args:
        M:   (factor, factor) system matrix.
        rhs: (factor,) right-hand side.

    Returns:
        A fresh (factor,) solution vector.

    Raises:
        MalformedSystemError: M is not positive-definite or holds NaN/inf.
    """
    M = np.asarray(M, dtype=float)
    rhs = np.asarray(rhs, dtype=float)
    if not (np.all(np.isfinite(M)) and np.all(np.isfinite(rhs))):
        raise MalformedSystemError("Linear system contains non-finite values")
    try:
        c, lower = cho_factor(M, check_finite=False)
    except LinAlgError as e:
        raise MalformedSystemError(
            f"System matrix is not positive-definite: {e}"
        ) from e
    return cho_solve((c, lower), rhs, check_finite=False)
