# Shifted positive pointwise mutual information (SPPMI) between items.
#
# Two items co-occur when the same user interacted with both. With
# #(i, j) the co-occurrence count, #(i) = sum_j #(i, j) and D the total count:
#
#     PMI(i, j)   = log(#(i, j) * D / (#(i) * #(j)))
#     SPPMI(i, j) = max(PMI(i, j) - log(k), 0)
#
# k is the number of negative samples in the equivalent skip-gram model.

import numpy as np
from scipy.sparse import csr_matrix, diags

from cofactor.errors import InvalidConfigError


def cooccurrence_matrix(X):
    """Item-item co-occurrence counts of a binary (users, items) matrix,
    diagonal removed."""
    X = csr_matrix(csr_matrix(X) > 0, dtype=float)
    C = (X.T @ X).tocsr()
    C = (C - diags(C.diagonal())).tocsr()
    C.eliminate_zeros()
    return C


def sppmi_matrix(C, shift=1.0):
    """SPPMI of a co-occurrence matrix as a csr_matrix (zeros dropped)."""
    if shift <= 0:
        raise InvalidConfigError(f"SPPMI shift must be positive: {shift}")
    C = csr_matrix(C, dtype=float)
    total = C.sum()
    if total == 0:
        return csr_matrix(C.shape)
    counts = np.asarray(C.sum(axis=1)).ravel()

    coo = C.tocoo()
    pmi = np.log(coo.data * total / (counts[coo.row] * counts[coo.col]))
    values = np.maximum(pmi - np.log(shift), 0.0)
    M = csr_matrix((values, (coo.row, coo.col)), shape=C.shape)
    M.eliminate_zeros()
    return M


def sppmi_table(M, items):
    """Convert an SPPMI matrix into item -> [(neighbor, weight), ...]."""
    M = csr_matrix(M)
    table = {}
    for idx, item in enumerate(items):
        start, end = M.indptr[idx], M.indptr[idx + 1]
        if start == end:
            continue
        table[item] = [
            (items[j], float(w)) for j, w in zip(M.indices[start:end], M.data[start:end])
        ]
    return table


def build_sppmi(X, items, shift=1.0):
    """SPPMI table straight from a binary (users, items) interaction matrix."""
    return sppmi_table(sppmi_matrix(cooccurrence_matrix(X), shift=shift), items)

