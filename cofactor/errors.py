"""Exceptions raised by the cofactorization engine and its wrappers."""


class CofactorError(Exception):
    """Base class for all cofactor errors."""


class MalformedSystemError(CofactorError):
    """A per-row linear system was not symmetric positive-definite.

    Fatal for the whole run: every later row reads the shared background Gram
    matrix, so a bad solve cannot be skipped.
    """


class NonFiniteLossError(CofactorError):
    """A loss or validation value came out as NaN or infinity."""


class InvalidConfigError(CofactorError, ValueError):
    """Hyper-parameters rejected before any data is processed."""
