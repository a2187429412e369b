"""Error taxonomy of the review engine.

Precondition, permission and reference failures are kept apart so that the
HTTP layer can answer "invalid request", "forbidden" and "not found"
differently. Every core operation raises before mutating anything, or rolls
its session back before the error propagates.
"""


class ReviewError(Exception):
    """Base exception for review engine operations."""

    pass


class PreconditionError(ReviewError):
    """Raised when an operation is not valid in the current state."""

    pass


class AssetLockedError(PreconditionError):
    """Raised when a status-mutating operation targets a locked asset."""

    pass


class ConcurrencyConflictError(PreconditionError):
    """Raised when a concurrent writer changed the asset first."""

    pass


class AnnotationError(PreconditionError):
    """Raised when a comment annotation is malformed or unsupported."""

    pass


class PermissionDeniedError(ReviewError):
    """Raised when the actor lacks the capability or project scope."""

    pass


class InvalidReferenceError(ReviewError):
    """Raised when a referenced record does not exist."""

    pass


class ForeignReferenceError(InvalidReferenceError):
    """Raised when a referenced record exists but belongs to another asset or project."""

    pass
