"""
FundHub domain errors.

crud functions raise these; routers translate them to HTTP responses.
Store failures are always wrapped in StoreError with a contextual message,
chained to the underlying SQLAlchemy exception.
"""

from typing import Optional


class AppError(Exception):
    """Base error for domain/application exceptions."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Raised for domain-level validation beyond schema validation."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class NotFound(AppError):
    """Raised when an entity does not exist."""


class PreconditionFailed(AppError):
    """Raised when the current state blocks the operation entirely."""


class StoreError(AppError):
    """Raised when the persistence layer rejects a read or write."""


class BatchError(AppError):
    """
    Failure of a multi-step operation that commits step by step.

    completed holds the rows already persisted before the failure;
    failed_index is the position of the failing step in the input
    (-1 until attached). Nothing in `completed` is rolled back.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.completed: list = []
        self.failed_index: int = -1

    def attach(self, completed: list, failed_index: int) -> "BatchError":
        self.completed = list(completed)
        self.failed_index = failed_index
        return self


class BatchValidationError(BatchError, ValidationError):
    pass


class BatchNotFound(BatchError, NotFound):
    pass


class BatchStoreError(BatchError, StoreError):
    pass
