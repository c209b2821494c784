"""Domain errors raised by the financial services.

The HTTP layer maps each class to a status code; services never raise
HTTPException themselves.
"""

from typing import Optional


class FinanceError(Exception):
    """Base error for financial operations."""

    code = "FINANCE_ERROR"
    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class ValidationError(FinanceError):
    """Malformed or out-of-range input. No state was changed."""

    code = "VALIDATION_ERROR"
    status_code = 422


class NotConfigured(FinanceError):
    """The project has no budget row yet."""

    code = "BUDGET_NOT_CONFIGURED"
    status_code = 404


class NotFound(FinanceError):
    code = "NOT_FOUND"
    status_code = 404


class Conflict(FinanceError):
    """A conditional transition found the row outside its expected state.

    Retryable by the caller after re-reading the entity.
    """

    code = "STATE_CONFLICT"
    status_code = 409


class StorageFailure(FinanceError):
    """The transaction could not commit and was rolled back."""

    code = "STORAGE_FAILURE"
    status_code = 500
