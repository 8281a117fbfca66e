"""Custom exceptions for the shop back-office application."""
from typing import List, Optional


class ShopError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(ShopError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class ValidationError(BusinessLogicError):
    """Raised at the HTTP boundary when a ValidationResult is not ok."""
    def __init__(self, errors, payload=None):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        rv = dict(payload or ())
        rv['errors'] = self.errors
        super().__init__(self.errors[0] if self.errors else 'Invalid data', 422, rv)

class NotFoundError(ShopError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class DataUnavailableError(ShopError):
    """Raised when the inventory API cannot provide data (usually transient)."""
    def __init__(self, message="Data is temporarily unavailable", payload=None):
        rv = dict(payload or ())
        rv.setdefault('retry', True)
        super().__init__(message, 503, rv)

class SubmissionError(ShopError):
    """Raised when the inventory API rejects a submission. Drafts are kept."""
    def __init__(self, message="Submission failed", payload=None):
        super().__init__(message, 502, payload)


class ValidationResult:
    """
    Outcome of a local validation.

    Core components return this instead of raising so that callers decide
    whether a failure is shown inline or turned into a ValidationError.
    """

    __slots__ = ('errors',)

    def __init__(self, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])

    @classmethod
    def success(cls) -> 'ValidationResult':
        return cls()

    @classmethod
    def failure(cls, *messages: str) -> 'ValidationResult':
        return cls(list(messages))

    @property
    def ok(self) -> bool:
        return not self.errors

    def __bool__(self):
        return self.ok

    def add(self, message: str) -> None:
        self.errors.append(message)

    def merge(self, other: 'ValidationResult') -> 'ValidationResult':
        self.errors.extend(other.errors)
        return self

    def raise_for_errors(self) -> None:
        """Raise ValidationError if any error was collected."""
        if self.errors:
            raise ValidationError(self.errors)

    def __repr__(self):
        return f"<ValidationResult(ok={self.ok}, errors={self.errors})>"
