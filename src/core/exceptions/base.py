"""Application errors. Each carries the HTTP status it is reported with."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found (also used for malformed identifiers)."""

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id={identifier} not found"
        super().__init__(message=message, status_code=404)


class ValidationError(AppException):
    """A field value the store would not accept."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message=message, status_code=422, details=details)


class BatchSizeError(ValidationError):
    """Batch save called with no rows, or with more than the configured maximum."""

    def __init__(self, received: int, max_rows: int):
        if received == 0:
            message = "Bills array is required and cannot be empty"
        else:
            message = f"Too many bills in one save: {received} (at most {max_rows})"
        super().__init__(message=message)
        self.details.update(received=received, max_rows=max_rows)
