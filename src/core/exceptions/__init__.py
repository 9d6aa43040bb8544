from src.core.exceptions.base import (
    AppException,
    BatchSizeError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "AppException",
    "BatchSizeError",
    "NotFoundError",
    "ValidationError",
]
