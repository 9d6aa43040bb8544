from src.shared.schemas.base import (
    ApiResponse,
    BaseSchema,
    CamelSchema,
    ErrorDetail,
    ErrorResponse,
    SuccessResponse,
)

__all__ = [
    "ApiResponse",
    "BaseSchema",
    "CamelSchema",
    "ErrorDetail",
    "ErrorResponse",
    "SuccessResponse",
]
