from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class BaseSchema(BaseModel):
    """Base Pydantic schema: reads ORM objects, accepts field names or aliases."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class CamelSchema(BaseSchema):
    """Schema serialized with camelCase keys, as the billing UI reads them."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class ErrorDetail(BaseSchema):
    """Error detail for a specific field."""

    field: str | None = None
    message: str


class SuccessResponse(BaseSchema, Generic[T]):
    """Envelope for successful responses."""

    success: bool = True
    data: T
    message: str | None = None


ApiResponse = SuccessResponse


class ErrorResponse(BaseSchema):
    """Envelope for error responses; ``errors`` lists per-field messages."""

    success: bool = False
    data: None = None
    message: str
    errors: list[ErrorDetail] = []
