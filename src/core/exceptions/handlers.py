import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.core.config import settings
from src.core.exceptions import AppException
from src.shared.schemas import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, errors: list[ErrorDetail]) -> JSONResponse:
    response = ErrorResponse(message=message, errors=errors)
    return JSONResponse(status_code=status_code, content=response.model_dump())


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle application exceptions."""
    logger.info(
        "%s on %s %s: %s",
        exc.__class__.__name__,
        request.method,
        request.url.path,
        exc.message,
    )
    field = exc.details.get("field")
    return _error_response(
        exc.status_code, exc.message, [ErrorDetail(field=field, message=exc.message)]
    )


def _format_validation_errors(errors: list[dict]) -> list[ErrorDetail]:
    details: list[ErrorDetail] = []
    for error in errors:
        loc = error.get("loc", ())
        # Drop top-level "body" for cleaner field paths, e.g. "0.amtPaid"
        if loc and loc[0] == "body":
            loc = loc[1:]
        field = ".".join(str(part) for part in loc) if loc else None
        details.append(ErrorDetail(field=field, message=error.get("msg", "Invalid value")))
    return details


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request payloads that do not parse (e.g. a batch that is not an array)."""
    return _error_response(422, "Validation error", _format_validation_errors(exc.errors()))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle generic HTTP exceptions."""
    message = str(exc.detail) if exc.detail else "HTTP error"
    return _error_response(exc.status_code, message, [ErrorDetail(field=None, message=message)])


def friendly_db_error(exc: Exception) -> tuple[str, str | None, int]:
    """
    Convert common DB errors to a stable, user-facing message.

    Returns (message, field, status_code). Raw driver messages are only
    exposed when debug is enabled.
    """
    raw = str(getattr(exc, "orig", exc))
    lower = raw.lower()

    if ("does not exist" in lower or "no such" in lower) and (
        "column" in lower or "table" in lower
    ):
        # Typical after deploying code without running Alembic migrations.
        return (
            "Database schema is out of date. Run the latest migrations and try again.",
            None,
            500,
        )

    if "not null constraint" in lower or "null value in column" in lower:
        return ("A required field is missing", None, 422)

    if settings.debug:
        return (raw, None, 500)

    return ("Database error", None, 500)


async def sqlalchemy_db_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    message, field, status_code = friendly_db_error(exc)
    return _error_response(status_code, message, [ErrorDetail(field=field, message=message)])
