"""Application error taxonomy.

Every error carries the HTTP status it maps to, so the exception handlers in
app.main can render them consistently as {"message", "code"[, "errors"]}.
"""

from typing import Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .logging_config import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code}


class ValidationError(AppError):
    """Malformed or missing fields. Carries per-field messages."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"

    def __init__(
        self,
        errors: List[Dict[str, str]],
        message: str = "Validation failed.",
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message, code)
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, message: str, code: Optional[str] = None) -> "ValidationError":
        return cls([{"field": field, "message": message}], message=message, code=code)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["errors"] = self.errors
        return payload


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class Conflict(AppError):
    """Duplicate unique field. Reported as 400 to match the registration contract."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "conflict"

    def __init__(self, message: str, field: str, code: Optional[str] = None) -> None:
        super().__init__(message, code)
        self.field = field

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["field"] = self.field
        return payload


class Internal(AppError):
    """Store or mail transport failure."""


class MailDeliveryError(Internal):
    code = "mail_delivery_failed"


def _field_name(loc) -> str:
    # ("body", "dueDate") -> "dueDate"; ("query", "sortBy") -> "sortBy"
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "body"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        message = err.get("msg", "Invalid value.")
        # Pydantic prefixes messages from custom validators with "Value error, ".
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({
            "field": _field_name(err.get("loc", ())),
            "message": message,
            "code": err.get("type", "invalid"),
        })
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ValidationError(errors).to_dict(),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=Internal("Internal server error.").to_dict(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
