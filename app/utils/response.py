import logging
import traceback

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.config import settings
from app.services.errors import RegistrationError

logger = logging.getLogger(__name__)


def create_response(data=None, status_code: int = status.HTTP_200_OK, with_ok: bool = True) -> JSONResponse:
    """Return a JSON payload; registration endpoints carry the shared ``ok`` flag."""
    content = dict(jsonable_encoder(data or {}))
    if with_ok:
        content = {"ok": status_code < 400, **content}
    return JSONResponse(status_code=status_code, content=content)


def error_payload(
    message: str | None,
    errors: dict | None = None,
    error: str | None = None,
) -> dict:
    content: dict = {"ok": False}
    if message:
        content["message"] = message
    if errors:
        content["errors"] = errors
    if error:
        content["error"] = error
    return content


def error_response(
    message: str | None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    errors: dict | None = None,
    error: str | None = None,
) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_payload(message, errors, error))


def server_error_response(content: dict, error: Exception, status_code: int = 500) -> JSONResponse:
    # Stack traces only leave the process in development
    if settings.is_development:
        content["stack"] = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return JSONResponse(status_code=status_code, content=content)


def handle_exception(error: Exception, fallback_message: str = "Server error") -> JSONResponse:
    """Coerce raised errors into the shared ``ok:false`` response structure."""
    if isinstance(error, HTTPException):
        detail = error.detail if isinstance(error.detail, str) else str(error.detail)
        return error_response(detail, error.status_code)

    if isinstance(error, RegistrationError):
        content = error_payload(error.message, error.errors, error.error)
        if error.status_code >= 500:
            return server_error_response(content, error, error.status_code)
        return JSONResponse(status_code=error.status_code, content=content)

    logger.exception("Unhandled error: %s", error)
    content = error_payload(fallback_message, error=str(error) or type(error).__name__)
    return server_error_response(content, error)
