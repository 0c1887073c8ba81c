"""Exception handlers rendering failures as ``{"success": false, "error": ...}``."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..domain.errors import IdentityError, InfrastructureError

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def identity_error_handler(request: Request, exc: IdentityError) -> JSONResponse:
    if isinstance(exc, InfrastructureError):
        logger.error("%s %s failed: %s", request.method, request.url.path, type(exc).__name__)
    return _error_response(exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", message)
    return _error_response(422, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # the server error middleware re-raises and logs the traceback itself
    logger.error("unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def install_exception_handlers(app: FastAPI) -> None:
    """Register the error envelope handlers on ``app``."""
    app.add_exception_handler(IdentityError, identity_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
