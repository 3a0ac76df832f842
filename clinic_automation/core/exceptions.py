"""Map the automation error taxonomy onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinic_automation.core.errors import (
    AutomationError,
    ConflictError,
    NotFoundError,
    StateError,
    TransientDeliveryError,
    UnsupportedActionError,
    ValidationError,
)
from clinic_automation.core.structured_logging import build_log_context

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[AutomationError], int] = {
    NotFoundError: 404,
    ConflictError: 409,
    ValidationError: 422,
    StateError: 409,
    TransientDeliveryError: 502,
    UnsupportedActionError: 422,
}


def status_for(exc: AutomationError) -> int:
    for error_cls in type(exc).__mro__:
        if error_cls in ERROR_STATUS:
            return ERROR_STATUS[error_cls]
    return 400


def error_body(message: str, code: str) -> dict:
    return {"success": False, "error": message, "code": code}


async def automation_error_handler(request: Request, exc: AutomationError) -> JSONResponse:
    status_code = status_for(exc)
    logger.info(
        "%s on %s: %s",
        type(exc).__name__,
        request.url.path,
        exc,
        extra=build_log_context(route=request.url.path),
    )
    return JSONResponse(status_code=status_code, content=error_body(str(exc), type(exc).__name__))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg', 'invalid value')}" if location else error.get("msg", ""))
    return JSONResponse(status_code=422, content=error_body("; ".join(parts), "ValidationError"))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), "HTTPException"),
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AutomationError, automation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
