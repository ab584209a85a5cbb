"""
hrms_api.api.errors

Exception-to-response mapping.

Responsibilities:
- Render every error as `{"success": false, "message": ...}`.
- Map `AppError` subclasses to their status, request validation failures to 400.
- Hide unexpected exception details outside non-prod environments.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hrms_api.errors import AppError
from hrms_api.observability.logging import get_logger
from hrms_api.settings import Settings

log = get_logger(__name__)

INTERNAL_ERROR = "Internal server error"


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Validation failed"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    msg = first.get("msg", "Invalid value")
    return f"{loc}: {msg}" if loc else msg


def install_exception_handlers(app: FastAPI, settings: Settings) -> None:
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return error_response(exc.status_code, exc.message)

    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(exc.status_code, str(exc.detail))

    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return error_response(400, _validation_message(exc))

    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        log.exception("unhandled_exception", exception_type=type(exc).__name__)
        if settings.expose_error_details:
            return error_response(500, INTERNAL_ERROR, error=f"{type(exc).__name__}: {exc}")
        return error_response(500, INTERNAL_ERROR)

    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)


# --- Module Notes -----------------------------------------------------------
# The Exception handler runs in Starlette's ServerErrorMiddleware, which still
# re-raises after responding; ASGI test clients must not propagate app exceptions.
