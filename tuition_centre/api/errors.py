"""Exception handlers: every error leaves the API in one JSON shape.

    {"statusCode": 409, "message": "slug already in use",
     "path": "/auth/register", "method": "POST",
     "timestamp": "2026-01-01T00:00:00+00:00", "requestId": "..."}

Request validation failures are reported as 400 (not FastAPI's 422) with
``message`` holding one "<field>: <reason>" string per problem.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tuition_centre.core.errors import AppError
from tuition_centre.middleware.request_context import request_id_var

logger = logging.getLogger(__name__)


def error_body(request: Request, status_code: int, message: Any) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "message": message,
        "path": request.url.path,
        "method": request.method,
        "timestamp": datetime.now(UTC).isoformat(),
        "requestId": request_id_var.get(),
    }


def _respond(
    request: Request,
    status_code: int,
    message: Any,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    level = logging.ERROR if status_code >= 500 else logging.WARNING
    logger.log(
        level,
        "%s %s failed with %d: %s",
        request.method,
        request.url.path,
        status_code,
        message,
    )
    return JSONResponse(
        status_code=status_code,
        content=error_body(request, status_code, message),
        headers=headers,
    )


def _format_validation_error(err: dict[str, Any]) -> str:
    # loc is ("body", "adminEmail") or ("query", "isActive"); drop the source.
    loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(loc) or "request"
    return f"{field}: {err.get('msg', 'invalid value')}"


async def app_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, AppError)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return _respond(request, exc.status_code, exc.message, headers)


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    messages = [_format_validation_error(e) for e in exc.errors()]
    return _respond(request, 400, messages)


async def http_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, StarletteHTTPException)
    return _respond(request, exc.status_code, exc.detail, getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_body(request, 500, "Internal server error"),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
