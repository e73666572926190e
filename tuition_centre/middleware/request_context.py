"""Request context middleware: request ids, tenant context and access logs.

Every request gets an id (the caller's ``X-Request-ID`` if it sent one),
stored in a ContextVar so any logger in the async call chain can tag its
records without the id being passed around.  ``require_user`` fills in the
tenant half of the context (organization id, user id) once the bearer
token has been verified.

ContextVars rather than thread-locals: concurrent requests share the
event loop thread, and each asyncio task gets its own copy of the context.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
organization_id_var: ContextVar[str] = ContextVar("organization_id", default="-")
user_id_var: ContextVar[str] = ContextVar("user_id", default="-")


class RequestContextFilter(logging.Filter):
    """Copy the current request and tenant context onto every LogRecord.

    A filter rather than a formatter: formatters only read fields that
    already exist on the record.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        if not hasattr(record, "organization_id"):
            record.organization_id = organization_id_var.get("-")  # type: ignore[attr-defined]
        if not hasattr(record, "user_id"):
            record.user_id = user_id_var.get("-")  # type: ignore[attr-defined]
        return True


def install_log_filter() -> None:
    """Attach RequestContextFilter to the root handlers (idempotent).

    Handler-level so records propagated from child loggers are covered too;
    logger-level filters only see records logged on that exact logger.
    """
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestContextFilter) for f in handler.filters):
            handler.addFilter(RequestContextFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request id, time the request and log one summary line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)
        organization_id_var.set("-")
        user_id_var.set("-")
        request.state.request_id = req_id

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
