"""
Structured Logging Middleware

One JSON access-log line per request, tagged with a request ID, the tenant
the request named and, once authenticated, the user id. The request ID is
also attached to every other log line emitted while the request runs.
"""

import json
import logging
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"

# Record attributes copied into the JSON line when a log call passes them as `extra`
_EXTRA_FIELDS = ("tenant", "user_id", "method", "path", "status_code", "error_code", "duration_ms", "client_ip")
_QUIET_PATHS = frozenset({"/health"})

_LIBRARY_LEVELS = {
    "uvicorn.access": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "passlib": "ERROR",
}


class RequestIdFilter(logging.Filter):
    """Stamp each record with the ID of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")
        return True


class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", ""),
        }
        entry.update({key: getattr(record, key) for key in _EXTRA_FIELDS if hasattr(record, key)})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For") or request.headers.get("X-Real-IP")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Access log keyed by request ID; the ID is echoed in the response headers."""

    def __init__(self, app: ASGIApp, logger_name: str = "hms.access"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as e:
                self._access_log(request, 500, started, error=f"{type(e).__name__}: {e}")
                raise
            response.headers[REQUEST_ID_HEADER] = request_id
            self._access_log(request, response.status_code, started)
            return response
        finally:
            request_id_var.reset(token)

    def _access_log(self, request: Request, status_code: int, started: float, error: str | None = None) -> None:
        if request.url.path in _QUIET_PATHS:
            return

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        extra = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "client_ip": _client_ip(request),
        }
        tenant = getattr(request.state, "tenant_identifier", None)
        if tenant:
            extra["tenant"] = tenant
        # Plain id set by get_current_user; the ORM row may be detached by now
        user_id = getattr(request.state, "user_id", None)
        if user_id is not None:
            extra["user_id"] = user_id

        message = f"{request.method} {request.url.path} {status_code} in {duration_ms}ms"
        if error:
            message = f"{message} ({error})"
        self.logger.log(_level_for(status_code), message, extra=extra)


def setup_structured_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """
    Point the root logger at a single stderr handler.

    Args:
        log_level: Level for the root, `hms` and `hms.access` loggers
        json_format: JSON lines (production) or a plain text line format
    """
    level = getattr(logging, log_level.upper())
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(
        StructuredFormatter()
        if json_format
        else logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    logging.getLogger("hms").setLevel(level)
    for name, library_level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)
