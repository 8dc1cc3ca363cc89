"""
Global Exception Handlers

Every failure leaves the API in one envelope:

{
    "error": {
        "status_code": 400,
        "error_code": "TENANT_INVALID",
        "message": "Invalid or inactive tenant",
        "type": "Bad Request",
        "details": {...},
        "path": "/auth/login"
    }
}

Tenant rejections never carry details, so an unknown tenant and an
inactive one produce byte-identical bodies.
"""

import logging
from typing import Any, Union

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from hms.exceptions import ErrorCode, HMSError

logger = logging.getLogger(__name__)

# status -> (reason shown as "type", code used for plain HTTPExceptions)
_STATUS_TABLE: dict[int, tuple[str, ErrorCode]] = {
    400: ("Bad Request", ErrorCode.VALIDATION_FAILED),
    401: ("Unauthorized", ErrorCode.AUTH_FAILED),
    403: ("Forbidden", ErrorCode.AUTH_PERMISSION_DENIED),
    404: ("Not Found", ErrorCode.RESOURCE_NOT_FOUND),
    405: ("Method Not Allowed", ErrorCode.VALIDATION_FAILED),
    409: ("Conflict", ErrorCode.VALIDATION_DUPLICATE_RESOURCE),
    422: ("Validation Error", ErrorCode.VALIDATION_FAILED),
    500: ("Internal Server Error", ErrorCode.INTERNAL_ERROR),
    503: ("Service Unavailable", ErrorCode.SERVICE_UNAVAILABLE),
}

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


def get_error_type(status_code: int) -> str:
    return _STATUS_TABLE.get(status_code, ("Error", None))[0]


def get_http_error_code(status_code: int) -> str:
    code = _STATUS_TABLE.get(status_code, (None, ErrorCode.UNKNOWN_ERROR))[1]
    return code.value


def create_error_response(
    request: Request,
    status_code: int,
    message: str,
    error_code: str | ErrorCode,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """
    Build the error envelope for `request`.

    Args:
        request: Request that failed; its path is echoed back
        status_code: HTTP status code
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Extra context, omitted when empty
        headers: Response headers to attach
    """
    body: dict[str, Any] = {
        "status_code": status_code,
        "error_code": error_code.value if isinstance(error_code, ErrorCode) else error_code,
        "message": message,
        "type": get_error_type(status_code),
        "path": request.url.path,
    }
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


async def hms_exception_handler(request: Request, exc: HMSError) -> JSONResponse:
    """Render errors raised by services and dependencies."""
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
        extra={"status_code": exc.status_code, "error_code": exc.error_code.value},
    )
    return create_error_response(
        request,
        exc.status_code,
        exc.message,
        exc.error_code,
        details=exc.details,
        headers=_BEARER_CHALLENGE if exc.status_code == status.HTTP_401_UNAUTHORIZED else None,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Routing misses and framework-raised HTTP errors
    logger.info(f"HTTP {exc.status_code} on {request.method} {request.url.path}: {exc.detail}")
    return create_error_response(
        request,
        exc.status_code,
        str(exc.detail),
        get_http_error_code(exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    """Flatten pydantic errors into field/message/type triples."""
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.info(f"Validation failed on {request.url.path}: {len(errors)} error(s)")
    return create_error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        ErrorCode.VALIDATION_FAILED,
        details={"validation_errors": errors},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort; the client never sees the exception text."""
    logger.exception(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}")
    return create_error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        ErrorCode.INTERNAL_ERROR,
    )


def register_exception_handlers(app) -> None:
    for exc_class, handler in (
        (HMSError, hms_exception_handler),
        (StarletteHTTPException, http_exception_handler),
        (RequestValidationError, validation_exception_handler),
        (PydanticValidationError, validation_exception_handler),
        (Exception, unhandled_exception_handler),
    ):
        app.add_exception_handler(exc_class, handler)
    logger.debug("Exception handlers registered")
