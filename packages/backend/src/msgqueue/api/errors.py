"""Exception handlers — map the error taxonomy onto HTTP responses.

Learn: Services and the auth gate raise plain msgqueue errors; these
handlers are the only place that knows about status codes. Auth failures
always say just "Unauthorized", and storage failures are logged in full
but reported as a generic 500.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from msgqueue.errors import (
    AuthError,
    ForbiddenError,
    MsgQueueError,
    RandomnessError,
    StorageError,
    ValidationError,
)

logger = structlog.get_logger()


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": "Unauthorized"},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def forbidden_handler(request: Request, exc: ForbiddenError) -> JSONResponse:
    logger.info("auth.forbidden", path=request.url.path, reason=str(exc))
    return JSONResponse(status_code=403, content={"detail": "Forbidden"})


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request shape (bad JSON body, non-integer query param) → 400."""
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": errors},
    )


async def internal_error_handler(request: Request, exc: MsgQueueError) -> JSONResponse:
    logger.error(
        "request.failed",
        path=request.url.path,
        error_kind=type(exc).__name__,
        error=str(exc),
        cause=repr(exc.__cause__) if exc.__cause__ else None,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(ForbiddenError, forbidden_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StorageError, internal_error_handler)
    app.add_exception_handler(RandomnessError, internal_error_handler)
