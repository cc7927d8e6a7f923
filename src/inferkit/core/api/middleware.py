"""Exception handlers and request logging middleware."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.responses import Response
from ulid import ULID

from inferkit.core.exceptions import ServingError
from inferkit.core.logging import get_logger

logger = get_logger(__name__)


async def serving_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a ServingError as ``{error, message}`` with its status code."""
    assert isinstance(exc, ServingError)
    if exc.status_code >= 500:
        logger.error("request.failed", path=request.url.path, error_kind=exc.error_kind, error=exc.message)
    else:
        logger.info("request.rejected", path=request.url.path, error_kind=exc.error_kind, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render request validation errors in the same shape as serving errors."""
    assert isinstance(exc, RequestValidationError)
    logger.info("request.invalid", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "validation_error", "message": str(exc.errors())},
    )


def add_error_handlers(app: FastAPI) -> None:
    """Install the error handlers on an app."""
    app.add_exception_handler(ServingError, serving_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)


def add_logging_middleware(app: FastAPI) -> None:
    """Log every request with a request id and its duration."""

    @app.middleware("http")
    async def log_requests(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = str(ULID())
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request.completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        response.headers["X-Request-ID"] = request_id
        return response
