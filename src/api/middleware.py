"""API middleware: CORS, request logging and error handling.

Middleware is a stack (last added, first executed).  ``main.py`` adds
ErrorHandlingMiddleware before RequestLoggingMiddleware, so the request
logger is outermost and sees the final status code even when an
application error was converted to a JSON body.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import (
    ConfigurationError,
    KnowledgeBaseError,
    NotFoundError,
    ProviderError,
    ServiceUnavailableError,
    StorageError,
    ValidationError,
)
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_STATUS_BY_ERROR: dict[type[KnowledgeBaseError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ProviderError: 502,
    StorageError: 502,
    ServiceUnavailableError: 503,
    ConfigurationError: 500,
}


def status_for_error(exc: KnowledgeBaseError) -> int:
    """Return the HTTP status for *exc*, walking its class hierarchy."""
    for klass in type(exc).__mro__:
        if klass in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[klass]
    return 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; defaults to ``["*"]`` for development."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=response.status_code if response else 500,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert application errors into :class:`ErrorResponse` JSON bodies.

    ``KnowledgeBaseError`` subclasses keep their message and map to a
    status code by type.  Anything else becomes an opaque 500; the stack
    trace is logged server-side only.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except KnowledgeBaseError as exc:
            status_code = status_for_error(exc)
            log = _logger.warning if status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                code=exc.code,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            body = ErrorResponse(error=type(exc).__name__, code=exc.code, detail=exc.message)
            return JSONResponse(status_code=status_code, content=body.model_dump())
        except Exception:
            _logger.exception("unhandled_error", path=str(request.url.path))
            body = ErrorResponse(
                error="InternalServerError",
                code="internal_error",
                detail="An unexpected error occurred.",
            )
            return JSONResponse(status_code=500, content=body.model_dump())
