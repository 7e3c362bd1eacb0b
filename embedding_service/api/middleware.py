"""HTTP middleware for the embedding API.

Three pieces: CORS for browser clients, a request-id + access-log layer,
and the translation of ``EmbeddingServiceError`` subclasses into the JSON
``{error, detail, provider}`` body every failing endpoint returns.

Starlette middleware is a stack (last added, first executed).  ``main.py``
adds ErrorHandlingMiddleware first and RequestLoggingMiddleware second, so:

    Request flow:   Client -> RequestLogging -> ErrorHandling -> route handler
    Response flow:  Client <- RequestLogging <- ErrorHandling <- route handler

RequestLoggingMiddleware therefore sees the *final* status code, including
the ones ErrorHandlingMiddleware produced from exceptions.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from embedding_service.api.schemas import ErrorResponse
from embedding_service.utils.errors import EmbeddingServiceError
from embedding_service.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Allow cross-origin calls from *allowed_origins* (``cors.allowed_origins`` in config.yaml).

    With the wildcard default, credentials are disabled because browsers
    reject ``*`` combined with credentialed requests.  ``X-Request-ID`` is
    exposed so front-ends can quote it in bug reports.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration.

    Binds a ``request_id`` into structlog's context variables for the
    lifetime of the request, so every log line emitted by services while
    handling it carries the same id.  An incoming ``X-Request-ID`` header
    is reused; otherwise a new one is generated.  The id is echoed back on
    the response.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )
            structlog.contextvars.unbind_contextvars("request_id")


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch ``EmbeddingServiceError`` subclasses and return structured JSON errors.

    The HTTP status comes from the exception class's ``status_code``
    (400 bad input, 404 unknown id, 499 client gone, 502/503 dependency
    failure, 500 configuration).  Stack traces are logged server-side only
    and never leaked to the client; generic Python exceptions bubble up to
    Starlette's default 500 handler.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except EmbeddingServiceError as exc:
            log = _logger.warning if exc.status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                status=exc.status_code,
                path=str(request.url.path),
            )
            body = ErrorResponse(
                error=type(exc).__name__,
                detail=exc.message,
                provider=exc.provider_name,
            )
            return JSONResponse(
                status_code=exc.status_code,
                content=body.model_dump(),
            )
