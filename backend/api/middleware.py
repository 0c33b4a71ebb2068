"""
API middleware stack.

- Request ID injection (X-Request-ID header)
- Structured request/response logging
- Exception handlers mapping the error taxonomy to status codes
- CORS configuration
"""
from __future__ import annotations

import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.config import get_settings
from shared.errors import PersistenceError, UnknownSport, UpstreamUnavailable
from shared.utils.logging import bound_log_context, get_logger

logger = get_logger(__name__)

_QUIET_PATHS = ("/health", "/metrics")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Injects X-Request-ID into the response and binds it to every log line of the request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id

        with bound_log_context(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path in _QUIET_PATHS:
            return await call_next(request)

        start = time.monotonic()
        response = await call_next(request)
        logger.info(
            "http_request",
            method=request.method,
            path=path,
            status=response.status_code,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
            client=request.client.host if request.client else "unknown",
        )
        return response


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def setup_exception_handlers(app: FastAPI) -> None:
    """Register handlers for validation failures and the Scorecast error taxonomy."""

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = [".".join(str(p) for p in e.get("loc", ())[1:]) for e in exc.errors()]
        return JSONResponse(
            status_code=400,
            content={"error": "Missing required fields", "fields": fields},
        )

    @app.exception_handler(UnknownSport)
    async def unknown_sport_handler(request: Request, exc: UnknownSport) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": f"Unknown sport: {exc.sport}"})

    @app.exception_handler(UpstreamUnavailable)
    async def upstream_handler(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
        logger.warning("upstream_unavailable", path=request.url.path, sport=exc.sport, reason=exc.reason)
        return JSONResponse(
            status_code=502,
            content={"error": "Failed to fetch scoreboard", "sport": exc.sport},
        )

    @app.exception_handler(PersistenceError)
    async def persistence_handler(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("persistence_error", path=request.url.path, error=str(exc), request_id=_request_id(request))
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            request_id=_request_id(request),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "request_id": _request_id(request)},
        )


def setup_cors(app: FastAPI) -> None:
    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


def setup_middleware(app: FastAPI) -> None:
    """Apply all middleware to the FastAPI app in the correct order."""
    # Last added runs outermost: CORS, then request id, then logging.
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    setup_cors(app)
    setup_exception_handlers(app)
