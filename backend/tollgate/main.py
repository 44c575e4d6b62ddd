"""Tollgate ASGI application.

create_app() assembles the API: the v1 routers, one error envelope for
every failure path, response hardening headers, CORS, the rate limiter,
and (when SCHEDULER_ENABLED) the in-process daily deduction job.

Run with: uvicorn tollgate.main:app
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from tollgate.api.v1.router import router as v1_router
from tollgate.core.config import settings
from tollgate.core.database import async_session_factory
from tollgate.core.errors import APIError, StoreError, ValidationError
from tollgate.core.rate_limiting import limiter, rate_limit_exceeded_handler
from tollgate.core.responses import ErrorDetail, ErrorResponse
from tollgate.core.scheduler import create_scheduler, start_scheduler, stop_scheduler

logger = structlog.get_logger()

# Seconds a client should wait before retrying after STORE_ERROR.
STORE_RETRY_AFTER_SECONDS = 5

HARDENING_HEADERS: dict[str, str] = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}
API_CACHE_CONTROL = "no-store, max-age=0"
HSTS_HEADER = "max-age=31536000; includeSubDomains"


class HardeningHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp HARDENING_HEADERS onto every response.

    Responses under /api/ also get Cache-Control: no-store, since they
    carry balances and account status. HSTS is only sent in production,
    where TLS terminates at the proxy.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        response.headers.update(HARDENING_HEADERS)
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = API_CACHE_CONTROL
        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = HSTS_HEADER
        return response


# =============================================================================
# Error envelope
# =============================================================================


def error_envelope(
    status_code: int,
    code: str,
    message: str,
    details: list[dict] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render {"error": {code, message, details}} with the given status."""
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return JSONResponse(
        status_code=status_code, content=body.model_dump(), headers=headers
    )


def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Render any APIError. STORE_ERROR responses carry Retry-After."""
    headers = None
    if isinstance(exc, StoreError):
        logger.warning("store_unavailable", path=request.url.path)
        headers = {"Retry-After": str(STORE_RETRY_AFTER_SECONDS)}
    return error_envelope(
        exc.status_code, exc.code, exc.message, exc.details, headers=headers
    )


def handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed requests as ValidationError (400).

    Each detail names the offending field by its dotted path inside the
    body, query or path, without the location prefix.
    """
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"][1:]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return handle_api_error(
        request, ValidationError("Request validation failed", details=details)
    )


def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    """Log an unhandled exception and answer 500 without internals."""
    logger.exception("unhandled_exception", exc_info=exc, path=request.url.path)
    return error_envelope(500, "INTERNAL_ERROR", "An unexpected error occurred")


# =============================================================================
# Application
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Run the daily deduction scheduler for the app's lifetime if enabled."""
    if not settings.scheduler_enabled:
        yield
        return

    scheduler = create_scheduler(async_session_factory)
    start_scheduler(scheduler)
    try:
        yield
    finally:
        stop_scheduler(scheduler)


def create_app() -> FastAPI:
    """Build the Tollgate FastAPI application."""
    app = FastAPI(
        title="Tollgate API",
        version="1.0.0",
        description="Membership approval and credit ledger",
        lifespan=lifespan,
    )

    # Added last so it wraps everything and answers preflights first.
    app.add_middleware(HardeningHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization"],
    )

    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, handle_unexpected)

    app.state.limiter = limiter
    app.include_router(v1_router, prefix="/api/v1")

    @app.get("/health")
    def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()
