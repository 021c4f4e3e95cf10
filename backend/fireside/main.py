"""
Fireside Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() assembles middleware, exception handlers and routers around
       an AppState; the lifespan opens and closes that state.
Who:   uvicorn (uvicorn fireside.main:app); tests call create_app(state) with
       their own AppState.

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                         FastAPI App                          │
    │                                                              │
    │  Middleware:   Request ID → Access Log → GZip → CORS         │
    │                                                              │
    │  Routes:                                                     │
    │    GET    /api/devotions/entries/{id}/render                 │
    │    POST   /api/devotions/entries/{id}/highlights             │
    │    DELETE /api/highlights/{id}                               │
    │    GET    /api/study/series/{id}/highlights                  │
    │    POST   /api/study/entries/{id}/sentences/{n}/toggle       │
    │    GET    /api/library/highlights                            │
    │    GET    /health                                            │
    │                                                              │
    │  Exception Handlers:                                         │
    │    ValidationError → 400   NotFound → 404                    │
    │    Unauthorized → 401/403  RemoteRejected → 422              │
    │    RemoteUnavailable / CircuitBreakerOpen → 503              │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config check → AppState.startup() (HTTP client)
    Shutdown: AppState.shutdown() (drop sessions, close HTTP client)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from fireside import __version__
from fireside.config import settings
from fireside.exceptions import (
    CircuitBreakerOpenError,
    FiresideError,
    NotFoundError,
    RemoteRejectedError,
    RemoteUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from fireside.middleware.logging import RequestLoggingMiddleware
from fireside.middleware.request_id import RequestIDMiddleware, request_id_var
from fireside.routes import health, highlights, library, study
from fireside.state import AppState

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: 2026-01-15T12:00:00 [INFO] fireside.services.highlight_store: ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-request noise; fireside.access already covers it
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("Fireside Backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving /health so the misconfiguration is visible
        logger.error("Configuration error: %s", str(e))

    state: AppState = app.state.fireside
    await state.startup()

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Fireside Backend shutting down...")
    await state.shutdown()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    content = {
        "error": error,
        "message": message,
        "request_id": request_id_var.get(""),
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the Fireside exception hierarchy onto HTTP responses.

    Handler hierarchy:
        ValidationError          → 400
        NotFoundError            → 404
        UnauthorizedError        → 401 / 403 (backend message surfaced verbatim)
        RemoteRejectedError      → 422
        CircuitBreakerOpenError  → 503 + Retry-After
        RemoteUnavailableError   → 503 (+ Retry-After when known)
        FiresideError (base)     → 500
        Exception (fallback)     → 500, traceback logged server-side only
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(request: Request, exc: UnauthorizedError):
        logger.warning("[%s] Refused (%d): %s", request_id_var.get(""), exc.status_code, exc.message)
        error = "unauthenticated" if exc.status_code == 401 else "forbidden"
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return _error_response(exc.status_code, error, exc.message, headers=headers)

    @app.exception_handler(RemoteRejectedError)
    async def handle_remote_rejected(request: Request, exc: RemoteRejectedError):
        logger.warning("[%s] Backend rejected request: %s", request_id_var.get(""), exc.message)
        details = {"code": exc.code} if exc.code else None
        return _error_response(422, "rejected", exc.message, details)

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return _error_response(
            503,
            "service_unavailable",
            exc.message,
            {"recovery_time": exc.recovery_time},
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(RemoteUnavailableError)
    async def handle_remote_unavailable(request: Request, exc: RemoteUnavailableError):
        logger.error("[%s] Backend unavailable: %s | Context: %s",
                     request_id_var.get(""), exc.message, exc.context)
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        return _error_response(503, "service_unavailable", exc.message, headers=headers)

    @app.exception_handler(FiresideError)
    async def handle_fireside_error(request: Request, exc: FiresideError):
        logger.error("[%s] %s: %s | Context: %s",
                     request_id_var.get(""), type(exc).__name__, exc.message, exc.context)
        return _error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(state: Optional[AppState] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        state: Application state to serve from. Defaults to a fresh AppState
               built from the environment settings.
    """
    app = FastAPI(
        title="Fireside API",
        description=(
            "Highlights for Fireside devotions and studies: render entries with "
            "the reader's highlights, and create or delete them."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.fireside = state or AppState()

    # Last added runs first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(highlights.router)
    app.include_router(study.router)
    app.include_router(library.router)
    app.include_router(health.router)

    return app


app = create_app()
