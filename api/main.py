"""
api/main.py -- FastAPI application entry point for BugTracker.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan handles startup (stores, lifecycle manager) and shutdown (dispose
engines) symmetrically. The stores and the BugLifecycle built on them are
the only shared objects; they hold no per-request state.

Error mapping: every core.errors.BugTrackerError subclass has one HTTP status
in _ERROR_STATUS. The handlers below render all errors in the same
{"error": {"code", "message", "detail"}} envelope.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.bugs import router as bugs_router
from auth.store import UserStore
from bugs.lifecycle import BugLifecycle
from bugs.store import BugStore
from core.config import get_settings
from core.errors import (
    BugTrackerError,
    EmailAlreadyExists,
    IntegrityViolation,
    InvalidAssignee,
    InvalidCredentials,
    InvalidToken,
    NoChanges,
    NotFound,
    RegistrationDisabled,
    StorageFailure,
    Unauthorized,
)

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("bugtracker.api")

_settings = get_settings()

# Domain error kind -> HTTP status. Kinds not listed fall back to 400.
_ERROR_STATUS: dict[type[BugTrackerError], int] = {
    NotFound: 404,
    Unauthorized: 403,
    EmailAlreadyExists: 409,
    InvalidCredentials: 401,
    InvalidToken: 401,
    InvalidAssignee: 400,
    NoChanges: 400,
    RegistrationDisabled: 403,
    StorageFailure: 500,
    IntegrityViolation: 500,
}

# Kinds whose message may carry internal detail. Clients get the class default.
_OPAQUE_ERRORS = (StorageFailure, IntegrityViolation)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. DATABASE_URL, when set, points both stores at the same
    database; otherwise each uses its default SQLite file.
    """
    logger.info("BugTracker API starting up")
    if _settings.database_url:
        app.state.user_store = UserStore(_settings.database_url)
        app.state.bug_store = BugStore(_settings.database_url)
    else:
        app.state.user_store = UserStore()
        app.state.bug_store = BugStore()
    app.state.bug_lifecycle = BugLifecycle(app.state.bug_store, app.state.user_store)
    logger.info("Stores initialized (users_present=%s)", app.state.user_store.has_users())

    yield

    app.state.bug_store.close()
    app.state.user_store.close()
    logger.info("BugTracker API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="BugTracker API",
    description="Role-based bug tracking: reporters file bugs, managers assign them, developers resolve them.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Wall-clock time around call_next gives the latency on every
# response. Headers and bodies are never logged (they carry tokens and
# passwords).
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(bugs_router, prefix="/api/v1", tags=["Bugs"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(BugTrackerError)
async def domain_error_handler(request: Request, exc: BugTrackerError) -> JSONResponse:
    """Map a domain error kind to its HTTP status and the error envelope.

    Storage and integrity failures are logged with their chained cause and
    answered with the generic class message only -- internal error text
    never reaches the client.
    """
    status_code = next(
        (status for kind, status in _ERROR_STATUS.items() if isinstance(exc, kind)),
        400,
    )
    if isinstance(exc, _OPAQUE_ERRORS):
        logger.error(
            "%s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc,
        )
        return _error_response(status_code, exc.code, type(exc).message)
    if isinstance(exc, (Unauthorized, InvalidToken, InvalidCredentials)):
        logger.info("%s on %s %s", exc.code, request.method, request.url.path)
    response = _error_response(status_code, exc.code, exc.message)
    if isinstance(exc, InvalidToken):
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or path params fail validation."""
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail=ErrorDetail(...).model_dump()
    (a dict). When detail is already a structured dict, use it directly as the
    error field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No auth and no rate limit --
# load balancers and monitors must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
