"""
api/main.py -- FastAPI application entry point for the CondoSwift auth API.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects unexpected Host headers (ALLOWED_HOSTS)
  2. CORSMiddleware      -- the web client origin from FRONTEND_URL; answers
                            preflights before anything below counts them
  3. log_requests        -- method, path, status, latency, client
  4. security_headers    -- nosniff, frame and referrer policy, HSTS, CSP
  5. general_rate_limit  -- "general" policy for every /api/ path except health

Each add_middleware() call (and each @app.middleware function) wraps the ones
registered before it, so the stack is registered innermost first.

Lifespan builds the auth components once from Settings, stores the gateway
on app.state, and runs the session purge loop; shutdown cancels the loop,
waits for it to finish, and closes the user repository.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from auth.credentials import CredentialStore
from auth.dependencies import client_key
from auth.exceptions import AuthError, RateLimited, ValidationFailed
from auth.gateway import AuthGateway
from auth.ratelimit import AUTH, GENERAL, RateLimiter
from auth.sessions import SessionRegistry
from auth.store import build_user_repository
from auth.tokens import TokenService
from core.config import Settings, get_settings

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("condoswift.api")

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_gateway(settings: Settings) -> AuthGateway:
    """Construct the auth components from settings. One call per process or test."""
    credentials = CredentialStore(build_user_repository(settings.database_url), bcrypt_rounds=settings.bcrypt_rounds)
    tokens = TokenService(settings.secret_key)
    sessions = SessionRegistry(duration=timedelta(seconds=settings.session_duration_seconds))
    limiter = RateLimiter(
        {GENERAL: settings.general_rate_limit, AUTH: settings.auth_rate_limit},
        storage_uri=settings.rate_limit_storage_uri,
    )
    return AuthGateway(credentials, tokens, sessions, limiter)


# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval_seconds: int) -> None:
    """Drop expired sessions on a fixed interval.

    Lookups already reject expired sessions lazily; this loop only keeps the
    table from growing with sessions nobody presents again.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        removed = app.state.gateway.sessions.purge_expired()
        if removed:
            logger.info("Purged %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build auth components on startup and release them on shutdown."""
    logger.info("CondoSwift API starting up")
    settings = get_settings()
    app.state.settings = settings
    app.state.gateway = build_gateway(settings)
    logger.info(
        "Auth initialized (storage=%s, rate_limit_storage=%s, debug=%s)",
        "sql" if settings.database_url else "memory",
        settings.rate_limit_storage_uri.split("://", 1)[0],
        settings.debug,
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.session_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await app.state.purge_task
    app.state.gateway.close()
    logger.info("CondoSwift API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="CondoSwift API",
    description="Registration, login, and session management for the CondoSwift marketplace.",
    version=API_VERSION,
    lifespan=lifespan,
)


def _error_body(message: str, **extra) -> dict:
    return ErrorResponse(message=message, **extra).model_dump(by_alias=True, exclude_none=True)


def _rate_limited_response(exc: RateLimited) -> JSONResponse:
    response = JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))
    response.headers["Retry-After"] = str(exc.retry_after)
    return response


# ---------------------------------------------------------------------------
# General rate limit middleware (innermost)
#
# Runs before routing so a throttled client never reaches a handler. Health
# checks are exempt -- load balancers and monitors must not be throttled.
# Errors raised here bypass the exception handlers below, so the 429 body is
# built directly. The limiter storage may be remote (redis://), so the check
# runs in the threadpool instead of on the event loop.
# ---------------------------------------------------------------------------

_RATE_LIMIT_EXEMPT = ("/api/health",)


@app.middleware("http")
async def general_rate_limit(request: Request, call_next):
    path = request.url.path
    if path.startswith("/api/") and path not in _RATE_LIMIT_EXEMPT:
        try:
            await run_in_threadpool(request.app.state.gateway.throttle, client_key(request), GENERAL)
        except RateLimited as exc:
            return _rate_limited_response(exc)
    return await call_next(request)


# ---------------------------------------------------------------------------
# Security headers middleware
#
# Applied to every response that passes through, 429s included.
# ---------------------------------------------------------------------------

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'; base-uri 'none'",
    "Cross-Origin-Opener-Policy": "same-origin",
    "X-Permitted-Cross-Domain-Policies": "none",
}


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


# ---------------------------------------------------------------------------
# Request logging middleware
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
# CORS and host checks (outermost)
#
# Registered last so they wrap everything above: a preflight is answered
# before the rate limiter sees it, and a 429 still carries the CORS headers
# the browser needs to read it.
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().frontend_url],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=get_settings().allowed_hosts,
)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {success: false, message, ...} envelope so the
# web client can parse errors uniformly. Nothing raised below a route escapes
# without passing through one of these.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Translate the auth error taxonomy into status codes and bodies."""
    if isinstance(exc, RateLimited):
        return _rate_limited_response(exc)
    extra: dict = {}
    if isinstance(exc, ValidationFailed):
        extra["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, **extra))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one entry per offending field.

    Entry shape: {type, path, msg, location}. path is the wire (camelCase)
    field name; location is "body" for JSON bodies.
    """
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        errors.append(
            {
                "type": "field",
                "path": str(loc[-1]) if len(loc) > 1 else "",
                "msg": err.get("msg", ""),
                "location": str(loc[0]) if loc else "body",
            }
        )
    failure = ValidationFailed(errors)
    return JSONResponse(status_code=failure.status_code, content=_error_body(failure.message, errors=failure.errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured body for routing errors (404 unknown path, 405 wrong method)."""
    message = "API endpoint not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_body(message), headers=exc.headers)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the log. The client gets a generic message, plus
    the exception text only when DEBUG is on.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    settings = getattr(request.app.state, "settings", None)
    detail = str(exc) if settings is not None and settings.debug else None
    return JSONResponse(status_code=500, content=_error_body("Something went wrong!", error=detail))


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and the server time."""
    return HealthResponse(timestamp=datetime.now(timezone.utc).isoformat(), version=API_VERSION)
