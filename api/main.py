"""
api/main.py -- FastAPI application entry point for RoleKeeper.

Exposes the auth core over HTTP for the single-page front end: sign-up and
sign-in, self-profile management, and admin/superadmin account administration.

Run with:      uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware        -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the store, token issuer, lockout policy and services from
Settings on startup and closes the store on shutdown. Nothing in auth/ reads
configuration on its own; every value arrives through a constructor here.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.v1.admin import router as admin_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.superadmin import router as superadmin_router
from api.routes.v1.users import router as users_router
from auth.accounts import AccountService
from auth.errors import AuthError, InternalError, ValidationFailed
from auth.lockout import LockoutPolicy
from auth.service import AuthService
from auth.store import AccountStore
from auth.tokens import TokenIssuer
from core.config import get_settings

APP_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("rolekeeper.api")


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build application-level services once and tear them down on shutdown.

    Startup order follows the dependency graph: store first, then the token
    issuer and lockout policy, then the two services that take them.
    """
    settings = get_settings()
    logger.info("RoleKeeper API starting up")

    store = AccountStore(settings.database_url)
    issuer = TokenIssuer(settings.secret_key, expire_seconds=settings.token_expire_seconds)
    lockout = LockoutPolicy(
        max_attempts=settings.max_login_attempts,
        lock_seconds=settings.lock_duration_seconds,
    )

    app.state.account_store = store
    app.state.token_issuer = issuer
    app.state.auth_service = AuthService(store, issuer, lockout, settings.admin_unique_code)
    app.state.account_service = AccountService(store, lockout)
    logger.info(
        "Auth initialized (max_attempts=%d, lock_seconds=%d)",
        settings.max_login_attempts,
        settings.lock_duration_seconds,
    )

    yield

    store.close()
    logger.info("RoleKeeper API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="RoleKeeper API",
    description="Role-based account management: sign-up, sign-in, profiles and tiered administration.",
    version=APP_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them: CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
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
# handler. Wall-clock time before and after call_next gives the latency.
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

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(admin_router, prefix="/api", tags=["Admin"])
app.include_router(superadmin_router, prefix="/api", tags=["Super Admin"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {"message", "code", ...} envelope so the front
# end can branch on code without inspecting status codes.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, message: str, code: str, **extra) -> JSONResponse:
    body = ErrorResponse(message=message, code=code, **extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def _auth_error_response(exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map every auth core failure to its status code and envelope."""
    return _auth_error_response(exc)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    client = request.client.host if request.client else "unknown"
    logger.warning("Rate limit exceeded on %s from %s", request.url.path, client)
    response = _error_response(429, "Too many requests. Please try again later.", "RATE_LIMITED")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 VALIDATION_FAILED with per-field errors for bad bodies or query params."""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return _auth_error_response(ValidationFailed(errors=errors))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Structured error for FastAPI/Starlette HTTP exceptions (404 route, 405, ...)."""
    response = _error_response(exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}")
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _auth_error_response(InternalError())


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# No rate limit applied: health checks from load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and a database round-trip check."""
    store: AccountStore = request.app.state.account_store
    database = "ok" if store.ping() else "error"
    return HealthResponse(version=APP_VERSION, components={"app": "ok", "database": database})
