"""
api/main.py -- FastAPI application entry point for the forum backend.

Run with:      uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware -- adds CORS headers for the web frontend; credentials
                       are allowed so the browser sends the session cookie.
  2. log_requests   -- one log line per request with latency.

Lifespan handles startup (stores, cache, auth service, purge task) and
shutdown (cancel purge task, close connections) symmetrically. Everything a
route needs hangs off app.state; there are no module-level store globals.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.posts import router as posts_router
from auth.email import LoggingEmailSender
from auth.reset import ResetTokenStore
from auth.service import AuthService
from auth.sessions import SessionStore
from auth.store import UserStore
from cache.redis_store import RedisCache
from cache.store import CacheError, SQLiteCache
from core.config import Settings, get_settings
from posts.store import PostStore

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("forum.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Cache selection
# ---------------------------------------------------------------------------


def build_cache(settings: Settings):
    """Redis when REDIS_URL is configured, otherwise the local SQLite cache."""
    if settings.redis_url:
        logger.info("Using Redis cache")
        return RedisCache.from_url(settings.redis_url)
    logger.info("Using SQLite cache at %s", settings.cache_db_path)
    return SQLiteCache(settings.cache_db_path)


# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_once(cache) -> None:
    """Run one purge in a worker thread; a failure is logged and the loop goes on.

    Only the SQLite cache needs this; Redis expires keys on its own.
    """
    if not isinstance(cache, SQLiteCache):
        return
    try:
        await asyncio.to_thread(cache.purge_expired)
    except CacheError:
        logger.exception("Cache purge failed")


async def _purge_loop(app: FastAPI) -> None:
    """Purge expired cache entries every 6 hours.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(6 * 60 * 60)
        await _purge_once(app.state.cache)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.

    Startup order matters:
      1. Stores and cache first -- they depend on nothing.
      2. Session store and auth service next -- both wrap the cache.
      3. Purge task last -- references app.state.cache.
    """
    logger.info("Forum API starting up")
    settings = get_settings()

    app.state.user_store = UserStore(db_url=settings.database_url)
    app.state.post_store = PostStore(db_url=settings.database_url)
    app.state.cache = build_cache(settings)
    logger.info("Stores initialized")

    app.state.session_store = SessionStore(app.state.cache, settings.session_ttl_seconds)
    app.state.auth_service = AuthService(
        user_store=app.state.user_store,
        reset_tokens=ResetTokenStore(app.state.cache, settings.reset_token_ttl_seconds),
        email_sender=LoggingEmailSender(),
        frontend_url=settings.frontend_url,
    )
    logger.info("Auth initialized (frontend_url=%s)", settings.frontend_url)
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.cache.close()
    app.state.post_store.close()
    app.state.user_store.close()
    logger.info("Forum API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Forum API",
    description="Accounts, sessions, password reset and posts.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type"],
    max_age=3600,
)


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
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(posts_router, prefix="/api/v1", tags=["Posts"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for infrastructure faults (database, cache, email).

    The traceback goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and database / cache reachability."""
    database_ok = request.app.state.user_store.ping()
    cache_ok = request.app.state.cache.ping()
    return HealthResponse(
        status="healthy" if database_ok and cache_ok else "degraded",
        version=__version__,
        components={
            "app": "ok",
            "database": "ok" if database_ok else "error",
            "cache": "ok" if cache_ok else "error",
        },
    )
