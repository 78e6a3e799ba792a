"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown of the database handle and
the optional Redis client. Middleware, exception handlers and routers
are all registered here.

Everything a request needs from the outside world hangs off ``app.state``:
- settings → the Settings instance this app was built with
- tokens   → TokenIssuer (access/refresh secrets + lifetimes)
- db       → Database handle (engine + session factory)
- redis    → Redis client for rate limiting, or None
"""

from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as aioredis
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from vidtube import __version__
from vidtube.api import api_router
from vidtube.auth.jwt import TokenIssuer
from vidtube.config import Settings, settings as default_settings
from vidtube.db.engine import Database
from vidtube.errors import ApiError, ErrorKind, error_envelope
from vidtube.logconfig import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. A Database injected into create_app() (tests, CLI) is left
    for its owner to dispose.
    """
    settings: Settings = app.state.settings
    logger.info(
        "vidtube.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    owns_db = getattr(app.state, "db", None) is None
    if owns_db:
        app.state.db = Database.from_settings(settings)
    if settings.create_tables_on_startup:
        await app.state.db.create_all()

    # Redis is optional — app works without rate limiting
    app.state.redis = None
    client = aioredis.from_url(
        settings.redis_url, encoding="utf-8", decode_responses=True
    )
    try:
        await client.ping()
        app.state.redis = client
        logger.info("vidtube.redis_connected")
    except Exception as e:
        await client.aclose()
        logger.warning("vidtube.redis_unavailable", error=str(e))

    yield

    logger.info("vidtube.shutdown")
    if app.state.redis is not None:
        await app.state.redis.aclose()
        app.state.redis = None
    if owns_db:
        await app.state.db.dispose()


# ─── Exception handlers ─────────────────────────────────


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.kind is ErrorKind.INTERNAL:
        logger.error("http.internal_error", path=request.url.path, message=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_envelope(),
        headers=exc.headers,
    )


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    status = ErrorKind.VALIDATION.status_code
    return JSONResponse(
        status_code=status,
        content=error_envelope(status, "Invalid request", errors),
    )


async def _http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.status_code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("http.unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_envelope(500, "Something went wrong"),
    )


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or default_settings
    configure_logging(settings.log_level, json_logs=settings.log_json)

    app = FastAPI(
        title="VidTube",
        description="Video-sharing platform backend — accounts, channels, comments",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.tokens = TokenIssuer.from_settings(settings)
    if database is not None:
        app.state.db = database

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from vidtube.middleware.rate_limit import RateLimitMiddleware
    from vidtube.middleware.request_id import RequestIdMiddleware
    from vidtube.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(HTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: vidtube.main:app)
app = create_app()
