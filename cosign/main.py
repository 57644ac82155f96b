"""Cosign FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() - application factory; every call builds an independent app
                   (own database handle, stores, services and rate limiter)
  - lifespan     - @asynccontextmanager startup/shutdown sequence
  - exception handlers mapping the error taxonomy onto HTTP statuses

Everything a request needs lives on ``app.state``:
  config, database, keys (KeyService), cors (CORSService),
  rate_limiter (RateLimiterRegistry), limiter (slowapi), ready

Startup sequence:
  1. database.initialize()  → connect + PRAGMA user_version migrations
  2. keys.bootstrap()       → only if a bootstrap token is configured
  3. cors.seed()            → only if the whitelist is empty
  4. app.state.ready = True

Shutdown (reverse): ready = False → close database.

Routes:
  GET /health                       - unauthenticated
  /api/v1/admin/keys, /api/v1/admin/cors - behind require_api_key
  extra public routers passed to create_app() - behind CORS + rate limit
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Iterable, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from cosign.auth.keys import KeyService
from cosign.auth.limiter import limiter, set_admin_rate_limit
from cosign.auth.router import router as keys_router
from cosign.config import Config, load_config
from cosign.cors.router import router as cors_router
from cosign.cors.service import CORSService
from cosign.errors import GENERIC_STORAGE_MESSAGE, CosignError, StorageError
from cosign.health import router as health_router
from cosign.middleware import RequestIDMiddleware
from cosign.ratelimit.registry import RateLimiterRegistry
from cosign.routing import error_response
from cosign.storage.database import Database
from cosign.storage.sqlite import SQLiteKeyStore, SQLiteOriginStore
from cosign.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)

ADMIN_PREFIX = "/api/v1/admin"


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open storage, apply bootstrap/seed, then serve until shutdown.

    A malformed bootstrap token (InvalidTokenFormatError) or an unusable
    database (StorageError) aborts startup: the database is closed and the
    error propagates, so the server never reports ready.
    """
    config: Config = app.state.config
    database: Database = app.state.database
    keys: KeyService = app.state.keys
    cors: CORSService = app.state.cors

    logger.info("Cosign starting up...", database=database.path)

    # Resolved before the database opens: an unreadable token file exits here.
    token = config.auth.resolve_bootstrap_token()

    await database.initialize()
    try:
        if token:
            if await keys.bootstrap(token):
                logger.info("Bootstrap key installed")
            else:
                logger.info("Bootstrap skipped: keys already exist")

        await cors.seed(config.cors.initial_origins)
    except CosignError as exc:
        logger.error("Startup failed", error=str(exc), error_type=type(exc).__name__)
        await database.close()
        raise

    app.state.ready = True
    logger.info("Cosign ready")

    yield

    logger.info("Cosign shutting down...")
    app.state.ready = False
    await database.close()
    logger.info("Cosign shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app(
    config: Optional[Config] = None,
    public_routers: Iterable[APIRouter] = (),
) -> FastAPI:
    """Create and configure the Cosign FastAPI application.

    Args:
        config:         Loaded configuration; ``load_config()`` is called when None.
        public_routers: Routers built with ``cosign.guards.public_router()``
                        (browser-facing mutation routes of the embedding app).
                        They are mounted at the root.

    Returns:
        Configured FastAPI application with lifespan, routers, and middleware.
    """
    if config is None:
        config = load_config()

    application = FastAPI(
        title="Cosign",
        description="API keys, CORS whitelist and rate limiting for the Cosign campaign manager",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
        openapi_url="/openapi.json" if DEBUG else None,
    )

    # Not ready until lifespan completes; /health returns 503 meanwhile.
    application.state.ready = False
    application.state.config = config

    database = Database(config.database.path, wal=config.database.wal)
    application.state.database = database
    application.state.keys = KeyService(SQLiteKeyStore(database))
    application.state.cors = CORSService(SQLiteOriginStore(database))
    application.state.rate_limiter = RateLimiterRegistry(
        rate=config.rate_limit.rate,
        burst=config.rate_limit.burst,
        max_clients=config.rate_limit.max_clients,
    )

    # Coarse key-management cap (slowapi requires app.state.limiter).
    set_admin_rate_limit(config.auth.admin_rate_limit)
    application.state.limiter = limiter

    application.add_middleware(RequestIDMiddleware)

    application.include_router(health_router)
    application.include_router(keys_router, prefix=ADMIN_PREFIX)
    application.include_router(cors_router, prefix=ADMIN_PREFIX)
    for router in public_routers:
        application.include_router(router)

    # ─── Exception handlers ───────────────────────────────────────────────────

    @application.exception_handler(RateLimitExceeded)
    async def admin_rate_limit_handler(
        request: Request, exc: RateLimitExceeded
    ) -> JSONResponse:
        logger.warning(
            "Admin rate limit exceeded",
            limit=str(exc.detail),
            path=request.url.path,
        )
        return error_response(429, "Rate limit exceeded", "rate_limited")

    @application.exception_handler(CosignError)
    async def cosign_error_handler(request: Request, exc: CosignError) -> JSONResponse:
        if isinstance(exc, StorageError):
            logger.error(
                "Storage error",
                error=str(exc),
                path=request.url.path,
                method=request.method,
            )
            return error_response(500, GENERIC_STORAGE_MESSAGE, StorageError.code)
        logger.warning(
            "Request rejected",
            status_code=exc.status_code,
            code=exc.code,
            path=request.url.path,
        )
        return error_response(exc.status_code, exc.message, exc.code)

    @application.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return error_response(
            exc.status_code, str(exc.detail), "http_error", headers=exc.headers
        )

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return error_response(500, GENERIC_STORAGE_MESSAGE, "internal_error")

    return application
