"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. The Database is built here, once, and stored on app.state so
every request (and every component) shares the same engine without any
module-level global. Lifespan handles the async parts of startup and
shutdown: schema creation, the optional Redis pool, engine disposal.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from msgqueue import __version__
from msgqueue.api import api_router
from msgqueue.api.errors import register_error_handlers
from msgqueue.config import Settings, settings as default_settings
from msgqueue.db.engine import Database
from msgqueue.log import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` at shutdown.
    """
    settings: Settings = app.state.settings
    database: Database = app.state.database

    logger.info(
        "msgqueue.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
        database=database.url.render_as_string(hide_password=True),
    )

    database.ensure_storage_dir()
    if settings.create_schema:
        await database.create_all()
        logger.info("msgqueue.schema_ready")

    # Rate limiting is optional; the app works without Redis
    from msgqueue.middleware.rate_limit import connect_redis
    try:
        app.state.redis = await connect_redis(settings.redis_url)
        logger.info("msgqueue.redis_connected", url=settings.redis_url)
    except Exception as e:
        app.state.redis = None
        logger.warning("msgqueue.redis_unavailable", error=str(e))

    yield

    logger.info("msgqueue.shutdown")
    if app.state.redis is not None:
        await app.state.redis.aclose()
        app.state.redis = None
    await database.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or default_settings
    configure_logging(settings.log_level, json=settings.log_json)

    app = FastAPI(
        title="msgqueue",
        description="Authenticated JSON message queue",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = Database.from_settings(settings)
    app.state.redis = None

    register_error_handlers(app)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → RateLimit → CORS → handler

    from msgqueue.middleware.rate_limit import RateLimitMiddleware
    from msgqueue.middleware.request_id import RequestIdMiddleware
    from msgqueue.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: msgqueue.main:app)
app = create_app()
