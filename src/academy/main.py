"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from academy.config import Settings, get_settings
from academy.database import close_db, init_db
from academy.dependencies import close_services, init_services
from academy.health.router import router as health_router
from academy.middleware import setup_middleware
from academy.redis_client import close_redis, get_redis, init_redis
from academy.rewards.domain import XPConfig
from academy.rewards.router import router as rewards_router
from academy.rewards.seed import seed_defaults
from academy.rewards.sql_store import SqlRewardStore
from academy.rewards.store import MemoryRewardStore, RewardStore

logger = logging.getLogger(__name__)


async def build_store(settings: Settings) -> RewardStore:
    """SQL store when a database URL is configured, in-memory otherwise."""
    default_config = XPConfig(
        xp_per_level=settings.default_xp_per_level,
        multiplier=settings.default_xp_multiplier,
    )
    if not settings.database_url:
        logger.warning("No database configured, using the in-memory reward store")
        return MemoryRewardStore(default_config)

    session_factory = await init_db(settings.database_url, create_tables=True)
    return SqlRewardStore(session_factory, default_config)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    store = await build_store(settings)
    if settings.redis_url:
        await init_redis(settings.redis_url, settings.redis_max_connections)

    if settings.seed_defaults:
        await seed_defaults(store)

    init_services(store, settings, redis=get_redis())

    yield

    close_services()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Academy Rewards API",
        description="XP, levels, skills, streaks, achievements and QR check-ins for a sports academy",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(rewards_router)

    return app


app = create_app()
