from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger
from redis.asyncio import Redis

from rewards_api.core.settings import settings
from rewards_api.db.session import engine
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing
from .services.cards import CardCache, InMemoryCardCache, RedisCardCache
from .services.sync import RedisSyncPublisher, SyncEventPublisher


APP_VERSION = "0.1.0"
SERVICE_NAME = "rewards-api"


def _build_card_cache(redis_client: Redis | None) -> CardCache:
    if settings.card_cache_backend == "redis" and redis_client is not None:
        return RedisCardCache(redis_client, key_prefix=settings.card_cache_key_prefix)
    return InMemoryCardCache()


def _build_sync_publisher(redis_client: Redis | None) -> SyncEventPublisher | None:
    if settings.sync_events_enabled and redis_client is not None:
        return RedisSyncPublisher(redis_client, channel_prefix=settings.sync_events_channel_prefix)
    return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Rewards API starting",
        card_cache_backend=settings.card_cache_backend,
        sync_events_enabled=settings.sync_events_enabled,
    )
    try:
        yield
    finally:
        redis_client: Redis | None = getattr(app.state, "redis", None)
        if redis_client is not None:
            await redis_client.aclose()
        await engine.dispose()
        logger.info("Rewards API stopped")


def create_app() -> FastAPI:
    """Application factory for the rewards FastAPI service."""
    configure_logging(
        service_name=SERVICE_NAME,
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="Rewards API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    configure_tracing(
        app,
        service_name=SERVICE_NAME,
        service_version=APP_VERSION,
        environment=settings.environment,
    )

    needs_redis = settings.card_cache_backend == "redis" or settings.sync_events_enabled
    redis_client = Redis.from_url(settings.redis_url) if needs_redis else None
    app.state.redis = redis_client
    app.state.card_cache = _build_card_cache(redis_client)
    app.state.sync_publisher = _build_sync_publisher(redis_client)

    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
