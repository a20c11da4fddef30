from __future__ import annotations

import structlog
from redis.asyncio import Redis

from .config import Settings

logger = structlog.get_logger(__name__)


def create_redis(settings: Settings) -> Redis:
    return Redis(
        host=settings.GENERATION_REDIS_HOST,
        port=settings.GENERATION_REDIS_PORT,
        db=settings.GENERATION_REDIS_DB,
        password=settings.GENERATION_REDIS_PASSWORD,
        encoding="utf-8",
        decode_responses=True,
        health_check_interval=30,
    )


async def init_redis(settings: Settings) -> Redis:
    client = create_redis(settings)
    await client.ping()
    logger.info(
        "redis_connection_established",
        host=settings.GENERATION_REDIS_HOST,
        port=settings.GENERATION_REDIS_PORT,
        db=settings.GENERATION_REDIS_DB,
    )
    return client


async def close_redis(client: Redis | None) -> None:
    if client is None:
        return
    try:
        await client.aclose()
        logger.info("redis_connection_closed")
    except Exception:
        logger.warning("Failed to close generation redis connection", exc_info=True)
