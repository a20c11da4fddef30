"""Wiring of the generation pipeline from settings."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import httpx
import structlog
from redis.asyncio import Redis
from sqlalchemy.orm import Session

from ..config import Settings
from ..redis_client import close_redis, init_redis
from ..repositories.plans import SqlPlanStore
from ..security import SecretCipher
from ..task_store import InMemoryTaskStore, RedisTaskStore, TaskStore
from .dispatch import CeleryDispatcher, Dispatcher, GenerationWorkerPool
from .executor import RequestExecutor
from .orchestrator import GenerationOrchestrator
from .provider_configs import ProviderConfigService

logger = structlog.get_logger(__name__)


@dataclass
class GenerationRuntime:
    orchestrator: GenerationOrchestrator
    provider_configs: ProviderConfigService
    dispatcher: Dispatcher
    http_client: httpx.AsyncClient
    redis: Redis | None = None

    async def aclose(self) -> None:
        await self.dispatcher.shutdown()
        await self.http_client.aclose()
        await close_redis(self.redis)


def build_provider_config_service(settings: Settings, http_client: httpx.AsyncClient | None = None) -> ProviderConfigService:
    return ProviderConfigService(
        SecretCipher(settings.SECRET_ENCRYPTION_KEY),
        timeout_seconds=settings.AI_TIMEOUT_SECONDS,
        http_client=http_client,
    )


async def build_runtime(settings: Settings, session_factory: Callable[[], Session]) -> GenerationRuntime:
    redis: Redis | None = None
    task_store: TaskStore
    if settings.TASK_STORE_BACKEND == "redis":
        redis = await init_redis(settings)
        task_store = RedisTaskStore(redis, ttl_seconds=settings.TASK_TTL_SECONDS)
    else:
        task_store = InMemoryTaskStore(ttl_seconds=settings.TASK_TTL_SECONDS)

    dispatcher: Dispatcher
    if settings.EXECUTION_BACKEND == "celery":
        dispatcher = CeleryDispatcher(settings.CELERY_GENERATION_QUEUE)
    else:
        dispatcher = GenerationWorkerPool(
            task_store,
            max_concurrent=settings.AI_MAX_CONCURRENT_REQUESTS,
            max_queued=settings.AI_MAX_QUEUED_REQUESTS,
        )

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.AI_TIMEOUT_SECONDS))
    provider_configs = build_provider_config_service(settings, http_client)
    orchestrator = GenerationOrchestrator(
        task_store=task_store,
        dispatcher=dispatcher,
        executor=RequestExecutor(
            timeout_seconds=settings.AI_TIMEOUT_SECONDS,
            retry_delay_seconds=settings.AI_RETRY_DELAY_SECONDS,
            max_retry_delay_seconds=settings.AI_RETRY_MAX_DELAY_SECONDS,
        ),
        provider_configs=provider_configs,
        plan_store=SqlPlanStore(session_factory),
        session_factory=session_factory,
        attempts=settings.AI_RETRY_ATTEMPTS,
        regenerate_on_invalid_output=settings.AI_REGENERATE_ON_INVALID_OUTPUT,
        save_attempts=settings.PLAN_SAVE_ATTEMPTS,
        save_retry_delay_seconds=settings.PLAN_SAVE_RETRY_DELAY_SECONDS,
        estimated_time_seconds=settings.ESTIMATED_GENERATION_SECONDS,
    )
    logger.info(
        "generation_runtime_ready",
        task_store=settings.TASK_STORE_BACKEND,
        execution_backend=settings.EXECUTION_BACKEND,
        max_concurrent=settings.AI_MAX_CONCURRENT_REQUESTS,
    )
    return GenerationRuntime(
        orchestrator=orchestrator,
        provider_configs=provider_configs,
        dispatcher=dispatcher,
        http_client=http_client,
        redis=redis,
    )
