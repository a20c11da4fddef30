"""Celery task running one plan generation on a worker."""

from __future__ import annotations

import asyncio
from typing import Any

from celery import shared_task
from celery.utils.log import get_task_logger

from ..config import settings
from ..database import SessionLocal
from ..exceptions import GenerationError
from ..redis_client import close_redis, create_redis
from ..schemas.tasks import GenerationJob
from ..services.runtime import build_runtime
from ..task_store import RedisTaskStore

logger = get_task_logger(__name__)


def _run_async(coro):
    return asyncio.run(coro)


async def _run_job(job: GenerationJob) -> None:
    runtime = await build_runtime(settings, SessionLocal)
    try:
        await runtime.orchestrator.run(job)
    finally:
        await runtime.aclose()


@shared_task(
    bind=True,
    name="generation.run_plan_generation",
    queue=settings.CELERY_GENERATION_QUEUE,
    max_retries=0,
)
def run_plan_generation(self, *, job: dict[str, Any]) -> None:
    """Drive one generation task to a terminal state.

    Provider retries happen inside the orchestrator, so the Celery task itself
    is never retried. A redelivered message finds the task already terminal
    and returns without calling the provider again.
    """
    parsed = GenerationJob.model_validate(job)
    logger.info("generation_job_started task_id=%s kind=%s", parsed.task_id, parsed.kind.value)
    try:
        _run_async(_run_job(parsed))
    except Exception:
        logger.exception("generation_job_crashed task_id=%s", parsed.task_id)
        _run_async(_mark_crashed(parsed))


async def _mark_crashed(job: GenerationJob) -> None:
    redis = create_redis(settings)
    try:
        store = RedisTaskStore(redis, ttl_seconds=settings.TASK_TTL_SECONDS)
        await store.transition_to_failed(job.task_id, GenerationError.user_message, GenerationError.code)
    finally:
        await close_redis(redis)
