"""Celery application for generation-service."""

from __future__ import annotations

from celery import Celery

from .config import settings

celery_app = Celery(
    "generation_service",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_default_queue=settings.CELERY_GENERATION_QUEUE,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.AI_MAX_CONCURRENT_REQUESTS,
    task_acks_late=True,
    task_time_limit=settings.TASK_TTL_SECONDS,
    task_ignore_result=True,
)

celery_app.autodiscover_tasks(["generation_service"])
