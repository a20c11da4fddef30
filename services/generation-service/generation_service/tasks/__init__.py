"""Celery tasks package for generation-service.

Importing the task modules registers their ``@shared_task`` functions when
``celery_app.autodiscover_tasks(["generation_service"])`` loads this package.
"""

from . import generation_tasks as _generation_tasks  # noqa: F401
