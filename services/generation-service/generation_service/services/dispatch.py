"""Where background generation units run.

``GenerationWorkerPool`` runs them inside the API process with a bounded
number of concurrent provider calls. ``CeleryDispatcher`` hands them to
Celery workers consuming the generation queue.
"""

from __future__ import annotations

import abc
import asyncio
from collections.abc import Awaitable, Callable

import structlog

from ..exceptions import GenerationBusyError, GenerationError
from ..schemas.tasks import GenerationJob
from ..task_store import TaskStore

logger = structlog.get_logger(__name__)

JobRunner = Callable[[GenerationJob], Awaitable[None]]


class Dispatcher(abc.ABC):
    @abc.abstractmethod
    def check_capacity(self) -> None:
        """Raise ``GenerationBusyError`` when no new unit can be accepted."""

    @abc.abstractmethod
    async def submit(self, job: GenerationJob, runner: JobRunner) -> None: ...

    async def shutdown(self) -> None:
        return None


class GenerationWorkerPool(Dispatcher):
    """At most ``max_concurrent`` units run; at most ``max_queued`` more wait."""

    def __init__(self, task_store: TaskStore, *, max_concurrent: int, max_queued: int):
        self._task_store = task_store
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._ceiling = max_concurrent + max_queued
        self._units: dict[asyncio.Task, GenerationJob] = {}
        self._closed = False

    @property
    def in_flight(self) -> int:
        return len(self._units)

    def check_capacity(self) -> None:
        if self._closed or len(self._units) >= self._ceiling:
            raise GenerationBusyError()

    async def submit(self, job: GenerationJob, runner: JobRunner) -> None:
        self.check_capacity()
        unit = asyncio.create_task(self._run_unit(job, runner), name=f"generation:{job.task_id}")
        self._units[unit] = job
        unit.add_done_callback(lambda done: self._units.pop(done, None))

    async def _run_unit(self, job: GenerationJob, runner: JobRunner) -> None:
        async with self._semaphore:
            try:
                await runner(job)
            except Exception:
                logger.exception("generation_unit_crashed", task_id=job.task_id, kind=job.kind.value)
                await self._fail(job, "crashed")

    async def _fail(self, job: GenerationJob, reason: str) -> None:
        try:
            await self._task_store.transition_to_failed(
                job.task_id,
                GenerationError.user_message,
                GenerationError.code,
            )
        except Exception:
            logger.exception("generation_unit_fail_transition_error", task_id=job.task_id, reason=reason)

    async def join(self) -> None:
        """Wait until every submitted unit has finished."""
        while self._units:
            await asyncio.gather(*list(self._units), return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop accepting work, cancel what is left and fail the cancelled tasks."""
        self._closed = True
        pending = dict(self._units)
        for unit in pending:
            unit.cancel()
        await self.join()
        for unit, job in pending.items():
            if unit.cancelled():
                await self._fail(job, "cancelled")
        if pending:
            logger.info("generation_pool_shutdown", cancelled=sum(unit.cancelled() for unit in pending))


class CeleryDispatcher(Dispatcher):
    """Enqueues units for Celery workers; the broker queue provides the bound."""

    def __init__(self, queue: str):
        self._queue = queue

    def check_capacity(self) -> None:
        return None

    async def submit(self, job: GenerationJob, runner: JobRunner) -> None:
        from ..tasks.generation_tasks import run_plan_generation

        payload = job.model_dump(mode="json")
        await asyncio.to_thread(run_plan_generation.apply_async, kwargs={"job": payload}, queue=self._queue)
        logger.info("generation_job_enqueued", task_id=job.task_id, queue=self._queue)
