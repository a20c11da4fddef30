"""Accepts generation requests and drives each one to a terminal state.

``start`` does everything that can fail synchronously (validation, provider
configuration, capacity) before a task record exists, then hands the work to
a dispatcher and returns. ``run`` is the background unit; whatever happens in
it ends in exactly one terminal transition.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any, Protocol

import structlog
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..exceptions import (
    GenerationBusyError,
    GenerationError,
    OutputInvalidError,
    PersistenceError,
    ProviderConfigNotFoundError,
    TaskNotFoundError,
)
from ..metrics import GENERATION_TASKS_TOTAL, PLAN_SAVE_FAILURES_TOTAL
from ..prompts import build_nutrition_plan_prompt, build_training_plan_prompt, with_strict_json_instruction
from ..providers import ProviderClient, ProviderCredentials
from ..repositories.provider_configs import ProviderConfigRepository
from ..schemas.generation import NutritionPlanRequest, PlanKind, TrainingPlanRequest, parse_generation_request
from ..schemas.tasks import GenerationJob, TaskStatusResponse, TaskSubmissionResponse
from ..task_store import TaskStore
from .dispatch import Dispatcher
from .executor import AttemptBudget, RequestExecutor
from .nutrition_targets import estimate_daily_calories
from .provider_configs import ProviderConfigService
from .response_parser import parse_plan

logger = structlog.get_logger(__name__)

PlanRequest = TrainingPlanRequest | NutritionPlanRequest

PROGRESS_CLIENT_READY = 10
PROGRESS_PROMPT_SENT = 30
PROGRESS_OUTPUT_RECEIVED = 60
PROGRESS_PLAN_VALIDATED = 80


class PlanStore(Protocol):
    def save(
        self,
        owner_id: str,
        kind: PlanKind,
        document: BaseModel,
        request: PlanRequest,
        provider_config_id: int | None,
    ) -> str: ...


class GenerationOrchestrator:
    def __init__(
        self,
        *,
        task_store: TaskStore,
        dispatcher: Dispatcher,
        executor: RequestExecutor,
        provider_configs: ProviderConfigService,
        plan_store: PlanStore,
        session_factory: Callable[[], Session],
        attempts: int,
        regenerate_on_invalid_output: bool = True,
        save_attempts: int = 3,
        save_retry_delay_seconds: float = 0.5,
        estimated_time_seconds: int = 60,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._task_store = task_store
        self._dispatcher = dispatcher
        self._executor = executor
        self._provider_configs = provider_configs
        self._plan_store = plan_store
        self._session_factory = session_factory
        self._attempts = attempts
        self._regenerate = regenerate_on_invalid_output
        self._save_attempts = save_attempts
        self._save_retry_delay = save_retry_delay_seconds
        self._estimated_time = estimated_time_seconds
        self._sleep = sleep

    @property
    def task_store(self) -> TaskStore:
        return self._task_store

    async def start(self, owner_id: str, request: PlanRequest | dict[str, Any]) -> TaskSubmissionResponse:
        if isinstance(request, dict):
            request = parse_generation_request(request)
        kind = PlanKind(request.kind)
        # pin the start date now so a queued job plans from the day it was requested
        if request.start_date is None:
            request = request.model_copy(update={"start_date": date.today()})

        config_id = await asyncio.to_thread(self._resolve_config_id, owner_id, request.ai_provider_config_id)
        self._dispatcher.check_capacity()

        task_id = await self._task_store.create(owner_id, kind)
        job = GenerationJob(
            task_id=task_id,
            owner_id=owner_id,
            kind=kind,
            request=request.model_dump(mode="json"),
            provider_config_id=config_id,
        )
        try:
            await self._dispatcher.submit(job, self.run)
        except GenerationBusyError as exc:
            await self._task_store.transition_to_failed(task_id, exc.user_message, exc.code)
            raise

        logger.info(
            "generation_task_created",
            task_id=task_id,
            kind=kind.value,
            owner_id=owner_id,
            provider_config_id=config_id,
        )
        return TaskSubmissionResponse(task_id=task_id, estimated_time_seconds=self._estimated_time)

    async def get_status(self, task_id: str, owner_id: str, kind: PlanKind | None = None) -> TaskStatusResponse:
        task = await self._task_store.get(task_id, owner_id)
        if kind is not None and task.kind != kind:
            raise TaskNotFoundError()
        return TaskStatusResponse.from_task(task)

    async def run(self, job: GenerationJob) -> None:
        log = logger.bind(task_id=job.task_id, kind=job.kind.value, owner_id=job.owner_id)
        try:
            task = await self._task_store.get(job.task_id, job.owner_id)
        except TaskNotFoundError:
            log.info("generation_task_expired")
            return
        if task.is_terminal:
            # redelivered job; the first run already settled the task
            log.info("generation_task_already_finished", status=task.status.value)
            return

        try:
            result_ref = await self._generate(job, log)
        except GenerationError as exc:
            await self._fail(job, exc, log)
            return
        except Exception:
            log.exception("generation_task_unexpected_error")
            await self._fail(job, GenerationError(), log)
            return

        applied = await self._task_store.transition_to_completed(job.task_id, result_ref)
        GENERATION_TASKS_TOTAL.labels(kind=job.kind.value, outcome="completed").inc()
        log.info("generation_task_completed", result_ref=result_ref, applied=applied)

    async def _generate(self, job: GenerationJob, log) -> str:
        request = parse_generation_request(job.request)
        credentials = await asyncio.to_thread(self._load_credentials, job)
        client = self._provider_configs.client_for(credentials)
        await self._task_store.set_progress(job.task_id, PROGRESS_CLIENT_READY)

        async with client:
            document = await self._generate_document(job, request, client, log)
        await self._task_store.set_progress(job.task_id, PROGRESS_PLAN_VALIDATED)

        return await self._save(job, request, document, log)

    def _resolve_config_id(self, owner_id: str, config_id: int | None) -> int:
        with self._session_factory() as db:
            return self._provider_configs.resolve(db, owner_id, config_id).id

    def _load_credentials(self, job: GenerationJob) -> ProviderCredentials:
        with self._session_factory() as db:
            config = ProviderConfigRepository.get(db, job.provider_config_id, job.owner_id)
            if config is None or not config.is_active:
                raise ProviderConfigNotFoundError(f"provider config {job.provider_config_id} no longer available")
            return self._provider_configs.load_credentials(config)

    def _build_prompt(self, request: PlanRequest) -> str:
        if isinstance(request, TrainingPlanRequest):
            return build_training_plan_prompt(request)
        daily_calories = request.daily_calories or estimate_daily_calories(request.body_data, request.fitness_goals)
        return build_nutrition_plan_prompt(request, daily_calories)

    async def _generate_document(self, job: GenerationJob, request: PlanRequest, client: ProviderClient, log):
        budget = AttemptBudget(self._attempts)
        prompt = self._build_prompt(request)
        await self._task_store.set_progress(job.task_id, PROGRESS_PROMPT_SENT)

        raw = await self._executor.execute(client, prompt, job.kind, budget)
        await self._task_store.set_progress(job.task_id, PROGRESS_OUTPUT_RECEIVED)
        try:
            return parse_plan(raw, job.kind)
        except OutputInvalidError:
            if not self._regenerate or budget.exhausted:
                raise
            log.info("plan_output_invalid_regenerating", remaining_attempts=budget.remaining)

        raw = await self._executor.execute(client, with_strict_json_instruction(prompt), job.kind, budget)
        return parse_plan(raw, job.kind)

    async def _save(self, job: GenerationJob, request: PlanRequest, document: BaseModel, log) -> str:
        def record_failure(retry_state) -> None:
            PLAN_SAVE_FAILURES_TOTAL.labels(kind=job.kind.value).inc()
            log.warning("plan_save_retry", attempt=retry_state.attempt_number)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._save_attempts),
            wait=wait_exponential(multiplier=self._save_retry_delay),
            retry=retry_if_exception_type(SQLAlchemyError),
            sleep=self._sleep,
            before_sleep=record_failure,
            reraise=True,
        )
        try:
            result_ref = ""
            async for attempt in retrying:
                with attempt:
                    result_ref = await asyncio.to_thread(
                        self._plan_store.save,
                        job.owner_id,
                        job.kind,
                        document,
                        request,
                        job.provider_config_id,
                    )
            return result_ref
        except SQLAlchemyError as exc:
            PLAN_SAVE_FAILURES_TOTAL.labels(kind=job.kind.value).inc()
            raise PersistenceError(f"plan save failed after {self._save_attempts} attempts") from exc

    async def _fail(self, job: GenerationJob, exc: GenerationError, log) -> None:
        applied = await self._task_store.transition_to_failed(job.task_id, exc.user_message, exc.code)
        GENERATION_TASKS_TOTAL.labels(kind=job.kind.value, outcome=exc.code).inc()
        log.warning(
            "generation_task_failed",
            error_code=exc.code,
            error_type=type(exc).__name__,
            detail=str(exc),
            applied=applied,
        )
