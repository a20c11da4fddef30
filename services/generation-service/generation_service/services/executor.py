"""Bounded, retrying execution of provider calls."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, wait_exponential

from ..exceptions import GenerationError, ProviderTimeoutError, is_retryable
from ..metrics import PROVIDER_CALL_ATTEMPTS_TOTAL
from ..providers.base import ProviderClient
from ..schemas.generation import PlanKind

logger = structlog.get_logger(__name__)


class AttemptBudget:
    """Total number of provider calls a single task may make.

    Shared by transient retries and by regeneration after unusable output, so
    neither path can extend the other's bound.
    """

    def __init__(self, total: int):
        if total < 1:
            raise ValueError("attempt budget must be at least 1")
        self.total = total
        self.used = 0

    @property
    def remaining(self) -> int:
        return self.total - self.used

    @property
    def exhausted(self) -> bool:
        return self.used >= self.total

    def consume(self) -> None:
        if self.exhausted:
            raise RuntimeError("attempt budget exhausted")
        self.used += 1


class RequestExecutor:
    def __init__(
        self,
        *,
        timeout_seconds: float,
        retry_delay_seconds: float,
        max_retry_delay_seconds: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._timeout = timeout_seconds
        self._retry_delay = retry_delay_seconds
        self._max_delay = max_retry_delay_seconds
        self._sleep = sleep

    async def execute(self, client: ProviderClient, prompt: str, kind: PlanKind, budget: AttemptBudget) -> str:
        """Call the provider until it succeeds, fails permanently or the budget runs out.

        Transient failures are retried with exponential backoff. Anything else,
        and the last transient failure once the budget is spent, propagates.
        """
        call = client.generate_training_plan if kind is PlanKind.TRAINING else client.generate_nutrition_plan
        provider = client.provider.value

        retrying = AsyncRetrying(
            stop=lambda retry_state: budget.exhausted,
            wait=wait_exponential(multiplier=self._retry_delay, max=self._max_delay),
            retry=retry_if_exception(is_retryable),
            sleep=self._sleep,
            before_sleep=self._log_retry(provider, budget),
            reraise=True,
        )
        text = ""
        async for attempt in retrying:
            with attempt:
                budget.consume()
                text = await self._attempt(call, prompt, provider)
        return text

    async def _attempt(self, call: Callable[[str], Awaitable[str]], prompt: str, provider: str) -> str:
        try:
            text = await asyncio.wait_for(call(prompt), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            PROVIDER_CALL_ATTEMPTS_TOTAL.labels(provider=provider, outcome="timeout").inc()
            raise ProviderTimeoutError(f"{provider} call exceeded {self._timeout}s") from exc
        except GenerationError as exc:
            PROVIDER_CALL_ATTEMPTS_TOTAL.labels(provider=provider, outcome=exc.code).inc()
            raise
        PROVIDER_CALL_ATTEMPTS_TOTAL.labels(provider=provider, outcome="success").inc()
        return text

    @staticmethod
    def _log_retry(provider: str, budget: AttemptBudget) -> Callable[[RetryCallState], None]:
        def before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "provider_call_retry",
                provider=provider,
                attempt=retry_state.attempt_number,
                remaining_attempts=budget.remaining,
                error_type=type(exc).__name__ if exc else None,
                sleep_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            )

        return before_sleep
