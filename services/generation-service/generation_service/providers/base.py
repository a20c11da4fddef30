"""Shared contract and HTTP plumbing for AI provider clients."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from ..exceptions import (
    ProviderError,
    ProviderRateLimitedError,
    ProviderRejectedError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from ..logging_config import redact
from ..schemas.provider_configs import AIProvider

logger = structlog.get_logger(__name__)

DEFAULT_MAX_TOKENS = 2000
DEFAULT_TEMPERATURE = 0.7
TEST_PROMPT = "Hello, this is a connection test. Reply with OK."
TEST_MAX_TOKENS = 16


@dataclass(frozen=True)
class ProviderCredentials:
    """Decrypted configuration for a single call; never logged or cached."""

    provider: AIProvider
    api_key: str = field(repr=False)
    endpoint: str | None = None
    model: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None


def error_for_status(provider: AIProvider, status_code: int, vendor_code: str | None = None) -> ProviderError:
    detail = f"{provider.value} returned HTTP {status_code}"
    if vendor_code:
        detail += f" ({redact(vendor_code)})"
    if status_code in (401, 403):
        return ProviderRejectedError(detail, status_code=status_code)
    if status_code == 429:
        return ProviderRateLimitedError(detail, status_code=status_code)
    if status_code == 408:
        return ProviderTimeoutError(detail, status_code=status_code)
    if status_code >= 500:
        return ProviderUnavailableError(detail, status_code=status_code)
    return ProviderRequestError(detail, status_code=status_code)


class ProviderClient(abc.ABC):
    """Uniform capability contract implemented once per vendor."""

    provider: AIProvider
    default_model: str = ""

    def __init__(self, credentials: ProviderCredentials, *, timeout: float = 60.0):
        self._credentials = credentials
        self._timeout = timeout

    @property
    def model_name(self) -> str:
        return self._credentials.model or self.default_model

    @property
    def max_tokens(self) -> int:
        return self._credentials.max_tokens or DEFAULT_MAX_TOKENS

    @property
    def temperature(self) -> float:
        # a stored 0 is treated as "unset", matching how configs were created
        return self._credentials.temperature or DEFAULT_TEMPERATURE

    @abc.abstractmethod
    async def complete(self, prompt: str, *, max_tokens: int | None = None) -> str:
        """Send a single-turn prompt and return the model's text."""

    async def generate_training_plan(self, prompt: str) -> str:
        return await self.complete(prompt)

    async def generate_nutrition_plan(self, prompt: str) -> str:
        return await self.complete(prompt)

    async def test_connection(self) -> None:
        await self.complete(TEST_PROMPT, max_tokens=TEST_MAX_TOKENS)

    async def aclose(self) -> None:
        return None

    async def __aenter__(self) -> ProviderClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


class HttpProviderClient(ProviderClient):
    """Base for vendors reached over plain JSON-over-HTTP."""

    def __init__(
        self,
        credentials: ProviderCredentials,
        *,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(credentials, timeout=timeout)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        try:
            response = await self._client.post(url, json=payload, headers=headers, params=params)
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(f"{self.provider.value} request timed out") from exc
        except httpx.TransportError as exc:
            raise ProviderUnavailableError(f"{self.provider.value} transport error: {type(exc).__name__}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise error_for_status(self.provider, response.status_code, self._vendor_error_code(response))

        try:
            return response.json()
        except ValueError as exc:
            logger.warning(
                "provider_response_not_json",
                provider=self.provider.value,
                status_code=response.status_code,
            )
            raise ProviderUnavailableError(f"{self.provider.value} returned a non-JSON body") from exc

    @staticmethod
    def _vendor_error_code(response: httpx.Response) -> str | None:
        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        error = body.get("error")
        if isinstance(error, dict):
            code = error.get("code") or error.get("type")
            return str(code) if code else None
        if "error_code" in body:
            return str(body["error_code"])
        return None
