from __future__ import annotations

import abc
from typing import Any

from ..exceptions import OutputInvalidError, ProviderRequestError
from ..schemas.provider_configs import AIProvider
from .base import HttpProviderClient

OPENAI_DEFAULT_ENDPOINT = "https://api.openai.com/v1"
TONGYI_DEFAULT_ENDPOINT = "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions"


class OpenAICompatibleClient(HttpProviderClient):
    """Chat-completions style API: bearer auth, ``choices[0].message.content``."""

    @abc.abstractmethod
    def _completions_url(self) -> str: ...

    def _build_payload(self, prompt: str, max_tokens: int) -> dict[str, Any]:
        return {
            "model": self.model_name,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }

    async def complete(self, prompt: str, *, max_tokens: int | None = None) -> str:
        body = await self._post_json(
            self._completions_url(),
            self._build_payload(prompt, max_tokens or self.max_tokens),
            headers={"Authorization": f"Bearer {self._credentials.api_key}"},
        )
        if not isinstance(body, dict):
            raise OutputInvalidError(f"{self.provider.value} returned an unexpected body")
        if body.get("error"):
            raise ProviderRequestError(f"{self.provider.value} returned an error object")
        choices = body.get("choices") or []
        if not choices:
            raise OutputInvalidError(f"{self.provider.value} returned no choices")
        content = (choices[0].get("message") or {}).get("content")
        if not isinstance(content, str) or not content.strip():
            raise OutputInvalidError(f"{self.provider.value} returned empty content")
        return content


class OpenAIClient(OpenAICompatibleClient):
    provider = AIProvider.OPENAI
    default_model = "gpt-3.5-turbo"

    def _completions_url(self) -> str:
        endpoint = (self._credentials.endpoint or OPENAI_DEFAULT_ENDPOINT).strip().rstrip("/")
        if endpoint.endswith("/chat/completions"):
            return endpoint
        return f"{endpoint}/chat/completions"


def normalize_tongyi_endpoint(endpoint: str | None) -> str:
    """Point any DashScope endpoint at its OpenAI-compatible chat completions route."""
    endpoint = (endpoint or "").strip()
    if not endpoint or "compatible-mode" not in endpoint:
        return TONGYI_DEFAULT_ENDPOINT
    if "/chat/completions" in endpoint:
        return endpoint
    endpoint = endpoint.rstrip("/")
    if endpoint.endswith("compatible-mode") or endpoint.endswith("compatible-mode/v1"):
        if endpoint.endswith("compatible-mode"):
            endpoint += "/v1"
        return endpoint + "/chat/completions"
    return endpoint + "/v1/chat/completions"


class TongyiClient(OpenAICompatibleClient):
    provider = AIProvider.TONGYI
    default_model = "qwen-turbo"

    def _completions_url(self) -> str:
        return normalize_tongyi_endpoint(self._credentials.endpoint)
