from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import httpx
import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from ..exceptions import (
    OutputInvalidError,
    ProviderError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from ..schemas.provider_configs import AIProvider
from .base import ProviderClient, ProviderCredentials, error_for_status

logger = structlog.get_logger(__name__)

ChatModelFactory = Callable[..., BaseChatModel]


def _status_code_of(exc: BaseException) -> int | None:
    for attr in ("code", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and 100 <= value < 600:
            return value
    return None


def classify_gemini_error(exc: BaseException) -> ProviderError:
    """Map exceptions raised by the Google SDK (possibly wrapped by langchain)."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        status_code = _status_code_of(current)
        if status_code is not None:
            return error_for_status(AIProvider.GEMINI, status_code)
        if isinstance(current, httpx.TimeoutException | asyncio.TimeoutError | TimeoutError):
            return ProviderTimeoutError("gemini request timed out")
        if isinstance(current, httpx.TransportError | ConnectionError):
            return ProviderUnavailableError(f"gemini transport error: {type(current).__name__}")
        current = current.__cause__ or current.__context__
    return ProviderRequestError(f"gemini call failed: {type(exc).__name__}")


class GeminiClient(ProviderClient):
    provider = AIProvider.GEMINI
    default_model = "gemini-2.0-flash"

    def __init__(
        self,
        credentials: ProviderCredentials,
        *,
        timeout: float = 60.0,
        chat_model_factory: ChatModelFactory | None = None,
    ):
        super().__init__(credentials, timeout=timeout)
        self._chat_model_factory = chat_model_factory or ChatGoogleGenerativeAI

    def _get_chat_llm(self, max_tokens: int) -> BaseChatModel:
        logger.debug("gemini_chat_model_selected", model=self.model_name)
        return self._chat_model_factory(
            model=self.model_name,
            google_api_key=self._credentials.api_key,
            temperature=self.temperature,
            max_output_tokens=max_tokens,
            timeout=self._timeout,
            max_retries=0,
        )

    async def complete(self, prompt: str, *, max_tokens: int | None = None) -> str:
        llm = self._get_chat_llm(max_tokens or self.max_tokens)
        try:
            response = await llm.ainvoke([HumanMessage(content=prompt)])
        except ProviderError:
            raise
        except Exception as exc:
            raise classify_gemini_error(exc) from exc
        text = _message_text(response.content)
        if not text.strip():
            raise OutputInvalidError("gemini returned empty content")
        return text


def _message_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts)
    return str(content)
