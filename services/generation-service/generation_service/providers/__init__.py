"""AI provider clients.

The set of vendors is closed: each ``AIProvider`` member maps to exactly one
client class, checked at import time, so a stored provider value is resolved
to a client once when its configuration is loaded.
"""

from __future__ import annotations

import httpx

from ..schemas.provider_configs import AIProvider
from .base import HttpProviderClient, ProviderClient, ProviderCredentials
from .gemini import GeminiClient
from .openai_compatible import OpenAIClient, TongyiClient
from .wenxin import WenxinClient

CLIENT_TYPES: dict[AIProvider, type[ProviderClient]] = {
    AIProvider.OPENAI: OpenAIClient,
    AIProvider.TONGYI: TongyiClient,
    AIProvider.WENXIN: WenxinClient,
    AIProvider.GEMINI: GeminiClient,
}

_missing = set(AIProvider) - set(CLIENT_TYPES)
if _missing:
    raise RuntimeError(f"No client registered for providers: {sorted(p.value for p in _missing)}")


def build_provider_client(
    credentials: ProviderCredentials,
    *,
    timeout: float,
    http_client: httpx.AsyncClient | None = None,
) -> ProviderClient:
    client_type = CLIENT_TYPES[credentials.provider]
    if issubclass(client_type, HttpProviderClient):
        return client_type(credentials, timeout=timeout, http_client=http_client)
    return client_type(credentials, timeout=timeout)


__all__ = [
    "CLIENT_TYPES",
    "GeminiClient",
    "OpenAIClient",
    "ProviderClient",
    "ProviderCredentials",
    "TongyiClient",
    "WenxinClient",
    "build_provider_client",
]
