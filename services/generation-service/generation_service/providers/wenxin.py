from __future__ import annotations

from ..exceptions import (
    OutputInvalidError,
    ProviderError,
    ProviderRateLimitedError,
    ProviderRejectedError,
    ProviderRequestError,
    ProviderUnavailableError,
)
from ..schemas.provider_configs import AIProvider
from .base import HttpProviderClient

WENXIN_DEFAULT_ENDPOINT = "https://aip.baidubce.com/rpc/2.0/ai_custom/v1/wenxinworkshop/chat/completions"
WENXIN_TOP_P = 0.8

# Wenxin reports failures in a 200 body through ``error_code``.
_REJECTED_CODES = {6, 110, 111, 100}
_RATE_LIMITED_CODES = {4, 17, 18, 19, 336501, 336502}
_UNAVAILABLE_CODES = {1, 2, 336000, 336100}


def error_for_wenxin_code(error_code: int) -> ProviderError:
    detail = f"wenxin error_code {error_code}"
    if error_code in _REJECTED_CODES:
        return ProviderRejectedError(detail)
    if error_code in _RATE_LIMITED_CODES:
        return ProviderRateLimitedError(detail)
    if error_code in _UNAVAILABLE_CODES:
        return ProviderUnavailableError(detail)
    return ProviderRequestError(detail)


class WenxinClient(HttpProviderClient):
    provider = AIProvider.WENXIN
    default_model = "ernie-bot"

    async def complete(self, prompt: str, *, max_tokens: int | None = None) -> str:
        payload = {
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "top_p": WENXIN_TOP_P,
        }
        if max_tokens is not None:
            payload["max_output_tokens"] = max_tokens
        body = await self._post_json(
            (self._credentials.endpoint or WENXIN_DEFAULT_ENDPOINT).strip(),
            payload,
            params={"access_token": self._credentials.api_key},
        )
        if not isinstance(body, dict):
            raise OutputInvalidError("wenxin returned an unexpected body")
        error_code = body.get("error_code")
        if error_code:
            try:
                code = int(error_code)
            except (TypeError, ValueError):
                raise ProviderRequestError("wenxin returned a non-numeric error_code") from None
            raise error_for_wenxin_code(code)
        result = body.get("result")
        if not isinstance(result, str) or not result.strip():
            raise OutputInvalidError("wenxin returned empty result")
        return result
