import asyncio
import inspect
import json

import httpx
import pytest
from langchain_core.messages import AIMessage

from generation_service.exceptions import (
    OutputInvalidError,
    ProviderRateLimitedError,
    ProviderRejectedError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from generation_service.providers import CLIENT_TYPES, build_provider_client
from generation_service.providers.base import ProviderCredentials
from generation_service.providers.gemini import GeminiClient, classify_gemini_error
from generation_service.providers.openai_compatible import (
    OpenAIClient,
    OpenAICompatibleClient,
    TongyiClient,
    normalize_tongyi_endpoint,
)
from generation_service.providers.wenxin import WenxinClient
from generation_service.schemas.provider_configs import AIProvider

API_KEY = "sk-live-secret-value"


def _client_with(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _complete(client, prompt="hello", **kwargs) -> str:
    async def scenario():
        async with client:
            return await client.complete(prompt, **kwargs)

    return asyncio.run(scenario())


def _chat_response(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def test_every_provider_has_a_client():
    assert set(CLIENT_TYPES) == set(AIProvider)


def test_build_provider_client_picks_the_variant():
    credentials = ProviderCredentials(provider=AIProvider.TONGYI, api_key=API_KEY)
    client = build_provider_client(credentials, timeout=5)
    assert isinstance(client, TongyiClient)
    asyncio.run(client.aclose())


def test_openai_request_shape_and_defaults():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return _chat_response('{"weeks": []}')

    client = OpenAIClient(
        ProviderCredentials(provider=AIProvider.OPENAI, api_key=API_KEY),
        http_client=_client_with(handler),
    )

    assert _complete(client, "make a plan") == '{"weeks": []}'
    assert seen["url"] == "https://api.openai.com/v1/chat/completions"
    assert seen["auth"] == f"Bearer {API_KEY}"
    assert seen["body"]["model"] == "gpt-3.5-turbo"
    assert seen["body"]["max_tokens"] == 2000
    assert seen["body"]["temperature"] == 0.7
    assert seen["body"]["messages"] == [{"role": "user", "content": "make a plan"}]


def test_openai_custom_endpoint_and_model():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return _chat_response("ok")

    client = OpenAIClient(
        ProviderCredentials(
            provider=AIProvider.OPENAI,
            api_key=API_KEY,
            endpoint="https://proxy.example.com/v1/",
            model="gpt-4o",
            max_tokens=500,
            temperature=0.2,
        ),
        http_client=_client_with(handler),
    )

    _complete(client)
    assert seen["url"] == "https://proxy.example.com/v1/chat/completions"
    assert seen["body"]["model"] == "gpt-4o"
    assert seen["body"]["max_tokens"] == 500
    assert seen["body"]["temperature"] == 0.2


@pytest.mark.parametrize(
    ("status_code", "error_type"),
    [
        (401, ProviderRejectedError),
        (403, ProviderRejectedError),
        (429, ProviderRateLimitedError),
        (400, ProviderRequestError),
        (404, ProviderRequestError),
        (408, ProviderTimeoutError),
        (500, ProviderUnavailableError),
        (503, ProviderUnavailableError),
    ],
)
def test_http_status_classification(status_code, error_type):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"error": {"code": "invalid_api_key", "message": API_KEY}})

    client = OpenAIClient(
        ProviderCredentials(provider=AIProvider.OPENAI, api_key=API_KEY),
        http_client=_client_with(handler),
    )

    with pytest.raises(error_type) as exc_info:
        _complete(client)
    assert API_KEY not in str(exc_info.value)
    assert exc_info.value.status_code == status_code


def test_transport_errors_are_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection reset", request=request)

    client = OpenAIClient(
        ProviderCredentials(provider=AIProvider.OPENAI, api_key=API_KEY),
        http_client=_client_with(handler),
    )

    with pytest.raises(ProviderUnavailableError):
        _complete(client)


def test_read_timeout_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client = OpenAIClient(
        ProviderCredentials(provider=AIProvider.OPENAI, api_key=API_KEY),
        http_client=_client_with(handler),
    )

    with pytest.raises(ProviderTimeoutError):
        _complete(client)


def test_empty_choices_are_output_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    client = OpenAIClient(
        ProviderCredentials(provider=AIProvider.OPENAI, api_key=API_KEY),
        http_client=_client_with(handler),
    )

    with pytest.raises(OutputInvalidError):
        _complete(client)


def test_non_json_body_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    client = OpenAIClient(
        ProviderCredentials(provider=AIProvider.OPENAI, api_key=API_KEY),
        http_client=_client_with(handler),
    )

    with pytest.raises(ProviderUnavailableError):
        _complete(client)


@pytest.mark.parametrize(
    ("endpoint", "expected"),
    [
        (None, "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions"),
        (
            "https://dashscope.aliyuncs.com/api/v1/services/aigc/text-generation/generation",
            "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions",
        ),
        (
            "https://dashscope.aliyuncs.com/compatible-mode",
            "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions",
        ),
        (
            "https://dashscope.aliyuncs.com/compatible-mode/v1/",
            "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions",
        ),
        (
            "https://dashscope-intl.aliyuncs.com/compatible-mode/v1/chat/completions",
            "https://dashscope-intl.aliyuncs.com/compatible-mode/v1/chat/completions",
        ),
    ],
)
def test_tongyi_endpoint_normalization(endpoint, expected):
    assert normalize_tongyi_endpoint(endpoint) == expected


def test_tongyi_uses_qwen_default():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return _chat_response("ok")

    client = TongyiClient(
        ProviderCredentials(provider=AIProvider.TONGYI, api_key=API_KEY),
        http_client=_client_with(handler),
    )

    _complete(client)
    assert seen["body"]["model"] == "qwen-turbo"


def test_wenxin_sends_access_token_and_reads_result():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["token"] = request.url.params["access_token"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"result": "plan text"})

    client = WenxinClient(
        ProviderCredentials(provider=AIProvider.WENXIN, api_key=API_KEY),
        http_client=_client_with(handler),
    )

    assert _complete(client) == "plan text"
    assert seen["token"] == API_KEY
    assert seen["body"]["top_p"] == 0.8
    assert "max_output_tokens" not in seen["body"]


@pytest.mark.parametrize(
    ("error_code", "error_type"),
    [
        (110, ProviderRejectedError),
        (18, ProviderRateLimitedError),
        (336100, ProviderUnavailableError),
        (336003, ProviderRequestError),
    ],
)
def test_wenxin_body_error_codes(error_code, error_type):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error_code": error_code, "error_msg": "Access token invalid"})

    client = WenxinClient(
        ProviderCredentials(provider=AIProvider.WENXIN, api_key=API_KEY),
        http_client=_client_with(handler),
    )

    with pytest.raises(error_type):
        _complete(client)


def test_wenxin_non_numeric_error_code_is_a_request_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error_code": "bad_code", "error_msg": "unexpected"})

    client = WenxinClient(
        ProviderCredentials(provider=AIProvider.WENXIN, api_key=API_KEY),
        http_client=_client_with(handler),
    )

    with pytest.raises(ProviderRequestError, match="non-numeric"):
        _complete(client)


def test_chat_completions_variants_must_name_their_url():
    assert inspect.isabstract(OpenAICompatibleClient)
    assert not inspect.isabstract(OpenAIClient)
    assert not inspect.isabstract(TongyiClient)
    with pytest.raises(TypeError):
        OpenAICompatibleClient(ProviderCredentials(provider=AIProvider.OPENAI, api_key=API_KEY))


class FakeChatModel:
    def __init__(self, outcome, **kwargs):
        self.kwargs = kwargs
        self._outcome = outcome

    async def ainvoke(self, messages):
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        return AIMessage(content=self._outcome)


def test_gemini_client_uses_chat_model():
    created = []

    def factory(**kwargs):
        model = FakeChatModel('{"weeks": []}', **kwargs)
        created.append(model)
        return model

    client = GeminiClient(
        ProviderCredentials(provider=AIProvider.GEMINI, api_key=API_KEY, model="gemini-1.5-pro"),
        timeout=12,
        chat_model_factory=factory,
    )

    assert _complete(client) == '{"weeks": []}'
    assert created[0].kwargs["model"] == "gemini-1.5-pro"
    assert created[0].kwargs["google_api_key"] == API_KEY
    assert created[0].kwargs["max_output_tokens"] == 2000
    assert created[0].kwargs["max_retries"] == 0


def test_gemini_list_content_is_joined():
    client = GeminiClient(
        ProviderCredentials(provider=AIProvider.GEMINI, api_key=API_KEY),
        chat_model_factory=lambda **kwargs: FakeChatModel([{"type": "text", "text": "a"}, "b"], **kwargs),
    )
    assert _complete(client) == "ab"


class _SdkError(Exception):
    def __init__(self, code):
        super().__init__(f"sdk error {code}")
        self.code = code


@pytest.mark.parametrize(
    ("exc", "error_type"),
    [
        (_SdkError(401), ProviderRejectedError),
        (_SdkError(429), ProviderRateLimitedError),
        (_SdkError(503), ProviderUnavailableError),
        (TimeoutError(), ProviderTimeoutError),
        (ConnectionResetError(), ProviderUnavailableError),
        (ValueError("bad"), ProviderRequestError),
    ],
)
def test_gemini_error_classification(exc, error_type):
    assert isinstance(classify_gemini_error(exc), error_type)


def test_gemini_wrapped_error_is_unwrapped():
    try:
        try:
            raise _SdkError(500)
        except _SdkError as inner:
            raise RuntimeError("langchain wrapper") from inner
    except RuntimeError as outer:
        assert isinstance(classify_gemini_error(outer), ProviderUnavailableError)


def test_credentials_repr_hides_api_key():
    credentials = ProviderCredentials(provider=AIProvider.OPENAI, api_key=API_KEY)
    assert API_KEY not in repr(credentials)
