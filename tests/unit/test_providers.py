"""Tests for the OpenAI-compatible provider."""

import json
import os
from unittest.mock import AsyncMock, Mock, patch

import httpx
import openai
import pytest

from hr_assistant.providers import (
    DEFAULT_PROVIDERS,
    AuthenticationError,
    EmptyResponseError,
    LLMProviderError,
    LLMResponse,
    ModelNotFoundError,
    OpenAICompatibleProvider,
    ProviderTimeoutError,
    RateLimitError,
)
from hr_assistant.providers.openai_compatible import error_for_status
from tests.fixtures import make_provider_config

ENV = {"ACME_TEST_KEY": "sk-test"}
MESSAGES = [{"role": "user", "content": "Hello"}]
REQUEST = httpx.Request("POST", "https://acme.example.com/v1/chat/completions")


def sse_body(*deltas, done=True):
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": delta}}]}) for delta in deltas
    ]
    if done:
        lines.append("data: [DONE]")
    return ("\n\n".join(lines) + "\n\n").encode()


def streaming_provider(handler, **config_kwargs):
    config = make_provider_config("acme", **config_kwargs)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAICompatibleProvider(config, timeout=5.0, http_client=client)


class TestProviderConfig:
    """Tests for ProviderConfig."""

    @patch.dict(os.environ, ENV)
    def test_api_key_from_env(self):
        """The key is read from the configured variable."""
        config = make_provider_config("acme")
        assert config.api_key == "sk-test"
        assert config.is_configured is True

    @patch.dict(os.environ, {"ACME_TEST_KEY": "your-deepseek-key"})
    def test_placeholder_key_is_not_configured(self):
        """Template placeholder values do not count as keys."""
        config = make_provider_config("acme")
        assert config.api_key is None
        assert config.is_configured is False

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_key(self):
        """An unset variable means not configured."""
        assert make_provider_config("acme").is_configured is False

    def test_registry_shapes(self):
        """Built-in providers carry their endpoint quirks."""
        assert DEFAULT_PROVIDERS["deepseek"].supports_json_mode is True
        assert DEFAULT_PROVIDERS["nvidia_qwen"].extra_body == {"top_p": 0.95, "temperature": 0.6}
        assert DEFAULT_PROVIDERS["openrouter_llama"].extra_headers["X-Title"] == "HR Assistant"


class TestErrorForStatus:
    """Tests for HTTP status mapping."""

    @pytest.mark.parametrize(
        "status,error_type,retryable",
        [
            (429, RateLimitError, True),
            (503, RateLimitError, True),
            (401, AuthenticationError, False),
            (403, AuthenticationError, False),
            (404, ModelNotFoundError, False),
            (500, LLMProviderError, True),
            (502, LLMProviderError, True),
            (504, LLMProviderError, True),
            (400, LLMProviderError, False),
            (422, LLMProviderError, False),
        ],
    )
    def test_mapping(self, status, error_type, retryable):
        """Each status maps to its error type and retry flag."""
        error = error_for_status(status, "boom", provider="acme", model="m")
        assert type(error) is error_type
        assert error.is_retryable is retryable
        assert error.provider == "acme"


@patch.dict(os.environ, ENV)
class TestOpenAICompatibleProviderComplete:
    """Tests for OpenAICompatibleProvider.complete()."""

    @pytest.fixture
    def mock_completion(self):
        """Create a mock completion response."""
        mock = Mock()
        mock.id = "chatcmpl-123"
        mock.created = 1700000000
        mock.choices = [Mock(message=Mock(content="<think>hmm</think>Test response"))]
        mock.usage = Mock(prompt_tokens=10, completion_tokens=20, total_tokens=30)
        return mock

    def _provider(self, mock_openai_class, result=None, error=None, **config_kwargs):
        mock_client = Mock()
        mock_client.chat.completions.create = AsyncMock(return_value=result, side_effect=error)
        mock_openai_class.return_value = mock_client
        provider = OpenAICompatibleProvider(make_provider_config("acme", **config_kwargs), timeout=7.0)
        return provider, mock_client

    @pytest.mark.asyncio
    @patch("hr_assistant.providers.openai_compatible.AsyncOpenAI")
    async def test_complete_success(self, mock_openai_class, mock_completion):
        """Test successful generation."""
        provider, _ = self._provider(mock_openai_class, mock_completion)

        response = await provider.complete(MESSAGES)

        assert isinstance(response, LLMResponse)
        assert response.content == "<think>hmm</think>Test response"
        assert response.model == "acme-model"
        assert response.provider == "acme"
        assert response.usage == {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30}
        assert response.metadata["id"] == "chatcmpl-123"

        client_kwargs = mock_openai_class.call_args[1]
        assert client_kwargs["api_key"] == "sk-test"
        assert client_kwargs["base_url"] == "https://acme.example.com/v1"
        assert client_kwargs["max_retries"] == 0

    @pytest.mark.asyncio
    @patch("hr_assistant.providers.openai_compatible.AsyncOpenAI")
    async def test_json_mode_and_extra_body(self, mock_openai_class, mock_completion):
        """JSON mode is requested only where supported; extra body is passed through."""
        provider, client = self._provider(
            mock_openai_class, mock_completion, supports_json_mode=True, extra_body={"top_p": 0.95}
        )

        await provider.complete(MESSAGES, temperature=0.1, max_tokens=100, json_mode=True)

        kwargs = client.chat.completions.create.call_args[1]
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["extra_body"] == {"top_p": 0.95}
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 100

    @pytest.mark.asyncio
    @patch("hr_assistant.providers.openai_compatible.AsyncOpenAI")
    async def test_json_mode_ignored_when_unsupported(self, mock_openai_class, mock_completion):
        """Endpoints without JSON mode get a plain request."""
        provider, client = self._provider(mock_openai_class, mock_completion)

        await provider.complete(MESSAGES, json_mode=True)

        assert "response_format" not in client.chat.completions.create.call_args[1]

    @pytest.mark.asyncio
    @patch("hr_assistant.providers.openai_compatible.AsyncOpenAI")
    async def test_empty_content_raises(self, mock_openai_class):
        """Empty content is a retryable failure."""
        completion = Mock(choices=[Mock(message=Mock(content=None))], usage=None)
        provider, _ = self._provider(mock_openai_class, completion)

        with pytest.raises(EmptyResponseError) as exc_info:
            await provider.complete(MESSAGES)

        assert exc_info.value.is_retryable is True

    @pytest.mark.asyncio
    @patch("hr_assistant.providers.openai_compatible.AsyncOpenAI")
    async def test_rate_limit_error(self, mock_openai_class):
        """HTTP 429 from the SDK becomes a retryable RateLimitError."""
        error = openai.RateLimitError(
            "Rate limit exceeded", response=httpx.Response(429, request=REQUEST), body=None
        )
        provider, _ = self._provider(mock_openai_class, error=error)

        with pytest.raises(RateLimitError) as exc_info:
            await provider.complete(MESSAGES)

        assert exc_info.value.is_retryable is True
        assert exc_info.value.provider == "acme"

    @pytest.mark.asyncio
    @patch("hr_assistant.providers.openai_compatible.AsyncOpenAI")
    async def test_auth_error(self, mock_openai_class):
        """HTTP 401 is not retryable."""
        error = openai.AuthenticationError(
            "Invalid API key", response=httpx.Response(401, request=REQUEST), body=None
        )
        provider, _ = self._provider(mock_openai_class, error=error)

        with pytest.raises(AuthenticationError):
            await provider.complete(MESSAGES)

    @pytest.mark.asyncio
    @patch("hr_assistant.providers.openai_compatible.AsyncOpenAI")
    async def test_timeout_error(self, mock_openai_class):
        """SDK timeouts become ProviderTimeoutError."""
        provider, _ = self._provider(mock_openai_class, error=openai.APITimeoutError(request=REQUEST))

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await provider.complete(MESSAGES)

        assert exc_info.value.is_retryable is True

    @pytest.mark.asyncio
    async def test_missing_key_raises_auth_error(self):
        """Accessing the client without a key fails clearly."""
        provider = OpenAICompatibleProvider(make_provider_config("acme", api_key_env="UNSET_TEST_KEY"))

        with pytest.raises(AuthenticationError) as exc_info:
            await provider.complete(MESSAGES)

        assert "UNSET_TEST_KEY" in str(exc_info.value)


@patch.dict(os.environ, ENV)
class TestOpenAICompatibleProviderStream:
    """Tests for OpenAICompatibleProvider.stream()."""

    @pytest.mark.asyncio
    async def test_stream_yields_deltas(self):
        """Content deltas are yielded in order."""
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["headers"] = request.headers
            return httpx.Response(200, content=sse_body("Hel", "lo", " there"))

        provider = streaming_provider(
            handler, extra_body={"temperature": 0.6}, extra_headers={"X-Title": "HR Assistant"}
        )

        fragments = [fragment async for fragment in provider.stream(MESSAGES, temperature=0.7)]
        await provider.aclose()

        assert fragments == ["Hel", "lo", " there"]
        assert seen["body"]["stream"] is True
        assert seen["body"]["temperature"] == 0.6
        assert seen["headers"]["authorization"] == "Bearer sk-test"
        assert seen["headers"]["x-title"] == "HR Assistant"

    @pytest.mark.asyncio
    async def test_stream_http_error(self):
        """Error statuses are raised before any fragment."""
        provider = streaming_provider(lambda request: httpx.Response(429, text="slow down"))

        with pytest.raises(RateLimitError, match="slow down"):
            async for _ in provider.stream(MESSAGES):
                pass

    @pytest.mark.asyncio
    async def test_stream_connection_error_is_retryable(self):
        """Transport failures are retryable provider errors."""

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        provider = streaming_provider(handler)

        with pytest.raises(LLMProviderError) as exc_info:
            async for _ in provider.stream(MESSAGES):
                pass

        assert exc_info.value.is_retryable is True

    @pytest.mark.asyncio
    async def test_stream_timeout(self):
        """Transport timeouts become ProviderTimeoutError."""

        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        provider = streaming_provider(handler)

        with pytest.raises(ProviderTimeoutError):
            async for _ in provider.stream(MESSAGES):
                pass
