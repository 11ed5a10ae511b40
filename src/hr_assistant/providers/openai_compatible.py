"""OpenAI-compatible chat completion provider."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
import openai
from openai import AsyncOpenAI

from .base import (
    AuthenticationError,
    EmptyResponseError,
    LLMProvider,
    LLMProviderError,
    LLMResponse,
    ModelNotFoundError,
    ProviderConfig,
    ProviderTimeoutError,
    RateLimitError,
)
from .sse import SSEDeltaDecoder

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS = (429, 503)
DEFAULT_TIMEOUT = 45.0


def error_for_status(
    status: int, message: str, provider: str = "", model: str = ""
) -> LLMProviderError:
    """Map an HTTP status from the provider to the matching error type."""
    if status in RATE_LIMIT_STATUS:
        return RateLimitError(message, provider=provider, model=model)
    if status in (401, 403):
        return AuthenticationError(message, provider=provider, model=model)
    if status == 404:
        return ModelNotFoundError(message, provider=provider, model=model)
    # Other server-side failures: the next provider may still answer.
    return LLMProviderError(message, provider=provider, model=model, is_retryable=status >= 500)


class OpenAICompatibleProvider(LLMProvider):
    """LLM provider for any endpoint speaking the OpenAI chat completions API."""

    def __init__(
        self,
        config: ProviderConfig,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the provider.

        Args:
            config: Endpoint, model and credential description.
            timeout: Request timeout in seconds.
            http_client: Optional shared client for streaming requests.
        """
        self.config = config
        self.timeout = timeout
        self._client: Optional[AsyncOpenAI] = None
        self._http_client = http_client

    @property
    def name(self) -> str:
        """Return the provider name."""
        return self.config.name

    @property
    def chat_url(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/chat/completions"

    def _require_key(self) -> str:
        api_key = self.config.api_key
        if not api_key:
            raise AuthenticationError(
                f"{self.config.label} API key not configured. "
                f"Set {self.config.api_key_env} environment variable.",
                provider=self.name,
                model=self.config.model,
            )
        return api_key

    @property
    def client(self) -> AsyncOpenAI:
        """Get or create the SDK client for this endpoint."""
        if self._client is None:
            self._client = AsyncOpenAI(
                base_url=self.config.base_url,
                api_key=self._require_key(),
                timeout=self.timeout,
                max_retries=0,
                default_headers=dict(self.config.extra_headers) or None,
            )
        return self._client

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a full response through the OpenAI SDK.

        Returns:
            LLMResponse with the raw message content. Thinking blocks are left
            in place for the caller to strip.

        Raises:
            LLMProviderError: If the request fails or the response is empty.
        """
        model_id = self.config.model
        logger.info(f"Generating with {self.name} model: {model_id}")

        kwargs: Dict[str, Any] = {
            "model": model_id,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens or 4096,
        }
        if json_mode and self.config.supports_json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        if self.config.extra_body:
            kwargs["extra_body"] = dict(self.config.extra_body)

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as e:
            raise ProviderTimeoutError(
                f"{self.config.label} did not respond within {self.timeout}s",
                provider=self.name,
                model=model_id,
            ) from e
        except openai.APIConnectionError as e:
            raise LLMProviderError(
                f"{self.config.label} connection error: {e}",
                provider=self.name,
                model=model_id,
                is_retryable=True,
            ) from e
        except openai.APIStatusError as e:
            logger.error(f"{self.name} HTTP {e.status_code}: {str(e)[:200]}")
            raise error_for_status(
                e.status_code,
                f"{self.config.label} API error ({e.status_code}): {str(e)[:200]}",
                provider=self.name,
                model=model_id,
            ) from e

        content = ""
        if response.choices and response.choices[0].message:
            content = response.choices[0].message.content or ""
        if not content:
            raise EmptyResponseError(
                f"{self.config.label} returned an empty response",
                provider=self.name,
                model=model_id,
            )

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        logger.info(f"{self.name} response received from {model_id}")
        return LLMResponse(
            content=content,
            model=model_id,
            provider=self.name,
            usage=usage,
            metadata={"id": response.id, "created": response.created},
        )

    async def stream(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Stream content deltas over a raw SSE request.

        Yields:
            Non-empty content fragments in arrival order.

        Raises:
            LLMProviderError: On HTTP errors, timeouts or connection failures.
        """
        model_id = self.config.model
        api_key = self._require_key()

        body: Dict[str, Any] = {
            "model": model_id,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens or 16384,
            "stream": True,
        }
        body.update(self.config.extra_body)

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
            "Accept": "text/event-stream",
        }
        headers.update(self.config.extra_headers)

        logger.info(f"Streaming with {self.name} model: {model_id}")
        decoder = SSEDeltaDecoder()
        try:
            async with self.http_client.stream(
                "POST", self.chat_url, json=body, headers=headers
            ) as response:
                if response.status_code >= 400:
                    error_text = (await response.aread()).decode("utf-8", errors="replace")
                    logger.error(f"{self.name} HTTP {response.status_code}: {error_text[:500]}")
                    raise error_for_status(
                        response.status_code,
                        f"{self.config.label} API error ({response.status_code}): "
                        f"{error_text[:200]}",
                        provider=self.name,
                        model=model_id,
                    )

                async for text in response.aiter_text():
                    for delta in decoder.feed(text):
                        yield delta
                for delta in decoder.flush():
                    yield delta
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                f"{self.config.label} did not respond within {self.timeout}s",
                provider=self.name,
                model=model_id,
            ) from e
        except httpx.HTTPError as e:
            raise LLMProviderError(
                f"{self.config.label} connection error: {e}",
                provider=self.name,
                model=model_id,
                is_retryable=True,
            ) from e

    def is_available(self) -> bool:
        """Check if the provider is configured.

        Returns:
            True if the API key is set and not a placeholder, False otherwise.
        """
        return self.config.is_configured

    async def aclose(self) -> None:
        """Release the underlying HTTP connections."""
        if self._client is not None:
            await self._client.close()
            self._client = None
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
