"""LLM providers for the HR assistant."""

from .base import (
    AllProvidersFailedError,
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
from .openai_compatible import OpenAICompatibleProvider
from .registry import DEFAULT_PROVIDER, DEFAULT_PROVIDERS
from .sse import SSEDeltaDecoder

__all__ = [
    "AllProvidersFailedError",
    "AuthenticationError",
    "DEFAULT_PROVIDER",
    "DEFAULT_PROVIDERS",
    "EmptyResponseError",
    "LLMProvider",
    "LLMProviderError",
    "LLMResponse",
    "ModelNotFoundError",
    "OpenAICompatibleProvider",
    "ProviderConfig",
    "ProviderTimeoutError",
    "RateLimitError",
    "SSEDeltaDecoder",
]
