"""Base classes for LLM providers."""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

PLACEHOLDER_KEY_PREFIX = "your-"


@dataclass(frozen=True)
class ProviderConfig:
    """Static description of one OpenAI-compatible chat completion endpoint."""

    name: str
    label: str
    base_url: str
    model: str
    api_key_env: str
    supports_json_mode: bool = False
    supports_streaming: bool = True
    extra_body: Dict[str, Any] = field(default_factory=dict)
    extra_headers: Dict[str, str] = field(default_factory=dict)

    @property
    def api_key(self) -> Optional[str]:
        """The API key from the environment, or None when missing or a placeholder."""
        key = os.getenv(self.api_key_env)
        if not key or key.startswith(PLACEHOLDER_KEY_PREFIX):
            return None
        return key

    @property
    def is_configured(self) -> bool:
        return self.api_key is not None


@dataclass
class LLMResponse:
    """Response from an LLM provider."""

    content: str
    model: str
    provider: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name."""
        ...

    @abstractmethod
    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a full response for a list of chat messages.

        Args:
            messages: Chat messages in OpenAI format.
            temperature: Sampling temperature (0.0-2.0).
            max_tokens: Maximum tokens to generate.
            json_mode: Request a JSON object response where supported.

        Returns:
            LLMResponse containing the generated content and metadata.

        Raises:
            LLMProviderError: If the generation fails.
        """
        ...

    @abstractmethod
    def stream(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Stream content fragments for a list of chat messages.

        Raises:
            LLMProviderError: If the request fails before or during streaming.
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is available and configured.

        Returns:
            True if the provider can be used, False otherwise.
        """
        ...


class LLMProviderError(Exception):
    """Base exception for LLM provider errors."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        model: str = "",
        is_retryable: bool = False,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.is_retryable = is_retryable


class RateLimitError(LLMProviderError):
    """Raised when rate limited or the provider is temporarily unavailable."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        super().__init__(message, provider, model, is_retryable=True)


class AuthenticationError(LLMProviderError):
    """Raised when authentication fails."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        super().__init__(message, provider, model, is_retryable=False)


class ModelNotFoundError(LLMProviderError):
    """Raised when the requested model is not found."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        super().__init__(message, provider, model, is_retryable=False)


class ProviderTimeoutError(LLMProviderError):
    """Raised when the provider does not answer in time."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        super().__init__(message, provider, model, is_retryable=True)


class EmptyResponseError(LLMProviderError):
    """Raised when a response carries no usable content."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        super().__init__(message, provider, model, is_retryable=True)


class AllProvidersFailedError(LLMProviderError):
    """Raised when every provider in the fallback chain failed."""

    def __init__(self, message: str, last_error: Optional[Exception] = None):
        super().__init__(message, is_retryable=False)
        self.last_error = last_error
