"""Model manager with an ordered provider fallback chain."""

import asyncio
import logging
import os
import time
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from .core.stream_filter import strip_thinking_tags
from .providers import (
    DEFAULT_PROVIDER,
    DEFAULT_PROVIDERS,
    AllProvidersFailedError,
    EmptyResponseError,
    LLMProvider,
    LLMProviderError,
    LLMResponse,
    OpenAICompatibleProvider,
    ProviderConfig,
    ProviderTimeoutError,
)

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProviderConfig, float], LLMProvider]
ProviderLoader = Callable[[], Optional[str]]

ACTIVE_PROVIDER_TTL = 30.0


class ModelManager:
    """Manages LLM interactions across every configured provider.

    This class provides a unified interface for:
    - Generating and streaming completions from the active provider
    - Falling back to the other configured providers on transient failures
    - Tracking usage statistics
    """

    def __init__(
        self,
        providers: Optional[Dict[str, ProviderConfig]] = None,
        active_provider: Optional[str] = None,
        timeout: Optional[float] = None,
        provider_loader: Optional[ProviderLoader] = None,
        provider_factory: Optional[ProviderFactory] = None,
        cache_ttl: float = ACTIVE_PROVIDER_TTL,
    ):
        """Initialize the model manager.

        Args:
            providers: Provider registry in fallback order. Defaults to the
                built-in registry.
            active_provider: Preferred provider key. If None, reads from
                HR_ASSISTANT_PROVIDER or defaults to "deepseek".
            timeout: Per-call timeout in seconds. If None, reads from
                HR_ASSISTANT_TIMEOUT (milliseconds) or defaults to 45.
            provider_loader: Optional callable returning the active provider
                key from an external settings store. Its answer is cached.
            provider_factory: Builds a provider instance from its config.
            cache_ttl: Seconds a loaded active provider key stays valid.
        """
        self.providers: Dict[str, ProviderConfig] = dict(providers or DEFAULT_PROVIDERS)
        self.default_provider: str = (
            active_provider or os.getenv("HR_ASSISTANT_PROVIDER", DEFAULT_PROVIDER) or DEFAULT_PROVIDER
        )
        self.timeout = timeout or float(os.getenv("HR_ASSISTANT_TIMEOUT", "45000")) / 1000
        self.provider_loader = provider_loader
        self.provider_factory: ProviderFactory = provider_factory or OpenAICompatibleProvider
        self.cache_ttl = cache_ttl

        self._instances: Dict[str, LLMProvider] = {}
        self._cached_active: Optional[str] = None
        self._cached_at = 0.0

        # Statistics
        self.total_calls = 0
        self.successful_calls = 0
        self.failed_calls = 0
        self.fallback_calls = 0
        self.provider_usage: Dict[str, int] = {}

        logger.info(f"ModelManager initialized with default provider: {self.default_provider}")

    def get_provider(self, name: str) -> LLMProvider:
        """Get the provider instance for a registry key, creating it if needed."""
        if name not in self._instances:
            self._instances[name] = self.provider_factory(self.providers[name], self.timeout)
        return self._instances[name]

    @property
    def active_provider(self) -> str:
        """The active provider key, consulting the loader at most once per TTL."""
        if self.provider_loader is None:
            return self._resolve(self.default_provider)

        now = time.monotonic()
        if self._cached_active is not None and now - self._cached_at < self.cache_ttl:
            return self._cached_active

        try:
            loaded = self.provider_loader()
        except Exception as e:
            logger.warning(f"Active provider lookup failed, using {self.default_provider}: {e}")
            return self._resolve(self.default_provider)

        self._cached_active = self._resolve(loaded or self.default_provider)
        self._cached_at = now
        return self._cached_active

    def _resolve(self, name: str) -> str:
        if name in self.providers:
            return name
        logger.warning(f"Unknown provider '{name}', using {DEFAULT_PROVIDER}")
        return DEFAULT_PROVIDER if DEFAULT_PROVIDER in self.providers else next(iter(self.providers))

    def set_provider(self, name: str) -> bool:
        """Set the preferred provider for subsequent requests.

        Returns:
            True if the provider exists in the registry.
        """
        if name not in self.providers:
            logger.warning(f"Cannot activate unknown provider: {name}")
            return False
        logger.info(f"Setting active provider to: {name}")
        self.default_provider = name
        self.invalidate_provider_cache()
        return True

    def invalidate_provider_cache(self) -> None:
        """Forget the cached active provider so the next call reloads it."""
        self._cached_active = None
        self._cached_at = 0.0

    def reload(
        self,
        providers: Optional[Dict[str, ProviderConfig]] = None,
        active_provider: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Apply new configuration without restarting."""
        if providers is not None:
            self.providers = dict(providers)
        if active_provider is not None:
            self.default_provider = active_provider
        if timeout is not None:
            self.timeout = timeout
        self._instances.clear()
        self.invalidate_provider_cache()
        logger.info(f"ModelManager reloaded, active provider: {self.active_provider}")

    def provider_chain(self, streaming: bool = False) -> List[LLMProvider]:
        """The active provider followed by every other configured one."""
        primary = self.active_provider
        names = [primary] + [name for name in self.providers if name != primary]

        chain = []
        for name in names:
            config = self.providers[name]
            if not config.is_configured:
                continue
            if streaming and not config.supports_streaming:
                continue
            chain.append(self.get_provider(name))
        return chain

    def _record_success(self, provider: LLMProvider, primary: str) -> None:
        self.successful_calls += 1
        self.provider_usage[provider.name] = self.provider_usage.get(provider.name, 0) + 1
        if provider.name != primary:
            self.fallback_calls += 1
            logger.info(f"Fallback succeeded: {primary} -> {provider.name}")

    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a complete response, falling back across providers.

        Args:
            messages: Chat messages in OpenAI format.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens to generate.
            json_mode: Request a JSON object response where supported.

        Returns:
            LLMResponse whose content has thinking blocks removed.

        Raises:
            LLMProviderError: On a non-retryable provider failure.
            AllProvidersFailedError: If every provider failed or none is configured.
        """
        self.total_calls += 1
        primary = self.active_provider
        last_error: Optional[Exception] = None

        for provider in self.provider_chain():
            try:
                response = await asyncio.wait_for(
                    provider.complete(
                        messages,
                        temperature=temperature,
                        max_tokens=max_tokens,
                        json_mode=json_mode,
                    ),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(f"{provider.name} timed out after {self.timeout}s, trying next")
                last_error = ProviderTimeoutError(
                    f"{provider.name} did not respond within {self.timeout}s",
                    provider=provider.name,
                )
                continue
            except LLMProviderError as e:
                if not e.is_retryable:
                    self.failed_calls += 1
                    logger.error(f"Generation failed: {e}")
                    raise
                logger.warning(f"{provider.name} failed ({type(e).__name__}), trying next: {e}")
                last_error = e
                continue

            content = strip_thinking_tags(response.content)
            if not content:
                logger.warning(f"{provider.name} returned a thinking-only response, trying next")
                last_error = EmptyResponseError(
                    f"{provider.name} returned a thinking-only response",
                    provider=provider.name,
                    model=response.model,
                )
                continue

            response.content = content
            response.provider = response.provider or provider.name
            self._record_success(provider, primary)
            return response

        self.failed_calls += 1
        raise AllProvidersFailedError(self._exhausted_message(last_error), last_error)

    async def stream(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Stream content fragments, falling back only before the first one.

        Yields:
            Raw content fragments from the first provider that produced one.

        Raises:
            LLMProviderError: On a non-retryable failure, or any failure after
                the first fragment was delivered.
            AllProvidersFailedError: If no provider produced a fragment.
        """
        self.total_calls += 1
        primary = self.active_provider
        last_error: Optional[Exception] = None

        for provider in self.provider_chain(streaming=True):
            fragments = provider.stream(messages, temperature=temperature, max_tokens=max_tokens)
            try:
                first = await asyncio.wait_for(fragments.__anext__(), timeout=self.timeout)
            except StopAsyncIteration:
                logger.warning(f"{provider.name} stream ended without content, trying next")
                last_error = EmptyResponseError(
                    f"{provider.name} stream ended without content", provider=provider.name
                )
                continue
            except asyncio.TimeoutError:
                await fragments.aclose()
                logger.warning(f"{provider.name} stream timed out after {self.timeout}s, trying next")
                last_error = ProviderTimeoutError(
                    f"{provider.name} did not respond within {self.timeout}s",
                    provider=provider.name,
                )
                continue
            except LLMProviderError as e:
                await fragments.aclose()
                if not e.is_retryable:
                    self.failed_calls += 1
                    logger.error(f"Stream failed: {e}")
                    raise
                logger.warning(f"{provider.name} stream failed ({type(e).__name__}), trying next: {e}")
                last_error = e
                continue

            self._record_success(provider, primary)
            try:
                yield first
                async for fragment in fragments:
                    yield fragment
            finally:
                await fragments.aclose()
            return

        self.failed_calls += 1
        raise AllProvidersFailedError(self._exhausted_message(last_error), last_error)

    @staticmethod
    def _exhausted_message(last_error: Optional[Exception]) -> str:
        if last_error is None:
            return "No configured AI provider is available"
        return f"All AI providers failed. Last error: {last_error}"

    def is_available(self) -> bool:
        """Check if at least one provider is configured."""
        return any(config.is_configured for config in self.providers.values())

    def list_providers(self) -> List[Dict[str, Any]]:
        """Describe every registered provider for settings screens."""
        return [
            {"key": key, "label": config.label, "configured": config.is_configured}
            for key, config in self.providers.items()
        ]

    def get_stats(self) -> Dict[str, Any]:
        """Get usage statistics.

        Returns:
            Dictionary with usage statistics.
        """
        success_rate = (
            (self.successful_calls / self.total_calls * 100) if self.total_calls > 0 else 0
        )
        return {
            "active_provider": self.active_provider,
            "default_provider": self.default_provider,
            "timeout_seconds": self.timeout,
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "fallback_calls": self.fallback_calls,
            "provider_usage": dict(self.provider_usage),
            "success_rate": f"{success_rate:.1f}%",
        }

    async def aclose(self) -> None:
        for provider in self._instances.values():
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()
        self._instances.clear()
