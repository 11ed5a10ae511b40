"""Test doubles for the HR assistant tests."""

import asyncio
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Union

from hr_assistant.config import AssistantConfig
from hr_assistant.core.context_window import ContextWindowManager, Summarizer
from hr_assistant.core.orchestrator import ChatOrchestrator
from hr_assistant.core.query_policy import QueryPolicy
from hr_assistant.core.query_tool import QueryExecutor, QueryToolLoop
from hr_assistant.providers import LLMProvider, LLMResponse, ProviderConfig
from hr_assistant.services.background import BackgroundTaskRunner
from hr_assistant.services.memory import MemoryExtractor, MemoryStore
from hr_assistant.services.session_store import SessionStore

Scripted = Union[str, Exception]


class ScriptedModelManager:
    """Stands in for ModelManager, answering from a script.

    ``complete`` pops one scripted answer per call (an exception is raised
    instead of returned). ``stream`` yields the scripted chunks. Every call is
    recorded for assertions.
    """

    def __init__(
        self,
        responses: Optional[Sequence[Scripted]] = None,
        default: str = "Default reply",
        stream_chunks: Optional[Sequence[Scripted]] = None,
    ):
        self.responses: List[Scripted] = list(responses or [])
        self.default = default
        self.stream_chunks: List[Scripted] = list(stream_chunks or [])
        self.calls: List[Dict[str, Any]] = []
        self.stream_calls: List[Dict[str, Any]] = []
        self.stream_closed = False

    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        self.calls.append(
            {
                "messages": [dict(m) for m in messages],
                "temperature": temperature,
                "max_tokens": max_tokens,
                "json_mode": json_mode,
            }
        )
        answer = self.responses.pop(0) if self.responses else self.default
        if isinstance(answer, Exception):
            raise answer
        return LLMResponse(content=answer, model="scripted-model", provider="scripted")

    async def stream(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        self.stream_calls.append({"messages": [dict(m) for m in messages]})
        try:
            for chunk in self.stream_chunks:
                if isinstance(chunk, Exception):
                    raise chunk
                yield chunk
        finally:
            self.stream_closed = True

    def calls_with_system_prompt(self, fragment: str) -> List[Dict[str, Any]]:
        return [
            call
            for call in self.calls
            if call["messages"] and fragment in call["messages"][0]["content"]
        ]

    def get_stats(self) -> Dict[str, Any]:
        return {"total_calls": len(self.calls) + len(self.stream_calls)}

    def is_available(self) -> bool:
        return True

    async def aclose(self) -> None:
        pass


class FakeProvider(LLMProvider):
    """Provider whose answers and failures are scripted per instance."""

    def __init__(
        self,
        config: ProviderConfig,
        timeout: float = 45.0,
        content: Scripted = "provider reply",
        chunks: Optional[Sequence[Scripted]] = None,
        stream_error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.config = config
        self.timeout = timeout
        self.content = content
        self.chunks = list(chunks or [])
        self.stream_error = stream_error
        self.delay = delay
        self.complete_calls = 0
        self.stream_calls = 0

    @property
    def name(self) -> str:
        return self.config.name

    async def complete(self, messages, temperature=0.3, max_tokens=None, json_mode=False):
        self.complete_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.content, Exception):
            raise self.content
        return LLMResponse(content=self.content, model=self.config.model, provider=self.name)

    async def stream(self, messages, temperature=0.7, max_tokens=None):
        self.stream_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.stream_error is not None:
            raise self.stream_error
        for chunk in self.chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    def is_available(self) -> bool:
        return self.config.is_configured


class FakeExecutor(QueryExecutor):
    """Query executor returning canned rows and recording executed SQL."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.rows = rows if rows is not None else [{"total": 3}]
        self.error = error
        self.executed: List[str] = []

    async def execute(self, sql: str) -> List[Dict[str, Any]]:
        self.executed.append(sql)
        if self.error is not None:
            raise self.error
        return list(self.rows)


def make_provider_config(name: str, api_key_env: Optional[str] = None, **kwargs: Any) -> ProviderConfig:
    """Create a provider config whose key lives in ``api_key_env``."""
    return ProviderConfig(
        name=name,
        label=name.title(),
        base_url=f"https://{name}.example.com/v1",
        model=f"{name}-model",
        api_key_env=api_key_env or f"{name.upper()}_TEST_KEY",
        **kwargs,
    )


def build_orchestrator(
    model_manager: ScriptedModelManager,
    executor: Optional[QueryExecutor] = None,
    window_size: int = 16,
    with_memory: bool = True,
):
    """Wire a ChatOrchestrator around test doubles.

    Returns:
        Tuple of (orchestrator, session_store, memory_store, runner).
    """
    config = AssistantConfig(window_size=window_size)
    runner = BackgroundTaskRunner()
    session_store = SessionStore()
    memory_store = MemoryStore(runner=runner) if with_memory else None
    extractor = MemoryExtractor(model_manager, memory_store) if with_memory else None
    query_loop = None
    if executor is not None:
        query_loop = QueryToolLoop(model_manager, executor, policy=QueryPolicy())
    context_window = ContextWindowManager(
        session_store, Summarizer(model_manager), runner=runner, window_size=window_size
    )
    orchestrator = ChatOrchestrator(
        model_manager=model_manager,
        session_store=session_store,
        context_window=context_window,
        memory_store=memory_store,
        extractor=extractor,
        query_loop=query_loop,
        runner=runner,
        config=config,
    )
    return orchestrator, session_store, memory_store, runner


async def collect(events) -> list:
    """Drain an async iterator of events into a list."""
    return [event async for event in events]
