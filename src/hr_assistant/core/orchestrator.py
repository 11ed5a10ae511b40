"""Chat orchestration: one user message in, one safe assistant reply out."""

import asyncio
import logging
import re
from typing import AsyncIterator, Dict, List, Optional

from ..config import AssistantConfig
from ..manager import ModelManager
from ..models.conversation import ConversationTurn
from ..models.events import DoneEvent, ErrorEvent, ReplaceEvent, StreamEvent, TokenEvent
from ..prompts import (
    EMPTY_RESPONSE_MESSAGE,
    PROCESSING_ERROR_MESSAGE,
    SIDE_CHANNEL_PROMPT,
    build_query_instructions,
    build_system_prompt,
)
from ..providers import EmptyResponseError, LLMProviderError
from ..services.background import BackgroundTaskRunner
from ..services.memory import MemoryExtractor, MemoryStore
from ..services.query_executor import SQLAlchemyQueryExecutor
from ..services.session_store import SessionStore
from .context_window import ContextWindowManager, Summarizer
from .directives import extract_queries, has_query_directive, wrap_results
from .query_policy import QueryPolicy
from .query_tool import QueryExecutor, QueryToolLoop
from .stream_filter import StreamSanitizer, strip_markup

logger = logging.getLogger(__name__)

EXTRACTION_HISTORY = 20


def chunk_text(text: str, size: int) -> List[str]:
    """Split text into consecutive pieces of at most ``size`` characters."""
    return [text[i : i + size] for i in range(0, len(text), size)]


class ChatOrchestrator:
    """Coordinates context, memory, tools and the model for chat requests.

    This class wires together:
    - The context window manager (recent turns plus rolling summary)
    - Long-term memory recall and background extraction
    - The query tool loop and its streaming side channel
    - Per-stream sanitizing of control markup
    """

    def __init__(
        self,
        model_manager: ModelManager,
        session_store: SessionStore,
        context_window: ContextWindowManager,
        memory_store: Optional[MemoryStore] = None,
        extractor: Optional[MemoryExtractor] = None,
        query_loop: Optional[QueryToolLoop] = None,
        runner: Optional[BackgroundTaskRunner] = None,
        config: Optional[AssistantConfig] = None,
    ):
        self.model_manager = model_manager
        self.session_store = session_store
        self.context_window = context_window
        self.memory_store = memory_store
        self.extractor = extractor
        self.query_loop = query_loop
        self.runner = runner or BackgroundTaskRunner()
        self.config = config or AssistantConfig()
        self._data_question = re.compile(self.config.data_question_pattern, re.IGNORECASE)

    @classmethod
    def from_config(
        cls,
        config: AssistantConfig,
        model_manager: Optional[ModelManager] = None,
        executor: Optional[QueryExecutor] = None,
        session_store: Optional[SessionStore] = None,
        memory_store: Optional[MemoryStore] = None,
    ) -> "ChatOrchestrator":
        """Build a fully wired orchestrator.

        A query executor is created from ``config.database_url`` when none is
        given; without either, the query tool is disabled.
        """
        runner = BackgroundTaskRunner()
        model_manager = model_manager or ModelManager(
            providers=config.providers,
            active_provider=config.active_provider,
            timeout=config.llm_timeout,
        )
        session_store = session_store or SessionStore()
        memory_store = memory_store or MemoryStore(runner=runner)

        if executor is None and config.database_url:
            executor = SQLAlchemyQueryExecutor.from_url(config.database_url)
        query_loop = None
        if executor is not None:
            query_loop = QueryToolLoop(
                model_manager,
                executor,
                policy=QueryPolicy(max_rows=config.max_rows),
                max_rounds=config.max_tool_rounds,
                query_timeout=config.query_timeout,
                temperature=config.chat_temperature,
                max_tokens=config.chat_max_tokens,
            )

        context_window = ContextWindowManager(
            session_store,
            Summarizer(model_manager),
            runner=runner,
            window_size=config.window_size,
            summary_slack=config.summary_slack,
            refresh_trigger=config.refresh_trigger,
            refresh_lag=config.refresh_lag,
            max_summary_merges=config.max_summary_merges,
        )

        return cls(
            model_manager=model_manager,
            session_store=session_store,
            context_window=context_window,
            memory_store=memory_store,
            extractor=MemoryExtractor(model_manager, memory_store),
            query_loop=query_loop,
            runner=runner,
            config=config,
        )

    def is_data_question(self, text: str) -> bool:
        return bool(self._data_question.search(text))

    async def _prepare(
        self,
        session_id: str,
        text: str,
        user_name: Optional[str],
        entity_id: Optional[str],
    ) -> List[Dict[str, str]]:
        """Persist the user turn and build the prompt for this request."""
        self.session_store.get_or_create_session(session_id)
        self.session_store.append_turn(session_id, "user", text)

        memory_context = ""
        if self.memory_store is not None:
            memory_context = await self.memory_store.build_memory_context(text, entity_id=entity_id)

        query_instructions = ""
        if self.query_loop is not None:
            query_instructions = build_query_instructions(
                self.config.max_rows, self.config.query_timeout, self.config.schema_description
            )

        system_prompt = build_system_prompt(
            self.config.chat_system_prompt,
            user_name=user_name,
            query_instructions=query_instructions,
            memory_context=memory_context,
        )
        return await self.context_window.build_messages(session_id, system_prompt)

    def _persist_reply(self, session_id: str, content: str) -> ConversationTurn:
        turn = self.session_store.append_turn(session_id, "assistant", content)
        self._schedule_extraction(session_id)
        return turn

    def _schedule_extraction(self, session_id: str) -> None:
        if self.extractor is None:
            return
        history = [
            turn.to_message()
            for turn in self.session_store.get_turns(session_id, limit=EXTRACTION_HISTORY)
        ]
        self.runner.spawn(
            self.extractor.extract_and_store(history, session_id=session_id),
            name="memory-extraction",
        )

    def _persist_partial(self, session_id: str, emitted: str) -> None:
        """Best-effort save of a reply cut short by a client disconnect."""
        content = strip_markup(emitted)
        if not content:
            return
        try:
            self.session_store.append_turn(session_id, "assistant", content)
            logger.info(f"Session {session_id}: saved partial reply after disconnect")
        except Exception as e:
            logger.warning(f"Could not save partial reply for {session_id}: {e}")

    async def send_message(
        self,
        session_id: str,
        text: str,
        user_name: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> ConversationTurn:
        """Answer a message without streaming.

        Args:
            session_id: Target session; created if it does not exist.
            text: The user's message.
            user_name: Display name of the user, added to the system prompt.
            entity_id: Candidate the conversation is about, for memory recall.

        Returns:
            The persisted assistant turn.

        Raises:
            ValueError: If the message is empty.
            EmptyResponseError: If nothing is left after removing control markup.
            LLMProviderError: If the model cannot be reached.
        """
        text = text.strip()
        if not text:
            raise ValueError("Message cannot be empty")

        messages = await self._prepare(session_id, text, user_name, entity_id)

        if self.query_loop is not None:
            content = await self.query_loop.run(messages)
        else:
            response = await self.model_manager.complete(
                messages,
                temperature=self.config.chat_temperature,
                max_tokens=self.config.chat_max_tokens,
            )
            content = response.content

        content = strip_markup(content)
        if not content:
            raise EmptyResponseError(EMPTY_RESPONSE_MESSAGE)

        turn = self._persist_reply(session_id, content)
        logger.info(f"Session {session_id}: reply of {len(content)} chars")
        return turn

    async def stream_message(
        self,
        session_id: str,
        text: str,
        user_name: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Answer a message as a stream of events.

        Yields ``token`` and at most one ``replace`` event, then exactly one
        terminal ``done`` or ``error`` event. If the consumer stops early, the
        upstream stream is closed and the visible partial reply is saved.
        """
        text = text.strip()
        if not text:
            yield ErrorEvent("Message cannot be empty")
            return

        try:
            messages = await self._prepare(session_id, text, user_name, entity_id)
        except Exception as e:
            logger.error(f"Failed to prepare chat stream for {session_id}: {e}")
            yield ErrorEvent(PROCESSING_ERROR_MESSAGE)
            return

        if self.query_loop is not None and self.is_data_question(text):
            async for event in self._stream_tool_answer(session_id, messages):
                yield event
            return

        sanitizer = StreamSanitizer()
        fragments = self.model_manager.stream(
            messages,
            temperature=self.config.chat_temperature,
            max_tokens=self.config.stream_max_tokens,
        )
        try:
            try:
                async for fragment in fragments:
                    output = sanitizer.feed(fragment)
                    if output:
                        yield TokenEvent(output)
                tail = sanitizer.flush()
                if tail:
                    yield TokenEvent(tail)
            finally:
                await fragments.aclose()

            content = sanitizer.emitted
            replacement = await self._side_channel(sanitizer.directive_source())
            if replacement:
                content = replacement
                yield ReplaceEvent(replacement)

            content = strip_markup(content)
            if not content:
                yield ErrorEvent(EMPTY_RESPONSE_MESSAGE)
                return
            turn = self._persist_reply(session_id, content)
        except (asyncio.CancelledError, GeneratorExit):
            logger.info(f"Session {session_id}: client disconnected mid-stream")
            self._persist_partial(session_id, sanitizer.emitted)
            raise
        except LLMProviderError as e:
            logger.error(f"Stream failed for {session_id}: {e}")
            yield ErrorEvent(PROCESSING_ERROR_MESSAGE)
            return
        except Exception as e:
            logger.error(f"Stream processing error for {session_id}: {e}")
            yield ErrorEvent(PROCESSING_ERROR_MESSAGE)
            return

        yield DoneEvent(turn)

    async def _stream_tool_answer(
        self, session_id: str, messages: List[Dict[str, str]]
    ) -> AsyncIterator[StreamEvent]:
        """Run the tool loop up front and replay its answer as token events."""
        try:
            content = strip_markup(await self.query_loop.run(messages))
        except Exception as e:
            logger.error(f"Tool loop failed for {session_id}: {e}")
            yield ErrorEvent(PROCESSING_ERROR_MESSAGE)
            return

        if not content:
            yield ErrorEvent(EMPTY_RESPONSE_MESSAGE)
            return

        turn = self._persist_reply(session_id, content)
        for piece in chunk_text(content, self.config.token_chunk_size):
            yield TokenEvent(piece)
        yield DoneEvent(turn)

    async def _side_channel(self, directive_source: str) -> Optional[str]:
        """Execute directives that were filtered out of a stream.

        Returns:
            A clean follow-up answer to replace the streamed text, or None.
        """
        if self.query_loop is None or not has_query_directive(directive_source):
            return None
        directives = extract_queries(directive_source)
        if not directives:
            return None

        logger.info(f"Query directives found in stream, executing {len(directives)}")
        blocks = await self.query_loop.execute_queries(directives)
        try:
            response = await self.model_manager.complete(
                [
                    {"role": "system", "content": self.config.chat_system_prompt},
                    {
                        "role": "user",
                        "content": SIDE_CHANNEL_PROMPT.format(results=wrap_results(blocks)),
                    },
                ],
                temperature=0.3,
                max_tokens=self.config.chat_max_tokens,
            )
        except Exception as e:
            logger.error(f"Query follow-up failed: {e}")
            return None

        return strip_markup(response.content) or None

    def get_stats(self) -> Dict[str, object]:
        return {
            "sessions": self.session_store.get_stats(),
            "models": self.model_manager.get_stats(),
            "background": {
                "pending": self.runner.pending,
                "completed": self.runner.completed,
                "failed": self.runner.failed,
            },
            "query_tool_enabled": self.query_loop is not None,
        }
