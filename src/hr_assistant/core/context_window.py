"""Bounded prompt construction for long conversations.

Short sessions are sent verbatim. Longer ones keep the most recent turns
verbatim and replace everything older with a rolling summary, injected as a
user/assistant exchange right after the system prompt so the model treats it
as conversation history.
"""

import logging
from typing import Dict, List, Optional, Sequence

from ..models.conversation import ConversationTurn, Session
from ..prompts import (
    SUMMARIZER_SYSTEM_PROMPT,
    SUMMARY_ACKNOWLEDGEMENT,
    SUMMARY_FRESH_PROMPT,
    SUMMARY_MERGE_PROMPT,
    SUMMARY_REMINDER,
)

logger = logging.getLogger(__name__)

MIN_SUMMARY_LENGTH = 20


def _render_turns(turns: Sequence[ConversationTurn], per_turn: int) -> List[str]:
    lines = []
    for turn in turns:
        role = "User" if turn.role == "user" else "AI"
        content = turn.content
        if len(content) > per_turn:
            content = content[:per_turn] + "..."
        lines.append(f"{role}: {content}")
    return lines


def compact_turns(
    turns: Sequence[ConversationTurn], per_turn: int = 300, total: int = 3000
) -> str:
    """Plain-text rendition of old turns, used when no summary can be produced."""
    text = "\n".join(_render_turns(turns, per_turn))
    if len(text) > total:
        text = text[:total] + "\n...(older messages truncated)"
    return text


class Summarizer:
    """Produces conversation summaries with the language model."""

    def __init__(
        self,
        model_manager,
        per_turn_chars: int = 400,
        max_input_chars: int = 5000,
        temperature: float = 0.2,
        max_tokens: int = 1200,
    ):
        self.model_manager = model_manager
        self.per_turn_chars = per_turn_chars
        self.max_input_chars = max_input_chars
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def generate(
        self, turns: Sequence[ConversationTurn], existing_summary: Optional[str] = None
    ) -> str:
        """Summarise turns, merging into an existing summary when one is given.

        Raises:
            LLMProviderError: If the model cannot be reached.
        """
        conversation = "\n".join(_render_turns(turns, self.per_turn_chars))
        if len(conversation) > self.max_input_chars:
            # Keep the newest turns; the oldest ones are what drops out.
            conversation = "...(earlier messages truncated)\n" + conversation[-self.max_input_chars :]

        if existing_summary:
            prompt = SUMMARY_MERGE_PROMPT.format(
                existing=existing_summary, conversation=conversation
            )
        else:
            prompt = SUMMARY_FRESH_PROMPT.format(conversation=conversation)

        response = await self.model_manager.complete(
            [
                {"role": "system", "content": SUMMARIZER_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        return response.content.strip()


class ContextWindowManager:
    """Builds the message list sent to the model for one session.

    Invariant: the prompt holds at most ``window_size`` raw turns plus at most
    one summary exchange, regardless of session length.
    """

    def __init__(
        self,
        session_store,
        summarizer: Summarizer,
        runner=None,
        window_size: int = 16,
        summary_slack: int = 4,
        refresh_trigger: int = 8,
        refresh_lag: int = 6,
        max_summary_merges: int = 8,
    ):
        self.session_store = session_store
        self.summarizer = summarizer
        self.runner = runner
        self.window_size = window_size
        self.summary_slack = summary_slack
        self.refresh_trigger = refresh_trigger
        self.refresh_lag = refresh_lag
        self.max_summary_merges = max_summary_merges
        self._refreshing = set()

    async def build_messages(self, session_id: str, system_prompt: str) -> List[Dict[str, str]]:
        """Assemble the prompt for the next model call.

        Args:
            session_id: Session whose turns are used, already including the
                current user message.
            system_prompt: Fully assembled system prompt.

        Returns:
            Chat messages: system, optional summary exchange, recent turns.
        """
        session = self.session_store.require_session(session_id)
        turns = list(session.turns)
        messages = [{"role": "system", "content": system_prompt}]

        if len(turns) <= self.window_size:
            messages.extend(turn.to_message() for turn in turns)
            return messages

        old = turns[: -self.window_size]
        recent = turns[-self.window_size :]

        summary = await self.ensure_summary(session, old)
        if summary:
            messages.append({"role": "user", "content": SUMMARY_REMINDER.format(summary=summary)})
            messages.append({"role": "assistant", "content": SUMMARY_ACKNOWLEDGEMENT})
        messages.extend(turn.to_message() for turn in recent)

        self._maybe_schedule_refresh(session, len(turns), old)
        return messages

    def _summary_is_current(self, session: Session, old_count: int) -> bool:
        return bool(session.context_summary) and (
            session.summary_coverage >= old_count - self.summary_slack
        )

    def _merge_base(self, session: Session) -> Optional[str]:
        """The summary to merge into, or None to start again from scratch."""
        if session.summary_merges >= self.max_summary_merges:
            logger.info(
                f"Session {session.session_id}: rebuilding summary after "
                f"{session.summary_merges} merges"
            )
            return None
        return session.context_summary

    @staticmethod
    def _pending_turns(
        session: Session, old: List[ConversationTurn], base: Optional[str]
    ) -> List[ConversationTurn]:
        """Old turns the summary does not cover yet; all of them for a rebuild."""
        if base is None:
            return list(old)
        return list(old[min(session.summary_coverage, len(old)) :])

    async def ensure_summary(self, session: Session, old: List[ConversationTurn]) -> str:
        """Return a summary of ``old``, generating one synchronously if needed.

        Never raises: on failure the stored summary, or a compact rendition of
        the old turns, is returned instead.
        """
        if self._summary_is_current(session, len(old)):
            return session.context_summary

        base = self._merge_base(session)
        try:
            summary = await self.summarizer.generate(self._pending_turns(session, old, base), base)
            if summary and len(summary) > MIN_SUMMARY_LENGTH:
                self.session_store.update_summary(
                    session.session_id, summary, len(old), merged=base is not None
                )
                return summary
            logger.warning(f"Session {session.session_id}: summary too short, not stored")
        except Exception as e:
            logger.error(f"Summary generation failed for {session.session_id}: {e}")

        if session.context_summary:
            return session.context_summary
        return compact_turns(old)

    def _maybe_schedule_refresh(
        self, session: Session, total: int, old: List[ConversationTurn]
    ) -> None:
        if self.runner is None:
            return
        if total < self.window_size + self.refresh_trigger:
            return
        if session.summary_coverage >= len(old) - self.refresh_lag:
            return
        if session.session_id in self._refreshing:
            return

        self._refreshing.add(session.session_id)
        self.runner.spawn(self.refresh_summary(session, list(old)), name="summary-refresh")

    async def refresh_summary(self, session: Session, old: List[ConversationTurn]) -> None:
        """Regenerate the stored summary for the next request."""
        try:
            base = self._merge_base(session)
            pending = self._pending_turns(session, old, base)
            if not pending:
                return
            summary = await self.summarizer.generate(pending, base)
            if summary and len(summary) > MIN_SUMMARY_LENGTH:
                self.session_store.update_summary(
                    session.session_id, summary, len(old), merged=base is not None
                )
        except Exception as e:
            logger.error(f"Background summary update failed for {session.session_id}: {e}")
        finally:
            self._refreshing.discard(session.session_id)
