"""Layered long-term memory with local vector recall.

Three layers: episodic (conversation traces), semantic (facts) and strategic
(preferences and insights). Writes and recall never block or fail the chat
flow: errors are logged and degrade to "nothing remembered".
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..core.embedding import embed, similarity
from ..models.memory import MemoryCandidate, MemoryEntry, MemoryLayer
from ..prompts import (
    EXTRACTION_PROMPT,
    EXTRACTION_SYSTEM_PROMPT,
    MEMORY_CONTEXT_FOOTER,
    MEMORY_CONTEXT_HEADER,
)
from .background import BackgroundTaskRunner

logger = logging.getLogger(__name__)

SIMILARITY_WEIGHT = 0.6
RECENCY_WEIGHT = 0.2
IMPORTANCE_WEIGHT = 0.2

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)


class MemoryRepository(ABC):
    """Storage backend for memory entries."""

    @abstractmethod
    async def add(self, entry: MemoryEntry) -> None:
        ...

    @abstractmethod
    async def candidates(
        self,
        layers: Optional[Sequence[MemoryLayer]] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> List[MemoryEntry]:
        """Entries matching the given filters; scoring happens in the store."""
        ...

    @abstractmethod
    async def touch(self, ids: Sequence[str]) -> None:
        """Record one more access for each entry."""
        ...


class InMemoryMemoryRepository(MemoryRepository):
    """Process-local repository, used by the CLI and in tests."""

    def __init__(self):
        self.entries: Dict[str, MemoryEntry] = {}

    async def add(self, entry: MemoryEntry) -> None:
        self.entries[entry.id] = entry

    async def candidates(
        self,
        layers: Optional[Sequence[MemoryLayer]] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> List[MemoryEntry]:
        results = []
        for entry in self.entries.values():
            if layers and entry.layer not in layers:
                continue
            if entity_type and entry.entity_type != entity_type:
                continue
            if entity_id and entry.entity_id != entity_id:
                continue
            results.append(entry)
        return results

    async def touch(self, ids: Sequence[str]) -> None:
        now = datetime.now()
        for memory_id in ids:
            entry = self.entries.get(memory_id)
            if entry:
                entry.access_count += 1
                entry.last_accessed_at = now

    def get_stats(self) -> Dict[str, Any]:
        layers: Dict[str, int] = {}
        for entry in self.entries.values():
            layers[entry.layer.value] = layers.get(entry.layer.value, 0) + 1
        return {"entries_count": len(self.entries), "layers": layers}


class MemoryStore:
    """Stores memories and recalls them by hybrid relevance."""

    def __init__(
        self,
        repository: Optional[MemoryRepository] = None,
        runner: Optional[BackgroundTaskRunner] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repository = repository or InMemoryMemoryRepository()
        self.runner = runner or BackgroundTaskRunner()
        self.clock = clock

    async def store(
        self,
        layer: MemoryLayer,
        content: str,
        summary: str,
        importance: float = 0.5,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        source_type: str = "chat",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Embed and persist one memory. Failures are logged, never raised."""
        try:
            entry = MemoryEntry(
                layer=MemoryLayer(layer),
                content=content,
                summary=summary,
                embedding=embed(f"{summary} {content}"),
                entity_type=entity_type or None,
                entity_id=entity_id or None,
                source_type=source_type,
                importance=min(1.0, max(0.0, float(importance))),
                metadata=metadata or {},
                created_at=self.clock(),
            )
            await self.repository.add(entry)
            logger.debug(f"Stored {entry.layer.value} memory: {summary[:60]}")
        except Exception as e:
            logger.error(f"Memory store error (non-critical): {e}")

    def store_later(self, *args: Any, **kwargs: Any) -> None:
        """Fire-and-forget variant of ``store``."""
        self.runner.spawn(self.store(*args, **kwargs), name="memory-store")

    async def recall(
        self,
        query: str,
        layers: Optional[Sequence[MemoryLayer]] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        limit: int = 5,
        min_importance: float = 0.0,
    ) -> List[MemoryEntry]:
        """Recall the entries most relevant to a query.

        Score = 0.6 * cosine similarity + 0.2 * recency + 0.2 * importance,
        where recency is ``1 / (1 + age in days)``.

        Args:
            query: Free text to match against stored memories.
            layers: Restrict to these layers.
            entity_type: Restrict to this entity type.
            entity_id: Restrict to this entity.
            limit: Maximum number of entries to return.
            min_importance: Exclude entries below this importance.

        Returns:
            Scored copies of the best entries, highest score first. Empty on failure.
        """
        try:
            query_vector = embed(query)
            entries = await self.repository.candidates(
                layers=layers, entity_type=entity_type, entity_id=entity_id
            )
            now = self.clock()

            scored = []
            for entry in entries:
                if entry.embedding is None or entry.importance < min_importance:
                    continue
                age_days = max(0.0, (now - entry.created_at).total_seconds() / 86400.0)
                score = (
                    SIMILARITY_WEIGHT * similarity(query_vector, entry.embedding)
                    + RECENCY_WEIGHT * (1.0 / (1.0 + age_days))
                    + IMPORTANCE_WEIGHT * entry.importance
                )
                scored.append(replace(entry, score=score))

            scored.sort(
                key=lambda e: (e.score, e.importance, e.created_at.timestamp()), reverse=True
            )
            results = scored[:limit]
        except Exception as e:
            logger.error(f"Memory recall error (non-critical): {e}")
            return []

        if results:
            self.runner.spawn(
                self.repository.touch([entry.id for entry in results]), name="memory-touch"
            )
        return results

    async def recall_for_prompt(
        self,
        query: str,
        entity_id: Optional[str] = None,
        entity_type: str = "candidate",
    ) -> List[MemoryEntry]:
        """General facts and strategies plus, if given, memories about one entity.

        Entity-scoped results come first; duplicates are dropped by id.
        """
        general_recall = self.recall(
            query,
            layers=[MemoryLayer.SEMANTIC, MemoryLayer.STRATEGIC],
            limit=5,
            min_importance=0.3,
        )
        if entity_id:
            entity_memories, general_memories = await asyncio.gather(
                self.recall(query, entity_type=entity_type, entity_id=entity_id, limit=3),
                general_recall,
            )
        else:
            entity_memories, general_memories = [], await general_recall

        seen = set()
        merged = []
        for entry in entity_memories + general_memories:
            if entry.id not in seen:
                seen.add(entry.id)
                merged.append(entry)
        return merged

    async def build_memory_context(self, query: str, entity_id: Optional[str] = None) -> str:
        """Render recalled memories as a block for the system prompt, or ""."""
        memories = await self.recall_for_prompt(query, entity_id=entity_id)
        if not memories:
            return ""

        lines = [
            f"- [{m.layer.value}] {m.summary} ({m.source_type}, importance: {m.importance:.1f})"
            for m in memories
        ]
        return "\n".join([MEMORY_CONTEXT_HEADER, *lines, MEMORY_CONTEXT_FOOTER])

    async def recall_candidate(self, identifier: str, limit: int = 5) -> List[MemoryEntry]:
        """Memories about one candidate, looked up by name or email."""
        return await self.recall(identifier, entity_type="candidate", limit=limit)

    async def store_evaluation_memory(
        self,
        candidate_name: str,
        candidate_email: str,
        department: str,
        score: int,
        summary: str,
        recommendation: str,
    ) -> None:
        """Remember the outcome of a candidate evaluation."""
        await self.store(
            layer=MemoryLayer.SEMANTIC,
            content=(
                f"Candidate: {candidate_name} ({candidate_email}), Department: {department}, "
                f"Score: {score}/100, Recommendation: {recommendation}. {summary}"
            ),
            summary=f"{candidate_name} - {department} application: {score} points, {recommendation}",
            entity_type="candidate",
            entity_id=candidate_email,
            source_type="evaluation",
            importance=0.8 if score >= 70 else 0.5,
            metadata={"score": score, "department": department, "recommendation": recommendation},
        )


def parse_extraction(text: str) -> List[MemoryCandidate]:
    """Parse the extraction model's answer into validated candidates.

    Accepts ``{"memories": [...]}`` or a bare list, optionally inside a fenced
    code block. Anything else yields an empty list.
    """
    fenced = _FENCED_JSON.search(text)
    if fenced:
        text = fenced.group(1)

    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Extraction response is not valid JSON")
        return []

    items = data.get("memories") if isinstance(data, dict) else data
    if not isinstance(items, list):
        return []

    candidates = []
    for item in items:
        candidate = MemoryCandidate.from_dict(item)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


class MemoryExtractor:
    """Distils durable memories from recent conversation after each reply."""

    def __init__(
        self,
        model_manager,
        store: MemoryStore,
        window: int = 6,
        min_importance: float = 0.3,
        temperature: float = 0.1,
        max_tokens: int = 1024,
    ):
        self.model_manager = model_manager
        self.store = store
        self.window = window
        self.min_importance = min_importance
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def extract(self, messages: List[Dict[str, str]]) -> List[MemoryCandidate]:
        conversation = "\n".join(f"{m['role']}: {m['content']}" for m in messages)
        response = await self.model_manager.complete(
            [
                {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
                {"role": "user", "content": EXTRACTION_PROMPT.format(conversation=conversation)},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            json_mode=True,
        )
        return parse_extraction(response.content)

    async def extract_and_store(
        self, messages: List[Dict[str, str]], session_id: Optional[str] = None
    ) -> int:
        """Extract and persist memories from the latest messages.

        Args:
            messages: Conversation messages (user/assistant) in order.
            session_id: Recorded in the metadata of stored memories.

        Returns:
            Number of extracted memories stored. Never raises.
        """
        try:
            if len(messages) < 2:
                return 0
            recent = messages[-self.window :]

            try:
                candidates = await self.extract(recent)
            except Exception as e:
                logger.warning(f"Memory extraction error (non-critical): {e}")
                candidates = []

            stored = 0
            for candidate in candidates:
                if candidate.importance < self.min_importance:
                    continue
                await self.store.store(
                    layer=candidate.layer,
                    content=candidate.content,
                    summary=candidate.summary,
                    importance=candidate.importance,
                    entity_type=candidate.entity_type,
                    entity_id=candidate.entity_id,
                    source_type="chat_extraction",
                    metadata={
                        "session_id": session_id,
                        "extracted_at": datetime.now().isoformat(),
                    },
                )
                stored += 1

            await self._store_trace(recent, session_id)
            if stored:
                logger.info(f"Stored {stored} extracted memories for session {session_id}")
            return stored
        except Exception as e:
            logger.error(f"Memory extraction failed (non-critical): {e}")
            return 0

    async def _store_trace(self, messages: List[Dict[str, str]], session_id: Optional[str]) -> None:
        last_user = next((m for m in reversed(messages) if m["role"] == "user"), None)
        last_assistant = next((m for m in reversed(messages) if m["role"] == "assistant"), None)
        if not last_user or not last_assistant:
            return

        await self.store.store(
            layer=MemoryLayer.EPISODIC,
            content=f"Q: {last_user['content']}\nA: {last_assistant['content'][:500]}",
            summary=last_user["content"][:200],
            importance=0.3,
            source_type="chat_turn",
            metadata={"session_id": session_id},
        )
