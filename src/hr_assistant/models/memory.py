"""Memory-related data models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class MemoryLayer(str, Enum):
    """Long-term memory layers."""

    EPISODIC = "episodic"  # raw exchange trace
    SEMANTIC = "semantic"  # extracted fact
    STRATEGIC = "strategic"  # extracted policy or preference


@dataclass
class MemoryEntry:
    """Represents an entry in long-term memory."""

    layer: MemoryLayer
    content: str
    summary: str
    embedding: Optional[List[float]] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    source_type: str = "chat"
    importance: float = 0.5
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=datetime.now)
    last_accessed_at: Optional[datetime] = None
    access_count: int = 0
    score: Optional[float] = None


@dataclass(frozen=True)
class MemoryCandidate:
    """One memory item proposed by the extraction model."""

    summary: str
    content: str
    layer: MemoryLayer
    importance: float
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["MemoryCandidate"]:
        """Parse an untrusted extraction item.

        Returns:
            The candidate, or None if the item does not match the expected shape.
        """
        if not isinstance(data, dict):
            return None

        summary = data.get("summary")
        content = data.get("content")
        if not isinstance(summary, str) or not isinstance(content, str):
            return None
        if not summary.strip() or not content.strip():
            return None

        importance = data.get("importance")
        if isinstance(importance, bool) or not isinstance(importance, (int, float)):
            return None

        # Only facts and strategies come out of extraction; episodic traces are
        # written separately.
        layer = MemoryLayer.STRATEGIC if data.get("layer") == "strategic" else MemoryLayer.SEMANTIC

        return cls(
            summary=summary.strip(),
            content=content.strip(),
            layer=layer,
            importance=min(1.0, max(0.0, float(importance))),
            entity_type=_optional_text(data.get("entityType")),
            entity_id=_optional_text(data.get("entityId")),
        )


def _optional_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or value.lower() == "null":
        return None
    return value
