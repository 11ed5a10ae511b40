"""Conversation data models."""

import itertools
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

_turn_ids = itertools.count(1)


@dataclass(frozen=True)
class ConversationTurn:
    """A single persisted message in a session. Immutable once written."""

    session_id: str
    role: str  # "user" or "assistant"
    content: str
    id: int = field(default_factory=lambda: next(_turn_ids))
    created_at: datetime = field(default_factory=datetime.now)

    def to_message(self) -> Dict[str, str]:
        """Render the turn in OpenAI chat message format."""
        return {"role": self.role, "content": self.content}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "session_id": self.session_id,
            "role": self.role,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class Session:
    """A conversation session and its rolling context summary."""

    session_id: str
    title: str = ""
    turns: List[ConversationTurn] = field(default_factory=list)
    context_summary: Optional[str] = None
    summary_coverage: int = 0
    summary_merges: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
