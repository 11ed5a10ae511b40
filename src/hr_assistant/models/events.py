"""Outbound stream events sent to the chat client."""

import json
from dataclasses import dataclass
from typing import Any, Dict

from .conversation import ConversationTurn


class StreamEvent:
    """Base class for events emitted by a streamed reply."""

    terminal = False

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_sse(self) -> str:
        """Frame the event as a server-sent-event ``data:`` line."""
        return f"data: {json.dumps(self.to_dict(), ensure_ascii=False)}\n\n"


@dataclass
class TokenEvent(StreamEvent):
    """Incremental text."""

    token: str

    def to_dict(self) -> Dict[str, Any]:
        return {"token": self.token}


@dataclass
class ReplaceEvent(StreamEvent):
    """Replaces everything streamed so far with corrected content."""

    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"replace": True, "content": self.content}


@dataclass
class ErrorEvent(StreamEvent):
    """Terminal failure."""

    error: str
    terminal = True

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error}


@dataclass
class DoneEvent(StreamEvent):
    """Terminal success carrying the persisted assistant turn."""

    message: ConversationTurn
    terminal = True

    def to_dict(self) -> Dict[str, Any]:
        return {"done": True, "message": self.message.to_dict()}
