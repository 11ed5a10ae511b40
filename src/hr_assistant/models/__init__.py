"""Data models for the HR assistant core."""

from .conversation import ConversationTurn, Session
from .events import DoneEvent, ErrorEvent, ReplaceEvent, StreamEvent, TokenEvent
from .memory import MemoryCandidate, MemoryEntry, MemoryLayer

__all__ = [
    "ConversationTurn",
    "DoneEvent",
    "ErrorEvent",
    "MemoryCandidate",
    "MemoryEntry",
    "MemoryLayer",
    "ReplaceEvent",
    "Session",
    "StreamEvent",
    "TokenEvent",
]
