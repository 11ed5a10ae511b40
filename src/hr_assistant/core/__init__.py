"""Core conversational components of the HR assistant.

The orchestrator lives in ``hr_assistant.core.orchestrator`` and is imported
from there directly.
"""

from .context_window import ContextWindowManager, Summarizer, compact_turns
from .directives import (
    QueryDirective,
    extract_queries,
    has_query_directive,
    strip_query_directives,
    strip_result_blocks,
)
from .embedding import EMBEDDING_DIM, embed, similarity
from .query_policy import PolicyDecision, QueryPolicy
from .query_tool import QueryExecutor, QueryToolLoop
from .stream_filter import StreamSanitizer, TagFilter, strip_markup, strip_thinking_tags

__all__ = [
    "ContextWindowManager",
    "EMBEDDING_DIM",
    "PolicyDecision",
    "QueryDirective",
    "QueryExecutor",
    "QueryPolicy",
    "QueryToolLoop",
    "StreamSanitizer",
    "Summarizer",
    "TagFilter",
    "compact_turns",
    "embed",
    "extract_queries",
    "has_query_directive",
    "similarity",
    "strip_markup",
    "strip_query_directives",
    "strip_result_blocks",
    "strip_thinking_tags",
]
