"""HR assistant conversational core.

Turns a chat message into a bounded, context-aware reply: windowed prompts with
incremental summaries, layered vector memory, a read-only query tool loop and a
streaming sanitizer for control markup.
"""

__version__ = "1.0.0"
