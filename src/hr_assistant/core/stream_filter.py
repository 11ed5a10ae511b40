"""Incremental removal of control markup from streamed model output.

Fragments arrive in arbitrary chunks, so a marker can be split across two (or
more) of them. Each phase keeps just enough trailing text between chunks to
recognise a marker that has only partially arrived.
"""

import re

from .directives import QUERY_CLOSE, QUERY_OPEN, strip_query_directives, strip_result_blocks

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL)


def strip_thinking_tags(text: str) -> str:
    """Remove complete ``<think>...</think>`` blocks from a finished response."""
    return _THINK_BLOCK.sub("", text).strip()


def strip_markup(text: str) -> str:
    """Final safety strip of every control block before persistence."""
    text = _THINK_BLOCK.sub("", text)
    text = strip_query_directives(text)
    text = strip_result_blocks(text)
    return text.strip()


class TagFilter:
    """Two-state filter that drops everything between an open and close marker."""

    def __init__(self, open_marker: str, close_marker: str):
        if not open_marker or not close_marker:
            raise ValueError("Markers must be non-empty")
        self.open_marker = open_marker
        self.close_marker = close_marker
        self.inside = False
        self.carry = ""

    def feed(self, chunk: str) -> str:
        """Consume a fragment and return the text that is safe to emit."""
        data = self.carry + chunk
        self.carry = ""
        output = []
        pos = 0

        while pos < len(data):
            if self.inside:
                close_idx = data.find(self.close_marker, pos)
                if close_idx != -1:
                    self.inside = False
                    pos = close_idx + len(self.close_marker)
                    continue
                # Interior content is dropped; keep only what could still be
                # the start of the close marker.
                keep = len(self.close_marker) - 1
                self.carry = data[max(pos, len(data) - keep) :]
                break

            open_idx = data.find(self.open_marker, pos)
            if open_idx != -1:
                output.append(data[pos:open_idx])
                self.inside = True
                pos = open_idx + len(self.open_marker)
                continue

            safe_end = len(data) - (len(self.open_marker) - 1)
            if safe_end > pos:
                output.append(data[pos:safe_end])
                self.carry = data[safe_end:]
            else:
                self.carry = data[pos:]
            break

        return "".join(output)

    def flush(self) -> str:
        """End of stream: release carry-over unless inside unterminated markup."""
        remaining = "" if self.inside else self.carry
        self.carry = ""
        return remaining


class StreamSanitizer:
    """Strips thinking blocks, then query directives, from one live stream.

    Not safe for concurrent use; create one instance per in-flight stream.
    """

    def __init__(self):
        self.outer = TagFilter(THINK_OPEN, THINK_CLOSE)
        self.inner = TagFilter(QUERY_OPEN, QUERY_CLOSE)
        self.raw = ""
        self.emitted = ""

    def feed(self, chunk: str) -> str:
        self.raw += chunk
        stage = self.outer.feed(chunk)
        output = self.inner.feed(stage) if stage else ""
        self.emitted += output
        return output

    def flush(self) -> str:
        """Release buffered text at end of stream, preserving textual order.

        The inner carry-over was produced by the outer phase earlier than the
        outer carry-over, so outer leftovers are fed in behind it before the
        inner phase is flushed.
        """
        leftover = self.outer.flush()
        output = self.inner.feed(leftover) if leftover else ""
        output += self.inner.flush()
        self.emitted += output
        return output

    def directive_source(self) -> str:
        """Raw text (thinking removed) to scan for directives that were filtered out.

        An unterminated thinking block runs to the end of the stream.
        """
        text = _THINK_BLOCK.sub("", self.raw)
        cut = text.find(THINK_OPEN)
        return text if cut < 0 else text[:cut]
