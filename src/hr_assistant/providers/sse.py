"""Server-sent-event decoding for streamed chat completions."""

import json
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"


class SSEDeltaDecoder:
    """Turns a raw SSE byte/text stream into content deltas.

    Input may be split anywhere, including mid-line; incomplete lines are
    buffered until their newline arrives. Only ``choices[0].delta.content`` is
    forwarded. Reasoning-only deltas, ``[DONE]`` and malformed JSON are skipped.
    """

    def __init__(self):
        self._buffer = ""

    def feed(self, chunk: str) -> List[str]:
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return [delta for delta in map(self.decode_line, lines) if delta]

    def flush(self) -> List[str]:
        """Decode whatever is left once the upstream body has ended."""
        remaining, self._buffer = self._buffer, ""
        delta = self.decode_line(remaining)
        return [delta] if delta else []

    @staticmethod
    def decode_line(line: str) -> Optional[str]:
        """Extract the content delta from one SSE line, if it carries one."""
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            return None
        data = line[len(DATA_PREFIX) :]
        if data == DONE_MARKER:
            return None

        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed stream chunk: {data[:100]}")
            return None

        try:
            delta = parsed["choices"][0]["delta"]
        except (KeyError, IndexError, TypeError):
            return None
        if not isinstance(delta, dict):
            return None

        content = delta.get("content")
        return content if isinstance(content, str) and content else None
