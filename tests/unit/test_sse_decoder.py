"""Tests for SSE delta decoding."""

import json

from hr_assistant.providers import SSEDeltaDecoder


def data_line(payload):
    return "data: " + json.dumps(payload)


class TestSSEDeltaDecoder:
    """Tests for SSEDeltaDecoder."""

    def test_decodes_content_delta(self):
        """Content deltas are extracted from data lines."""
        line = data_line({"choices": [{"delta": {"content": "Hi"}}]})
        assert SSEDeltaDecoder.decode_line(line) == "Hi"

    def test_skips_non_content_lines(self):
        """Comments, DONE, reasoning-only and malformed lines carry nothing."""
        for line in [
            ": keep-alive",
            "event: message",
            "data: [DONE]",
            "data: {not json",
            data_line({"choices": []}),
            data_line({"choices": [{"delta": {"reasoning_content": "thinking"}}]}),
            data_line({"choices": [{"delta": {"content": ""}}]}),
            data_line({"choices": [{"delta": None}]}),
            data_line([1, 2, 3]),
        ]:
            assert SSEDeltaDecoder.decode_line(line) is None

    def test_lines_split_across_chunks(self):
        """Partial lines are buffered until their newline arrives."""
        raw = data_line({"choices": [{"delta": {"content": "Merhaba"}}]}) + "\n\n"
        decoder = SSEDeltaDecoder()

        out = []
        for i in range(0, len(raw), 7):
            out.extend(decoder.feed(raw[i : i + 7]))

        assert out == ["Merhaba"]
        assert decoder.flush() == []

    def test_flush_decodes_unterminated_final_line(self):
        """A last line without newline is decoded at end of stream."""
        decoder = SSEDeltaDecoder()
        assert decoder.feed(data_line({"choices": [{"delta": {"content": "end"}}]})) == []
        assert decoder.flush() == ["end"]

    def test_multiple_events_in_one_chunk(self):
        """Several events in one chunk are returned in order."""
        raw = "\n\n".join(
            data_line({"choices": [{"delta": {"content": text}}]}) for text in ("a", "b", "c")
        )
        decoder = SSEDeltaDecoder()
        assert decoder.feed(raw + "\n\n") == ["a", "b", "c"]
