"""Tests for query directive parsing."""

from hr_assistant.core.directives import (
    QueryDirective,
    extract_queries,
    has_query_directive,
    strip_query_directives,
    strip_result_blocks,
    wrap_results,
)


class TestExtractQueries:
    """Tests for extracting directives from model output."""

    def test_extracts_in_order(self):
        """Multiple directives are returned in textual order."""
        text = "[SQL_QUERY] SELECT 1 [/SQL_QUERY] and [SQL_QUERY]SELECT 2[/SQL_QUERY]"
        assert extract_queries(text) == [QueryDirective("SELECT 1"), QueryDirective("SELECT 2")]

    def test_multiline_body(self):
        """Directive bodies may span lines."""
        text = "[SQL_QUERY]\nSELECT name\nFROM candidates\n[/SQL_QUERY]"
        assert extract_queries(text)[0].sql == "SELECT name\nFROM candidates"

    def test_empty_body_is_ignored(self):
        """A directive with a blank body is not a query."""
        assert extract_queries("[SQL_QUERY]   [/SQL_QUERY]") == []

    def test_unterminated_directive_is_ignored(self):
        """Only complete directives are extracted."""
        text = "[SQL_QUERY]SELECT 1"
        assert extract_queries(text) == []
        assert has_query_directive(text) is True


class TestStripping:
    """Tests for removing directive and result markup."""

    def test_strip_complete_and_trailing(self):
        """Complete blocks and a trailing unterminated block are removed."""
        text = "A [SQL_QUERY]SELECT 1[/SQL_QUERY]B [SQL_QUERY]SELECT"
        assert strip_query_directives(text) == "A B "

    def test_strip_leaves_plain_text(self):
        """Text without directives is returned unchanged."""
        assert strip_query_directives("no markup here") == "no markup here"

    def test_strip_result_blocks(self):
        """Echoed result blocks are removed."""
        assert strip_result_blocks("x[SQL_RESULTS]\nrows\n[/SQL_RESULTS]y") == "xy"

    def test_wrap_results_joins_blocks(self):
        """Result blocks are joined by blank lines inside the wrapper."""
        wrapped = wrap_results(["first", "second"])
        assert wrapped == "[SQL_RESULTS]\nfirst\n\nsecond\n[/SQL_RESULTS]"
