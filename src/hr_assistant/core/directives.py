"""Query directives embedded in model output.

The model requests a data lookup by wrapping a single SQL string in
``[SQL_QUERY]...[/SQL_QUERY]``. Results are fed back wrapped in
``[SQL_RESULTS]...[/SQL_RESULTS]``.
"""

import re
from dataclasses import dataclass
from typing import List

QUERY_OPEN = "[SQL_QUERY]"
QUERY_CLOSE = "[/SQL_QUERY]"
RESULTS_OPEN = "[SQL_RESULTS]"
RESULTS_CLOSE = "[/SQL_RESULTS]"

_QUERY_BLOCK = re.compile(r"\[SQL_QUERY\](.*?)\[/SQL_QUERY\]", re.DOTALL)
_UNTERMINATED_QUERY = re.compile(r"\[SQL_QUERY\].*\Z", re.DOTALL)
_RESULTS_BLOCK = re.compile(r"\[SQL_RESULTS\].*?\[/SQL_RESULTS\]", re.DOTALL)


@dataclass(frozen=True)
class QueryDirective:
    """A query requested by the model for one tool-loop round."""

    sql: str


def has_query_directive(text: str) -> bool:
    return QUERY_OPEN in text


def extract_queries(text: str) -> List[QueryDirective]:
    """Extract every complete directive with a non-empty body, in order."""
    directives = []
    for match in _QUERY_BLOCK.finditer(text):
        sql = match.group(1).strip()
        if sql:
            directives.append(QueryDirective(sql=sql))
    return directives


def strip_query_directives(text: str) -> str:
    """Remove complete directive blocks and any unterminated trailing one."""
    text = _QUERY_BLOCK.sub("", text)
    return _UNTERMINATED_QUERY.sub("", text)


def strip_result_blocks(text: str) -> str:
    return _RESULTS_BLOCK.sub("", text)


def wrap_results(blocks: List[str]) -> str:
    body = "\n\n".join(blocks)
    return f"{RESULTS_OPEN}\n{body}\n{RESULTS_CLOSE}"
