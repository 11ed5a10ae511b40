"""Read-only policy for model-requested SQL queries."""

import re
from dataclasses import dataclass
from typing import Optional

DEFAULT_MAX_ROWS = 50

_READ_ONLY_START = re.compile(r"^\s*(SELECT|WITH)\b", re.IGNORECASE)
_QUOTED_LITERAL = re.compile(r"'(?:[^']|'')*'")
_HAS_LIMIT = re.compile(r"\bLIMIT\b", re.IGNORECASE)

FORBIDDEN_KEYWORDS = (
    "DELETE",
    "DROP",
    "TRUNCATE",
    "ALTER",
    "UPDATE",
    "INSERT",
    "CREATE",
    "GRANT",
    "REVOKE",
    "EXEC",
    "EXECUTE",
    "CALL",
    "COPY",
    "MERGE",
    "ATTACH",
    "PRAGMA",
)

RESTRICTED_CATALOGS = (
    re.compile(r"\bpg_", re.IGNORECASE),
    re.compile(r"\binformation_schema\b", re.IGNORECASE),
    re.compile(r"\bsqlite_master\b", re.IGNORECASE),
    re.compile(r"\bsqlite_schema\b", re.IGNORECASE),
)


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of validating one query."""

    allowed: bool
    sql: str
    reason: Optional[str] = None


class QueryPolicy:
    """Validates and row-limits queries before they reach the database."""

    def __init__(self, max_rows: int = DEFAULT_MAX_ROWS):
        self.max_rows = max_rows
        self._forbidden = [
            (keyword, re.compile(rf"\b{keyword}\b", re.IGNORECASE))
            for keyword in FORBIDDEN_KEYWORDS
        ]

    def validate(self, sql: str) -> PolicyDecision:
        """Check a query against the read-only policy.

        Args:
            sql: Query text extracted from a directive.

        Returns:
            PolicyDecision with the row-limited query when allowed, or the
            rejection reason.
        """
        trimmed = sql.strip()
        if not trimmed:
            return PolicyDecision(False, sql, "Empty query.")

        if not _READ_ONLY_START.match(trimmed):
            return PolicyDecision(False, sql, "Only SELECT queries can be executed.")

        without_literals = _QUOTED_LITERAL.sub("", trimmed).rstrip().rstrip(";").rstrip()
        if ";" in without_literals:
            return PolicyDecision(False, sql, "Multiple statements cannot be executed.")

        for keyword, pattern in self._forbidden:
            if pattern.search(trimmed):
                return PolicyDecision(False, sql, f"Forbidden keyword detected: {keyword}")

        for pattern in RESTRICTED_CATALOGS:
            if pattern.search(trimmed):
                return PolicyDecision(False, sql, "System catalogs cannot be queried.")

        return PolicyDecision(True, self.apply_row_limit(trimmed))

    def apply_row_limit(self, sql: str) -> str:
        """Append the default row cap when the query has no LIMIT of its own."""
        limited = sql.strip()
        while limited.endswith(";"):
            limited = limited[:-1].rstrip()
        if not _HAS_LIMIT.search(limited):
            limited = f"{limited} LIMIT {self.max_rows}"
        return limited
