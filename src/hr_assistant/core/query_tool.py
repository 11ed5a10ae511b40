"""Bounded query tool loop.

The model may answer with ``[SQL_QUERY]`` directives instead of a final reply.
Each round executes the requested queries through the read-only policy and
feeds the results back, for at most ``max_rounds`` rounds.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..prompts import FOLLOW_UP_INSTRUCTION
from .directives import QueryDirective, extract_queries, strip_query_directives, wrap_results
from .query_policy import QueryPolicy

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 3
DEFAULT_QUERY_TIMEOUT = 5.0


class QueryExecutor(ABC):
    """Read-only access to the application database."""

    @abstractmethod
    async def execute(self, sql: str) -> List[Dict[str, Any]]:
        """Run a validated query and return its rows as JSON-safe dicts."""
        ...


class QueryToolLoop:
    """Runs the model/query round-trip until a plain answer is produced."""

    def __init__(
        self,
        model_manager,
        executor: QueryExecutor,
        policy: Optional[QueryPolicy] = None,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        query_timeout: float = DEFAULT_QUERY_TIMEOUT,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ):
        self.model_manager = model_manager
        self.executor = executor
        self.policy = policy or QueryPolicy()
        self.max_rounds = max_rounds
        self.query_timeout = query_timeout
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def _call_model(self, messages: List[Dict[str, str]]) -> str:
        response = await self.model_manager.complete(
            messages, temperature=self.temperature, max_tokens=self.max_tokens
        )
        return response.content

    async def run(self, messages: List[Dict[str, str]]) -> str:
        """Produce a final answer, executing requested queries along the way.

        Args:
            messages: Prompt messages; not modified.

        Returns:
            The model's answer with any residual query directives removed.

        Raises:
            LLMProviderError: If the model cannot be reached.
        """
        conversation = list(messages)

        for round_number in range(1, self.max_rounds + 1):
            content = await self._call_model(conversation)
            directives = extract_queries(content)
            if not directives:
                return strip_query_directives(content).strip()

            logger.info(f"Tool round {round_number}: executing {len(directives)} queries")
            blocks = await self.execute_queries(directives)
            conversation.append({"role": "assistant", "content": content})
            conversation.append(
                {"role": "user", "content": f"{wrap_results(blocks)}\n\n{FOLLOW_UP_INSTRUCTION}"}
            )

        logger.info(f"Tool loop reached {self.max_rounds} rounds, requesting final answer")
        content = await self._call_model(conversation)
        return strip_query_directives(content).strip()

    async def execute_queries(self, directives: List[QueryDirective]) -> List[str]:
        """Validate and execute each directive, returning one text block per query.

        Never raises: policy violations, execution errors and timeouts become
        error blocks.
        """
        blocks = []
        for directive in directives:
            decision = self.policy.validate(directive.sql)
            if not decision.allowed:
                logger.warning(f"Query rejected: {decision.reason}")
                blocks.append(f"Query: {directive.sql}\nError: {decision.reason}")
                continue

            try:
                rows = await asyncio.wait_for(
                    self.executor.execute(decision.sql), timeout=self.query_timeout
                )
            except asyncio.TimeoutError:
                logger.warning(f"Query timed out after {self.query_timeout}s: {decision.sql}")
                blocks.append(
                    f"Query: {decision.sql}\nError: Query timed out after {self.query_timeout}s"
                )
                continue
            except Exception as e:
                logger.warning(f"Query failed: {e}")
                blocks.append(f"Query: {decision.sql}\nError: {e}")
                continue

            rows_json = json.dumps(rows, ensure_ascii=False, indent=2, default=str)
            blocks.append(f"Query: {decision.sql}\nResult ({len(rows)} rows):\n{rows_json}")
        return blocks
