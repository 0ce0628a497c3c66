"""Query evaluation backed by the jq library.

``JqEvaluator`` compiles query text once and keeps the compiled program for
later passes. ``evaluate`` returns the first output, or null when the query
produces none. Every jq failure surfaces as EvaluationError.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import jq

from .errors import EvaluationError

logger = logging.getLogger(__name__)


class QueryEvaluator(Protocol):
    """Anything that can evaluate query text against a JSON value."""

    def evaluate(self, expression: str, data: Any) -> Any: ...


# ---------------------------------------------------------------------------
# JSON value helpers
# ---------------------------------------------------------------------------

def json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    raise EvaluationError(f"Not a JSON value: {value!r}")


def to_json_text(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------

class JqEvaluator:
    """Evaluates jq queries, caching compiled programs by query text.

    The cache grows for the lifetime of the evaluator; no eviction.
    """

    def __init__(self):
        self._cache: dict[str, Any] = {}

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    def compile(self, expression: str):
        """Compile query text, reusing a cached program when present."""
        program = self._cache.get(expression)
        if program is not None:
            return program
        logger.debug("Compiling query %r", expression)
        try:
            program = jq.compile(expression)
        except (ValueError, TypeError) as exc:
            raise EvaluationError(
                f"Invalid query {expression!r}: {exc}", expression=expression,
            ) from exc
        self._cache[expression] = program
        return program

    def evaluate_all(self, expression: str, data: Any) -> list[Any]:
        """Return every output of the query."""
        program = self.compile(expression)
        try:
            return program.input_value(data).all()
        except (ValueError, TypeError) as exc:
            raise EvaluationError(f"Query {expression!r} failed: {exc}", expression=expression) from exc

    def evaluate(self, expression: str, data: Any) -> Any:
        """Return the first output of the query, or None when it has none."""
        program = self.compile(expression)
        try:
            for out in program.input_value(data):
                return out
        except (ValueError, TypeError) as exc:
            raise EvaluationError(f"Query {expression!r} failed: {exc}", expression=expression) from exc
        return None
