"""Pipe execution: derive new query results from existing ones."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .ast_nodes import Pipe
from .errors import EvaluationError
from .evaluator import QueryEvaluator

logger = logging.getLogger(__name__)


def execute_pipes(
    pipes: Mapping[str, Pipe],
    queries: Mapping[str, Any],
    evaluator: QueryEvaluator,
    strict: bool = False,
) -> dict[str, Any]:
    """Apply pipes in declaration order and return the extended query map.

    Each pipe's transform runs against its source's result; a pipe may read
    from a query or from an earlier pipe. A failing pipe yields null unless
    ``strict`` is set, in which case the EvaluationError propagates.
    """
    results = dict(queries)
    for name, pipe in pipes.items():
        try:
            if pipe.source not in results:
                raise EvaluationError(
                    f"Pipe '{name}' reads from unknown source '{pipe.source}'",
                    expression=pipe.transform,
                )
            results[name] = _transform(evaluator, name, pipe, results[pipe.source])
        except EvaluationError as exc:
            if strict:
                raise
            logger.warning("Pipe %s failed: %s", name, exc.message)
            results[name] = None
    return results


def _transform(evaluator: QueryEvaluator, name: str, pipe: Pipe, value: Any) -> Any:
    try:
        return evaluator.evaluate(pipe.transform, value)
    except EvaluationError:
        raise
    except Exception as exc:
        raise EvaluationError(f"Pipe '{name}' failed: {exc}", expression=pipe.transform) from exc
