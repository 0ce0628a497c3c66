"""Text rendering with {expr} substitution: inline nodes and action templates."""

from __future__ import annotations

import logging
from typing import Any

from .ast_nodes import Action, Expr, Image, Node, Text, child_nodes
from .context import RuntimeContext
from .errors import EvaluationError
from .evaluator import QueryEvaluator, to_json_text

logger = logging.getLogger(__name__)


def value_to_text(value: Any) -> str:
    """Render an evaluated value for display: strings raw, null empty, else JSON."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return to_json_text(value)


def error_placeholder(expression: str, error: EvaluationError) -> str:
    return "{" + expression + "} [error: " + error.message + "]"


def find_interpolations(template: str) -> list[tuple[int, int, str]]:
    """Return (start, end, expression) for each brace-balanced ``{...}`` span."""
    spans = []
    i = 0
    while i < len(template):
        if template[i] != "{":
            i += 1
            continue
        depth = 0
        for j in range(i, len(template)):
            if template[j] == "{":
                depth += 1
            elif template[j] == "}":
                depth -= 1
                if depth == 0:
                    inner = template[i + 1:j].strip()
                    if inner:
                        spans.append((i, j + 1, inner))
                    i = j
                    break
        else:
            break
        i += 1
    return spans


def interpolate(
    template: str,
    context: RuntimeContext,
    evaluator: QueryEvaluator | None = None,
    strict: bool = True,
) -> str:
    """Substitute every ``{expr}`` span in ``template``.

    With ``strict`` a failing expression raises EvaluationError; otherwise the
    span renders as an error placeholder.
    """
    parts = []
    last = 0
    for start, end, expression in find_interpolations(template):
        parts.append(template[last:start])
        try:
            parts.append(value_to_text(context.eval(expression, evaluator)))
        except EvaluationError as exc:
            if strict:
                raise
            logger.warning("Expression {%s} failed: %s", expression, exc.message)
            parts.append(error_placeholder(expression, exc))
        last = end
    parts.append(template[last:])
    return "".join(parts)


def render_inline_text(
    nodes: tuple[Node, ...] | list[Node],
    context: RuntimeContext,
    evaluator: QueryEvaluator | None = None,
) -> str:
    """Flatten nodes to display text, evaluating Expr nodes.

    A failing expression renders a placeholder in place of that node only.
    """
    parts = []
    for node in nodes:
        if isinstance(node, Text):
            parts.append(node.value)
        elif isinstance(node, Expr):
            try:
                parts.append(value_to_text(context.eval(node.expression, evaluator)))
            except EvaluationError as exc:
                logger.warning("Expression {%s} failed: %s", node.expression, exc.message)
                parts.append(error_placeholder(node.expression, exc))
        elif isinstance(node, Image):
            parts.append(node.alt)
        else:
            parts.append(render_inline_text(child_nodes(node), context, evaluator))
    return "".join(parts)


def render_action(
    action: Action,
    context: RuntimeContext,
    evaluator: QueryEvaluator | None = None,
) -> dict[str, Any]:
    """Fill an action's content and tag templates. Raises EvaluationError."""
    return {
        "kind": action.kind,
        "content": interpolate(action.content, context, evaluator),
        "tags": [[interpolate(part, context, evaluator) for part in tag] for tag in action.tags],
    }
