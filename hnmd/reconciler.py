"""Generational positional reconciler.

Compares the widget arena of the previous pass with a new list of top-level
nodes and decides, per position, whether the widget can be kept, must be
rebuilt, or is new. Identity is the list index. Each slot carries a
generation counter that only ever grows, across passes and list resizes.

A node whose subtree evaluates expressions is kept only when it is
structurally equal to the old node *and* the hash of its evaluated values is
unchanged. If evaluation fails there is no stable hash and the node is
rebuilt.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Sequence

from .ast_nodes import (
    Button,
    CustomComponent,
    Each,
    Emphasis,
    ExpressionAttr,
    Expr,
    Grid,
    Heading,
    HStack,
    If,
    Image,
    Input,
    Link,
    List,
    Node,
    Paragraph,
    Spacer,
    Strong,
    Text,
    VStack,
    child_nodes,
)
from .context import RuntimeContext
from .errors import EvaluationError
from .evaluator import QueryEvaluator
from .logging import ReconcileLogger

logger = logging.getLogger(__name__)


class ReconcileOp(Enum):
    KEEP = "keep"
    REBUILD = "rebuild"
    ADD = "add"


@dataclass(frozen=True)
class WidgetState:
    """Snapshot of the node a slot was built from."""
    node: Node
    generation: int = 0
    expression_hash: int | None = None


@dataclass(frozen=True)
class WidgetArena:
    """Index-addressed widget states plus the per-slot generation high-water mark.

    ``generations`` is at least as long as ``states`` and never shrinks.
    """
    states: tuple[WidgetState, ...] = ()
    generations: tuple[int, ...] = ()

    def __len__(self) -> int:
        return len(self.states)

    @classmethod
    def from_nodes(
        cls,
        nodes: Sequence[Node],
        context: RuntimeContext | None = None,
        evaluator: QueryEvaluator | None = None,
    ) -> WidgetArena:
        """Arena for a first render: every slot added at generation 0."""
        return Reconciler(evaluator).reconcile(cls(), nodes, context).arena


@dataclass(frozen=True)
class ReconcileResult:
    arena: WidgetArena
    ops: tuple[ReconcileOp, ...]
    removed: int = 0  # trailing slots the consumer must truncate

    def counts(self) -> dict[str, int]:
        counts = {op.value: 0 for op in ReconcileOp}
        for op in self.ops:
            counts[op.value] += 1
        counts["removed"] = self.removed
        return counts


# ---------------------------------------------------------------------------
# Evaluated expressions
# ---------------------------------------------------------------------------

def _none(node) -> tuple[str, ...]:
    return ()


def _custom_props(node: CustomComponent) -> tuple[str, ...]:
    return tuple(v.value for v in node.props.values() if isinstance(v, ExpressionAttr))


# Expressions each node evaluates itself, excluding its children
_OWN_EXPRESSIONS: dict[type, Callable[[Any], tuple[str, ...]]] = {
    Heading: _none,
    Paragraph: _none,
    Text: _none,
    Strong: _none,
    Emphasis: _none,
    List: _none,
    Link: _none,
    Image: _none,
    Expr: lambda node: (node.expression,),
    Each: lambda node: (node.source,),
    If: lambda node: (node.condition,),
    Button: _none,
    Input: _none,
    VStack: _none,
    HStack: _none,
    Grid: _none,
    Spacer: _none,
    CustomComponent: _custom_props,
}


def evaluated_expressions(node: Node) -> list[str]:
    """All expressions evaluated anywhere in the node's subtree, in order."""
    found = list(_OWN_EXPRESSIONS[type(node)](node))
    for child in child_nodes(node):
        found.extend(evaluated_expressions(child))
    return found


def is_dynamic(node: Node) -> bool:
    return bool(evaluated_expressions(node))


def expression_hash(
    node: Node,
    context: RuntimeContext | None,
    evaluator: QueryEvaluator | None = None,
    on_error: Callable[[str, EvaluationError], None] | None = None,
) -> int | None:
    """Hash of the JSON-serialized values of every expression in the subtree.

    Returns None for static nodes, when no context is given, or when any
    expression fails to evaluate.
    """
    expressions = evaluated_expressions(node)
    if not expressions or context is None:
        return None
    values = []
    for expression in expressions:
        try:
            values.append(context.eval(expression, evaluator))
        except EvaluationError as exc:
            if on_error is not None:
                on_error(expression, exc)
            return None
    payload = json.dumps(values, sort_keys=True, separators=(",", ":"), default=str)
    return int.from_bytes(hashlib.blake2b(payload.encode("utf-8"), digest_size=8).digest(), "big")


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------

class Reconciler:
    """Diffs successive node lists into Keep/Rebuild/Add ops."""

    def __init__(
        self,
        evaluator: QueryEvaluator | None = None,
        pass_logger: ReconcileLogger | None = None,
    ):
        self.evaluator = evaluator
        self.pass_logger = pass_logger

    def reconcile(
        self,
        arena: WidgetArena,
        nodes: Sequence[Node],
        context: RuntimeContext | None = None,
    ) -> ReconcileResult:
        """Reconcile ``nodes`` against ``arena``. Never raises for bad data."""
        if self.pass_logger is not None:
            self.pass_logger.start_pass()
        generations = list(arena.generations)
        states: list[WidgetState] = []
        ops: list[ReconcileOp] = []

        for index, node in enumerate(nodes):
            new_hash = expression_hash(node, context, self.evaluator, self._error_hook(index))
            if index < len(arena.states):
                previous = arena.states[index]
                reason = self._change_reason(previous, node, new_hash)
                if reason is None:
                    states.append(previous)
                    ops.append(ReconcileOp.KEEP)
                    self._record(index, ReconcileOp.KEEP, node, previous.generation, "unchanged", new_hash)
                    continue
                generations[index] += 1
                states.append(WidgetState(node, generations[index], new_hash))
                ops.append(ReconcileOp.REBUILD)
                self._record(index, ReconcileOp.REBUILD, node, generations[index], reason, new_hash)
            else:
                if index >= len(generations):
                    generations.append(0)
                states.append(WidgetState(node, generations[index], new_hash))
                ops.append(ReconcileOp.ADD)
                self._record(index, ReconcileOp.ADD, node, generations[index], "new", new_hash)

        removed = max(0, len(arena.states) - len(nodes))
        result = ReconcileResult(WidgetArena(tuple(states), tuple(generations)), tuple(ops), removed)
        counts = result.counts()
        logger.debug(
            "Reconciled %d nodes: %d keep, %d rebuild, %d add, %d removed",
            len(nodes), counts["keep"], counts["rebuild"], counts["add"], removed,
        )
        if self.pass_logger is not None:
            self.pass_logger.finish_pass(removed)
        return result

    @staticmethod
    def _change_reason(previous: WidgetState, node: Node, new_hash: int | None) -> str | None:
        """None when the old widget can be kept, else why it cannot."""
        if previous.node != node:
            return "structure"
        if not is_dynamic(node):
            return None
        if previous.expression_hash is None or new_hash is None:
            return "unhashable"
        if previous.expression_hash != new_hash:
            return "value"
        return None

    def _error_hook(self, index: int):
        if self.pass_logger is None:
            return None

        def hook(expression: str, exc: EvaluationError) -> None:
            self.pass_logger.record_evaluation_error(expression, exc.message, index)
        return hook

    def _record(self, index, op, node, generation, reason, new_hash) -> None:
        if self.pass_logger is not None:
            self.pass_logger.record(index, op.value, type(node).__name__, generation, reason, new_hash)


def reconcile(
    arena: WidgetArena,
    nodes: Sequence[Node],
    context: RuntimeContext | None = None,
    evaluator: QueryEvaluator | None = None,
) -> ReconcileResult:
    """Reconcile ``nodes`` against ``arena`` with a one-off Reconciler."""
    return Reconciler(evaluator).reconcile(arena, nodes, context)
