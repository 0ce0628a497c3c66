"""Tests for the generational positional reconciler."""

from hnmd.ast_nodes import CustomComponent, Each, ExpressionAttr, Expr, If, Paragraph, Text
from hnmd.context import RuntimeContext
from hnmd.logging import ReconcileLogger
from hnmd.reconciler import (
    Reconciler,
    ReconcileOp,
    WidgetArena,
    evaluated_expressions,
    expression_hash,
    is_dynamic,
    reconcile,
)

KEEP, REBUILD, ADD = ReconcileOp.KEEP, ReconcileOp.REBUILD, ReconcileOp.ADD


def ctx(**state):
    return RuntimeContext(state=state)


# ---------------------------------------------------------------------------
# Static nodes
# ---------------------------------------------------------------------------

class TestPositional:

    def test_first_render_adds_everything(self):
        result = reconcile(WidgetArena(), [Text("A"), Text("B")])
        assert result.ops == (ADD, ADD)
        assert result.arena.generations == (0, 0)

    def test_insertion_shifts_positions(self):
        arena = WidgetArena.from_nodes([Text("A"), Text("B")])
        result = reconcile(arena, [Text("A"), Text("NEW"), Text("B")])
        assert result.ops == (KEEP, REBUILD, ADD)
        assert result.arena.generations == (0, 1, 0)
        assert [s.generation for s in result.arena.states] == [0, 1, 0]

    def test_unchanged_list_keeps_everything(self):
        nodes = [Text("A"), Paragraph((Text("B"),))]
        arena = WidgetArena.from_nodes(nodes)
        result = reconcile(arena, list(nodes))
        assert result.ops == (KEEP, KEEP)
        assert result.arena.generations == arena.generations
        assert result.arena.states == arena.states

    def test_shrink_reports_removed(self):
        arena = WidgetArena.from_nodes([Text("A"), Text("B"), Text("C")])
        result = reconcile(arena, [Text("A")])
        assert result.ops == (KEEP,)
        assert result.removed == 2
        assert len(result.arena) == 1
        assert result.arena.generations == (0, 0, 0)

    def test_generations_survive_shrink_and_regrow(self):
        arena = WidgetArena.from_nodes([Text("A"), Text("B")])
        arena = reconcile(arena, [Text("A"), Text("X")]).arena
        assert arena.generations == (0, 1)
        arena = reconcile(arena, [Text("A")]).arena
        result = reconcile(arena, [Text("A"), Text("Y")])
        assert result.ops == (KEEP, ADD)
        assert result.arena.states[1].generation == 1

    def test_generations_only_grow(self):
        arena = WidgetArena.from_nodes([Text("0")])
        for i in range(1, 4):
            arena = reconcile(arena, [Text(str(i))]).arena
        assert arena.generations == (3,)

    def test_counts(self):
        arena = WidgetArena.from_nodes([Text("A"), Text("B"), Text("C")])
        result = reconcile(arena, [Text("A"), Text("Z")])
        assert result.counts() == {"keep": 1, "rebuild": 1, "add": 0, "removed": 1}


# ---------------------------------------------------------------------------
# Evaluated values
# ---------------------------------------------------------------------------

class TestEvaluatedValues:

    def test_same_values_keep(self):
        nodes = [Expr("state.count")]
        arena = WidgetArena.from_nodes(nodes, ctx(count=1))
        result = reconcile(arena, nodes, ctx(count=1))
        assert result.ops == (KEEP,)

    def test_changed_value_rebuilds(self):
        nodes = [Text("Count"), Expr("state.count")]
        arena = WidgetArena.from_nodes(nodes, ctx(count=1))
        result = reconcile(arena, nodes, ctx(count=2))
        assert result.ops == (KEEP, REBUILD)
        assert result.arena.generations == (0, 1)

    def test_nested_expression_counts(self):
        nodes = [Paragraph((Text("Hi "), Expr("state.name")))]
        arena = WidgetArena.from_nodes(nodes, ctx(name="a"))
        assert reconcile(arena, nodes, ctx(name="b")).ops == (REBUILD,)

    def test_each_source_counts(self):
        nodes = [Each("state.items", "item", (Text("row"),))]
        arena = WidgetArena.from_nodes(nodes, ctx(items=[1]))
        assert reconcile(arena, nodes, ctx(items=[1])).ops == (KEEP,)
        assert reconcile(arena, nodes, ctx(items=[1, 2])).ops == (REBUILD,)

    def test_failed_evaluation_forces_rebuild(self):
        nodes = [Expr("state.name.first")]
        arena = WidgetArena.from_nodes(nodes, ctx(name="a"))
        assert arena.states[0].expression_hash is None
        assert reconcile(arena, nodes, ctx(name="a")).ops == (REBUILD,)

    def test_missing_context_forces_rebuild(self):
        nodes = [Expr("state.count")]
        arena = WidgetArena.from_nodes(nodes)
        assert reconcile(arena, nodes).ops == (REBUILD,)

    def test_query_expressions_use_evaluator(self, evaluator):
        nodes = [Expr("state.items | length")]
        arena = WidgetArena.from_nodes(nodes, ctx(items=[1]), evaluator)
        reconciler = Reconciler(evaluator)
        assert reconciler.reconcile(arena, nodes, ctx(items=[2])).ops == (KEEP,)
        assert reconciler.reconcile(arena, nodes, ctx(items=[1, 2])).ops == (REBUILD,)

    def test_interpolated_query(self, evaluator):
        nodes = [Expr('"n=\\(.state.items[0])"')]
        reconciler = Reconciler(evaluator)
        arena = WidgetArena.from_nodes(nodes, ctx(items=[1]), evaluator)
        assert arena.states[0].expression_hash is not None
        assert reconciler.reconcile(arena, nodes, ctx(items=[1])).ops == (KEEP,)
        assert reconciler.reconcile(arena, nodes, ctx(items=[2])).ops == (REBUILD,)

    def test_failing_query_forces_rebuild(self, evaluator):
        nodes = [Expr('state.name | error("bad")')]
        arena = WidgetArena.from_nodes(nodes, ctx(name="a"), evaluator)
        assert arena.states[0].expression_hash is None
        assert Reconciler(evaluator).reconcile(arena, nodes, ctx(name="a")).ops == (REBUILD,)

    def test_evaluator_crash_forces_rebuild(self):
        class Broken:
            def evaluate(self, expression, data):
                raise RuntimeError("engine exploded")

        nodes = [Text("A"), Expr("state.items | length")]
        arena = WidgetArena.from_nodes(nodes, ctx(items=[1]), Broken())
        result = Reconciler(Broken()).reconcile(arena, nodes, ctx(items=[1]))
        assert result.ops == (KEEP, REBUILD)

    def test_static_nodes_have_no_hash(self):
        assert expression_hash(Text("x"), ctx()) is None

    def test_hash_is_stable_across_key_order(self):
        node = Expr("state.obj")
        first = expression_hash(node, ctx(obj={"a": 1, "b": 2}))
        second = expression_hash(node, ctx(obj={"b": 2, "a": 1}))
        assert first is not None
        assert first == second


class TestExpressionDiscovery:

    def test_collects_subtree_expressions(self):
        node = If("state.on", (Paragraph((Expr("user.name"),)),), (Expr("state.fallback"),))
        assert evaluated_expressions(node) == ["state.on", "user.name", "state.fallback"]

    def test_custom_component_props(self):
        node = CustomComponent("Card", {"note": ExpressionAttr("note")})
        assert evaluated_expressions(node) == ["note"]
        assert is_dynamic(node)

    def test_static(self):
        assert not is_dynamic(Paragraph((Text("plain"),)))


# ---------------------------------------------------------------------------
# Pass logging
# ---------------------------------------------------------------------------

class TestReconcileLogging:

    def test_pass_log(self):
        pass_logger = ReconcileLogger("feed.hnmd")
        reconciler = Reconciler(pass_logger=pass_logger)
        arena = reconciler.reconcile(WidgetArena(), [Text("A"), Expr("state.n")], ctx(n=1)).arena
        reconciler.reconcile(arena, [Text("A"), Expr("state.n")], ctx(n=2))

        assert len(pass_logger.passes) == 2
        second = pass_logger.passes[1]
        assert [(e.op, e.reason) for e in second.operations] == [
            ("keep", "unchanged"),
            ("rebuild", "value"),
        ]
        assert second.operations[1].generation == 1
        assert second.finished_at is not None

    def test_evaluation_errors_are_logged(self):
        pass_logger = ReconcileLogger()
        Reconciler(pass_logger=pass_logger).reconcile(
            WidgetArena(), [Expr("state.s.x")], ctx(s="text"),
        )
        errors = pass_logger.current.evaluation_errors
        assert len(errors) == 1
        assert errors[0].expression == "state.s.x"
        assert errors[0].index == 0

    def test_structure_reason(self):
        pass_logger = ReconcileLogger()
        reconciler = Reconciler(pass_logger=pass_logger)
        arena = reconciler.reconcile(WidgetArena(), [Text("A")]).arena
        reconciler.reconcile(arena, [Text("B")])
        assert pass_logger.current.operations[0].reason == "structure"
