"""Tests for the component registry and prop resolution."""

import pytest

from hnmd.ast_nodes import ComponentDefinition, CustomComponent, ExpressionAttr, LiteralAttr, PropSpec
from hnmd.context import RuntimeContext
from hnmd.errors import ComponentImportError, ValidationError
from hnmd.registry import ComponentRegistry, load_app, resolve_props


@pytest.fixture
def app_dir(tmp_path, feed_source, note_source, avatar_source):
    components = tmp_path / "components"
    components.mkdir()
    (tmp_path / "feed.hnmd").write_text(feed_source, encoding="utf-8")
    (components / "note.hnmc").write_text(note_source, encoding="utf-8")
    (components / "avatar.hnmc").write_text(avatar_source, encoding="utf-8")
    return tmp_path


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

class TestLoading:

    def test_load_app_resolves_nested_imports(self, app_dir):
        document, registry = load_app(app_dir / "feed.hnmd")
        assert document.imports == {"NoteCard": "./components/note.hnmc"}
        assert registry.list_components() == ["Avatar", "NoteCard"]
        assert registry.source_of("Avatar") == (app_dir / "components" / "avatar.hnmc").resolve()

    def test_loaded_definition(self, app_dir):
        registry = ComponentRegistry(app_dir)
        definition = registry.load("NoteCard", "components/note.hnmc")
        assert definition.name == "NoteCard"
        assert definition.props["note"].required
        assert "NoteCard" in registry
        assert len(registry) == 2

    def test_load_is_idempotent(self, app_dir):
        registry = ComponentRegistry(app_dir)
        first = registry.load("Avatar", "components/avatar.hnmc")
        assert registry.load("Avatar", "elsewhere.hnmc") is first

    def test_missing_file(self, tmp_path):
        with pytest.raises(ComponentImportError, match="Component 'Card' not found"):
            ComponentRegistry(tmp_path).load("Card", "card.hnmc")

    def test_missing_nested_import(self, tmp_path):
        (tmp_path / "a.hnmc").write_text("---\nimports:\n  B: ./b.hnmc\n---\nA\n", encoding="utf-8")
        registry = ComponentRegistry(tmp_path)
        with pytest.raises(ComponentImportError, match="'B'"):
            registry.load("A", "a.hnmc")
        assert "A" not in registry

    def test_import_cycle(self, tmp_path):
        (tmp_path / "a.hnmc").write_text("---\nimports:\n  B: ./b.hnmc\n---\nA\n", encoding="utf-8")
        (tmp_path / "b.hnmc").write_text("---\nimports:\n  A: ./a.hnmc\n---\nB\n", encoding="utf-8")
        registry = ComponentRegistry(tmp_path)
        registry.load("A", "a.hnmc")
        assert registry.list_components() == ["A", "B"]

    def test_register_and_get(self):
        registry = ComponentRegistry()
        definition = ComponentDefinition(name="Inline")
        registry.register("Inline", definition)
        assert registry.get("Inline") is definition
        assert registry.get("Other") is None
        assert registry.source_of("Inline") is None


# ---------------------------------------------------------------------------
# Props
# ---------------------------------------------------------------------------

class TestResolveProps:

    DEFINITION = ComponentDefinition(
        name="Card",
        props={
            "note": PropSpec("object", required=True),
            "size": PropSpec("string", default="medium"),
            "count": PropSpec("number"),
            "compact": PropSpec("boolean"),
        },
    )

    def test_expression_and_defaults(self, context):
        usage = CustomComponent("Card", {"note": ExpressionAttr("queries.feed[0]")})
        props = resolve_props(self.DEFINITION, usage, context)
        assert props["note"]["id"] == "n1"
        assert props["size"] == "medium"
        assert props["count"] is None

    def test_literal_coercion(self, context):
        usage = CustomComponent("Card", {
            "note": ExpressionAttr("user"),
            "count": LiteralAttr("3"),
            "compact": LiteralAttr("true"),
        })
        props = resolve_props(self.DEFINITION, usage, context)
        assert props["count"] == 3
        assert props["compact"] is True

    def test_undeclared_props_pass_through(self, context):
        usage = CustomComponent("Card", {"note": ExpressionAttr("user"), "extra": LiteralAttr("x")})
        assert resolve_props(self.DEFINITION, usage, context)["extra"] == "x"

    def test_missing_required(self, context):
        with pytest.raises(ValidationError, match="missing required prop 'note'"):
            resolve_props(self.DEFINITION, CustomComponent("Card"), context)

    def test_type_mismatch(self, context):
        usage = CustomComponent("Card", {"note": ExpressionAttr("state.title")})
        with pytest.raises(ValidationError, match="must be object, got string"):
            resolve_props(self.DEFINITION, usage, context)

    def test_query_props(self, context, evaluator):
        definition = ComponentDefinition(props={"n": PropSpec("number")})
        usage = CustomComponent("Count", {"n": ExpressionAttr("queries.feed | length")})
        assert resolve_props(definition, usage, context, evaluator) == {"n": 2}

    def test_local_bindings_visible(self):
        ctx = RuntimeContext().with_local("note", {"id": "x"})
        usage = CustomComponent("Card", {"note": ExpressionAttr("note")})
        assert resolve_props(self.DEFINITION, usage, ctx)["note"] == {"id": "x"}
