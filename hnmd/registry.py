"""Component registry: reusable .hnmc components available to a document.

Component files are resolved relative to the file that imports them:

  app/
    main.hnmd            imports: { NoteCard: ./components/note.hnmc }
    components/
      note.hnmc          imports: { Avatar: ./avatar.hnmc }
      avatar.hnmc
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .ast_nodes import ComponentDefinition, CustomComponent, Document, LiteralAttr, PropSpec
from .context import RuntimeContext
from .document import load_document, parse_component_definition
from .errors import ComponentImportError, ValidationError
from .evaluator import QueryEvaluator, json_type

logger = logging.getLogger(__name__)

COMPONENT_SUFFIX = ".hnmc"


class ComponentRegistry:
    """Component definitions by name, loaded from files under ``base_path``."""

    def __init__(self, base_path: str | Path | None = None):
        self.root = Path(base_path) if base_path is not None else Path.cwd()
        self._components: dict[str, ComponentDefinition] = {}
        self._sources: dict[str, Path] = {}
        self._loading: set[str] = set()

    def register(self, name: str, definition: ComponentDefinition, source: Path | None = None) -> None:
        self._components[name] = definition
        if source is not None:
            self._sources[name] = source

    def load(self, name: str, path: str | Path, relative_to: Path | None = None) -> ComponentDefinition | None:
        """Load a component file and, recursively, the components it imports.

        Names already loaded (or being loaded further up an import cycle)
        are not loaded again.
        """
        if name in self._components:
            return self._components[name]
        if name in self._loading:
            logger.debug("Import cycle through component %s", name)
            return None
        file_path = ((relative_to or self.root) / path).resolve()
        if not file_path.is_file():
            raise ComponentImportError(f"Component '{name}' not found at {file_path}")
        self._loading.add(name)
        try:
            definition = parse_component_definition(file_path.read_text(encoding="utf-8"), name=name)
            for child_name, child_path in definition.imports.items():
                self.load(child_name, child_path, relative_to=file_path.parent)
        finally:
            self._loading.discard(name)
        self.register(name, definition, source=file_path)
        logger.debug("Loaded component %s from %s", name, file_path)
        return definition

    def get(self, name: str) -> ComponentDefinition | None:
        return self._components.get(name)

    def source_of(self, name: str) -> Path | None:
        return self._sources.get(name)

    def list_components(self) -> list[str]:
        return sorted(self._components)

    def __contains__(self, name: object) -> bool:
        return name in self._components

    def __len__(self) -> int:
        return len(self._components)


def load_app(path: str | Path) -> tuple[Document, ComponentRegistry]:
    """Load a document and every component it imports."""
    path = Path(path)
    document = load_document(path)
    registry = ComponentRegistry(path.parent)
    for name, component_path in document.imports.items():
        registry.load(name, component_path)
    return document, registry


# ---------------------------------------------------------------------------
# Props
# ---------------------------------------------------------------------------

_PROP_JSON_TYPES = {
    "string": {"string"},
    "number": {"number"},
    "boolean": {"boolean"},
    "object": {"object"},
    "array": {"array"},
}


def _coerce_literal(text: str, spec: PropSpec) -> Any:
    if spec.type == "number":
        try:
            value = float(text)
        except ValueError:
            return text
        return int(value) if value.is_integer() else value
    if spec.type == "boolean" and text in ("true", "false"):
        return text == "true"
    return text


def resolve_props(
    definition: ComponentDefinition,
    component: CustomComponent,
    context: RuntimeContext,
    evaluator: QueryEvaluator | None = None,
) -> dict[str, Any]:
    """Evaluate a component usage's props against its definition.

    Raises ValidationError for missing required props or mistyped values and
    EvaluationError when a prop expression fails.
    """
    resolved: dict[str, Any] = {}
    for name, value in component.props.items():
        spec = definition.props.get(name, PropSpec())
        if isinstance(value, LiteralAttr):
            resolved[name] = _coerce_literal(value.value, spec)
        else:
            resolved[name] = context.eval(value.value, evaluator)
    for name, spec in definition.props.items():
        if name not in resolved:
            if spec.required:
                raise ValidationError(f"<{component.name}> is missing required prop '{name}'")
            resolved[name] = spec.default
        value = resolved[name]
        allowed = _PROP_JSON_TYPES.get(spec.type)
        if allowed and value is not None and json_type(value) not in allowed:
            raise ValidationError(
                f"Prop '{name}' of <{component.name}> must be {spec.type}, got {json_type(value)}"
            )
    return resolved
