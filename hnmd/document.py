"""Document assembler: frontmatter + body + imports -> Document."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .ast_nodes import ComponentDefinition, Document, PropSpec
from .body import parse_body
from .errors import FrontmatterError
from .frontmatter import (
    frontmatter_from_mapping,
    load_yaml_mapping,
    parse_filter,
    parse_imports,
    split_frontmatter,
    to_json_value,
)

PROP_TYPES = {"string", "number", "boolean", "object", "array", "any"}


def _split(source: str, section: str) -> tuple[dict, str, int]:
    """Return (frontmatter mapping, body text, body line offset)."""
    yaml_text, body, body_offset = split_frontmatter(source)
    if yaml_text is None:
        return {}, body, 0
    yaml_offset = body_offset - 1 - yaml_text.count("\n")
    return load_yaml_mapping(yaml_text, section, yaml_offset), body, body_offset


def parse_document(source: str) -> Document:
    """Parse .hnmd source text into a Document.

    A document without frontmatter is valid and has empty collections.
    Raises StructuralParseError (or its FrontmatterError subclass).
    """
    data, body, body_offset = _split(source, "frontmatter")
    return Document(
        frontmatter=frontmatter_from_mapping(data),
        body=parse_body(body, line_offset=body_offset),
        imports=parse_imports(data),
    )


def load_document(path: str | Path) -> Document:
    """Read and parse a .hnmd file."""
    return parse_document(Path(path).read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Component definitions (.hnmc)
# ---------------------------------------------------------------------------

def parse_prop_spec(name: str, data: Any) -> PropSpec:
    """Accept ``name: type`` or ``name: {type, required, default}``."""
    where = f"props.{name}"
    if isinstance(data, str):
        data = {"type": data}
    elif data is None:
        data = {}
    elif not isinstance(data, dict):
        raise FrontmatterError(f"{where} must be a type name or a mapping", field=where)
    prop_type = data.get("type", "any")
    if prop_type not in PROP_TYPES:
        raise FrontmatterError(
            f"{where}.type must be one of: {', '.join(sorted(PROP_TYPES))}",
            field=f"{where}.type",
        )
    required = data.get("required", False)
    if not isinstance(required, bool):
        raise FrontmatterError(f"{where}.required must be a boolean", field=f"{where}.required")
    return PropSpec(type=prop_type, required=required, default=to_json_value(data.get("default")))


def parse_component_definition(source: str, name: str = "") -> ComponentDefinition:
    """Parse .hnmc source: frontmatter imports/queries/props plus a body."""
    data, body, body_offset = _split(source, "component definition")
    queries = data.get("queries") or {}
    if not isinstance(queries, dict):
        raise FrontmatterError("queries must be a mapping", field="queries")
    props = data.get("props") or {}
    if not isinstance(props, dict):
        raise FrontmatterError("props must be a mapping", field="props")
    return ComponentDefinition(
        name=name,
        imports=parse_imports(data),
        queries={str(k): parse_filter(str(k), v, section="queries") for k, v in queries.items()},
        props={str(k): parse_prop_spec(str(k), v) for k, v in props.items()},
        body=parse_body(body, line_offset=body_offset),
    )
