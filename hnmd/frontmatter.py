"""YAML frontmatter parsing: filters, pipes, actions, state and imports."""

from __future__ import annotations

import base64
import datetime
import logging
from typing import Any, Callable

import yaml

from .ast_nodes import Action, Filter, Frontmatter, Pipe
from .errors import FrontmatterError, StructuralParseError

logger = logging.getLogger(__name__)

DELIMITER = "---"

FILTER_KEYS = {"kinds", "authors", "ids", "#e", "#p", "since", "until", "limit"}

# Keys accepted for a pipe's transform expression, in lookup order
PIPE_TRANSFORM_KEYS = ("jq", "transform")


# ---------------------------------------------------------------------------
# Source splitting
# ---------------------------------------------------------------------------

def split_frontmatter(source: str) -> tuple[str | None, str, int]:
    """Split ``source`` into (yaml_text, body, body_line_offset).

    Frontmatter is present only when the first non-blank line is ``---``.
    ``body_line_offset`` is the number of source lines preceding the body.
    """
    lines = source.splitlines(keepends=True)
    start = 0
    while start < len(lines) and not lines[start].strip():
        start += 1
    if start == len(lines) or lines[start].strip() != DELIMITER:
        return None, source, 0
    for end in range(start + 1, len(lines)):
        if lines[end].rstrip() == DELIMITER:
            yaml_text = "".join(lines[start + 1:end])
            body = "".join(lines[end + 1:])
            return yaml_text, body, end + 1
    raise StructuralParseError(
        "Incomplete frontmatter (missing closing ---)", line=start + 1,
    )


def load_yaml_mapping(text: str, section: str = "frontmatter", line_offset: int = 0) -> dict:
    """Load YAML text that must be a mapping (or empty)."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        problem = getattr(exc, "problem", None) or str(exc)
        raise FrontmatterError(
            f"Invalid YAML in {section}: {problem}",
            line=mark.line + 1 + line_offset if mark is not None else None,
            column=mark.column + 1 if mark is not None else None,
        ) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FrontmatterError(f"The {section} must be a mapping", line=line_offset or None)
    return data


# ---------------------------------------------------------------------------
# Field converters
# ---------------------------------------------------------------------------

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _non_negative_int(value: Any, where: str) -> int:
    if not _is_int(value) or value < 0:
        raise FrontmatterError(f"{where} must be a non-negative integer", field=where)
    return value


def _int_list(value: Any, where: str) -> tuple[int, ...]:
    if not isinstance(value, list) or not all(_is_int(v) and v >= 0 for v in value):
        raise FrontmatterError(f"{where} must be an array of non-negative integers", field=where)
    return tuple(value)


def _string_list(value: Any, where: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise FrontmatterError(f"{where} must be an array of strings", field=where)
    return tuple(value)


def _optional(data: dict, key: str, convert: Callable[[Any, str], Any], where: str):
    value = data.get(key)
    if value is None:
        return None
    return convert(value, f"{where}.{key}")


def _mapping(value: Any, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise FrontmatterError(f"{where} must be a mapping", field=where)
    return value


def to_json_value(value: Any) -> Any:
    """Map YAML-loaded values onto plain JSON values."""
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    if isinstance(value, set):
        return sorted(to_json_value(v) for v in value)
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return value


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def parse_filter(name: str, data: Any, section: str = "filters") -> Filter:
    where = f"{section}.{name}"
    data = _mapping(data, where)
    custom_tags: dict[str, tuple[str, ...]] = {}
    for key, value in data.items():
        key = str(key)
        if key.startswith("#") and key not in FILTER_KEYS:
            custom_tags[key] = _string_list(value, f"{where}.{key}")
        elif key not in FILTER_KEYS:
            logger.debug("Ignoring unknown filter key %s.%s", where, key)
    return Filter(
        kinds=_optional(data, "kinds", _int_list, where),
        authors=_optional(data, "authors", _string_list, where),
        ids=_optional(data, "ids", _string_list, where),
        e_tags=_optional(data, "#e", _string_list, where),
        p_tags=_optional(data, "#p", _string_list, where),
        custom_tags=custom_tags,
        since=_optional(data, "since", _non_negative_int, where),
        until=_optional(data, "until", _non_negative_int, where),
        limit=_optional(data, "limit", _non_negative_int, where),
    )


def parse_pipe(name: str, data: Any) -> Pipe:
    where = f"pipes.{name}"
    data = _mapping(data, where)
    source = data.get("from")
    if source is None:
        raise FrontmatterError(f"{where} must have 'from' field", field=f"{where}.from")
    if not isinstance(source, str):
        raise FrontmatterError(f"{where}.from must be a string", field=f"{where}.from")
    transform = next((data[k] for k in PIPE_TRANSFORM_KEYS if data.get(k) is not None), None)
    if transform is None:
        raise FrontmatterError(f"{where} must have 'jq' field", field=f"{where}.jq")
    if not isinstance(transform, str):
        raise FrontmatterError(f"{where}.jq must be a string", field=f"{where}.jq")
    return Pipe(source=source, transform=transform)


def parse_action(name: str, data: Any) -> Action:
    where = f"actions.{name}"
    data = _mapping(data, where)
    if "kind" not in data:
        raise FrontmatterError(f"{where} must have 'kind' field", field=f"{where}.kind")
    if not _is_int(data["kind"]):
        raise FrontmatterError(f"{where}.kind must be an integer", field=f"{where}.kind")
    if "content" not in data:
        raise FrontmatterError(f"{where} must have 'content' field", field=f"{where}.content")
    if not isinstance(data["content"], str):
        raise FrontmatterError(f"{where}.content must be a string", field=f"{where}.content")
    raw_tags = data.get("tags") or []
    if not isinstance(raw_tags, list):
        raise FrontmatterError(f"{where}.tags must be an array of string arrays", field=f"{where}.tags")
    tags = []
    for i, tag in enumerate(raw_tags):
        tags.append(_string_list(tag, f"{where}.tags[{i}]"))
    return Action(kind=data["kind"], content=data["content"], tags=tuple(tags))


def parse_imports(data: dict) -> dict[str, str]:
    imports = _mapping(data.get("imports"), "imports")
    result: dict[str, str] = {}
    for name, path in imports.items():
        if not isinstance(path, str):
            raise FrontmatterError(f"imports.{name} must be a string path", field=f"imports.{name}")
        result[str(name)] = path
    return result


def frontmatter_from_mapping(data: dict) -> Frontmatter:
    """Build a Frontmatter from an already-loaded YAML mapping.

    Each of ``filters``, ``pipes``, ``actions`` and ``state`` is optional;
    absent sections are empty.
    """
    filters = {
        str(k): parse_filter(str(k), v)
        for k, v in _mapping(data.get("filters"), "filters").items()
    }
    pipes = {
        str(k): parse_pipe(str(k), v)
        for k, v in _mapping(data.get("pipes"), "pipes").items()
    }
    actions = {
        str(k): parse_action(str(k), v)
        for k, v in _mapping(data.get("actions"), "actions").items()
    }
    state = to_json_value(_mapping(data.get("state"), "state"))
    return Frontmatter(filters=filters, pipes=pipes, actions=actions, state=state)


def parse_frontmatter(text: str, line_offset: int = 0) -> Frontmatter:
    """Parse frontmatter YAML into a Frontmatter.

    Raises FrontmatterError (a StructuralParseError) for invalid YAML or
    mistyped fields.
    """
    return frontmatter_from_mapping(load_yaml_mapping(text, "frontmatter", line_offset))
