"""Expression model: structural Paths vs. opaque Queries.

A Path is an identifier followed by ``.field`` and ``[n]`` segments and can be
resolved by walking JSON directly. Anything else (operators, calls, literals,
``//`` alternatives) is a Query whose text is handed to a query evaluator.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Union

from .errors import EvaluationError, ExpressionError

_IDENT = r"[A-Za-z_][A-Za-z0-9_]*"
_PATH_RE = re.compile(rf"({_IDENT})((?:\.{_IDENT}|\[[0-9]+\])*)", re.ASCII)
_SEGMENT_RE = re.compile(rf"\.({_IDENT})|\[([0-9]+)\]", re.ASCII)
_LEADING_WORD_RE = re.compile(_IDENT, re.ASCII)

# Leading words that start a jq term rather than name a context root
_LITERALS = {"true", "false", "null"}
_QUERY_KEYWORDS = {"if", "reduce", "foreach", "try", "def", "label"} | _LITERALS


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Field:
    name: str

    def __str__(self) -> str:
        return f".{self.name}"


@dataclass(frozen=True)
class Index:
    position: int
    literal: str | None = field(default=None, compare=False, repr=False)  # digits as written

    def __str__(self) -> str:
        return f"[{self.literal if self.literal is not None else self.position}]"


Segment = Union[Field, Index]


@dataclass(frozen=True)
class Path:
    """queries.feed[0].content"""
    root: str
    segments: tuple[Segment, ...] = ()

    def __str__(self) -> str:
        return self.root + "".join(str(s) for s in self.segments)

    def resolve(self, data: Any) -> Any:
        """Walk ``data`` along this path with jq null-propagation rules."""
        current = data.get(self.root) if isinstance(data, dict) else _step_error(data, self.root, self)
        for segment in self.segments:
            if current is None:
                return None
            if isinstance(segment, Field):
                if not isinstance(current, dict):
                    _step_error(current, segment.name, self)
                current = current.get(segment.name)
            else:
                if not isinstance(current, list):
                    _step_error(current, segment.position, self)
                current = current[segment.position] if segment.position < len(current) else None
        return current


@dataclass(frozen=True)
class Query:
    """Expression text outside the Path grammar, evaluated elsewhere."""
    text: str

    def __str__(self) -> str:
        return self.text


Expression = Union[Path, Query]


def _step_error(value: Any, key: Any, path: Path):
    if value is None:
        return None
    raise EvaluationError(
        f"Cannot index {_json_type(value)} with {key!r}",
        expression=str(path),
    )


def _json_type(value: Any) -> str:
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
    return "null"


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def parse_path(text: str) -> Path | None:
    """Parse ``text`` as a Path, or return None if any of it falls outside."""
    body = text.strip()
    if body.startswith("."):
        body = body[1:]
    match = _PATH_RE.fullmatch(body)
    if match is None:
        return None
    if body == text.strip() and body in _LITERALS:
        return None
    segments: list[Segment] = []
    for seg in _SEGMENT_RE.finditer(match.group(2)):
        if seg.group(1) is not None:
            segments.append(Field(seg.group(1)))
        else:
            segments.append(Index(int(seg.group(2)), literal=seg.group(2)))
    return Path(match.group(1), tuple(segments))


def classify(text: str) -> Expression:
    """Classify expression text as a Path or a Query.

    Raises ExpressionError for empty or whitespace-only text.
    """
    if not text.strip():
        raise ExpressionError("Empty expression")
    path = parse_path(text)
    if path is not None:
        return path
    return Query(text)


def normalize(text: str) -> str:
    """Return the dot-prefixed form used for query evaluation.

    Only text that starts with a name is prefixed; ``{...}``, ``[...]``,
    literals, jq keywords and already dot-prefixed text are returned trimmed.
    """
    text = text.strip()
    word = _LEADING_WORD_RE.match(text)
    if word is not None and word.group(0) not in _QUERY_KEYWORDS:
        return "." + text
    return text
