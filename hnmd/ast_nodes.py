"""AST node definitions for hnmd documents: all frozen (immutable) dataclasses.

The body of a document is a closed union of node variants (``Node``). Every
consumer that needs to tell variants apart dispatches through a table keyed by
the variant class, so adding a variant means adding it to ``NODE_TYPES`` and
to every table that must handle it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Union

DOCUMENT_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# Attribute values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LiteralAttr:
    """A quoted attribute value: label="Send"."""
    value: str

    def to_dict(self) -> dict:
        return {"literal": self.value}


@dataclass(frozen=True)
class ExpressionAttr:
    """A brace-wrapped attribute value, kept verbatim: from={queries.feed}."""
    value: str

    def to_dict(self) -> dict:
        return {"expression": self.value}


AttrValue = Union[LiteralAttr, ExpressionAttr]


def attr_value_from_dict(data: dict) -> AttrValue:
    if "literal" in data:
        return LiteralAttr(data["literal"])
    if "expression" in data:
        return ExpressionAttr(data["expression"])
    raise ValueError(f"Invalid attribute value: {data!r}")


# ---------------------------------------------------------------------------
# Markdown nodes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Heading:
    level: int  # 1-6
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Paragraph:
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Strong:
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Emphasis:
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class ListItem:
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class List:
    ordered: bool
    items: tuple[ListItem, ...] = ()


@dataclass(frozen=True)
class Link:
    url: str
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Image:
    src: str
    alt: str = ""


@dataclass(frozen=True)
class Expr:
    """An interpolation span: {user.name}."""
    expression: str


# ---------------------------------------------------------------------------
# Component nodes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Each:
    """<each from={...} as="item">: repeats children once per array element."""
    source: str
    binding: str
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class If:
    condition: str
    children: tuple[Node, ...] = ()
    else_children: tuple[Node, ...] | None = None


@dataclass(frozen=True)
class Button:
    on_click: str | None = None  # action reference, e.g. "actions.post"
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Input:
    name: str
    placeholder: str | None = None


@dataclass(frozen=True)
class VStack:
    children: tuple[Node, ...] = ()
    width: float | None = None
    height: float | None = None
    flex: float | None = None
    align: str | None = None


@dataclass(frozen=True)
class HStack:
    children: tuple[Node, ...] = ()
    width: float | None = None
    height: float | None = None
    flex: float | None = None
    align: str | None = None


@dataclass(frozen=True)
class Grid:
    columns: int | None = None
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Spacer:
    size: float | None = None


@dataclass(frozen=True)
class CustomComponent:
    """A capitalized tag resolved through a component registry."""
    name: str
    props: dict[str, AttrValue] = field(default_factory=dict)
    children: tuple[Node, ...] = ()


Node = Union[
    Heading, Paragraph, Text, Strong, Emphasis, List, Link, Image, Expr,
    Each, If, Button, Input, VStack, HStack, Grid, Spacer, CustomComponent,
]

NODE_TYPES: dict[str, type] = {
    cls.__name__: cls
    for cls in (
        Heading, Paragraph, Text, Strong, Emphasis, List, Link, Image, Expr,
        Each, If, Button, Input, VStack, HStack, Grid, Spacer, CustomComponent,
    )
}

# Nodes that live inside a line of text rather than forming a block
INLINE_TYPES = (Text, Strong, Emphasis, Link, Image, Expr)

COMPONENT_TYPES = (Each, If, Button, Input, VStack, HStack, Grid, Spacer, CustomComponent)


# ---------------------------------------------------------------------------
# Tree traversal
# ---------------------------------------------------------------------------

def _no_children(node) -> tuple:
    return ()


def _plain_children(node) -> tuple:
    return node.children


def _list_children(node: List) -> tuple:
    return tuple(child for item in node.items for child in item.children)


def _if_children(node: If) -> tuple:
    return node.children + (node.else_children or ())


_CHILDREN: dict[type, Callable[[Any], tuple]] = {
    Heading: _plain_children,
    Paragraph: _plain_children,
    Text: _no_children,
    Strong: _plain_children,
    Emphasis: _plain_children,
    List: _list_children,
    Link: _plain_children,
    Image: _no_children,
    Expr: _no_children,
    Each: _plain_children,
    If: _if_children,
    Button: _plain_children,
    Input: _no_children,
    VStack: _plain_children,
    HStack: _plain_children,
    Grid: _plain_children,
    Spacer: _no_children,
    CustomComponent: _plain_children,
}


def child_nodes(node: Node) -> tuple[Node, ...]:
    """Return the direct children of a node, in document order."""
    try:
        return _CHILDREN[type(node)](node)
    except KeyError:
        raise TypeError(f"Not an hnmd node: {node!r}") from None


def walk(node: Node):
    """Yield a node and all of its descendants, depth first."""
    yield node
    for child in child_nodes(node):
        yield from walk(child)


# ---------------------------------------------------------------------------
# JSON serialization
# ---------------------------------------------------------------------------

_JSON_KEYS = {"source": "from", "binding": "as"}
_NODE_SEQUENCE_FIELDS = {"children", "else_children"}


def node_to_dict(node: Node) -> dict:
    """Serialize a node to a JSON-ready dict tagged with its variant name."""
    if type(node) not in _CHILDREN:
        raise TypeError(f"Not an hnmd node: {node!r}")
    data: dict[str, Any] = {"type": type(node).__name__}
    for f in fields(node):
        value = getattr(node, f.name)
        if f.name in _NODE_SEQUENCE_FIELDS:
            value = None if value is None else [node_to_dict(c) for c in value]
        elif f.name == "items":
            value = [{"children": [node_to_dict(c) for c in item.children]} for item in value]
        elif f.name == "props":
            value = {k: v.to_dict() for k, v in value.items()}
        data[_JSON_KEYS.get(f.name, f.name)] = value
    return data


def node_from_dict(data: dict) -> Node:
    """Rebuild a node from the output of ``node_to_dict``."""
    cls = NODE_TYPES.get(data.get("type"))
    if cls is None:
        raise ValueError(f"Unknown node type: {data.get('type')!r}")
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        key = _JSON_KEYS.get(f.name, f.name)
        if key not in data:
            continue
        value = data[key]
        if f.name in _NODE_SEQUENCE_FIELDS:
            value = None if value is None else tuple(node_from_dict(c) for c in value)
        elif f.name == "items":
            value = tuple(
                ListItem(tuple(node_from_dict(c) for c in item["children"]))
                for item in value
            )
        elif f.name == "props":
            value = {k: attr_value_from_dict(v) for k, v in value.items()}
        kwargs[f.name] = value
    return cls(**kwargs)


# ---------------------------------------------------------------------------
# Frontmatter
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Filter:
    """Subscription criteria for one named query."""
    kinds: tuple[int, ...] | None = None
    authors: tuple[str, ...] | None = None
    ids: tuple[str, ...] | None = None
    e_tags: tuple[str, ...] | None = None
    p_tags: tuple[str, ...] | None = None
    custom_tags: dict[str, tuple[str, ...]] = field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {}
        for key, value in (
            ("kinds", self.kinds),
            ("authors", self.authors),
            ("ids", self.ids),
            ("#e", self.e_tags),
            ("#p", self.p_tags),
        ):
            if value is not None:
                d[key] = list(value)
        for key, value in self.custom_tags.items():
            d[key] = list(value)
        for key, value in (("since", self.since), ("until", self.until), ("limit", self.limit)):
            if value is not None:
                d[key] = value
        return d

    @classmethod
    def from_dict(cls, d: dict) -> Filter:
        def seq(key):
            return tuple(d[key]) if d.get(key) is not None else None

        return cls(
            kinds=seq("kinds"),
            authors=seq("authors"),
            ids=seq("ids"),
            e_tags=seq("#e"),
            p_tags=seq("#p"),
            custom_tags={
                k: tuple(v) for k, v in d.items()
                if k.startswith("#") and k not in ("#e", "#p")
            },
            since=d.get("since"),
            until=d.get("until"),
            limit=d.get("limit"),
        )


@dataclass(frozen=True)
class Pipe:
    """A named transform applied to another query's result."""
    source: str
    transform: str

    def to_dict(self) -> dict:
        return {"from": self.source, "jq": self.transform}


@dataclass(frozen=True)
class Action:
    """Template for an outbound event."""
    kind: int
    content: str
    tags: tuple[tuple[str, ...], ...] = ()

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"kind": self.kind, "content": self.content}
        if self.tags:
            d["tags"] = [list(tag) for tag in self.tags]
        return d


@dataclass(frozen=True)
class Frontmatter:
    filters: dict[str, Filter] = field(default_factory=dict)
    pipes: dict[str, Pipe] = field(default_factory=dict)
    actions: dict[str, Action] = field(default_factory=dict)
    state: dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.filters or self.pipes or self.actions or self.state)

    def to_dict(self) -> dict:
        return {
            "filters": {k: v.to_dict() for k, v in self.filters.items()},
            "pipes": {k: v.to_dict() for k, v in self.pipes.items()},
            "actions": {k: v.to_dict() for k, v in self.actions.items()},
            "state": self.state,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Frontmatter:
        return cls(
            filters={k: Filter.from_dict(v) for k, v in d.get("filters", {}).items()},
            pipes={k: Pipe(v["from"], v["jq"]) for k, v in d.get("pipes", {}).items()},
            actions={
                k: Action(v["kind"], v["content"], tuple(tuple(t) for t in v.get("tags", ())))
                for k, v in d.get("actions", {}).items()
            },
            state=dict(d.get("state", {})),
        )


# ---------------------------------------------------------------------------
# Top-level artifacts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Document:
    """A parsed .hnmd document. A reload produces a new Document."""
    frontmatter: Frontmatter = field(default_factory=Frontmatter)
    body: tuple[Node, ...] = ()
    imports: dict[str, str] = field(default_factory=dict)
    version: str = DOCUMENT_VERSION

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "frontmatter": self.frontmatter.to_dict(),
            "body": [node_to_dict(node) for node in self.body],
            "imports": dict(self.imports),
        }

    def to_json(self, pretty: bool = False) -> str:
        indent = 2 if pretty else None
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, d: dict) -> Document:
        return cls(
            frontmatter=Frontmatter.from_dict(d.get("frontmatter", {})),
            body=tuple(node_from_dict(n) for n in d.get("body", ())),
            imports=dict(d.get("imports", {})),
            version=d.get("version", DOCUMENT_VERSION),
        )

    @classmethod
    def from_json(cls, text: str) -> Document:
        return cls.from_dict(json.loads(text))


@dataclass(frozen=True)
class PropSpec:
    """Declared prop of a reusable component."""
    type: str = "any"  # string | number | boolean | object | array | any
    required: bool = False
    default: Any = None


@dataclass(frozen=True)
class ComponentDefinition:
    """A parsed .hnmc component file."""
    name: str = ""
    imports: dict[str, str] = field(default_factory=dict)
    queries: dict[str, Filter] = field(default_factory=dict)
    props: dict[str, PropSpec] = field(default_factory=dict)
    body: tuple[Node, ...] = ()
