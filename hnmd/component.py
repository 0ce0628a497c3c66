"""Component tag parser: one markup tag -> Component."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path as FilePath

from lark import Lark, Token, Transformer
from lark.exceptions import UnexpectedInput

from .ast_nodes import AttrValue, ExpressionAttr, LiteralAttr
from .errors import StructuralParseError

# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

COMPONENT_TAGS = {
    "each", "if", "else", "button", "input",
    "vstack", "hstack", "grid", "spacer",
}

# Raw HTML elements pass through the markdown layer and are dropped there
HTML_ELEMENTS = {
    "a", "abbr", "address", "area", "article", "aside", "audio", "b", "base",
    "bdi", "bdo", "blockquote", "body", "br", "canvas", "caption", "cite",
    "code", "col", "colgroup", "data", "datalist", "dd", "del", "details",
    "dfn", "dialog", "div", "dl", "dt", "em", "embed", "fieldset",
    "figcaption", "figure", "footer", "form", "h1", "h2", "h3", "h4", "h5",
    "h6", "head", "header", "hr", "html", "i", "iframe", "img", "ins", "kbd",
    "label", "legend", "li", "link", "main", "map", "mark", "menu", "meta",
    "meter", "nav", "noscript", "object", "ol", "optgroup", "option",
    "output", "p", "param", "picture", "pre", "progress", "q", "rp", "rt",
    "ruby", "s", "samp", "script", "section", "select", "slot", "small",
    "source", "span", "strong", "style", "sub", "summary", "sup", "table",
    "tbody", "td", "template", "textarea", "tfoot", "th", "thead", "time",
    "title", "tr", "track", "u", "ul", "var", "video", "wbr",
}

# The name must end the way a tag name ends, so <https://...> stays an autolink
_TAG_START_RE = re.compile(r"<(/?)([A-Za-z][A-Za-z0-9_\-]*)(?=[\s/>]|$)")


def is_component_name(name: str) -> bool:
    """True for names the body parser must type (known or not)."""
    if name in COMPONENT_TAGS or name[:1].isupper():
        return True
    return name not in HTML_ELEMENTS


def is_custom_name(name: str) -> bool:
    return name[:1].isupper()


# ---------------------------------------------------------------------------
# Component
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Component:
    """A single parsed tag."""
    name: str
    attributes: dict[str, AttrValue] = field(default_factory=dict)
    self_closing: bool = False
    closing: bool = False
    line: int | None = field(default=None, compare=False)

    @property
    def is_opening(self) -> bool:
        return not self.closing and not self.self_closing

    def has(self, key: str) -> bool:
        return key in self.attributes

    def get_text(self, key: str) -> str | None:
        """Attribute text regardless of literal/expression form."""
        value = self.attributes.get(key)
        return None if value is None else value.value

    def get_literal(self, key: str, required: bool = False) -> str | None:
        value = self.attributes.get(key)
        if value is None:
            if required:
                raise self.error(f"<{self.name}> requires a '{key}' attribute")
            return None
        if isinstance(value, ExpressionAttr):
            raise self.error(
                f"Attribute '{key}' of <{self.name}> must be a quoted literal, "
                f"not an expression"
            )
        return value.value

    def get_expression(self, key: str, required: bool = False) -> str | None:
        """Expression text; a quoted literal is accepted as expression text too."""
        value = self.attributes.get(key)
        if value is None:
            if required:
                raise self.error(f"<{self.name}> requires a '{key}' attribute")
            return None
        if not value.value.strip():
            raise self.error(f"Attribute '{key}' of <{self.name}> must not be empty")
        return value.value

    def error(self, message: str) -> StructuralParseError:
        return StructuralParseError(message, line=self.line)


# ---------------------------------------------------------------------------
# Grammar loading (cached)
# ---------------------------------------------------------------------------

_GRAMMAR_PATH = FilePath(__file__).parent / "component.lark"
_lark_parser: Lark | None = None


def _get_parser() -> Lark:
    global _lark_parser
    if _lark_parser is None:
        grammar_text = _GRAMMAR_PATH.read_text(encoding="utf-8")
        _lark_parser = Lark(grammar_text, parser="lalr")
    return _lark_parser


class TagTransformer(Transformer):
    """Converts the tag parse tree into (name, attributes, self_closing, closing)."""

    def start(self, items):
        return items[0]

    def opening(self, items):
        name = str(items[0])
        attrs = [item for item in items[1:] if isinstance(item, tuple)]
        self_closing = any(
            isinstance(item, Token) and item.type == "SLASH" for item in items[1:]
        )
        return name, attrs, self_closing, False

    def closing(self, items):
        return str(items[0]), [], False, True

    def literal_attr(self, items):
        return str(items[0]), LiteralAttr(str(items[1])[1:-1])

    def expression_attr(self, items):
        return str(items[0]), ExpressionAttr(str(items[1])[1:-1].strip())


_transformer = TagTransformer()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_tag(text: str, line: int | None = None) -> Component:
    """Parse one tag such as ``<each from={queries.feed} as="note">``.

    Raises StructuralParseError for malformed quoting, braces or syntax.
    """
    try:
        tree = _get_parser().parse(text.strip())
    except UnexpectedInput as exc:
        raise StructuralParseError(
            f"Malformed component tag {_snippet(text)} near col {exc.column}", line=line,
        ) from exc
    name, attr_pairs, self_closing, closing = _transformer.transform(tree)
    attributes: dict[str, AttrValue] = {}
    for key, value in attr_pairs:
        if key in attributes:
            raise StructuralParseError(f"Duplicate attribute '{key}' on <{name}>", line=line)
        attributes[key] = value
    return Component(name, attributes, self_closing=self_closing, closing=closing, line=line)


def tag_name_at(src: str, pos: int) -> tuple[str, bool] | None:
    """Return (name, is_closing) if a tag starts at ``src[pos]``."""
    match = _TAG_START_RE.match(src, pos)
    if match is None:
        return None
    return match.group(2), bool(match.group(1))


def scan_tag(src: str, pos: int) -> int | None:
    """Return the index just past the tag that starts at ``src[pos]``.

    Quoted strings and brace-wrapped expressions are skipped so that a ``>``
    inside ``{a > b}`` does not end the tag. Returns None if the tag never
    closes.
    """
    depth = 0
    quote = None
    i = pos + 1
    n = len(src)
    while i < n:
        ch = src[i]
        if quote is not None:
            if ch == "\\" and depth:
                i += 1
            elif ch == quote:
                quote = None
        elif ch == '"' or (ch == "'" and not depth):
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            if depth == 0:
                return None
            depth -= 1
        elif depth == 0:
            if ch == ">":
                return i + 1
            if ch == "<":
                return None
        i += 1
    return None


def _snippet(text: str, limit: int = 60) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 3] + "..."
