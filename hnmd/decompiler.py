"""Decompiler: Document -> .hnmd source text.

Output is canonical rather than byte-identical: parsing the decompiled text
yields a Document equal to the one decompiled. This enables round-tripping:
source -> Document -> source.
"""

from __future__ import annotations

import re
from typing import Callable

import yaml

from .ast_nodes import (
    INLINE_TYPES,
    AttrValue,
    Button,
    CustomComponent,
    Document,
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
)

_ESCAPED = set("\\`*_[]<&")
_LINE_START_ESCAPED = set("#>-+=~|")
_ORDERED_MARKER_RE = re.compile(r"^(\d+)([.)])")

# Skipped by the parser; keeps two adjacent lists from merging into one
LIST_SEPARATOR = "<!-- -->"


def escape_text(value: str) -> str:
    """Backslash-escape text so Markdown reads it back literally."""
    escaped = "".join("\\" + ch if ch in _ESCAPED else ch for ch in value)
    lines = []
    for line in escaped.split("\n"):
        if line[:1] in _LINE_START_ESCAPED:
            line = "\\" + line
        else:
            line = _ORDERED_MARKER_RE.sub(r"\1\\\2", line)
        lines.append(line)
    return "\n".join(lines)


def _format_number(value: float | int) -> str:
    return repr(value)


def _quote(value: str) -> str:
    if '"' not in value:
        return f'"{value}"'
    return f"'{value}'" if "'" not in value else '"' + value.replace('"', "'") + '"'


def _attr(name: str, value: AttrValue) -> str:
    if isinstance(value, ExpressionAttr):
        return f"{name}={{{value.value}}}"
    return f"{name}={_quote(value.value)}"


def _url(value: str) -> str:
    if any(ch in value for ch in " ()<>"):
        return "<" + value.replace("<", "%3C").replace(">", "%3E") + ">"
    return value


class Decompiler:
    """Converts a Document back to .hnmd source code."""

    def __init__(self):
        self._blocks: dict[type, Callable[[Node], str]] = {
            Heading: self._heading,
            Paragraph: lambda node: self._render_inline(node.children),
            Text: lambda node: escape_text(node.value),
            Strong: self._inline_node,
            Emphasis: self._inline_node,
            List: self._list,
            Link: self._inline_node,
            Image: self._inline_node,
            Expr: self._inline_node,
            Each: self._each,
            If: self._if,
            Button: self._button,
            Input: self._input,
            VStack: self._stack,
            HStack: self._stack,
            Grid: self._grid,
            Spacer: self._spacer,
            CustomComponent: self._custom,
        }

    def decompile(self, document: Document) -> str:
        """Render a Document as .hnmd source text."""
        body = self._render_blocks(document.body)
        return self._render_frontmatter(document) + (body + "\n" if body else "")

    # --- Frontmatter ---

    def _render_frontmatter(self, document: Document) -> str:
        fm = document.frontmatter
        data: dict = {}
        if fm.filters:
            data["filters"] = {k: v.to_dict() for k, v in fm.filters.items()}
        if fm.pipes:
            data["pipes"] = {k: v.to_dict() for k, v in fm.pipes.items()}
        if fm.actions:
            data["actions"] = {k: v.to_dict() for k, v in fm.actions.items()}
        if fm.state:
            data["state"] = fm.state
        if document.imports:
            data["imports"] = dict(document.imports)
        if not data:
            return ""
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
        return f"---\n{text}---\n\n"

    # --- Blocks ---

    def _render_blocks(self, nodes) -> str:
        """Blank-line separated blocks; runs of inline nodes share one line."""
        blocks: list[str] = []
        run: list[Node] = []
        previous: Node | None = None
        for node in nodes:
            if isinstance(node, (Text, Strong, Emphasis, Link, Expr)):
                run.append(node)
                continue
            if run:
                blocks.append(self._render_inline(run))
                run, previous = [], None
            if isinstance(node, List) and isinstance(previous, List) and previous.ordered == node.ordered:
                blocks.append(LIST_SEPARATOR)
            blocks.append(self._render_block(node))
            previous = node
        if run:
            blocks.append(self._render_inline(run))
        return "\n\n".join(blocks)

    def _render_block(self, node: Node) -> str:
        try:
            return self._blocks[type(node)](node)
        except KeyError:
            raise TypeError(f"Cannot decompile {node!r}") from None

    def _heading(self, node: Heading) -> str:
        return "#" * node.level + " " + self._render_inline(node.children)

    def _list(self, node: List) -> str:
        items = []
        for i, item in enumerate(node.items, start=1):
            marker = f"{i}. " if node.ordered else "- "
            body = self._render_blocks(item.children)
            if not body:
                items.append(marker.rstrip())
                continue
            indent = " " * len(marker)
            lines = body.split("\n")
            lines = [lines[0]] + [indent + ln if ln else ln for ln in lines[1:]]
            items.append(marker + "\n".join(lines))
        return "\n".join(items)

    # --- Inline ---

    def _render_inline(self, nodes) -> str:
        return "".join(self._inline_node(node) for node in nodes)

    def _inline_node(self, node: Node) -> str:
        if isinstance(node, Text):
            return escape_text(node.value)
        if isinstance(node, Strong):
            return "**" + self._render_inline(node.children) + "**"
        if isinstance(node, Emphasis):
            return "*" + self._render_inline(node.children) + "*"
        if isinstance(node, Link):
            return "[" + self._render_inline(node.children) + "](" + _url(node.url) + ")"
        if isinstance(node, Image):
            return "![" + escape_text(node.alt) + "](" + _url(node.src) + ")"
        if isinstance(node, Expr):
            return "{" + node.expression + "}"
        return self._render_block(node)

    # --- Components ---

    def _container(self, open_tag: str, name: str, children, else_children=None) -> str:
        branches = [children] if else_children is None else [children, else_children]
        if all(isinstance(c, INLINE_TYPES) for branch in branches for c in branch):
            inline = self._render_inline(children)
            if else_children is not None:
                inline += "<else />" + self._render_inline(else_children)
            return f"{open_tag}{inline}</{name}>"
        sections = [open_tag]
        if children:
            sections.append(self._render_blocks(children))
        if else_children is not None:
            sections.append("<else />")
            if else_children:
                sections.append(self._render_blocks(else_children))
        sections.append(f"</{name}>")
        return "\n\n".join(sections)

    def _each(self, node: Each) -> str:
        open_tag = f"<each from={{{node.source}}} as={_quote(node.binding)}>"
        return self._container(open_tag, "each", node.children)

    def _if(self, node: If) -> str:
        open_tag = f"<if value={{{node.condition}}}>"
        return self._container(open_tag, "if", node.children, node.else_children)

    def _button(self, node: Button) -> str:
        if len(node.children) == 1 and isinstance(node.children[0], Text):
            label = node.children[0].value
        else:
            label = "".join(
                c.value if isinstance(c, Text) else "{" + c.expression + "}" if isinstance(c, Expr) else ""
                for c in node.children
            )
        attrs = [f"label={_quote(label)}"]
        if node.on_click is not None:
            attrs.append(f"on_click={{{node.on_click}}}")
        return f"<button {' '.join(attrs)} />"

    def _input(self, node: Input) -> str:
        attrs = [f"name={_quote(node.name)}"]
        if node.placeholder is not None:
            attrs.append(f"placeholder={_quote(node.placeholder)}")
        return f"<input {' '.join(attrs)} />"

    def _stack(self, node: VStack | HStack) -> str:
        name = "vstack" if isinstance(node, VStack) else "hstack"
        attrs = ""
        for key in ("width", "height", "flex"):
            value = getattr(node, key)
            if value is not None:
                attrs += f' {key}="{_format_number(value)}"'
        if node.align is not None:
            attrs += f" align={_quote(node.align)}"
        return self._container(f"<{name}{attrs}>", name, node.children)

    def _grid(self, node: Grid) -> str:
        attrs = f' columns="{node.columns}"' if node.columns is not None else ""
        return self._container(f"<grid{attrs}>", "grid", node.children)

    def _spacer(self, node: Spacer) -> str:
        if node.size is None:
            return "<spacer />"
        return f'<spacer size="{_format_number(node.size)}" />'

    def _custom(self, node: CustomComponent) -> str:
        attrs = "".join(" " + _attr(k, v) for k, v in node.props.items())
        if not node.children:
            return f"<{node.name}{attrs} />"
        return self._container(f"<{node.name}{attrs}>", node.name, node.children)


def decompile(document: Document) -> str:
    """Render a Document as .hnmd source text."""
    return Decompiler().decompile(document)
