"""Body parser: Markdown with embedded component tags and {expr} interpolation.

Tokenization is delegated to markdown-it-py. Two extra rules teach it about
component tags: a block rule for lines holding exactly one tag, and an inline
rule for tags inside running text. The resulting syntax tree is converted to
typed nodes, and opening/closing tags are paired with a depth-aware stack.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable

from markdown_it import MarkdownIt
from markdown_it.rules_block import StateBlock
from markdown_it.rules_inline import StateInline
from markdown_it.tree import SyntaxTreeNode

from .ast_nodes import (
    COMPONENT_TYPES,
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
    ListItem,
    Node,
    Paragraph,
    Spacer,
    Strong,
    Text,
    VStack,
)
from .component import (
    COMPONENT_TAGS,
    Component,
    is_component_name,
    is_custom_name,
    parse_tag,
    scan_tag,
    tag_name_at,
)
from .errors import StructuralParseError

logger = logging.getLogger(__name__)

ALIGNMENTS = {"start", "center", "end", "stretch"}

# A horizontal rule renders as fixed vertical space
THEMATIC_BREAK_SIZE = 20.0

BUTTON_USAGE = (
    "<button> must be self-closing. Use label attribute for text.\n"
    'Example: <button label="Click Me" on_click={actions.post} />'
)
ADJACENT_COMPONENTS = (
    "Multiple components on consecutive lines detected. "
    "Please add blank lines between components."
)

_SKIPPED_BLOCKS = {"fence", "code_block", "blockquote", "table", "html_block"}

_ELSE = object()  # marks the start of an <if> else-branch while pairing


# ---------------------------------------------------------------------------
# markdown-it rules
# ---------------------------------------------------------------------------

def _component_block(state: StateBlock, start_line: int, end_line: int, silent: bool) -> bool:
    """Claim a line (or multi-line run) holding exactly one component tag."""
    if state.sCount[start_line] - state.blkIndent >= 4:
        return False
    pos = state.bMarks[start_line] + state.tShift[start_line]
    if pos >= state.eMarks[start_line] or state.src[pos] != "<":
        return False
    found = tag_name_at(state.src, pos)
    if found is None or not is_component_name(found[0]):
        return False
    end = scan_tag(state.src, pos)
    if end is None:
        raise StructuralParseError(
            f"Unterminated component tag <{found[0]}>",
            line=start_line + 1 + state.env.get("line_offset", 0),
        )
    last = start_line
    while last < end_line and state.eMarks[last] < end:
        last += 1
    if last >= end_line or state.src[end:state.eMarks[last]].strip():
        return False
    if silent:
        return True
    token = state.push("component", "", 0)
    token.content = state.src[pos:end]
    token.map = [start_line, last + 1]
    state.line = last + 1
    return True


def _component_inline(state: StateInline, silent: bool) -> bool:
    """Claim a component tag inside running text."""
    pos = state.pos
    if state.src[pos] != "<":
        return False
    found = tag_name_at(state.src, pos)
    if found is None or not is_component_name(found[0]):
        return False
    end = scan_tag(state.src, pos)
    if end is None or end > state.posMax:
        if silent:
            return False
        token = state.push("component_inline", "", 0)
        token.meta = {"error": f"Unterminated component tag <{found[0]}>"}
        state.pos = state.posMax
        return True
    if not silent:
        token = state.push("component_inline", "", 0)
        token.content = state.src[pos:end]
    state.pos = end
    return True


_markdown: MarkdownIt | None = None


def _get_markdown() -> MarkdownIt:
    global _markdown
    if _markdown is None:
        md = MarkdownIt("commonmark", {"html": True}).enable("table")
        md.block.ruler.before(
            "html_block", "component_block", _component_block,
            {"alt": ["paragraph", "reference", "blockquote"]},
        )
        md.inline.ruler.before("html_inline", "component_inline", _component_inline)
        _markdown = md
    return _markdown


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def interpolation_source(value: str) -> str | None:
    """Return the inner expression if ``value`` is exactly one ``{...}`` span."""
    text = value.strip()
    if len(text) < 2 or text[0] != "{" or text[-1] != "}":
        return None
    depth = 0
    for i, ch in enumerate(text):
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0 and i != len(text) - 1:
                return None
    inner = text[1:-1].strip()
    return inner if depth == 0 and inner else None


def finish_inline(nodes: list) -> list[Node]:
    """Merge adjacent non-empty text runs, then type whole-run interpolations as Expr."""
    merged: list[Node] = []
    for node in nodes:
        if isinstance(node, Text) and not node.value:
            continue
        if isinstance(node, Text) and merged and isinstance(merged[-1], Text):
            merged[-1] = Text(merged[-1].value + node.value)
        else:
            merged.append(node)
    result: list[Node] = []
    for node in merged:
        if isinstance(node, Text):
            source = interpolation_source(node.value)
            if source is not None:
                node = Expr(source)
        result.append(node)
    return result


def _plain_text(node: SyntaxTreeNode) -> str:
    if node.type in ("text", "code_inline"):
        return node.content
    if node.type in ("softbreak", "hardbreak"):
        return " "
    return "".join(_plain_text(child) for child in node.children)


# ---------------------------------------------------------------------------
# Tree conversion
# ---------------------------------------------------------------------------

class BodyParser:
    """Converts a markdown-it syntax tree into hnmd nodes."""

    def __init__(self, line_offset: int = 0):
        self.line_offset = line_offset
        self._builders: dict[str, Callable[[Component, list], Node]] = {
            "each": self._build_each,
            "if": self._build_if,
            "button": self._build_button,
            "input": self._build_input,
            "vstack": self._build_stack,
            "hstack": self._build_stack,
            "grid": self._build_grid,
            "spacer": self._build_spacer,
        }

    def parse(self, source: str) -> tuple[Node, ...]:
        tokens = _get_markdown().parse(source, {"line_offset": self.line_offset})
        return tuple(self._blocks(SyntaxTreeNode(tokens).children))

    def _line(self, node: SyntaxTreeNode) -> int | None:
        if node.map is None:
            return None
        return node.map[0] + 1 + self.line_offset

    # --- Block level ---

    def _blocks(self, nodes) -> list[Node]:
        entries: list[tuple[str, Any]] = []
        for node in nodes:
            entries.extend(self._block_entries(node))
        return self._pair(entries, inline=False)

    def _block_entries(self, node: SyntaxTreeNode) -> list[tuple[str, Any]]:
        kind = node.type
        if kind == "component":
            return [("tag", parse_tag(node.content, line=self._line(node)))]
        if kind == "heading":
            level = int(node.tag[1])
            return [("node", Heading(level, tuple(self._inline_of(node))))]
        if kind == "paragraph":
            return [("node", n) for n in self._paragraph(node)]
        if kind in ("bullet_list", "ordered_list"):
            items = tuple(ListItem(tuple(self._blocks(item.children))) for item in node.children)
            return [("node", List(ordered=kind == "ordered_list", items=items))]
        if kind == "hr":
            return [("node", Spacer(THEMATIC_BREAK_SIZE))]
        if kind in _SKIPPED_BLOCKS:
            logger.debug("Skipping unsupported markdown block %s (line %s)", kind, self._line(node))
        else:
            logger.debug("Skipping unknown markdown block %s", kind)
        return []

    def _paragraph(self, node: SyntaxTreeNode) -> list[Node]:
        nodes = self._inline_of(node)
        if not nodes:
            return []
        components = [n for n in nodes if isinstance(n, COMPONENT_TYPES)]
        if components and all(
            isinstance(n, COMPONENT_TYPES) or (isinstance(n, Text) and not n.value.strip())
            for n in nodes
        ):
            return components
        if len(nodes) == 1 and isinstance(nodes[0], Image):
            return nodes
        return [Paragraph(tuple(nodes))]

    # --- Inline level ---

    def _inline_of(self, block: SyntaxTreeNode) -> list[Node]:
        """Inline nodes of a heading or paragraph."""
        line = self._line(block)
        children = []
        for inline in block.children:
            children.extend(inline.children)
        entries = self._inline_entries(children, line)
        openings = [
            value for kind, value in entries
            if kind == "tag" and not value.closing and value.name != "else"
        ]
        if len(openings) > 1:
            raise StructuralParseError(ADJACENT_COMPONENTS, line=line)
        return self._pair(entries, inline=True)

    def _inline_entries(self, nodes, line: int | None) -> list[tuple[str, Any]]:
        entries: list[tuple[str, Any]] = []
        for node in nodes:
            kind = node.type
            if kind == "text":
                entries.append(("node", Text(node.content)))
            elif kind in ("softbreak", "hardbreak"):
                entries.append(("node", Text("\n")))
                if line is not None:
                    line += 1
            elif kind == "code_inline":
                entries.append(("node", Text(f"`{node.content}`")))
            elif kind == "strong":
                entries.append(("node", Strong(self._nested(node, line))))
            elif kind == "em":
                entries.append(("node", Emphasis(self._nested(node, line))))
            elif kind == "link":
                url = str(node.attrs.get("href", ""))
                entries.append(("node", Link(url, self._nested(node, line))))
            elif kind == "image":
                src = str(node.attrs.get("src", ""))
                entries.append(("node", Image(src, _plain_text(node))))
            elif kind == "component_inline":
                if node.meta.get("error"):
                    raise StructuralParseError(node.meta["error"], line=line)
                entries.append(("tag", parse_tag(node.content, line=line)))
            elif kind == "html_inline":
                logger.debug("Skipping raw inline markup %r", node.content)
            else:
                logger.debug("Skipping unsupported inline %s", kind)
        return entries

    def _nested(self, node: SyntaxTreeNode, line: int | None) -> tuple[Node, ...]:
        return tuple(self._pair(self._inline_entries(node.children, line), inline=True))

    # --- Tag pairing ---

    def _pair(self, entries: list[tuple[str, Any]], inline: bool) -> list[Node]:
        """Nest the entries between matching open/close tags."""
        root: list = []
        stack: list[tuple[Component, list]] = []
        for kind, value in entries:
            target = stack[-1][1] if stack else root
            if kind == "node":
                target.append(value)
                continue
            comp: Component = value
            if comp.closing:
                if comp.name == "button":
                    raise StructuralParseError(BUTTON_USAGE, line=comp.line)
                if not stack:
                    raise comp.error(f"Unexpected closing tag </{comp.name}>")
                opened, children = stack.pop()
                if opened.name != comp.name:
                    raise comp.error(
                        f"Mismatched closing tag </{comp.name}>, expected </{opened.name}>"
                    )
                (stack[-1][1] if stack else root).append(self._component_node(opened, children))
            elif comp.name == "else":
                if not stack or stack[-1][0].name != "if":
                    raise comp.error("<else /> is only allowed directly inside <if>")
                if not comp.self_closing:
                    raise comp.error("<else> must be self-closing: <else />")
                target.append(_ELSE)
            elif comp.self_closing:
                target.append(self._component_node(comp, []))
            elif comp.name == "button":
                raise StructuralParseError(BUTTON_USAGE, line=comp.line)
            else:
                stack.append((comp, []))
        if stack:
            opened = stack[-1][0]
            raise opened.error(f"Missing closing tag for <{opened.name}>")
        return finish_inline(root) if inline else root

    # --- Component builders ---

    def _component_node(self, comp: Component, children: list) -> Node:
        if comp.name == "if":
            return self._build_if(comp, children)
        children = finish_inline(children)
        if is_custom_name(comp.name):
            return CustomComponent(comp.name, dict(comp.attributes), tuple(children))
        builder = self._builders.get(comp.name)
        if builder is None:
            raise comp.error(
                f"Unknown component <{comp.name}>. Known components: "
                f"{', '.join(sorted(COMPONENT_TAGS - {'else'}))}, "
                f"or a Capitalized custom component"
            )
        return builder(comp, children)

    def _build_each(self, comp: Component, children: list) -> Node:
        source = comp.get_expression("from", required=True)
        binding = comp.get_literal("as", required=True)
        if not binding.strip():
            raise comp.error("Attribute 'as' of <each> must not be empty")
        return Each(source, binding.strip(), tuple(children))

    def _build_if(self, comp: Component, children: list) -> Node:
        condition = comp.get_expression("value", required=True)
        markers = [i for i, child in enumerate(children) if child is _ELSE]
        if len(markers) > 1:
            raise comp.error("<if> may contain only one <else />")
        if not markers:
            return If(condition, tuple(finish_inline(children)))
        split = markers[0]
        return If(
            condition,
            tuple(finish_inline(children[:split])),
            tuple(finish_inline(children[split + 1:])),
        )

    def _build_button(self, comp: Component, children: list) -> Node:
        label = comp.attributes.get("label")
        if isinstance(label, ExpressionAttr):
            raise comp.error(
                "<button> label must be a quoted literal; dynamic button labels are not supported"
            )
        label_text = comp.get_literal("label", required=True)
        on_click = comp.get_text("on_click")
        if on_click is None:
            on_click = comp.get_text("onClick")
        return Button(on_click=on_click, children=(Text(label_text),))

    def _build_input(self, comp: Component, children: list) -> Node:
        self._no_children(comp, children)
        name = comp.get_literal("name", required=True)
        return Input(name=name, placeholder=comp.get_text("placeholder"))

    def _build_stack(self, comp: Component, children: list) -> Node:
        cls = VStack if comp.name == "vstack" else HStack
        align = comp.get_text("align")
        if align is not None and align not in ALIGNMENTS:
            raise comp.error(
                f"Attribute 'align' of <{comp.name}> must be one of: "
                f"{', '.join(sorted(ALIGNMENTS))}"
            )
        return cls(
            children=tuple(children),
            width=self._number(comp, "width"),
            height=self._number(comp, "height"),
            flex=self._number(comp, "flex"),
            align=align,
        )

    def _build_grid(self, comp: Component, children: list) -> Node:
        columns = comp.get_text("columns")
        if columns is not None:
            try:
                columns = int(columns.strip())
            except ValueError:
                columns = 0
            if columns < 1:
                raise comp.error("Attribute 'columns' of <grid> must be a positive integer")
        return Grid(columns=columns, children=tuple(children))

    def _build_spacer(self, comp: Component, children: list) -> Node:
        self._no_children(comp, children)
        return Spacer(size=self._number(comp, "size"))

    @staticmethod
    def _number(comp: Component, key: str) -> float | None:
        text = comp.get_text(key)
        if text is None:
            return None
        try:
            value = float(text.strip())
        except ValueError:
            value = math.nan
        if not math.isfinite(value):
            raise comp.error(f"Attribute '{key}' of <{comp.name}> must be a number")
        return value

    @staticmethod
    def _no_children(comp: Component, children: list) -> None:
        if any(not (isinstance(c, Text) and not c.value.strip()) for c in children):
            raise comp.error(f"<{comp.name}> cannot have children; use <{comp.name} ... />")


def parse_body(source: str, line_offset: int = 0) -> tuple[Node, ...]:
    """Parse a Markdown + component body into a tuple of nodes.

    Raises StructuralParseError on malformed or misused component tags.
    Unsupported markdown (tables, block quotes, code, raw HTML) is dropped.
    """
    return BodyParser(line_offset).parse(source)
