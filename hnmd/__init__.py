"""hnmd: compiler for Markdown documents with embedded components and live expressions."""

from .ast_nodes import (
    Action,
    Button,
    ComponentDefinition,
    CustomComponent,
    Document,
    Each,
    Emphasis,
    Expr,
    ExpressionAttr,
    Filter,
    Frontmatter,
    Grid,
    Heading,
    HStack,
    If,
    Image,
    Input,
    Link,
    List,
    ListItem,
    LiteralAttr,
    Node,
    Paragraph,
    Pipe,
    PropSpec,
    Spacer,
    Strong,
    Text,
    VStack,
)
from .body import parse_body
from .component import Component, parse_tag
from .context import RuntimeContext
from .decompiler import Decompiler, decompile
from .document import load_document, parse_component_definition, parse_document
from .errors import (
    ComponentImportError,
    EvaluationError,
    ExpressionError,
    FrontmatterError,
    HnmdError,
    StructuralParseError,
    ValidationError,
)
from .evaluator import JqEvaluator, QueryEvaluator
from .expressions import Field, Index, Path, Query, classify
from .frontmatter import parse_frontmatter, split_frontmatter
from .logging import PassLog, ReconcileLogger
from .pipes import execute_pipes
from .reconciler import (
    ReconcileOp,
    ReconcileResult,
    Reconciler,
    WidgetArena,
    WidgetState,
    reconcile,
)
from .registry import ComponentRegistry, load_app, resolve_props
from .templates import interpolate, render_action, render_inline_text
from .validator import Validator

__all__ = [
    "parse_document",
    "load_document",
    "load_app",
    "parse_body",
    "parse_frontmatter",
    "split_frontmatter",
    "parse_tag",
    "parse_component_definition",
    "classify",
    "decompile",
    "reconcile",
    "execute_pipes",
    "interpolate",
    "render_action",
    "render_inline_text",
    "resolve_props",
    "Decompiler",
    "Validator",
    "Reconciler",
    "ReconcileOp",
    "ReconcileResult",
    "ReconcileLogger",
    "PassLog",
    "WidgetArena",
    "WidgetState",
    "RuntimeContext",
    "JqEvaluator",
    "QueryEvaluator",
    "ComponentRegistry",
    "Component",
    "Path",
    "Query",
    "Field",
    "Index",
    "Document",
    "Frontmatter",
    "Filter",
    "Pipe",
    "Action",
    "ComponentDefinition",
    "PropSpec",
    "Node",
    "Heading",
    "Paragraph",
    "Text",
    "Strong",
    "Emphasis",
    "List",
    "ListItem",
    "Link",
    "Image",
    "Expr",
    "Each",
    "If",
    "Button",
    "Input",
    "VStack",
    "HStack",
    "Grid",
    "Spacer",
    "CustomComponent",
    "LiteralAttr",
    "ExpressionAttr",
    "HnmdError",
    "StructuralParseError",
    "FrontmatterError",
    "ExpressionError",
    "EvaluationError",
    "ValidationError",
    "ComponentImportError",
]
