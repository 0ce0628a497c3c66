"""Semantic validator for parsed hnmd documents."""

from __future__ import annotations

import re

from .ast_nodes import Button, CustomComponent, Document, Each, Input, Node, walk
from .errors import EvaluationError, ExpressionError, ValidationError
from .evaluator import JqEvaluator
from .expressions import Field, Path, Query, classify, normalize
from .reconciler import evaluated_expressions
from .registry import ComponentRegistry

# ---------------------------------------------------------------------------
# Names visible at the top level of every expression context
# ---------------------------------------------------------------------------

CONTEXT_ROOTS = {"user", "queries", "state", "form"}

ACTION_PREFIX = "actions."

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*", re.ASCII)


class Validator:
    """Validates a Document for references that cannot resolve at runtime."""

    def __init__(self, evaluator: JqEvaluator | None = None):
        self.evaluator = evaluator or JqEvaluator()

    def validate(
        self,
        document: Document,
        registry: ComponentRegistry | None = None,
    ) -> list[ValidationError]:
        """Run all validations and return a list of errors (empty = valid)."""
        nodes = [n for root in document.body for n in walk(root)]
        errors: list[ValidationError] = []
        errors += self._validate_pipe_sources(document)
        errors += self._validate_button_actions(document, nodes)
        errors += self._validate_custom_components(document, nodes, registry)
        errors += self._validate_unique_inputs(nodes)
        errors += self._validate_each_bindings(nodes)
        errors += self._validate_expressions(document)
        return errors

    def _validate_pipe_sources(self, document: Document) -> list[ValidationError]:
        errors = []
        known = set(document.frontmatter.filters)
        for name, pipe in document.frontmatter.pipes.items():
            if pipe.source not in known:
                errors.append(ValidationError(
                    f"Pipe '{name}' reads from unknown source '{pipe.source}'"
                ))
            known.add(name)
        return errors

    def _validate_button_actions(self, document: Document, nodes: list[Node]) -> list[ValidationError]:
        errors = []
        for node in nodes:
            if not isinstance(node, Button) or not node.on_click:
                continue
            action = node.on_click.strip()
            if action.startswith(ACTION_PREFIX):
                action = action[len(ACTION_PREFIX):]
            if action not in document.frontmatter.actions:
                errors.append(ValidationError(
                    f"Button references unknown action '{node.on_click}'. "
                    f"Declared actions: {', '.join(sorted(document.frontmatter.actions)) or 'none'}"
                ))
        return errors

    def _validate_custom_components(
        self,
        document: Document,
        nodes: list[Node],
        registry: ComponentRegistry | None,
    ) -> list[ValidationError]:
        errors = []
        reported = set()
        for node in nodes:
            if not isinstance(node, CustomComponent) or node.name in reported:
                continue
            if node.name in document.imports or (registry is not None and node.name in registry):
                continue
            reported.add(node.name)
            errors.append(ValidationError(
                f"Component <{node.name}> is used but not imported"
            ))
        return errors

    def _validate_unique_inputs(self, nodes: list[Node]) -> list[ValidationError]:
        errors = []
        seen = set()
        for node in nodes:
            if isinstance(node, Input):
                if node.name in seen:
                    errors.append(ValidationError(f"Duplicate input name '{node.name}'"))
                seen.add(node.name)
        return errors

    def _validate_each_bindings(self, nodes: list[Node]) -> list[ValidationError]:
        errors = []
        for node in nodes:
            if not isinstance(node, Each):
                continue
            if not _IDENTIFIER_RE.fullmatch(node.binding):
                errors.append(ValidationError(
                    f"<each> binding '{node.binding}' is not a valid identifier"
                ))
            elif node.binding in CONTEXT_ROOTS:
                errors.append(ValidationError(
                    f"<each> binding '{node.binding}' shadows the '{node.binding}' context root"
                ))
        return errors

    def _validate_expressions(self, document: Document) -> list[ValidationError]:
        errors = []
        queries = set(document.frontmatter.filters) | set(document.frontmatter.pipes)
        for root in document.body:
            for text in evaluated_expressions(root):
                try:
                    expression = classify(text)
                except ExpressionError as exc:
                    errors.append(ValidationError(exc.message))
                    continue
                if isinstance(expression, Query):
                    try:
                        self.evaluator.compile(normalize(text))
                    except EvaluationError as exc:
                        errors.append(ValidationError(f"Invalid expression {{{text}}}: {exc.message}"))
                elif isinstance(expression, Path) and expression.root == "queries" and expression.segments:
                    first = expression.segments[0]
                    if isinstance(first, Field) and first.name not in queries:
                        errors.append(ValidationError(
                            f"Expression {{{text}}} references unknown query '{first.name}'"
                        ))
        return errors
