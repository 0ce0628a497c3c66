"""Runtime data context for evaluating expressions in a document."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Mapping

from .errors import EvaluationError, ExpressionError
from .evaluator import QueryEvaluator
from .expressions import Path, classify, normalize


@dataclass
class RuntimeContext:
    """Data bag visible to expressions: user, queries, state, form and locals.

    ``with_local`` returns a child context; the parent is never mutated, so
    sibling loop iterations and nested scopes never share values.
    """
    user: Any = None
    queries: Any = field(default_factory=dict)
    state: Any = field(default_factory=dict)
    form: dict[str, str] = field(default_factory=dict)
    locals: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_state(cls, state: Mapping[str, Any]) -> RuntimeContext:
        """Seed a context from a document's initial ``state``."""
        return cls(state=copy.deepcopy(dict(state)))

    def to_json(self) -> dict[str, Any]:
        """The JSON value expressions are evaluated against.

        Locals are spliced in at the top level so a loop binding ``note`` is
        reachable as ``note.content``.
        """
        data: dict[str, Any] = {
            "user": self.user,
            "queries": self.queries,
            "state": self.state,
            "form": dict(self.form),
        }
        data.update(self.locals)
        return data

    def eval(self, expression: str, evaluator: QueryEvaluator | None = None) -> Any:
        """Evaluate expression text against this context.

        Paths are resolved directly; anything else is delegated to
        ``evaluator`` in dot-prefixed form. Raises EvaluationError.
        """
        try:
            parsed = classify(expression)
        except ExpressionError as exc:
            raise EvaluationError(exc.message, expression=expression) from exc
        if isinstance(parsed, Path):
            return parsed.resolve(self.to_json())
        if evaluator is None:
            raise EvaluationError(
                f"No query evaluator available for {expression!r}", expression=expression,
            )
        try:
            return evaluator.evaluate(normalize(expression), self.to_json())
        except EvaluationError:
            raise
        except Exception as exc:
            raise EvaluationError(
                f"Query {expression!r} failed: {exc}", expression=expression,
            ) from exc

    def _child(self, **changes: Any) -> RuntimeContext:
        """Copy this context with every mutable section cloned."""
        return RuntimeContext(
            user=copy.deepcopy(changes.get("user", self.user)),
            queries=copy.deepcopy(changes.get("queries", self.queries)),
            state=copy.deepcopy(changes.get("state", self.state)),
            form=dict(self.form),
            locals=copy.deepcopy(changes.get("locals", self.locals)),
        )

    def with_local(self, name: str, value: Any) -> RuntimeContext:
        """Return a child context with ``name`` bound to a copy of ``value``."""
        return self._child(locals={**self.locals, name: value})

    def with_queries(self, queries: Any) -> RuntimeContext:
        """Return a child context whose query results are replaced wholesale."""
        return self._child(queries=queries)

    def set_form_field(self, name: str, value: str) -> None:
        self.form[name] = value

    def get_form_field(self, name: str) -> str | None:
        return self.form.get(name)
