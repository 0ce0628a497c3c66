"""Structured logging: per-pass reconciliation logs with timing metrics.

Captures, for each reconcile pass:
- One entry per position with the op taken and the resulting generation
- Expression failures met while hashing evaluated values
- Pass-level counts and duration
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class OperationLog:
    """Log entry for one position of a reconcile pass."""
    index: int
    op: str  # "keep", "rebuild", "add"
    node_type: str
    generation: int
    reason: str | None = None  # "unchanged", "structure", "value", "unhashable", "new"
    expression_hash: int | None = None

    def to_dict(self) -> dict:
        d = {
            "index": self.index,
            "op": self.op,
            "node_type": self.node_type,
            "generation": self.generation,
        }
        if self.reason:
            d["reason"] = self.reason
        if self.expression_hash is not None:
            d["expression_hash"] = self.expression_hash
        return d


@dataclass
class EvaluationLog:
    """An expression that failed while hashing a node."""
    expression: str
    error: str
    index: int | None = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "expression": self.expression,
            "error": self.error,
            "timestamp": self.timestamp,
        }
        if self.index is not None:
            d["index"] = self.index
        return d


@dataclass
class PassLog:
    """Aggregated log for one reconcile pass."""
    document: str
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    operations: list[OperationLog] = field(default_factory=list)
    evaluation_errors: list[EvaluationLog] = field(default_factory=list)
    removed: int = 0

    @property
    def total_duration_ms(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at) * 1000

    def count(self, op: str) -> int:
        return sum(1 for entry in self.operations if entry.op == op)

    def finish(self, removed: int = 0) -> None:
        self.finished_at = time.time()
        self.removed = removed

    def to_dict(self) -> dict:
        d = {
            "document": self.document,
            "started_at": self.started_at,
            "counts": {
                "keep": self.count("keep"),
                "rebuild": self.count("rebuild"),
                "add": self.count("add"),
                "removed": self.removed,
            },
            "operations": [entry.to_dict() for entry in self.operations],
        }
        if self.finished_at:
            d["finished_at"] = self.finished_at
            d["total_duration_ms"] = round(self.total_duration_ms, 3)
        if self.evaluation_errors:
            d["evaluation_errors"] = [e.to_dict() for e in self.evaluation_errors]
        return d

    def to_json(self, pretty: bool = False) -> str:
        indent = 2 if pretty else None
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def summary(self) -> str:
        duration = f"{self.total_duration_ms:.1f}ms" if self.total_duration_ms else "running"
        lines = [
            f"Reconcile: {self.document}",
            f"Duration: {duration}",
            f"Ops: {self.count('keep')} keep, {self.count('rebuild')} rebuild, "
            f"{self.count('add')} add, {self.removed} removed",
            "─" * 50,
        ]
        for entry in self.operations:
            reason = f" ({entry.reason})" if entry.reason else ""
            lines.append(
                f"  [{entry.index}] {entry.op:<7} {entry.node_type} gen={entry.generation}{reason}"
            )
        if self.evaluation_errors:
            lines.append("─" * 50)
            for err in self.evaluation_errors:
                lines.append(f"  ⚠ {{{err.expression}}}: {err.error}")
        return "\n".join(lines)


class ReconcileLogger:
    """Collects a PassLog for every reconcile pass of one document."""

    def __init__(self, document: str = "document"):
        self.document = document
        self.passes: list[PassLog] = []

    @property
    def current(self) -> PassLog | None:
        return self.passes[-1] if self.passes else None

    def start_pass(self) -> PassLog:
        log = PassLog(document=self.document)
        self.passes.append(log)
        return log

    def record(
        self,
        index: int,
        op: str,
        node_type: str,
        generation: int,
        reason: str | None = None,
        expression_hash: int | None = None,
    ) -> None:
        """Log the op chosen for one position."""
        self._require_pass().operations.append(OperationLog(
            index=index,
            op=op,
            node_type=node_type,
            generation=generation,
            reason=reason,
            expression_hash=expression_hash,
        ))

    def record_evaluation_error(self, expression: str, error: str, index: int | None = None) -> None:
        self._require_pass().evaluation_errors.append(
            EvaluationLog(expression=expression, error=error, index=index)
        )

    def finish_pass(self, removed: int = 0) -> PassLog:
        log = self._require_pass()
        log.finish(removed)
        return log

    def _require_pass(self) -> PassLog:
        if not self.passes or self.passes[-1].finished_at is not None:
            return self.start_pass()
        return self.passes[-1]
