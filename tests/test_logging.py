"""Tests for structured reconcile logs."""

import json

from hnmd.logging import OperationLog, PassLog, ReconcileLogger


class TestOperationLog:

    def test_to_dict_omits_empty_fields(self):
        entry = OperationLog(index=0, op="add", node_type="Text", generation=0)
        assert entry.to_dict() == {"index": 0, "op": "add", "node_type": "Text", "generation": 0}

    def test_to_dict_with_reason_and_hash(self):
        entry = OperationLog(1, "rebuild", "Expr", 2, reason="value", expression_hash=42)
        d = entry.to_dict()
        assert d["reason"] == "value"
        assert d["expression_hash"] == 42


class TestPassLog:

    def test_counts(self):
        log = PassLog(document="doc")
        log.operations.append(OperationLog(0, "keep", "Text", 0))
        log.operations.append(OperationLog(1, "add", "Text", 0))
        log.finish(removed=3)
        d = log.to_dict()
        assert d["counts"] == {"keep": 1, "rebuild": 0, "add": 1, "removed": 3}
        assert d["total_duration_ms"] >= 0

    def test_unfinished_has_no_duration(self):
        log = PassLog(document="doc")
        assert log.total_duration_ms is None
        assert "finished_at" not in log.to_dict()

    def test_to_json(self):
        log = PassLog(document="doc")
        log.finish()
        assert json.loads(log.to_json())["document"] == "doc"

    def test_summary(self):
        log = PassLog(document="feed.hnmd")
        log.operations.append(OperationLog(0, "rebuild", "Expr", 1, reason="value"))
        log.finish(removed=1)
        summary = log.summary()
        assert "Reconcile: feed.hnmd" in summary
        assert "0 keep, 1 rebuild, 0 add, 1 removed" in summary
        assert "[0] rebuild Expr gen=1 (value)" in summary


class TestReconcileLogger:

    def test_record_without_start_opens_pass(self):
        pass_logger = ReconcileLogger("doc")
        pass_logger.record(0, "add", "Text", 0)
        assert len(pass_logger.passes) == 1
        assert pass_logger.current.operations[0].op == "add"

    def test_finished_pass_is_not_reused(self):
        pass_logger = ReconcileLogger("doc")
        pass_logger.start_pass()
        pass_logger.finish_pass()
        pass_logger.record_evaluation_error("state.x", "boom")
        assert len(pass_logger.passes) == 2
        assert pass_logger.current.evaluation_errors[0].error == "boom"

    def test_current_is_none_initially(self):
        assert ReconcileLogger().current is None
