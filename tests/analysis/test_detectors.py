"""Tests for the dry-nib and redundant-read detectors."""

import pytest

from inkwell.analysis.cost_model import estimate, severity_for
from inkwell.analysis.detectors import DryNibDetector, RedundantReadDetector, mitigation_for
from inkwell.analysis.models import Confidence, Operation, OperationKind, Severity
from inkwell.config import AnalysisConfig

K = OperationKind


def make_op(kind, entity, line=1, depth=1, ink=None, statement_index=0, snippet="", implied=()):
    return Operation(
        line=line,
        column=8,
        source_snippet=snippet or f"self.{entity}.get()",
        kind=kind,
        entity_name=entity,
        nesting_depth=depth,
        estimated_ink=estimate(kind, depth) if ink is None else ink,
        severity=severity_for(kind),
        statement_index=statement_index,
        implied_reads=implied,
    )


class TestDryNibDetector:
    """Flagging rules and the fair-cost arithmetic."""

    def test_expensive_field_read(self):
        """balances is always checked; 32 of 64 bytes halves the fair cost."""
        detector = DryNibDetector(AnalysisConfig(), {"balances": "StorageMap<Address, StorageU256>"})
        (bug,) = detector.detect([make_op(K.STORAGE_READ, "balances")])
        assert bug.actual_return_size_bytes == 32
        assert bug.buffer_allocated_bytes == 64
        assert bug.expected_fair_cost == 600_000
        assert bug.overcharge_estimate == 600_000
        assert bug.severity == Severity.MEDIUM
        assert bug.kind == K.STORAGE_READ

    def test_deep_nesting_is_high_severity(self):
        """An 8-byte value behind two hops overcharges past the high threshold."""
        detector = DryNibDetector(
            AnalysisConfig(),
            {"indexes": "StorageMap<Address, StorageMap<U256, StorageMap<U256, StorageU64>>>"},
        )
        (bug,) = detector.detect([make_op(K.NESTED_MAP_ACCESS, "indexes", depth=2)])
        assert bug.ink_charged_estimate == 2_400_000
        assert bug.actual_return_size_bytes == 8
        assert bug.expected_fair_cost == 300_000
        assert bug.overcharge_estimate == 2_100_000
        assert bug.severity == Severity.HIGH

    def test_unflagged_operations(self):
        """Shallow, cheap, ordinary fields are not checked."""
        detector = DryNibDetector(AnalysisConfig(), {"total": "StorageU256"})
        ops = [
            make_op(K.STORAGE_READ, "total"),
            make_op(K.CONTEXT_CALL, "msg::sender", ink=300_000),
        ]
        assert detector.detect(ops) == []

    def test_other_is_never_flagged(self):
        detector = DryNibDetector(AnalysisConfig(dry_nib_ink_threshold=0))
        assert detector.detect([make_op(K.OTHER, "balances", ink=9_000_000)]) == []

    def test_ink_threshold(self):
        """Any operation at or above the ink threshold is checked."""
        detector = DryNibDetector(AnalysisConfig())
        op = make_op(K.EXTERNAL_CALL, "IERC20", ink=3_000_000)
        assert detector.is_flagged(op)
        assert not detector.is_flagged(make_op(K.EXTERNAL_CALL, "IERC20", ink=2_999_999))

    def test_context_width(self):
        """msg::sender returns 20 bytes; the fair cost is floored."""
        detector = DryNibDetector(AnalysisConfig(dry_nib_ink_threshold=200_000))
        (bug,) = detector.detect([make_op(K.CONTEXT_CALL, "msg::sender", ink=300_000)])
        assert bug.actual_return_size_bytes == 20
        assert bug.expected_fair_cost == 100_000
        assert bug.overcharge_estimate == 200_000

    def test_fair_cost_never_exceeds_charge(self):
        """The min_fair_cost floor is capped at the charge itself."""
        detector = DryNibDetector(AnalysisConfig(dry_nib_ink_threshold=0))
        (bug,) = detector.detect([make_op(K.STORAGE_READ, "x", ink=50_000)])
        assert bug.expected_fair_cost == 50_000
        assert bug.overcharge_estimate == 0

    def test_unknown_type_uses_default_width(self):
        detector = DryNibDetector(AnalysisConfig(), {})
        (bug,) = detector.detect([make_op(K.STORAGE_WRITE, "balances")])
        assert bug.actual_return_size_bytes == 32

    def test_buffer_size_rounds_up(self):
        detector = DryNibDetector(AnalysisConfig())
        assert detector.buffer_size(0) == 64
        assert detector.buffer_size(64) == 64
        assert detector.buffer_size(65) == 128

    def test_severity_threshold_is_configurable(self):
        config = AnalysisConfig(high_severity_overcharge=500_000)
        detector = DryNibDetector(config, {"balances": "uint256"})
        (bug,) = detector.detect([make_op(K.STORAGE_READ, "balances")])
        assert bug.severity == Severity.HIGH


class TestMitigation:
    """Mitigation text names the field and the shape."""

    def test_nested(self):
        text = mitigation_for(make_op(K.NESTED_MAP_ACCESS, "grid", depth=2), 8, 64)
        assert "`grid`" in text
        assert "2 intermediate" in text

    def test_embedded(self):
        text = mitigation_for(make_op(K.STORAGE_WRITE_EMBEDDED, "balances"), 32, 64)
        assert "local" in text

    def test_context(self):
        text = mitigation_for(make_op(K.CONTEXT_CALL, "msg::sender"), 20, 64)
        assert "20 bytes" in text


class TestRedundantReadDetector:
    """Caching opportunities."""

    def test_embedded_write(self):
        snippet = "self.balances.insert(to, self.balances.get(to) + amount)"
        op = make_op(
            K.STORAGE_WRITE_EMBEDDED,
            "balances",
            line=36,
            snippet=snippet,
            implied=("self.balances.get(to)",),
        )
        (opt,) = RedundantReadDetector(AnalysisConfig()).detect([op])
        assert opt.line == 36
        assert opt.estimated_savings == 1_200_000
        assert opt.title == "Cache `balances` read before write"
        assert opt.suggested_rewrite == (
            "let cached_balances = self.balances.get(to);\n"
            "self.balances.insert(to, cached_balances + amount);"
        )

    def test_repeated_reads_in_window(self):
        ops = [
            make_op(K.STORAGE_READ, "supply", line=10, statement_index=1),
            make_op(K.STORAGE_READ, "supply", line=11, statement_index=2),
            make_op(K.STORAGE_READ, "supply", line=13, statement_index=4),
        ]
        (opt,) = RedundantReadDetector(AnalysisConfig()).detect(ops)
        assert opt.line == 10
        assert opt.entity_name == "supply"
        assert opt.estimated_savings == 2 * 1_200_000
        assert "11, 13" in opt.explanation

    def test_reads_outside_window(self):
        ops = [
            make_op(K.STORAGE_READ, "supply", line=10, statement_index=1),
            make_op(K.STORAGE_READ, "supply", line=30, statement_index=9),
        ]
        assert RedundantReadDetector(AnalysisConfig()).detect(ops) == []

    def test_window_is_configurable(self):
        ops = [
            make_op(K.STORAGE_READ, "supply", line=10, statement_index=1),
            make_op(K.STORAGE_READ, "supply", line=30, statement_index=9),
        ]
        config = AnalysisConfig(redundant_read_window=10)
        assert len(RedundantReadDetector(config).detect(ops)) == 1

    def test_different_fields_are_independent(self):
        ops = [
            make_op(K.STORAGE_READ, "a", line=1, statement_index=1),
            make_op(K.STORAGE_READ, "b", line=2, statement_index=2),
        ]
        assert RedundantReadDetector(AnalysisConfig()).detect(ops) == []

    def test_nested_access_counts_as_read(self):
        ops = [
            make_op(K.NESTED_MAP_ACCESS, "grid", line=1, statement_index=1),
            make_op(K.STORAGE_READ, "grid", line=2, statement_index=2),
        ]
        (opt,) = RedundantReadDetector(AnalysisConfig()).detect(ops)
        assert opt.estimated_savings == 1_200_000

    def test_writes_are_not_reads(self):
        ops = [
            make_op(K.STORAGE_WRITE, "a", line=1, statement_index=1),
            make_op(K.STORAGE_WRITE, "a", line=2, statement_index=2),
        ]
        assert RedundantReadDetector(AnalysisConfig()).detect(ops) == []

    def test_read_after_write_is_not_cached(self):
        """A read following a write of the same field sees the new value."""
        ops = [
            make_op(K.STORAGE_READ, "total", line=10, statement_index=1),
            make_op(K.STORAGE_WRITE, "total", line=11, statement_index=2),
            make_op(K.OTHER, "U256::from", line=11, statement_index=2),
            make_op(K.STORAGE_READ, "total", line=12, statement_index=3),
        ]
        assert RedundantReadDetector(AnalysisConfig()).detect(ops) == []

    def test_write_splits_read_groups(self):
        ops = [
            make_op(K.STORAGE_READ, "total", line=10, statement_index=1),
            make_op(K.STORAGE_READ, "total", line=11, statement_index=2),
            make_op(K.STORAGE_WRITE, "total", line=12, statement_index=3),
            make_op(K.STORAGE_READ, "total", line=13, statement_index=4),
            make_op(K.STORAGE_READ, "total", line=14, statement_index=5),
        ]
        first, second = RedundantReadDetector(AnalysisConfig()).detect(ops)
        assert (first.line, first.estimated_savings) == (10, 1_200_000)
        assert (second.line, second.estimated_savings) == (13, 1_200_000)

    def test_embedded_write_ends_read_group(self):
        ops = [
            make_op(K.STORAGE_READ, "total", line=10, statement_index=1),
            make_op(
                K.STORAGE_WRITE_EMBEDDED,
                "total",
                line=11,
                statement_index=2,
                snippet="self.total.set(self.total.get() + one)",
                implied=("self.total.get()",),
            ),
            make_op(K.STORAGE_READ, "total", line=12, statement_index=3),
        ]
        (opt,) = RedundantReadDetector(AnalysisConfig()).detect(ops)
        assert opt.title == "Cache `total` read before write"

    def test_write_to_other_field_keeps_group(self):
        ops = [
            make_op(K.STORAGE_READ, "total", line=10, statement_index=1),
            make_op(K.STORAGE_WRITE, "paused", line=11, statement_index=2),
            make_op(K.STORAGE_READ, "total", line=12, statement_index=3),
        ]
        (opt,) = RedundantReadDetector(AnalysisConfig()).detect(ops)
        assert opt.estimated_savings == 1_200_000


class TestOptimizationRating:
    """Severity, confidence and savings share of each optimization."""

    def test_embedded_write_rating(self):
        op = make_op(
            K.STORAGE_WRITE_EMBEDDED,
            "balances",
            snippet="self.balances.insert(to, self.balances.get(to) + amount)",
            implied=("self.balances.get(to)",),
        )
        (opt,) = RedundantReadDetector(AnalysisConfig()).detect([op])
        assert opt.severity == Severity.HIGH
        assert opt.confidence == Confidence.HIGH
        assert opt.estimated_savings_percentage == pytest.approx(1_200_000 / 2_700_000 * 100)

    def test_repeated_read_rating(self):
        ops = [make_op(K.STORAGE_READ, "supply", line=n, statement_index=n) for n in (1, 2, 3)]
        (opt,) = RedundantReadDetector(AnalysisConfig()).detect(ops)
        assert opt.severity == Severity.MEDIUM
        assert opt.confidence == Confidence.MEDIUM
        assert opt.estimated_savings_percentage == pytest.approx(200 / 3)

    def test_to_dict_fields(self):
        ops = [make_op(K.STORAGE_READ, "supply", line=n, statement_index=n) for n in (1, 2)]
        (opt,) = RedundantReadDetector(AnalysisConfig()).detect(ops)
        data = opt.to_dict()
        assert data["severity"] == "medium"
        assert data["confidence"] == "medium"
        assert data["estimated_savings_percentage"] == pytest.approx(50.0)
