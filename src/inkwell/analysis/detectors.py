"""Dry-nib and redundant-read detectors.

Both are heuristics over a unit's Operation list. They never raise into the
report: a detector that trips over an operation skips it and logs, so a
mis-detection costs precision, not the run.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from ..config import DEFAULT_CONFIG, AnalysisConfig
from ..logging_config import get_logger
from .models import Confidence, DryNibBug, Operation, OperationKind, Optimization, Severity
from .type_widths import context_width, type_width

logger = get_logger(__name__)


class DryNibDetector:
    """Flags host calls charged for a buffer wider than the data returned.

    An operation is checked when its nesting depth, its field name, or its
    ink estimate crosses the configured thresholds. The fair cost scales the
    charge by ``actual / buffer`` bytes, floored at ``min_fair_cost`` and
    never above the charge itself.
    """

    def __init__(
        self,
        config: AnalysisConfig = DEFAULT_CONFIG,
        storage_types: Optional[dict[str, str]] = None,
    ):
        self.config = config
        self.storage_types = storage_types or {}

    def is_flagged(self, op: Operation) -> bool:
        if op.kind == OperationKind.OTHER:
            return False
        return (
            op.nesting_depth >= self.config.dry_nib_depth_threshold
            or op.entity_name in self.config.expensive_fields
            or op.estimated_ink >= self.config.dry_nib_ink_threshold
        )

    def detect(self, operations: Sequence[Operation]) -> list[DryNibBug]:
        bugs: list[DryNibBug] = []
        for op in operations:
            if not self.is_flagged(op):
                continue
            try:
                bugs.append(self._build(op))
            except (ValueError, KeyError) as e:
                logger.debug(f"DryNibDetector: skipped line {op.line}: {e}")
        return bugs

    def return_size(self, op: Operation) -> int:
        default = self.config.default_return_size_bytes
        if op.kind.is_storage:
            return type_width(self.storage_types.get(op.entity_name), default)
        if op.kind == OperationKind.CONTEXT_CALL:
            return context_width(op.entity_name, default)
        if op.kind == OperationKind.EVENT_EMIT:
            return 0
        return default

    def buffer_size(self, actual: int) -> int:
        unit = self.config.buffer_allocation_bytes
        return unit * max(1, math.ceil(actual / unit))

    def _build(self, op: Operation) -> DryNibBug:
        actual = self.return_size(op)
        buffer = self.buffer_size(actual)
        ink = op.estimated_ink
        fair = min(ink, max(self.config.min_fair_cost, ink * actual // buffer))
        overcharge = ink - fair
        severity = (
            Severity.HIGH if overcharge > self.config.high_severity_overcharge else Severity.MEDIUM
        )
        return DryNibBug(
            line=op.line,
            entity_name=op.entity_name,
            kind=op.kind,
            source_snippet=op.source_snippet,
            ink_charged_estimate=ink,
            actual_return_size_bytes=actual,
            buffer_allocated_bytes=buffer,
            expected_fair_cost=fair,
            overcharge_estimate=overcharge,
            severity=severity,
            mitigation_text=mitigation_for(op, actual, buffer),
        )


def mitigation_for(op: Operation, actual: int, buffer: int) -> str:
    field = op.entity_name
    if op.kind == OperationKind.NESTED_MAP_ACCESS:
        return (
            f"Nested access on `{field}` resolves {op.nesting_depth} intermediate "
            f"accessors, each a separate host call. Bind the intermediate guard once "
            f"(`let inner = self.{field}.getter(key);`) and reuse it."
        )
    if op.kind == OperationKind.STORAGE_WRITE_EMBEDDED:
        return (
            f"`{field}` is read and written in one expression. Read it into a local "
            f"first so the write does not pay for a second {buffer}-byte host buffer."
        )
    if op.kind.is_storage:
        return (
            f"`{field}` returns {actual} bytes through a {buffer}-byte host buffer. "
            f"Cache repeated reads in a local variable and avoid re-reading after writes."
        )
    if op.kind == OperationKind.CONTEXT_CALL:
        return (
            f"`{field}` returns {actual} bytes but is charged a full {buffer}-byte "
            f"buffer. Read it once per call and pass the value along."
        )
    if op.kind == OperationKind.EXTERNAL_CALL:
        return (
            "Cross-contract calls copy return data through a host buffer. Batch calls "
            "and keep return types small."
        )
    return "Minimize host calls by batching operations and caching results where possible."


def _share(part: int, whole: int) -> float:
    return part / whole * 100 if whole else 0.0


class RedundantReadDetector:
    """Finds storage reads that a local binding would make unnecessary.

    Two shapes are reported:
    - a write whose argument re-reads the field it writes
      (``storage_write_embedded``), saving one read;
    - repeated reads of one field within ``redundant_read_window``
      statements and with no write to that field in between, reported once
      at the first read and saving the ink of every later read in the run.
    """

    def __init__(self, config: AnalysisConfig = DEFAULT_CONFIG):
        self.config = config

    def detect(self, operations: Sequence[Operation]) -> list[Optimization]:
        found = self._embedded(operations) + self._repeated(operations)
        return sorted(found, key=lambda o: (o.line, o.title))

    def _embedded(self, operations: Sequence[Operation]) -> list[Optimization]:
        results: list[Optimization] = []
        read_cost = self.config.costs.storage_read
        for op in operations:
            if op.kind != OperationKind.STORAGE_WRITE_EMBEDDED or not op.implied_reads:
                continue
            read_expr = op.implied_reads[0]
            binding = f"cached_{op.entity_name}"
            rewritten = op.source_snippet.replace(read_expr, binding, 1)
            results.append(
                Optimization(
                    line=op.line,
                    title=f"Cache `{op.entity_name}` read before write",
                    explanation=(
                        f"The write to `{op.entity_name}` reads the same field inside its "
                        f"argument. Binding the read to a local first avoids a second "
                        f"storage host call in the same expression."
                    ),
                    suggested_rewrite=f"let {binding} = {read_expr};\n{rewritten};",
                    estimated_savings=read_cost,
                    entity_name=op.entity_name,
                    severity=Severity.HIGH,
                    confidence=Confidence.HIGH,
                    estimated_savings_percentage=_share(read_cost, op.estimated_ink),
                )
            )
        return results

    def _repeated(self, operations: Sequence[Operation]) -> list[Optimization]:
        window = self.config.redundant_read_window
        groups: dict[str, list[Operation]] = {}
        results: list[Optimization] = []
        for op in operations:
            entity = op.entity_name
            if op.kind.is_write:
                # Reads after a write see the new value
                results.extend(self._group_optimization(entity, groups.pop(entity, [])))
                continue
            if not op.kind.is_read:
                continue
            group = groups.setdefault(entity, [])
            if group and op.statement_index - group[-1].statement_index > window:
                results.extend(self._group_optimization(entity, group))
                group = groups[entity] = []
            group.append(op)
        for entity, group in groups.items():
            results.extend(self._group_optimization(entity, group))
        return results

    @staticmethod
    def _group_optimization(entity: str, group: list[Operation]) -> list[Optimization]:
        if len(group) < 2:
            return []
        first, later = group[0], group[1:]
        binding = f"cached_{entity}"
        savings = sum(op.estimated_ink for op in later)
        lines = ", ".join(str(op.line) for op in later)
        return [
            Optimization(
                line=first.line,
                title=f"Cache repeated `{entity}` reads",
                explanation=(
                    f"`{entity}` is read {len(group)} times within a few statements "
                    f"(again on line(s) {lines}). Each read is a separate storage host call."
                ),
                suggested_rewrite=(
                    f"let {binding} = {first.source_snippet};\n"
                    f"// use `{binding}` instead of re-reading `self.{entity}`"
                ),
                estimated_savings=savings,
                entity_name=entity,
                severity=Severity.MEDIUM,
                # Reads of different keys of one field are grouped together
                confidence=Confidence.MEDIUM,
                estimated_savings_percentage=_share(savings, savings + first.estimated_ink),
            )
        ]
