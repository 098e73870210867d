"""ContractAnalyzer - turns a parsed contract into a ContractReport.

Pipeline per run:
1. Select eligible units and walk them (SyntaxWalker + OperationClassifier)
2. Aggregate each unit: totals, percentages, category rows, hotspots
3. Run the dry-nib and redundant-read detectors

Every derived number is recomputed from the Operation list, so totals,
percentages, and category sums always reconcile.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional, Sequence

from ..config import DEFAULT_CONFIG, AnalysisConfig
from ..logging_config import get_logger
from ..syntax.items import contract_name, storage_fields
from ..syntax.tree import SyntaxTree
from .classifier import OperationClassifier
from .cost_model import gas_equivalent
from .detectors import DryNibDetector, RedundantReadDetector
from .models import (
    AnalysisUnit,
    CategorySummary,
    ContractReport,
    Hotspot,
    Operation,
    OperationKind,
    ReportStatus,
)
from .walker import SyntaxWalker, UnitWalk

logger = get_logger(__name__)


def percent(part: int, total: int) -> float:
    return part / total * 100 if total else 0.0


def with_percentages(operations: Sequence[Operation]) -> tuple[Operation, ...]:
    """Copies of ``operations`` with ``percent_of_unit`` set from their total."""
    total = sum(op.estimated_ink for op in operations)
    return tuple(replace(op, percent_of_unit=percent(op.estimated_ink, total)) for op in operations)


def category_summary(operations: Sequence[Operation]) -> tuple[CategorySummary, ...]:
    """One row per observed kind, in OperationKind declaration order."""
    total = sum(op.estimated_ink for op in operations)
    rows: list[CategorySummary] = []
    for kind in OperationKind:
        matching = [op for op in operations if op.kind == kind]
        if not matching:
            continue
        kind_total = sum(op.estimated_ink for op in matching)
        rows.append(
            CategorySummary(
                category=kind,
                operation_count=len(matching),
                total_ink=kind_total,
                average_ink_per_operation=kind_total / len(matching),
                percent_of_unit=percent(kind_total, total),
            )
        )
    return tuple(rows)


def hotspots(operations: Sequence[Operation], limit: int) -> tuple[Hotspot, ...]:
    """Top ``limit`` operations by ink; ties by line then column. ``other`` never ranks."""
    ranked = sorted(
        (op for op in operations if op.kind != OperationKind.OTHER),
        key=lambda op: (-op.estimated_ink, op.line, op.column),
    )
    return tuple(
        Hotspot(
            rank=i + 1,
            line=op.line,
            column=op.column,
            kind=op.kind,
            estimated_ink=op.estimated_ink,
            percent_of_unit=op.percent_of_unit,
            source_snippet=op.source_snippet,
        )
        for i, op in enumerate(ranked[:limit])
    )


class ContractAnalyzer:
    """Static ink analyzer for one contract source.

    Args:
        config: Analysis configuration (defaults when omitted)
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self.classifier = OperationClassifier(self.config)
        self.walker = SyntaxWalker(self.classifier)
        self.redundant_reads = RedundantReadDetector(self.config)

    def analyze(
        self, tree: SyntaxTree, file_path: str, unit_name: Optional[str] = None
    ) -> ContractReport:
        """Analyze every eligible unit (or only ``unit_name``) of a parsed contract."""
        outcome = self.walker.walk(tree, unit_name)
        name = contract_name(tree)

        if outcome.status != ReportStatus.OK:
            return ContractReport(
                contract_name=name,
                file_path=file_path,
                units={},
                status=outcome.status,
                requested_unit=unit_name,
            )

        dry_nib = DryNibDetector(self.config, storage_fields(tree))
        names = [walk.unit.name for walk in outcome.units]
        units: dict[str, AnalysisUnit] = {}
        for walk in outcome.units:
            key = walk.unit.name
            if names.count(key) > 1 or key in units:
                key = f"{walk.unit.impl_type}::{walk.unit.name}"
            units[key] = self.aggregate(walk, dry_nib)

        logger.info(
            f"ContractAnalyzer: {name}: {len(units)} unit(s), "
            f"{sum(u.total_ink for u in units.values()):,} ink"
        )
        return ContractReport(
            contract_name=name,
            file_path=file_path,
            units=units,
            status=ReportStatus.OK,
            requested_unit=unit_name,
        )

    def aggregate(self, walk: UnitWalk, dry_nib: DryNibDetector) -> AnalysisUnit:
        """Build the AnalysisUnit for one walked unit."""
        operations = with_percentages(walk.operations)
        total = sum(op.estimated_ink for op in operations)
        diagnostics = list(walk.diagnostics)

        try:
            bugs = tuple(dry_nib.detect(operations))
        except Exception as e:
            logger.warning(f"DryNibDetector failed on {walk.unit.name}: {e}")
            bugs = ()
            diagnostics.append(f"dry_nib_failed: {e}")

        try:
            optimizations = tuple(self.redundant_reads.detect(operations))
        except Exception as e:
            logger.warning(f"RedundantReadDetector failed on {walk.unit.name}: {e}")
            optimizations = ()
            diagnostics.append(f"redundant_read_failed: {e}")

        return AnalysisUnit(
            name=walk.unit.name,
            signature_summary=walk.unit.signature,
            line=walk.unit.line,
            operations=operations,
            total_ink=total,
            gas_equivalent=gas_equivalent(total),
            dry_nib_bugs=bugs,
            optimizations=optimizations,
            hotspots=hotspots(operations, self.config.hotspot_limit),
            category_summary=category_summary(operations),
            diagnostics=tuple(diagnostics),
        )
