"""Report model: operations, detector findings, per-unit and per-contract results.

Everything here is a frozen value object. Each stage builds new values
(``dataclasses.replace``) rather than editing the previous stage's output.
``to_dict`` output is the serialization surface renderers consume; key
order is fixed so JSON output is byte-stable across runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from ..syntax.tree import SyntaxNode


class OperationKind(str, Enum):
    """Closed set of cost-bearing operation kinds."""

    STORAGE_READ = "storage_read"
    STORAGE_WRITE = "storage_write"
    STORAGE_WRITE_EMBEDDED = "storage_write_embedded"
    NESTED_MAP_ACCESS = "nested_map_access"
    CONTEXT_CALL = "context_call"
    EVENT_EMIT = "event_emit"
    EXTERNAL_CALL = "external_call"
    CRYPTO = "crypto"
    OTHER = "other"

    @property
    def is_storage(self) -> bool:
        return self in _STORAGE_KINDS

    @property
    def is_read(self) -> bool:
        return self in (OperationKind.STORAGE_READ, OperationKind.NESTED_MAP_ACCESS)

    @property
    def is_write(self) -> bool:
        return self in (OperationKind.STORAGE_WRITE, OperationKind.STORAGE_WRITE_EMBEDDED)


_STORAGE_KINDS = frozenset(
    {
        OperationKind.STORAGE_READ,
        OperationKind.STORAGE_WRITE,
        OperationKind.STORAGE_WRITE_EMBEDDED,
        OperationKind.NESTED_MAP_ACCESS,
    }
)


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Confidence(str, Enum):
    """How likely a suggested rewrite is to save what it estimates."""

    HIGH = "high"
    MEDIUM = "medium"


class ReportStatus(str, Enum):
    """Outcome marker for a contract report (not an error)."""

    OK = "ok"
    NO_ELIGIBLE_UNITS = "no_eligible_units"
    UNIT_NOT_FOUND = "unit_not_found"


@dataclass(frozen=True)
class Operation:
    """One classified, costed operation at a source location.

    ``percent_of_unit`` is filled in by aggregation from the unit total;
    the walker always produces 0.0. ``node`` and ``covered`` tie the
    operation back to the tree for the instrumentor and are not serialized.
    """

    line: int
    column: int
    source_snippet: str
    kind: OperationKind
    entity_name: str
    nesting_depth: int
    estimated_ink: int
    severity: Severity
    percent_of_unit: float = 0.0
    detail: str = ""
    statement_index: int = 0
    implied_reads: tuple[str, ...] = ()
    node: Optional[SyntaxNode] = field(default=None, repr=False, compare=False)
    covered: tuple[SyntaxNode, ...] = field(default=(), repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "line": self.line,
            "column": self.column,
            "code": self.source_snippet,
            "kind": self.kind.value,
            "detail": self.detail,
            "entity": self.entity_name,
            "nesting_depth": self.nesting_depth,
            "ink": self.estimated_ink,
            "percentage": self.percent_of_unit,
            "severity": self.severity.value,
            "implied_reads": list(self.implied_reads),
        }


@dataclass(frozen=True)
class DryNibBug:
    """A host call charged for a buffer larger than the data it returns."""

    line: int
    entity_name: str
    kind: OperationKind
    source_snippet: str
    ink_charged_estimate: int
    actual_return_size_bytes: int
    buffer_allocated_bytes: int
    expected_fair_cost: int
    overcharge_estimate: int
    severity: Severity
    mitigation_text: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "line": self.line,
            "entity": self.entity_name,
            "kind": self.kind.value,
            "code": self.source_snippet,
            "ink_charged_estimate": self.ink_charged_estimate,
            "actual_return_size": self.actual_return_size_bytes,
            "buffer_allocated": self.buffer_allocated_bytes,
            "expected_fair_cost": self.expected_fair_cost,
            "overcharge_estimate": self.overcharge_estimate,
            "severity": self.severity.value,
            "mitigation": self.mitigation_text,
        }


@dataclass(frozen=True)
class Optimization:
    """A caching opportunity and the ink it would save."""

    line: int
    title: str
    explanation: str
    suggested_rewrite: str
    estimated_savings: int
    entity_name: str = ""
    severity: Severity = Severity.MEDIUM
    confidence: Confidence = Confidence.HIGH
    estimated_savings_percentage: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "line": self.line,
            "entity": self.entity_name,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.explanation,
            "suggested_code": self.suggested_rewrite,
            "estimated_savings_ink": self.estimated_savings,
            "estimated_savings_percentage": self.estimated_savings_percentage,
            "confidence": self.confidence.value,
        }


@dataclass(frozen=True)
class CategorySummary:
    category: OperationKind
    operation_count: int
    total_ink: int
    average_ink_per_operation: float
    percent_of_unit: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.operation_count,
            "total_ink": self.total_ink,
            "avg_per_op": self.average_ink_per_operation,
            "percentage": self.percent_of_unit,
        }


@dataclass(frozen=True)
class Hotspot:
    rank: int
    line: int
    column: int
    kind: OperationKind
    estimated_ink: int
    percent_of_unit: float
    source_snippet: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "line": self.line,
            "column": self.column,
            "kind": self.kind.value,
            "ink": self.estimated_ink,
            "percentage": self.percent_of_unit,
            "code": self.source_snippet,
        }


@dataclass(frozen=True)
class AnalysisUnit:
    """Cost attribution for one exported method."""

    name: str
    signature_summary: str
    line: int
    operations: tuple[Operation, ...]
    total_ink: int
    gas_equivalent: int
    dry_nib_bugs: tuple[DryNibBug, ...] = ()
    optimizations: tuple[Optimization, ...] = ()
    hotspots: tuple[Hotspot, ...] = ()
    category_summary: tuple[CategorySummary, ...] = ()
    diagnostics: tuple[str, ...] = ()

    @property
    def is_degraded(self) -> bool:
        return bool(self.diagnostics)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "signature": self.signature_summary,
            "line": self.line,
            "total_ink": self.total_ink,
            "gas_equivalent": self.gas_equivalent,
            "operations": [op.to_dict() for op in self.operations],
            "categories": {row.category.value: row.to_dict() for row in self.category_summary},
            "hotspots": [h.to_dict() for h in self.hotspots],
            "dry_nib_bugs": [b.to_dict() for b in self.dry_nib_bugs],
            "optimizations": [o.to_dict() for o in self.optimizations],
            "diagnostics": list(self.diagnostics),
        }


@dataclass(frozen=True)
class ContractReport:
    """Top-level result of one analysis run. Units keep source order.

    ``units`` is stored as a read-only view of a private copy.
    """

    contract_name: str
    file_path: str
    units: Mapping[str, AnalysisUnit]
    status: ReportStatus = ReportStatus.OK
    requested_unit: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "units", MappingProxyType(dict(self.units)))

    @property
    def total_ink(self) -> int:
        return sum(unit.total_ink for unit in self.units.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "contract_name": self.contract_name,
            "file": self.file_path,
            "status": self.status.value,
            "requested_function": self.requested_unit,
            "functions": {name: unit.to_dict() for name, unit in self.units.items()},
        }
