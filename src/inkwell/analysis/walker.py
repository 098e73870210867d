"""SyntaxWalker - selects eligible units and walks their bodies in source order.

Traversal is pre-order, depth-first, left-to-right over every statement and
nested expression of a unit body. The order is observable: it decides
hotspot tie-breaks and probe numbering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..exceptions import AnalysisError, UnsupportedConstruct
from ..logging_config import get_logger
from ..syntax.items import UnitDecl, find_units
from ..syntax.tree import SyntaxNode, SyntaxTree
from .classifier import OperationClassifier
from .models import Operation, ReportStatus

logger = get_logger(__name__)

# Never descended into: nested items, attributes, comments
SKIPPED_KINDS = frozenset(
    {
        "attribute_item",
        "inner_attribute_item",
        "line_comment",
        "block_comment",
        "use_declaration",
        "extern_crate_declaration",
        "macro_definition",
    }
)


@dataclass(frozen=True)
class UnitWalk:
    """Operations found in one unit, or a diagnostic if the walk failed."""

    unit: UnitDecl
    operations: tuple[Operation, ...]
    diagnostics: tuple[str, ...] = ()


@dataclass(frozen=True)
class WalkOutcome:
    units: tuple[UnitWalk, ...]
    status: ReportStatus = ReportStatus.OK


@dataclass
class _WalkState:
    operations: list[Operation] = field(default_factory=list)
    covered: set[SyntaxNode] = field(default_factory=set)
    statement_index: int = 0


def _is_skipped(node: SyntaxNode) -> bool:
    return node.kind in SKIPPED_KINDS or node.kind.endswith("_item") or node.is_error


class SyntaxWalker:
    """Walks eligible units and collects classified Operations.

    Args:
        classifier: Classifier invoked on every candidate node
    """

    def __init__(self, classifier: Optional[OperationClassifier] = None):
        self.classifier = classifier or OperationClassifier()

    def select_units(
        self, tree: SyntaxTree, unit_name: Optional[str] = None
    ) -> tuple[list[UnitDecl], ReportStatus]:
        """Eligible units in source order, filtered to ``unit_name`` if given."""
        units = find_units(tree)
        if not units:
            return [], ReportStatus.NO_ELIGIBLE_UNITS
        if unit_name is None:
            return units, ReportStatus.OK
        selected = [u for u in units if u.name == unit_name]
        if not selected:
            return [], ReportStatus.UNIT_NOT_FOUND
        return selected, ReportStatus.OK

    def walk(self, tree: SyntaxTree, unit_name: Optional[str] = None) -> WalkOutcome:
        units, status = self.select_units(tree, unit_name)
        if status != ReportStatus.OK:
            logger.debug(f"SyntaxWalker: {status.value} (filter={unit_name!r})")
            return WalkOutcome(units=(), status=status)
        return WalkOutcome(units=tuple(self.walk_unit_safely(unit) for unit in units))

    def walk_unit_safely(self, unit: UnitDecl) -> UnitWalk:
        """Walk one unit; a failure yields an empty, marked result."""
        try:
            return UnitWalk(unit=unit, operations=tuple(self.walk_unit(unit)))
        except AnalysisError as e:
            logger.warning(f"SyntaxWalker: could not walk {unit.name} (line {unit.line}): {e}")
            return UnitWalk(unit=unit, operations=(), diagnostics=(f"walk_failed: {e}",))

    def walk_unit(self, unit: UnitDecl) -> list[Operation]:
        """Classified Operations of one unit body, in pre-order.

        Raises:
            UnsupportedConstruct: If the unit has no body to walk
        """
        body = unit.body
        if body is None:
            raise UnsupportedConstruct("function without body", unit.line, unit.node.column)
        state = _WalkState()
        # (node, starts a statement); children pushed reversed to pop in source order
        stack: list[tuple[SyntaxNode, bool]] = [(body, False)]
        while stack:
            node, is_statement = stack.pop()
            if _is_skipped(node):
                continue
            if is_statement:
                state.statement_index += 1

            if node.kind == "block":
                stack.extend((child, True) for child in reversed(node.named_children))
                continue

            if node not in state.covered:
                op = self.classifier.classify(node, state.statement_index)
                if op is not None:
                    state.operations.append(op)
                    state.covered.update(op.covered)

            # Macro arguments are an unparsed token tree
            if node.kind == "macro_invocation":
                continue

            stack.extend((child, False) for child in reversed(node.named_children))
        return state.operations
