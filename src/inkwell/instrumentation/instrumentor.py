"""Instrumentor - rewrites a contract so each costed operation records real ink.

The rewrite runs as a small state machine:

    SCANNING -> REWRITING -> FINALIZING -> DONE
                     \\            \\
                      +------------+--> REWRITE_FAILED

SCANNING locates targets with the same walker and classifier used by the
analyzer. REWRITING rebuilds the source bottom-up from the owned tree,
replacing each target expression ``E`` with ``crate::ink_probe!(id, "kind",
E)``. FINALIZING appends the generated runtime and re-parses the result.
If any step after scanning fails, the original source is returned untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..analysis.classifier import OperationClassifier
from ..analysis.models import Operation, OperationKind, ReportStatus
from ..analysis.walker import SyntaxWalker
from ..config import DEFAULT_CONFIG, AnalysisConfig
from ..exceptions import ParseError, RewriteFailed
from ..logging_config import get_logger
from ..syntax.tree import SyntaxNode, SyntaxTree
from ..syntax.treesitter_parser import RustParser
from .runtime_module import PROBE_MACRO, RUNTIME_MARKER, render_runtime_module

logger = get_logger(__name__)


class InstrumentationState(str, Enum):
    SCANNING = "scanning"
    REWRITING = "rewriting"
    FINALIZING = "finalizing"
    DONE = "done"
    REWRITE_FAILED = "rewrite_failed"


@dataclass(frozen=True)
class Probe:
    """One injected before/after probe pair."""

    probe_id: int
    line: int
    column: int
    kind: OperationKind
    unit_name: str
    source_snippet: str

    @property
    def original_location(self) -> tuple[int, int]:
        return (self.line, self.column)

    def to_dict(self) -> dict[str, Any]:
        return {
            "probe_id": self.probe_id,
            "line": self.line,
            "column": self.column,
            "kind": self.kind.value,
            "function": self.unit_name,
            "code": self.source_snippet,
        }


@dataclass(frozen=True)
class InstrumentationResult:
    rewritten_source_text: str
    probes: tuple[Probe, ...]
    state: InstrumentationState
    failure_reason: Optional[str] = None
    status: ReportStatus = ReportStatus.OK

    @property
    def succeeded(self) -> bool:
        return self.state == InstrumentationState.DONE

    def probe_counts(self) -> dict[str, int]:
        """Probes per operation kind, in OperationKind order."""
        counts: dict[str, int] = {}
        for kind in OperationKind:
            n = sum(1 for p in self.probes if p.kind == kind)
            if n:
                counts[kind.value] = n
        return counts


class Instrumentor:
    """Injects cfg-gated ink probes around classified operations.

    Args:
        config: Analysis configuration (profiling feature name, runtime
            thresholds, classifier settings)
        parser: Parser used for the input and to validate the output
    """

    def __init__(
        self, config: Optional[AnalysisConfig] = None, parser: Optional[RustParser] = None
    ):
        self.config = config or DEFAULT_CONFIG
        self.parser = parser or RustParser()
        self.walker = SyntaxWalker(OperationClassifier(self.config))
        self.state = InstrumentationState.SCANNING

    def _enter(self, state: InstrumentationState) -> None:
        logger.debug(f"Instrumentor: {self.state.value} -> {state.value}")
        self.state = state

    def instrument(
        self, source: str, unit_name: Optional[str] = None, file_path: Optional[str] = None
    ) -> InstrumentationResult:
        """Rewrite ``source`` with probes around every non-``other`` operation.

        Raises:
            ParseError: If the input itself does not parse
        """
        self.state = InstrumentationState.SCANNING
        tree = self.parser.parse(source, file_path=file_path)

        if RUNTIME_MARKER in source:
            return self._fail(source, RewriteFailed("source is already instrumented"))

        units, status = self.walker.select_units(tree, unit_name)
        targets: list[tuple[Operation, str]] = []
        for unit in units:
            walked = self.walker.walk_unit_safely(unit)
            targets.extend(
                (op, unit.name) for op in walked.operations if op.kind != OperationKind.OTHER
            )

        if not targets:
            logger.info(f"Instrumentor: nothing to instrument ({status.value})")
            self._enter(InstrumentationState.DONE)
            return InstrumentationResult(
                rewritten_source_text=source, probes=(), state=self.state, status=status
            )

        probes: list[Probe] = []
        wrapped: dict[SyntaxNode, Probe] = {}
        for op, name in targets:
            if op.node is None or op.node in wrapped:
                continue
            probe = Probe(
                probe_id=len(probes),
                line=op.line,
                column=op.column,
                kind=op.kind,
                unit_name=name,
                source_snippet=op.source_snippet,
            )
            probes.append(probe)
            wrapped[op.node] = probe

        try:
            self._enter(InstrumentationState.REWRITING)
            body = self._rewrite(tree, wrapped)

            self._enter(InstrumentationState.FINALIZING)
            rewritten = body.rstrip("\n") + "\n" + render_runtime_module(self.config)
            self._validate(rewritten)
        except RewriteFailed as e:
            return self._fail(source, e)

        self._enter(InstrumentationState.DONE)
        logger.info(f"Instrumentor: injected {len(probes)} probe(s)")
        return InstrumentationResult(
            rewritten_source_text=rewritten,
            probes=tuple(probes),
            state=self.state,
            status=status,
        )

    def _fail(self, source: str, error: RewriteFailed) -> InstrumentationResult:
        self._enter(InstrumentationState.REWRITE_FAILED)
        logger.warning(f"Instrumentor: {error}; returning original source")
        reason = error.reason if error.line is None else f"{error.reason} (line {error.line})"
        return InstrumentationResult(
            rewritten_source_text=source,
            probes=(),
            state=self.state,
            failure_reason=reason,
        )

    def _rewrite(self, tree: SyntaxTree, wrapped: dict[SyntaxNode, Probe]) -> str:
        root = tree.root
        rendered = render(root, tree.source, wrapped)
        text = tree.source[: root.start_byte] + rendered + tree.source[root.end_byte :]
        try:
            return text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise RewriteFailed(f"rewritten source is not valid UTF-8: {e}")

    def _validate(self, rewritten: str) -> None:
        try:
            self.parser.parse(rewritten)
        except ParseError as e:
            raise RewriteFailed(f"rewritten source does not parse: {e.reason}", line=e.line)


def render(node: SyntaxNode, source: bytes, wrapped: dict[SyntaxNode, Probe]) -> bytes:
    """Re-serialize ``node`` bottom-up, wrapping probed nodes.

    Source between children (whitespace, comments) is copied through, so an
    empty ``wrapped`` reproduces the original bytes exactly.
    """
    done: dict[SyntaxNode, bytes] = {}
    stack: list[tuple[SyntaxNode, bool]] = [(node, False)]
    while stack:
        current, expanded = stack.pop()
        if current.children and not expanded:
            stack.append((current, True))
            stack.extend((child, False) for child in current.children)
            continue

        if current.children:
            parts: list[bytes] = []
            cursor = current.start_byte
            for child in current.children:
                parts.append(source[cursor : child.start_byte])
                parts.append(done.pop(child))
                cursor = child.end_byte
            parts.append(source[cursor : current.end_byte])
            text = b"".join(parts)
        else:
            text = source[current.start_byte : current.end_byte]

        probe = wrapped.get(current)
        if probe is not None:
            head = f'{PROBE_MACRO}({probe.probe_id}, "{probe.kind.value}", '.encode("utf-8")
            text = head + text + b")"
        done[current] = text
    return done[node]
