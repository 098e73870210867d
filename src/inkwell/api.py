"""Public API for Inkwell.

Example:
    >>> from inkwell import analyze_source
    >>>
    >>> report = analyze_source(source, file_path="src/lib.rs")
    >>> report.units["transfer"].total_ink
    5400000
    >>>
    >>> # One function, custom thresholds
    >>> report = analyze_file("src/lib.rs", unit="transfer", config=load_config(hotspot_limit=3))
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from .analysis.analyzer import ContractAnalyzer
from .analysis.models import ContractReport
from .config import AnalysisConfig, load_config
from .exceptions import ParseError
from .instrumentation.instrumentor import InstrumentationResult, Instrumentor
from .logging_config import get_logger
from .syntax.expansion import MacroExpander
from .syntax.items import find_units
from .syntax.tree import SyntaxTree
from .syntax.treesitter_parser import RustParser

logger = get_logger(__name__)


def _expanded_tree(
    parser: RustParser, source: str, file_path: str, expander: MacroExpander
) -> Optional[SyntaxTree]:
    """Parsed expanded source, or None when the unexpanded tree should be used."""
    expanded = expander.expand(source, file_path)
    if expanded is None:
        return None
    try:
        tree = parser.parse(expanded, file_path=file_path)
    except ParseError as e:
        logger.warning(f"Expanded source for {file_path} does not parse ({e}); using original")
        return None
    if not find_units(tree):
        logger.info(f"Expanded source for {file_path} has no exported functions; using original")
        return None
    return tree


def analyze_source(
    source: str,
    file_path: str = "src/lib.rs",
    unit: Optional[str] = None,
    config: Optional[AnalysisConfig] = None,
    expander: Optional[MacroExpander] = None,
) -> ContractReport:
    """Analyze contract source text.

    Args:
        source: Rust contract source
        file_path: Path reported in the result and in parse errors
        unit: Analyze only the exported function with this name
        config: Analysis configuration (defaults when omitted)
        expander: Optional macro expander tried before analysis

    Returns:
        ContractReport; ``status`` marks an empty result

    Raises:
        ParseError: If the source does not parse
    """
    parser = RustParser()
    tree = parser.parse(source, file_path=file_path)

    if expander is not None:
        expanded = _expanded_tree(parser, source, file_path, expander)
        if expanded is not None:
            tree = expanded

    return ContractAnalyzer(config).analyze(tree, file_path, unit)


def analyze_file(
    path: Union[str, Path],
    unit: Optional[str] = None,
    config: Optional[AnalysisConfig] = None,
    expander: Optional[MacroExpander] = None,
) -> ContractReport:
    """Analyze a contract file; configuration is auto-discovered when omitted.

    Raises:
        ParseError: If the file does not parse
        OSError: If the file cannot be read
    """
    path = Path(path)
    source = path.read_text(encoding="utf-8")
    return analyze_source(
        source,
        file_path=str(path),
        unit=unit,
        config=config if config is not None else load_config(),
        expander=expander,
    )


def instrument_source(
    source: str,
    unit: Optional[str] = None,
    config: Optional[AnalysisConfig] = None,
    file_path: Optional[str] = None,
) -> InstrumentationResult:
    """Rewrite contract source with cfg-gated ink probes.

    On a rewrite failure the result carries the original source and
    ``state == REWRITE_FAILED``.

    Raises:
        ParseError: If the input source does not parse
    """
    return Instrumentor(config).instrument(source, unit_name=unit, file_path=file_path)
