"""
Inkwell - static ink profiler for Stylus smart contracts

Attributes metered execution cost ("ink") to individual source lines of a
Rust contract without executing it, flags buffer overcharge ("dry nib")
patterns and caching opportunities, and can rewrite the contract with
feature-gated probes that measure real ink at runtime.
"""

__version__ = "0.1.0"

from .api import analyze_file, analyze_source, instrument_source
from .analysis.models import ContractReport, OperationKind, ReportStatus
from .config import AnalysisConfig, CostPolicy, load_config
from .instrumentation.instrumentor import InstrumentationResult, InstrumentationState

__all__ = [
    "analyze_source",  # Main entry points
    "analyze_file",
    "instrument_source",
    "ContractReport",
    "OperationKind",
    "ReportStatus",
    "InstrumentationResult",
    "InstrumentationState",
    "AnalysisConfig",
    "CostPolicy",
    "load_config",
]
