"""Static ink analysis: classification, traversal, aggregation, detectors."""

from .analyzer import ContractAnalyzer
from .classifier import OperationClassifier
from .cost_model import estimate
from .detectors import DryNibDetector, RedundantReadDetector
from .models import (
    AnalysisUnit,
    CategorySummary,
    Confidence,
    ContractReport,
    DryNibBug,
    Hotspot,
    Operation,
    OperationKind,
    Optimization,
    ReportStatus,
    Severity,
)
from .walker import SyntaxWalker

__all__ = [
    "ContractAnalyzer",
    "OperationClassifier",
    "SyntaxWalker",
    "DryNibDetector",
    "RedundantReadDetector",
    "estimate",
    "AnalysisUnit",
    "CategorySummary",
    "Confidence",
    "ContractReport",
    "DryNibBug",
    "Hotspot",
    "Operation",
    "OperationKind",
    "Optimization",
    "ReportStatus",
    "Severity",
]
