"""Exception hierarchy for Inkwell."""

from .analysis import (
    AnalysisError,
    ParseError,
    RewriteFailed,
    UnsupportedConstruct,
)
from .base import InkwellError
from .config import (
    ConfigFileError,
    ConfigurationError,
    InvalidConfigError,
)

__all__ = [
    "InkwellError",
    "AnalysisError",
    "ParseError",
    "UnsupportedConstruct",
    "RewriteFailed",
    "ConfigurationError",
    "InvalidConfigError",
    "ConfigFileError",
]
