"""Analysis-related exceptions: parsing, unsupported syntax, rewriting."""

from typing import Optional

from .base import InkwellError


class AnalysisError(InkwellError):
    """Base class for analysis-related errors."""
    pass


class ParseError(AnalysisError):
    """Raised when contract source cannot be turned into a syntax tree.

    Fatal: no report is produced for unparseable input.
    """

    def __init__(self, reason: str, line: int, column: int, file_path: Optional[str] = None):
        details = {"line": line, "column": column, "reason": reason}
        if file_path:
            details["file"] = file_path
        super().__init__(f"Failed to parse contract source at {line}:{column}", details=details)
        self.reason = reason
        self.line = line
        self.column = column
        self.file_path = file_path

    @property
    def location(self) -> tuple:
        return (self.line, self.column)


class UnsupportedConstruct(AnalysisError):
    """Raised inside the classifier when a syntax shape cannot be decomposed.

    Never escapes the walker: the node is classified as ``other`` or skipped.
    """

    def __init__(self, kind: str, line: int, column: int):
        super().__init__(
            f"Unsupported construct: {kind}",
            details={"kind": kind, "line": line, "column": column},
        )
        self.kind = kind
        self.line = line
        self.column = column


class RewriteFailed(AnalysisError):
    """Raised when a contract cannot be rewritten with probes.

    Also raised for input that already carries the generated runtime.
    """

    def __init__(self, reason: str, line: Optional[int] = None):
        details: dict = {}
        if line is not None:
            details["line"] = line
        super().__init__(f"Rewrite failed: {reason}", details=details)
        self.reason = reason
        self.line = line
