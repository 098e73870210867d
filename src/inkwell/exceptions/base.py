"""Root of the Inkwell exception hierarchy."""

from typing import Any, Mapping, Optional


class InkwellError(Exception):
    """Base exception for all Inkwell errors.

    ``details`` values are stored as strings and appended to ``str()`` as
    ``key=value`` pairs, so CLI messages and log lines carry the location.
    """

    def __init__(self, message: str, details: Optional[Mapping[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = {key: str(value) for key, value in (details or {}).items()}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        pairs = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{self.message} ({pairs})"
