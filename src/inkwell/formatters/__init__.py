"""Report formatters: compact terminal tables and machine-readable JSON."""

from typing import Dict, Optional, Type

from rich.console import Console

from .base import BaseFormatter
from .json_formatter import JsonFormatter
from .rich_formatter import RichFormatter

FORMATTERS: Dict[str, Type[BaseFormatter]] = {
    "compact": RichFormatter,
    "detailed": RichFormatter,
    "json": JsonFormatter,
}


def get_formatter(name: str, console: Optional[Console] = None) -> BaseFormatter:
    """Formatter for a ``--output`` value; ``console`` only affects terminal output."""
    if name not in FORMATTERS:
        raise ValueError(f"Unknown output format {name!r} (expected one of: {', '.join(FORMATTERS)})")
    if FORMATTERS[name] is RichFormatter:
        return RichFormatter(console, detailed=name == "detailed")
    return FORMATTERS[name]()


__all__ = [
    "BaseFormatter",
    "FORMATTERS",
    "JsonFormatter",
    "RichFormatter",
    "get_formatter",
]
