"""Shared CLI helpers."""

from pathlib import Path
from typing import Optional

from rich.console import Console

from ..config import AnalysisConfig, load_config
from ..logging_config import setup_logging

console = Console()
# Warnings and errors go to stderr so JSON and rewritten source on stdout stay clean
err_console = Console(stderr=True)


def resolve_config(
    config: Optional[Path] = None,
    verbose: bool = False,
) -> AnalysisConfig:
    """Build configuration from CLI options and apply its log verbosity."""
    overrides = {}
    if verbose:
        overrides["verbose"] = True
    settings = load_config(config_file=config, **overrides)
    setup_logging(verbosity=settings.verbosity)
    return settings
