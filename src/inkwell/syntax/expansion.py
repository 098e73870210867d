"""Best-effort macro expansion before parsing.

Expansion is an optional collaborator: an expander returns the expanded
source or ``None`` when it is unavailable, and analysis always has the
unexpanded source to fall back on.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Optional, Protocol

from ..logging_config import get_logger

logger = get_logger(__name__)


class MacroExpander(Protocol):
    def expand(self, source: str, file_path: str) -> Optional[str]:
        """Return expanded source, or None if expansion is unavailable."""
        ...


class NoExpansion:
    """Expander that is never available."""

    def expand(self, source: str, file_path: str) -> Optional[str]:
        return None


class CargoExpandExpander:
    """Runs ``cargo expand --lib`` in the contract's crate.

    Requires ``cargo`` and the ``cargo-expand`` subcommand on PATH. Any
    failure (missing tool, build error, timeout) means "unavailable".
    """

    def __init__(self, crate_dir: Path, timeout: int = 120):
        self.crate_dir = Path(crate_dir)
        self.timeout = timeout

    def available(self) -> bool:
        return shutil.which("cargo") is not None and shutil.which("cargo-expand") is not None

    def expand(self, source: str, file_path: str) -> Optional[str]:
        if not self.available():
            logger.debug("cargo-expand not installed; analyzing unexpanded source")
            return None
        if not (self.crate_dir / "Cargo.toml").exists():
            logger.debug(f"No Cargo.toml in {self.crate_dir}; analyzing unexpanded source")
            return None

        try:
            result = subprocess.run(
                ["cargo", "expand", "--lib", "--color", "never"],
                cwd=self.crate_dir,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Macro expansion unavailable for {file_path}: {e}")
            return None

        if result.returncode != 0 or not result.stdout.strip():
            logger.warning(
                f"cargo expand failed for {file_path} (exit {result.returncode}); "
                "analyzing unexpanded source"
            )
            return None

        return result.stdout


def find_crate_dir(file_path: Path) -> Optional[Path]:
    """Nearest ancestor directory of ``file_path`` holding a Cargo.toml."""
    for parent in Path(file_path).resolve().parents:
        if (parent / "Cargo.toml").exists():
            return parent
    return None
