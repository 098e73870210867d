"""
Logging setup for Inkwell.

Records go to stderr through a rich handler, so the CLI can print JSON
reports and rewritten contract source on stdout untouched.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "inkwell"

LEVELS = {
    "quiet": logging.ERROR,
    "normal": logging.WARNING,
    "verbose": logging.DEBUG,
}


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    log_file: Optional[str] = None,
    verbosity: Optional[str] = None,
) -> logging.Logger:
    """
    Install the rich stderr handler on the ``inkwell`` logger.

    Calling again replaces the handlers from the previous call, so a CLI
    run can switch level once the configuration has been resolved.

    Args:
        verbose: DEBUG level (ignored when ``verbosity`` is given)
        quiet: ERROR level only (ignored when ``verbosity`` is given)
        log_file: Optional file that also receives every record
        verbosity: ``quiet`` / ``normal`` / ``verbose`` from AnalysisConfig

    Returns:
        The configured ``inkwell`` logger
    """
    if verbosity is None:
        verbosity = "quiet" if quiet else "verbose" if verbose else "normal"
    level = LEVELS.get(verbosity, logging.WARNING)
    detailed = level == logging.DEBUG

    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            tracebacks_show_locals=detailed,
            markup=False,
            show_time=detailed,
            show_path=detailed,
        )
    )

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        logger.addHandler(file_handler)

    logger.setLevel(level)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger under the ``inkwell`` hierarchy.

    Args:
        name: Module name (e.g. 'inkwell.analysis.walker'); names outside
              the package are prefixed. None returns the root logger.
    """
    if name is None:
        return logging.getLogger(ROOT_LOGGER)
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
