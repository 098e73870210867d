"""Dip CLI command -- static ink profile of a contract file."""

from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from ..analysis.models import ReportStatus
from ..api import analyze_file
from ..exceptions import InkwellError, ParseError
from ..formatters import get_formatter
from ..logging_config import setup_logging
from ..syntax.expansion import CargoExpandExpander, find_crate_dir
from . import app
from ._common import console, err_console, resolve_config


class OutputFormat(str, Enum):
    compact = "compact"
    detailed = "detailed"
    json = "json"


@app.command()
def dip(
    file: Path = typer.Argument(
        ...,
        help="Contract source file (e.g. src/lib.rs)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    function: Optional[str] = typer.Option(
        None,
        "--function",
        "-f",
        help="Analyze only this public function",
    ),
    output: OutputFormat = typer.Option(
        OutputFormat.compact,
        "--output",
        "-o",
        help="Output format: compact | detailed | json",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    expand: bool = typer.Option(
        False,
        "--expand",
        help="Try `cargo expand` first; falls back to the file as written",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
):
    """
    Estimate ink per line and flag dry-nib overcharges.

    [bold cyan]Examples:[/bold cyan]

      inkwell dip src/lib.rs

      inkwell dip src/lib.rs --function transfer

      inkwell dip src/lib.rs --output json
    """
    logger = setup_logging(verbose=verbose)

    try:
        settings = resolve_config(config=config, verbose=verbose)
        expander = None
        if expand:
            expander = CargoExpandExpander(find_crate_dir(file) or file.parent)
        report = analyze_file(file, unit=function, config=settings, expander=expander)

    except ParseError as e:
        logger.debug(f"ParseError: {e}")
        err_console.print(
            f"[red]Parse error[/red] in {escape(str(file))} at line {e.line}, "
            f"column {e.column}: {escape(e.reason)}"
        )
        raise typer.Exit(1)

    except InkwellError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    except OSError as e:
        err_console.print(f"[red]Cannot read {escape(str(file))}:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    get_formatter(output.value, console).render(report)

    if report.status == ReportStatus.UNIT_NOT_FOUND:
        err_console.print(
            f"[yellow]Warning:[/yellow] no public function named '{escape(function or '')}'"
        )
        raise typer.Exit(1)

    if report.status == ReportStatus.NO_ELIGIBLE_UNITS:
        err_console.print(
            "[yellow]Warning:[/yellow] no #\\[public] or #\\[external] functions found"
        )
