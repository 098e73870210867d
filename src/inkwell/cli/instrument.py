"""Instrument CLI command -- inject feature-gated ink probes."""

from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from ..analysis.models import ReportStatus
from ..api import instrument_source
from ..exceptions import InkwellError, ParseError
from ..logging_config import setup_logging
from . import app
from ._common import err_console, resolve_config


@app.command()
def instrument(
    file: Path = typer.Argument(
        ...,
        help="Contract source file (e.g. src/lib.rs)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the instrumented source here (default: stdout)",
        dir_okay=False,
    ),
    function: Optional[str] = typer.Option(
        None,
        "--function",
        "-f",
        help="Instrument only this public function",
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
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
):
    """
    Rewrite a contract with probes around every costed operation.

    Probes compile only with the profiling Cargo feature; without it the
    rewritten contract is the original program.

    [bold cyan]Examples:[/bold cyan]

      inkwell instrument src/lib.rs -o src/lib.instrumented.rs

      inkwell instrument src/lib.rs --function transfer
    """
    logger = setup_logging(verbose=verbose)

    try:
        settings = resolve_config(config=config, verbose=verbose)
        source = file.read_text(encoding="utf-8")
        result = instrument_source(source, unit=function, config=settings, file_path=str(file))

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

    if not result.succeeded:
        err_console.print(
            f"[red]Instrumentation failed:[/red] {escape(result.failure_reason or 'unknown')}; "
            "source left unchanged"
        )
        raise typer.Exit(1)

    if result.status == ReportStatus.UNIT_NOT_FOUND:
        err_console.print(
            f"[yellow]Warning:[/yellow] no public function named '{escape(function or '')}'"
        )
        raise typer.Exit(1)

    if not result.probes:
        err_console.print("[yellow]Warning:[/yellow] nothing to instrument")
        return

    if output is not None:
        output.write_text(result.rewritten_source_text, encoding="utf-8")
    else:
        print(result.rewritten_source_text, end="")

    counts = ", ".join(f"{kind}={n}" for kind, n in result.probe_counts().items())
    err_console.print(f"[green]Injected {len(result.probes)} probe(s)[/green] ({counts})")
    err_console.print(
        f"Enable with [bold]--features {settings.profiling_feature}[/bold] "
        f"(add `{settings.profiling_feature} = []` under \\[features] in Cargo.toml)",
        highlight=False,
    )
