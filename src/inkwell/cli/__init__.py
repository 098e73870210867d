"""CLI entry point: registers all subcommands."""

from typing import Optional

import typer

from .. import __version__
from ._common import console

app = typer.Typer(
    name="inkwell",
    help="Inkwell - static ink profiler for Stylus smart contracts",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold cyan]Inkwell[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """
    Attribute ink costs to contract source lines and instrument contracts
    for runtime measurement.
    """


# Import subcommands to register them
from .dip import dip as _dip  # noqa: F401, E402
from .instrument import instrument as _instrument  # noqa: F401, E402
