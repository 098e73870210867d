"""Rich terminal formatter for Inkwell."""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..analysis.models import AnalysisUnit, ContractReport, ReportStatus, Severity
from .base import BaseFormatter

_SEVERITY_STYLE = {
    Severity.HIGH: "red bold",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "green",
}


def _severity_label(severity: Severity) -> str:
    style = _SEVERITY_STYLE[severity]
    return f"[{style}]{severity.value}[/{style}]"


def _ink(value: int) -> str:
    return f"{value:,}"


def _snippet(text: str, width: int = 60) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


class RichFormatter(BaseFormatter):
    """Terminal report: one panel and tables per unit.

    ``detailed`` adds the per-category breakdown of each unit.
    """

    def __init__(self, console: Optional[Console] = None, detailed: bool = False):
        self.console = console or Console()
        self.detailed = detailed

    def render(self, report: ContractReport) -> None:
        self._print_header(report)
        if report.status != ReportStatus.OK:
            return
        for unit in report.units.values():
            self._print_unit(unit)

    def format(self, report: ContractReport) -> str:
        # Rich output goes directly to console; return empty string
        self.render(report)
        return ""

    # -- private helpers --

    def _print_header(self, report: ContractReport) -> None:
        summary = (
            f"Contract [bold]{escape(report.contract_name)}[/bold]  |  "
            f"[cyan]{escape(report.file_path)}[/cyan]  |  "
            f"{len(report.units)} function(s)  |  "
            f"total [yellow]{_ink(report.total_ink)}[/yellow] ink"
        )
        self.console.print(Panel(summary, title="[bold cyan]Ink Profile[/bold cyan]", expand=False))

        if report.status == ReportStatus.UNIT_NOT_FOUND:
            requested = escape(report.requested_unit or "")
            self.console.print(f"[yellow]No public function named '{requested}' found.[/yellow]")
        elif report.status == ReportStatus.NO_ELIGIBLE_UNITS:
            self.console.print("[yellow]No #\\[public] or #\\[external] functions found.[/yellow]")

    def _print_unit(self, unit: AnalysisUnit) -> None:
        self.console.print()
        self.console.print(
            f"[bold]{escape(unit.signature_summary)}[/bold]  [dim]line {unit.line}[/dim]  "
            f"[yellow]{_ink(unit.total_ink)}[/yellow] ink ~ {_ink(unit.gas_equivalent)} gas"
        )
        for diagnostic in unit.diagnostics:
            self.console.print(f"  [red]![/red] {escape(diagnostic)}")

        if unit.operations:
            table = Table(title="Operations", expand=True)
            table.add_column("Line", style="dim", width=6)
            table.add_column("Kind", style="cyan")
            table.add_column("Entity")
            table.add_column("Ink", justify="right")
            table.add_column("%", justify="right")
            table.add_column("Code", ratio=3)
            for op in unit.operations:
                table.add_row(
                    str(op.line),
                    op.kind.value,
                    escape(op.entity_name),
                    _ink(op.estimated_ink),
                    f"{op.percent_of_unit:.1f}",
                    escape(_snippet(op.source_snippet)),
                )
            self.console.print(table)

        if unit.hotspots:
            self.console.print("[bold]Hotspots:[/bold]")
            for spot in unit.hotspots:
                self.console.print(
                    f"  {spot.rank}. line {spot.line}  {spot.kind.value:<24} "
                    f"{_ink(spot.estimated_ink):>12} ink  ({spot.percent_of_unit:.1f}%)"
                )

        if unit.dry_nib_bugs:
            self.console.print("[bold]Dry nib bugs:[/bold]")
            for bug in unit.dry_nib_bugs:
                self.console.print(
                    f"  {_severity_label(bug.severity)} line {bug.line} `{escape(bug.entity_name)}`: "
                    f"{bug.actual_return_size_bytes}B in {bug.buffer_allocated_bytes}B buffer, "
                    f"overcharge ~{_ink(bug.overcharge_estimate)} ink"
                )
                self.console.print(f"    [green]->[/green] {escape(bug.mitigation_text)}")

        if unit.optimizations:
            self.console.print("[bold]Optimizations:[/bold]")
            for opt in unit.optimizations:
                self.console.print(
                    f"  {_severity_label(opt.severity)} line {opt.line}: {escape(opt.title)} "
                    f"(saves ~{_ink(opt.estimated_savings)} ink, "
                    f"{opt.estimated_savings_percentage:.0f}%, {opt.confidence.value} confidence)"
                )
                for code_line in opt.suggested_rewrite.splitlines():
                    self.console.print(f"    [dim]{escape(code_line)}[/dim]", highlight=False)

        if self.detailed and unit.category_summary:
            table = Table(title="Categories", expand=False)
            table.add_column("Category", style="cyan")
            table.add_column("Operations", justify="right")
            table.add_column("Total ink", justify="right")
            table.add_column("%", justify="right")
            table.add_column("Avg/op", justify="right")
            for row in unit.category_summary:
                table.add_row(
                    row.category.value,
                    str(row.operation_count),
                    _ink(row.total_ink),
                    f"{row.percent_of_unit:.0f}",
                    _ink(round(row.average_ink_per_operation)),
                )
            self.console.print(table)
