"""JSON formatter for Inkwell."""

import json

from ..analysis.models import ContractReport
from .base import BaseFormatter


class JsonFormatter(BaseFormatter):
    """Render a report as deterministic, indented JSON."""

    def render(self, report: ContractReport) -> None:
        print(self.format(report))

    def format(self, report: ContractReport) -> str:
        return json.dumps(report.to_dict(), indent=2)
