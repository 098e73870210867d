"""Base formatter interface for Inkwell report rendering."""

from abc import ABC, abstractmethod

from ..analysis.models import ContractReport


class BaseFormatter(ABC):
    """Abstract base class for output formatters.

    Formatters read the precomputed values of a ContractReport; they never
    recompute totals, percentages or gas equivalents.
    """

    @abstractmethod
    def render(self, report: ContractReport) -> None:
        """Write the rendered report to the terminal."""

    @abstractmethod
    def format(self, report: ContractReport) -> str:
        """Return formatted string representation of the report."""
