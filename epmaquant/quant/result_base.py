"""
Shared text-table formatting for quantification results.
"""

from typing import List

from epmaquant.quant.composition import Composition
from epmaquant.quant.kratio import KRatioSet

# Table formatting constants
TABLE_WIDTH = 70
TABLE_SEP = "-" * TABLE_WIDTH
TABLE_HEADER = "=" * TABLE_WIDTH


class ResultTableMixin:
    """
    Mixin providing table formatting for result classes.
    """

    @staticmethod
    def _format_header(title: str) -> str:
        """Format a table header with title."""
        return f"{TABLE_HEADER}\n{title}\n{TABLE_HEADER}"

    @staticmethod
    def _format_separator() -> str:
        """Return a horizontal separator line."""
        return TABLE_SEP

    @staticmethod
    def _format_footer() -> str:
        """Return a table footer."""
        return TABLE_HEADER

    @staticmethod
    def _format_param_row(label: str, value: float, std: float, fmt: str = ".4f") -> str:
        """Format a single label / value / std row."""
        return f"{label:<20} {value:>12{fmt}} {std:>12{fmt}}"

    def _format_composition_table(self, composition: Composition) -> List[str]:
        """
        Format composition rows: mass fraction, its uncertainty and the
        normalized mass fraction, in atomic-number order.

        Returns
        -------
        list of str
            Formatted table rows
        """
        lines = [TABLE_SEP]
        lines.append(f"{'Element':<20} {'Mass frac.':>12} {'Std':>12} {'Norm.':>12}")
        lines.append(TABLE_SEP)
        for el in sorted(composition.elements):
            uv = composition.weight_fraction_u(el)
            norm = composition.weight_fraction(el, normalized=True)
            lines.append(
                f"{self._format_param_row(el.symbol, uv.nominal_value, uv.std_dev)} {norm:>12.4f}"
            )
        total = composition.sum_weight_fraction_u()
        lines.append(TABLE_SEP)
        lines.append(self._format_param_row("Sum", total.nominal_value, total.std_dev))
        return lines

    def _format_kratio_table(self, kratios: KRatioSet) -> List[str]:
        """Format k-ratio rows in natural TransitionSet order."""
        lines = [TABLE_SEP]
        lines.append(f"{'Transition':<20} {'k-ratio':>12} {'Std':>12}")
        lines.append(TABLE_SEP)
        for xrts in kratios.transitions():
            uv = kratios.raw_kratio(xrts)
            lines.append(self._format_param_row(str(xrts), uv.nominal_value, uv.std_dev, ".5f"))
        return lines
