"""
Results of a composition-from-k-ratios computation.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Union

from epmaquant.quant.composition import Composition
from epmaquant.quant.kratio import KRatioSet
from epmaquant.quant.result_base import ResultTableMixin
from epmaquant.quant.uncertain import uncertainty_components
from epmaquant.xray.elements import Element


@dataclass
class ConvergenceWarning:
    """
    Iteration cap reached before the convergence test was met.

    Returned as data, never raised.

    Attributes
    ----------
    message : str
        Human-readable description (measured and best modeled k-ratios,
        best composition, mismatch relative to tolerance)
    best_delta : float
        Smallest mismatch reached
    tolerance : float
        Convergence criterion epsilon
    """

    message: str
    best_delta: float
    tolerance: float

    @property
    def relative_delta(self) -> float:
        """Best mismatch in units of the tolerance."""
        return self.best_delta / self.tolerance if self.tolerance > 0.0 else float("inf")

    def __str__(self) -> str:
        return self.message


@dataclass
class IterationContext:
    """Mutable diagnostic state of a single ``compute`` call."""

    iterations: int = 0
    warning: Optional[ConvergenceWarning] = None
    best_kratios: Optional[KRatioSet] = None


@dataclass
class QuantificationResult(ResultTableMixin):
    """
    Outcome of ``CompositionEstimator.compute``.

    Attributes
    ----------
    composition : Composition
        Best composition estimate, with propagated uncertainties
    kratios : KRatioSet
        The k-ratios actually used (after line optimization), including the
        elements measured as absent
    iterations : int
        Total iterations over all runs
    warning : ConvergenceWarning, optional
        Set when the iteration cap was reached without converging
    """

    composition: Composition
    kratios: KRatioSet
    iterations: int
    warning: Optional[ConvergenceWarning] = None

    @property
    def is_warning(self) -> bool:
        return self.warning is not None

    @property
    def converged(self) -> bool:
        return self.warning is None

    @property
    def warning_message(self) -> str:
        """The non-convergence message, or an empty string."""
        return self.warning.message if self.warning is not None else ""

    def uncertainty_components(self, elm: Union[str, int, Element]) -> Dict[str, float]:
        """Contribution of each named uncertainty source to an element's mass fraction."""
        return uncertainty_components(self.composition.weight_fraction_u(elm))

    def summary(self) -> str:
        """Generate a formatted summary table."""
        status = "converged" if self.converged else "NOT converged"
        lines = [
            self._format_header("Composition from k-ratios"),
            f"Iterations: {self.iterations} ({status})",
        ]
        lines.extend(self._format_composition_table(self.composition))
        lines.extend(self._format_kratio_table(self.kratios))
        if self.warning is not None:
            lines.append(self._format_separator())
            lines.append(self.warning.message.rstrip())
        lines.append(self._format_footer())
        return "\n".join(lines)
