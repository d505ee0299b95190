"""
Exception taxonomy for k-ratio quantification.

Configuration and geometry errors abort a computation. Correction errors are
raised by matrix-correction models and absorbed per line by the estimator.
Non-convergence is not an exception; see ``epmaquant.quant.result``.
"""

from typing import Iterable, Tuple


class QuantificationError(Exception):
    """Base class for all epmaquant errors."""


class ConfigurationError(QuantificationError, ValueError):
    """
    Raised when a measured element has neither a standard nor an
    unmeasured-element rule.

    Attributes
    ----------
    missing_elements : tuple
        The offending elements, in atomic-number order
    """

    def __init__(self, missing_elements: Iterable = ()):
        self.missing_elements: Tuple = tuple(sorted(missing_elements))
        if self.missing_elements:
            names = ", ".join(el.symbol for el in self.missing_elements)
            message = f"Missing references for {names}"
        else:
            message = "Indeterminate error condition."
        super().__init__(message)


class GeometryMismatchError(QuantificationError):
    """Raised when a validated standard was acquired under different conditions."""


class CorrectionComputationError(QuantificationError):
    """Raised by a matrix-correction model for physically invalid inputs."""
