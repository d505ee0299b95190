"""
Helpers for values with propagated uncertainty.

Uncertain values are ``uncertainties`` ufloats. Named uncertainty sources are
ufloat tags, so ``uncertainty_components`` can report how much of a result's
uncertainty comes from, e.g., the k-ratio of Fe Ka versus the correction model.
"""

import math
from collections import defaultdict
from typing import Dict, Optional, Union

from uncertainties import ufloat, UFloat

Number = Union[float, int, UFloat]


def as_ufloat(value: Number, tag: Optional[str] = None) -> UFloat:
    """
    Convert a number to a ufloat (exact when not already uncertain).

    Parameters
    ----------
    value : float, int or UFloat
        Value to convert
    tag : str, optional
        Name of the uncertainty source for newly created values

    Returns
    -------
    UFloat
    """
    if isinstance(value, UFloat):
        return value
    return ufloat(float(value), 0.0, tag)


def nominal(value: Number) -> float:
    """Nominal value of a float or ufloat."""
    return float(value.nominal_value) if isinstance(value, UFloat) else float(value)


def std_dev(value: Number) -> float:
    """Standard deviation of a ufloat (0.0 for plain numbers)."""
    return float(value.std_dev) if isinstance(value, UFloat) else 0.0


def fractional_uncertainty(value: Number) -> float:
    """
    Uncertainty divided by the magnitude of the value.

    Returns inf for a zero value with non-zero uncertainty and 0.0 for an
    exact zero.
    """
    n, s = nominal(value), std_dev(value)
    if n == 0.0:
        return math.inf if s > 0.0 else 0.0
    return s / abs(n)


def fractional_uncertainty_u(value: Number) -> UFloat:
    """
    The value scaled to unity: 1 +/- fractional uncertainty.

    The result keeps the uncertainty components of the input, so multiplying
    another quantity by it propagates those components.
    """
    uv = as_ufloat(value)
    n = uv.nominal_value
    if n == 0.0:
        return ufloat(1.0, 0.0)
    return uv / abs(n)


def signal_to_noise(value: Number) -> float:
    """
    Inverse fractional uncertainty.

    0.0 for non-positive values, inf for exact positive values.
    """
    if nominal(value) <= 0.0:
        return 0.0
    fu = fractional_uncertainty(value)
    return math.inf if fu == 0.0 else 1.0 / fu


def non_negative(value: Number) -> UFloat:
    """Clamp the value at zero, keeping the uncertainty."""
    uv = as_ufloat(value)
    if uv.nominal_value >= 0.0:
        return uv
    return ufloat(0.0, uv.std_dev)


def reduced(value: Number, tag: str) -> UFloat:
    """Collapse all uncertainty components into one named component."""
    return ufloat(nominal(value), std_dev(value), tag)


def uncertainty_components(value: Number) -> Dict[str, float]:
    """
    Standard-deviation contribution of each named uncertainty source.

    Contributions from variables sharing a tag are combined in quadrature.
    Untagged sources are reported under ``"?"``; exact variables are omitted.
    """
    if not isinstance(value, UFloat):
        return {}
    variances: Dict[str, float] = defaultdict(float)
    for var, contribution in value.error_components().items():
        if contribution == 0.0:
            continue
        variances[var.tag or "?"] += contribution**2
    return {tag: math.sqrt(v) for tag, v in variances.items()}
