"""
Sets of measured or modeled k-ratios keyed by TransitionSet.
"""

from typing import Dict, Iterator, List, Optional, Set, Tuple, Union

import numpy as np
from uncertainties import ufloat, UFloat

from epmaquant.quant.uncertain import Number, as_ufloat, non_negative
from epmaquant.xray.elements import Element, element
from epmaquant.xray.structures import TransitionSet


class KRatioSet:
    """
    Mapping of TransitionSet to k-ratio (a ufloat).

    Raw values may be negative (a fitted peak consistent with zero); the
    ``kratio``/``kratio_u`` accessors clamp at zero while ``raw_kratio``
    returns the stored value.
    """

    def __init__(self):
        self._data: Dict[TransitionSet, UFloat] = {}

    def add_kratio(
        self, xrts: TransitionSet, value: Number, uncertainty: Optional[float] = None
    ) -> None:
        """
        Add or replace the k-ratio for a TransitionSet.

        Parameters
        ----------
        xrts : TransitionSet
            Measured transitions
        value : float or UFloat
            k-ratio
        uncertainty : float, optional
            One-sigma uncertainty when ``value`` is a plain number
        """
        if uncertainty is not None and not isinstance(value, UFloat):
            value = ufloat(float(value), float(uncertainty), f"k[{xrts}]")
        self._data[xrts] = as_ufloat(value)

    def remove(self, xrts: TransitionSet) -> None:
        self._data.pop(xrts, None)

    def raw_kratio(self, xrts: TransitionSet) -> UFloat:
        """Stored k-ratio (possibly negative); exact zero when absent."""
        return self._data.get(xrts, ufloat(0.0, 0.0))

    def kratio_u(self, xrts: TransitionSet) -> UFloat:
        """k-ratio clamped at zero; exact zero when absent."""
        uv = self._data.get(xrts)
        return non_negative(uv) if uv is not None else ufloat(0.0, 0.0)

    def kratio(self, xrts: TransitionSet) -> float:
        return float(self.kratio_u(xrts).nominal_value)

    def uncertainty(self, xrts: TransitionSet) -> float:
        uv = self._data.get(xrts)
        return float(uv.std_dev) if uv is not None else 0.0

    def transitions(self, elm: Optional[Union[str, int, Element]] = None) -> List[TransitionSet]:
        """All TransitionSets (or those of one element) in natural order."""
        if elm is None:
            return sorted(self._data)
        el = element(elm)
        return sorted(xrts for xrts in self._data if xrts.element == el)

    @property
    def element_set(self) -> Set[Element]:
        return {xrts.element for xrts in self._data}

    def elements(self) -> List[Element]:
        """Measured elements in atomic-number order."""
        return sorted(self.element_set)

    def is_available(self, key: Union[TransitionSet, Element]) -> bool:
        if isinstance(key, TransitionSet):
            return key in self._data
        return key in self.element_set

    def kratio_sum(self) -> float:
        """Sum of the non-negative k-ratios."""
        return sum(max(0.0, uv.nominal_value) for uv in self._data.values())

    def partition(self) -> Tuple["KRatioSet", "KRatioSet"]:
        """
        Split into detected (value > 0) and measured-as-absent (value <= 0) sets.

        Returns
        -------
        Tuple[KRatioSet, KRatioSet]
            (non-zero, zero)
        """
        nonzero, zero = KRatioSet(), KRatioSet()
        for xrts in self.transitions():
            uv = self._data[xrts]
            (nonzero if uv.nominal_value > 0.0 else zero).add_kratio(xrts, uv)
        return nonzero, zero

    def union(self, other: "KRatioSet") -> "KRatioSet":
        """Entries of both sets; ``other`` wins on shared keys."""
        res = self.copy()
        for xrts, uv in other._data.items():
            res._data[xrts] = uv
        return res

    def difference(self, other: "KRatioSet") -> "KRatioSet":
        """Entries of this set whose TransitionSet is not in ``other``."""
        res = KRatioSet()
        for xrts, uv in self._data.items():
            if xrts not in other._data:
                res._data[xrts] = uv
        return res

    def difference_u(self, measured: "KRatioSet") -> UFloat:
        """
        Mismatch between this (modeled) set and a measured set.

        delta = sqrt(sum_i (k_i - m_i)^2) over the TransitionSets present in
        both sets. The uncertainty is propagated to first order from both
        sets' uncertainties; at delta == 0 it is the root-sum-square of those
        uncertainties.

        Returns
        -------
        UFloat
            Non-negative mismatch
        """
        keys = [xrts for xrts in self._data if xrts in measured._data]
        if not keys:
            return ufloat(0.0, 0.0)
        calc = [self._data[xrts] for xrts in keys]
        meas = [measured.kratio_u(xrts) for xrts in keys]
        diff = np.array([c.nominal_value - m.nominal_value for c, m in zip(calc, meas)])
        var = np.array([c.std_dev**2 + m.std_dev**2 for c, m in zip(calc, meas)])
        delta = float(np.sqrt(np.sum(diff**2)))
        if delta > 0.0:
            sigma = float(np.sqrt(np.sum(diff**2 * var)) / delta)
        else:
            sigma = float(np.sqrt(np.sum(var)))
        return ufloat(delta, sigma)

    def optimal_datum(self, elm: Union[str, int, Element]) -> Optional[TransitionSet]:
        """The element's TransitionSet with the smallest k-ratio uncertainty."""
        candidates = self.transitions(elm)
        if not candidates:
            return None
        return min(candidates, key=lambda xrts: self._data[xrts].std_dev)

    def optimal_kratio_set(self) -> "KRatioSet":
        """One k-ratio per element: the one with the smallest uncertainty."""
        res = KRatioSet()
        for el in self.elements():
            xrts = self.optimal_datum(el)
            res.add_kratio(xrts, self.kratio_u(xrts))
        return res

    def copy(self) -> "KRatioSet":
        res = KRatioSet()
        res._data = dict(self._data)
        return res

    def items(self):
        return self._data.items()

    def __iter__(self) -> Iterator[TransitionSet]:
        return iter(self.transitions())

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, xrts: object) -> bool:
        return xrts in self._data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KRatioSet):
            return NotImplemented
        if set(self._data) != set(other._data):
            return False
        return all(
            uv.nominal_value == other._data[xrts].nominal_value
            and uv.std_dev == other._data[xrts].std_dev
            for xrts, uv in self._data.items()
        )

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        parts = [
            f"{xrts}: {uv.nominal_value:.5g}±{uv.std_dev:.2g}"
            for xrts, uv in ((x, self._data[x]) for x in self.transitions())
        ]
        return "[" + ", ".join(parts) + "]"

    def __repr__(self) -> str:
        return f"KRatioSet({self})"
