"""
Material composition as element mass fractions with uncertainties.
"""

from typing import Dict, Iterator, List, Mapping, Optional, Union

from uncertainties import ufloat, UFloat

from epmaquant.quant.uncertain import Number, as_ufloat, nominal
from epmaquant.xray.elements import Element, element

ElementKey = Union[str, int, Element]


class Composition:
    """
    Ordered mapping of Element to mass fraction (a ufloat).

    Mass fractions are non-negative. The sum need not be 1.0 except after
    an explicit ``normalize()``. Operations that change the element set
    (``add_element``, ``remove_element``) mutate in place and are used when
    building a composition; rules and the estimator work on copies.

    Parameters
    ----------
    fractions : Mapping, optional
        Initial element -> mass fraction mapping
    name : str, optional
        Descriptive name (e.g., the standard's name)
    """

    def __init__(
        self, fractions: Optional[Mapping[ElementKey, Number]] = None, name: Optional[str] = None
    ):
        self._fractions: Dict[Element, UFloat] = {}
        self.name = name
        if fractions:
            for key, value in fractions.items():
                self.add_element(key, value)

    @classmethod
    def from_mass_fractions(cls, name: Optional[str] = None, **fractions: Number) -> "Composition":
        """Build a composition from keyword arguments, e.g. ``Fe=0.7, Ni=0.3``."""
        return cls(fractions, name=name)

    @classmethod
    def from_stoichiometry(
        cls, atoms: Mapping[ElementKey, float], name: Optional[str] = None
    ) -> "Composition":
        """
        Build a composition from atom counts (e.g., ``{"Si": 1, "O": 2}``).

        Parameters
        ----------
        atoms : Mapping
            Element -> number of atoms per formula unit

        Returns
        -------
        Composition
            Mass fractions summing to 1.0
        """
        masses = {element(key): count * element(key).atomic_weight for key, count in atoms.items()}
        if any(m < 0.0 for m in masses.values()):
            raise ValueError("Atom counts must be non-negative")
        total = sum(masses.values())
        if total <= 0.0:
            raise ValueError("Stoichiometry must contain at least one atom")
        return cls({el: m / total for el, m in masses.items()}, name=name)

    @classmethod
    def pure(cls, elm: ElementKey) -> "Composition":
        """Composition of a pure element."""
        el = element(elm)
        return cls({el: 1.0}, name=f"Pure {el.symbol}")

    def add_element(self, elm: ElementKey, value: Number) -> None:
        """
        Set the mass fraction of an element.

        Raises
        ------
        ValueError
            If the mass fraction is negative
        """
        uv = as_ufloat(value)
        if uv.nominal_value < 0.0:
            raise ValueError(f"Mass fraction must be non-negative, got {uv.nominal_value}")
        self._fractions[element(elm)] = uv

    def remove_element(self, elm: ElementKey) -> None:
        """Remove an element; absent elements are ignored."""
        self._fractions.pop(element(elm), None)

    def contains(self, elm: ElementKey) -> bool:
        return element(elm) in self._fractions

    def __contains__(self, elm: object) -> bool:
        try:
            return self.contains(elm)  # type: ignore[arg-type]
        except ValueError:
            return False

    @property
    def elements(self) -> List[Element]:
        """Elements in insertion order."""
        return list(self._fractions)

    @property
    def element_count(self) -> int:
        return len(self._fractions)

    def sum_weight_fraction_u(self) -> UFloat:
        """Sum of all mass fractions with propagated uncertainty."""
        return sum(self._fractions.values(), ufloat(0.0, 0.0))

    def sum_weight_fraction(self) -> float:
        return sum(nominal(v) for v in self._fractions.values())

    def weight_fraction_u(self, elm: ElementKey, normalized: bool = False) -> UFloat:
        """
        Mass fraction of an element with uncertainty.

        Absent elements have an exact zero mass fraction.
        """
        value = self._fractions.get(element(elm))
        if value is None:
            return ufloat(0.0, 0.0)
        if normalized:
            total = self.sum_weight_fraction_u()
            if total.nominal_value > 0.0:
                return value / total
        return value

    def weight_fraction(self, elm: ElementKey, normalized: bool = False) -> float:
        return float(self.weight_fraction_u(elm, normalized).nominal_value)

    def normalize(self) -> "Composition":
        """
        A copy whose mass fractions sum to 1.0.

        An empty or zero-sum composition is returned unchanged (as a copy).
        """
        total = self.sum_weight_fraction_u()
        if total.nominal_value <= 0.0:
            return self.copy()
        return Composition({el: v / total for el, v in self._fractions.items()}, name=self.name)

    def copy(self) -> "Composition":
        res = Composition(name=self.name)
        res._fractions = dict(self._fractions)
        return res

    def as_dict(self) -> Dict[str, float]:
        """Element symbol -> nominal mass fraction."""
        return {el.symbol: float(v.nominal_value) for el, v in self._fractions.items()}

    def items(self):
        return self._fractions.items()

    def __iter__(self) -> Iterator[Element]:
        return iter(self._fractions)

    def __len__(self) -> int:
        return len(self._fractions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Composition):
            return NotImplemented
        if set(self._fractions) != set(other._fractions):
            return False
        return all(
            v.nominal_value == other._fractions[el].nominal_value
            and v.std_dev == other._fractions[el].std_dev
            for el, v in self._fractions.items()
        )

    __hash__ = None  # type: ignore[assignment]

    def descriptive_string(self, normalized: bool = False) -> str:
        """Human-readable mass percent listing, e.g. ``Fe: 70.00 %, Ni: 30.00 %``."""
        comp = self.normalize() if normalized else self
        parts = []
        for el, v in comp.items():
            parts.append(f"{el.symbol}: {100.0 * v.nominal_value:.2f} %")
        body = ", ".join(parts) if parts else "empty"
        return f"{self.name} [{body}]" if self.name else f"[{body}]"

    def __repr__(self) -> str:
        return f"Composition({self.descriptive_string()})"
