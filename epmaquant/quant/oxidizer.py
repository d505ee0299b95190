"""
Oxygen by stoichiometry from cation oxidation states.
"""

from math import gcd
from typing import Dict, Iterable, Optional, Union

from uncertainties import ufloat, UFloat

from epmaquant.core.constants import OXIDE_RESIDUAL_THRESHOLD, OXYGEN_OXIDATION_STATE
from epmaquant.quant.composition import Composition
from epmaquant.xray.elements import Element, element

# Common oxidation state of each element in oxide minerals and glasses.
# Elements not listed (noble gases, halogens) form no oxide (state 0).
DEFAULT_OXIDATION_STATES: Dict[str, int] = {
    "H": 1, "Li": 1, "Be": 2, "B": 3, "C": 4, "N": 5, "O": -2,
    "Na": 1, "Mg": 2, "Al": 3, "Si": 4, "P": 5, "S": 6,
    "K": 1, "Ca": 2, "Sc": 3, "Ti": 4, "V": 5, "Cr": 3, "Mn": 2, "Fe": 2,
    "Co": 2, "Ni": 2, "Cu": 2, "Zn": 2, "Ga": 3, "Ge": 4, "As": 5, "Se": 4,
    "Rb": 1, "Sr": 2, "Y": 3, "Zr": 4, "Nb": 5, "Mo": 6, "Tc": 7, "Ru": 4,
    "Rh": 3, "Pd": 2, "Ag": 1, "Cd": 2, "In": 3, "Sn": 4, "Sb": 3, "Te": 4,
    "Cs": 1, "Ba": 2, "La": 3, "Ce": 3, "Pr": 3, "Nd": 3, "Pm": 3, "Sm": 3,
    "Eu": 3, "Gd": 3, "Tb": 3, "Dy": 3, "Ho": 3, "Er": 3, "Tm": 3, "Yb": 3,
    "Lu": 3, "Hf": 4, "Ta": 5, "W": 6, "Re": 7, "Os": 4, "Ir": 4, "Pt": 2,
    "Au": 3, "Hg": 2, "Tl": 1, "Pb": 2, "Bi": 3, "Po": 4,
    "Fr": 1, "Ra": 2, "Ac": 3, "Th": 4, "Pa": 5, "U": 4, "Np": 5, "Pu": 4,
}  # fmt: skip

OXYGEN = element("O")


class Oxidizer:
    """
    Computes oxygen from cation mass fractions assuming simple oxides.

    Each cation with oxidation state v > 0 is assumed present as the oxide
    M(2/g) O(v/g), g = gcd(v, 2). Cations with state 0 contribute no oxygen.

    Parameters
    ----------
    oxidation_states : Dict, optional
        Overrides of the default oxidation states (element -> state)
    """

    def __init__(self, oxidation_states: Optional[Dict[Union[str, int, Element], int]] = None):
        self._states: Dict[Element, int] = {
            element(sym): state for sym, state in DEFAULT_OXIDATION_STATES.items()
        }
        for elm, state in (oxidation_states or {}).items():
            self.set_oxidation_state(elm, state)

    def oxidation_state(self, elm: Union[str, int, Element]) -> int:
        return self._states.get(element(elm), 0)

    def set_oxidation_state(self, elm: Union[str, int, Element], state: int) -> None:
        """
        Override the oxidation state of an element.

        Raises
        ------
        ValueError
            If oxygen is given a state other than -2 or a cation a negative state
        """
        el = element(elm)
        if el == OXYGEN:
            if state != OXYGEN_OXIDATION_STATE:
                raise ValueError("Oxygen's oxidation state is fixed at -2")
        elif state < 0:
            raise ValueError(f"Cation oxidation state must be non-negative: {el.symbol}={state}")
        self._states[el] = int(state)

    def _formula_counts(self, elm: Element):
        """(cation atoms, oxygen atoms) per formula unit of the element's oxide."""
        v = self.oxidation_state(elm)
        o = -OXYGEN_OXIDATION_STATE
        if v <= 0:
            return 1, 0
        g = gcd(v, o)
        return o // g, v // g

    def oxide_formula(self, elm: Union[str, int, Element]) -> str:
        """Oxide formula, e.g. 'Al2O3', 'SiO2', 'Na2O' (the bare symbol for state 0)."""
        el = element(elm)
        n_cation, n_oxygen = self._formula_counts(el)
        if n_oxygen == 0:
            return el.symbol
        cation = el.symbol + (str(n_cation) if n_cation > 1 else "")
        return cation + "O" + (str(n_oxygen) if n_oxygen > 1 else "")

    def oxide(self, elm: Union[str, int, Element]) -> Composition:
        """Composition of the element's oxide."""
        el = element(elm)
        n_cation, n_oxygen = self._formula_counts(el)
        atoms = {el: n_cation}
        if n_oxygen:
            atoms[OXYGEN] = n_oxygen
        return Composition.from_stoichiometry(atoms, name=self.oxide_formula(el))

    def oxygen_ratio(self, elm: Union[str, int, Element]) -> float:
        """Mass of oxygen per unit mass of the cation in its oxide."""
        el = element(elm)
        n_cation, n_oxygen = self._formula_counts(el)
        return (n_oxygen * OXYGEN.atomic_weight) / (n_cation * el.atomic_weight)

    def compute(
        self, composition: Composition, cations: Optional[Iterable[Union[str, int, Element]]] = None
    ) -> Composition:
        """
        Replace oxygen by the stoichiometric oxygen of the cations.

        Parameters
        ----------
        composition : Composition
            Input composition (not modified)
        cations : Iterable, optional
            Elements that contribute oxygen; all non-oxygen elements when None

        Returns
        -------
        Composition
            All non-oxygen elements unchanged plus stoichiometric oxygen
        """
        contributors = None if cations is None else {element(c) for c in cations}
        res = Composition(name=composition.name)
        oxygen: UFloat = ufloat(0.0, 0.0)
        for el, value in composition.items():
            if el == OXYGEN:
                continue
            res.add_element(el, value)
            if contributors is None or el in contributors:
                oxygen = oxygen + self.oxygen_ratio(el) * value
        res.add_element(OXYGEN, oxygen)
        return res

    def to_oxide_fractions(self, composition: Composition) -> Dict[str, UFloat]:
        """
        Express a composition as oxide mass fractions.

        Returns
        -------
        Dict[str, UFloat]
            Oxide formula -> mass fraction, plus an ``"O"`` entry for the
            oxygen not accounted for by the oxides when it exceeds 1e-6
        """
        res: Dict[str, UFloat] = {}
        excess = composition.weight_fraction_u(OXYGEN)
        for el, value in composition.items():
            if el == OXYGEN:
                continue
            oxide = self.oxide(el)
            quantity = value / oxide.weight_fraction(el)
            excess = excess - quantity * oxide.weight_fraction(OXYGEN)
            res[oxide.name] = quantity
        if abs(excess.nominal_value) > OXIDE_RESIDUAL_THRESHOLD:
            res["O"] = excess
        return res
