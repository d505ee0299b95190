"""
Rules for elements whose mass fraction is computed rather than measured.

Each rule maps a Composition to a new Composition and never modifies its
input. Elements a rule reads but that are absent from the composition are
treated as zero.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional, Tuple

from uncertainties import ufloat, UFloat

from epmaquant.quant.composition import Composition
from epmaquant.quant.oxidizer import Oxidizer
from epmaquant.quant.uncertain import Number, as_ufloat, reduced
from epmaquant.xray.elements import Element, element

OXYGEN = element("O")
HYDROGEN = element("H")


def _elements(values: Iterable) -> Tuple[Element, ...]:
    return tuple(sorted({element(v) for v in values}))


class UnmeasuredElementRule(ABC):
    """
    Base class for unmeasured-element rules.

    Subclasses define ``element`` (the element the rule assigns, or
    ``NO_ELEMENT`` for rules that own no specific element) and ``apply``.
    The base class gives ``element`` no value so dataclass subclasses can
    declare it as a required field.
    """

    element: Element

    @abstractmethod
    def apply(self, composition: Composition) -> Composition:
        """
        Compute the rule's element(s) from the other elements.

        Parameters
        ----------
        composition : Composition
            Current estimate (not modified)

        Returns
        -------
        Composition
        """
        pass

    def uses_oxidizer(self) -> bool:
        """Whether the rule delegates to an Oxidizer."""
        return False

    def __call__(self, composition: Composition) -> Composition:
        return self.apply(composition)


@dataclass(frozen=True)
class ByDifference(UnmeasuredElementRule):
    """Assign ``element`` the balance 1 - sum(other mass fractions), when positive."""

    element: Element

    def __post_init__(self):
        object.__setattr__(self, "element", element(self.element))

    def apply(self, composition: Composition) -> Composition:
        res = composition.copy()
        res.remove_element(self.element)
        remainder = 1.0 - res.sum_weight_fraction_u()
        if remainder.nominal_value > 0.0:
            res.add_element(self.element, remainder)
        return res

    def __str__(self) -> str:
        return f"{self.element.symbol} by difference"


@dataclass(frozen=True)
class ByFiat(UnmeasuredElementRule):
    """
    Assign ``element`` a fixed mass fraction.

    The value is taken at face value; it is not checked against the other
    elements.
    """

    element: Element
    value: Number

    def __post_init__(self):
        el = element(self.element)
        object.__setattr__(self, "element", el)
        value = self.value
        if not isinstance(value, UFloat):
            value = ufloat(float(value), 0.0, f"fiat[{el.symbol}]")
        if value.nominal_value < 0.0:
            raise ValueError(f"Mass fraction by fiat must be non-negative: {el.symbol}")
        object.__setattr__(self, "value", as_ufloat(value))

    def apply(self, composition: Composition) -> Composition:
        res = composition.copy()
        res.add_element(self.element, self.value)
        return res

    def __str__(self) -> str:
        return f"{self.element.symbol} by fiat = {self.value.nominal_value:.4g}"


@dataclass(frozen=True)
class OxygenByStoichiometry(UnmeasuredElementRule):
    """
    Oxygen from the oxidation states of the listed cations.

    Without an Oxidizer the rule is the identity.
    """

    cations: Tuple[Element, ...]
    oxidizer: Optional[Oxidizer] = field(default=None, compare=False)
    element: Element = field(default=OXYGEN, init=False)

    def __post_init__(self):
        object.__setattr__(self, "cations", _elements(self.cations))

    def uses_oxidizer(self) -> bool:
        return True

    def with_oxidizer(self, oxidizer: Oxidizer) -> "OxygenByStoichiometry":
        return replace(self, oxidizer=oxidizer)

    def apply(self, composition: Composition) -> Composition:
        if self.oxidizer is None:
            return composition.copy()
        return self.oxidizer.compute(composition, self.cations)

    def __str__(self) -> str:
        cations = ", ".join(el.symbol for el in self.cations)
        return f"O by stoichiometry with {cations}"


@dataclass(frozen=True)
class WatersOfCrystallization(UnmeasuredElementRule):
    """
    Hydrogen from the oxygen in excess of cation stoichiometry.

    The excess oxygen over what the listed cations account for is assumed to
    be bound as H2O; the corresponding hydrogen is added while the measured
    oxygen is kept.
    """

    cations: Tuple[Element, ...]
    oxidizer: Optional[Oxidizer] = field(default=None, compare=False)
    element: Element = field(default=HYDROGEN, init=False)

    def __post_init__(self):
        object.__setattr__(self, "cations", _elements(self.cations))

    def uses_oxidizer(self) -> bool:
        return True

    def with_oxidizer(self, oxidizer: Oxidizer) -> "WatersOfCrystallization":
        return replace(self, oxidizer=oxidizer)

    def apply(self, composition: Composition) -> Composition:
        res = composition.copy()
        res.remove_element(HYDROGEN)
        if self.oxidizer is None:
            return res
        stoich = self.oxidizer.compute(res, self.cations)
        excess = reduced(res.weight_fraction_u(OXYGEN), "M[O]") - reduced(
            stoich.weight_fraction_u(OXYGEN), "S[O]"
        )
        if excess.nominal_value > 0.0:
            res.add_element(HYDROGEN, (2.0 * HYDROGEN.atomic_weight / OXYGEN.atomic_weight) * excess)
        return res

    def __str__(self) -> str:
        cations = ", ".join(el.symbol for el in self.cations)
        return f"H as waters of crystallization with {cations}"


RULE_TYPES = ("by_difference", "by_fiat", "oxygen_by_stoichiometry", "waters_of_crystallization")


def rule_from_config(spec: Mapping[str, Any]) -> UnmeasuredElementRule:
    """
    Build a rule from a configuration entry.

    Examples
    --------
    ``{"type": "by_difference", "element": "Fe"}``,
    ``{"type": "by_fiat", "element": "C", "value": 0.02, "uncertainty": 0.005}``,
    ``{"type": "oxygen_by_stoichiometry", "cations": ["Si", "Al", "Mg"]}``

    Raises
    ------
    ValueError
        If the type is unknown or a required key is missing
    """
    kind = spec.get("type")
    try:
        if kind == "by_difference":
            return ByDifference(spec["element"])
        if kind == "by_fiat":
            el = element(spec["element"])
            value = ufloat(
                float(spec["value"]), float(spec.get("uncertainty", 0.0)), f"fiat[{el.symbol}]"
            )
            return ByFiat(el, value)
        if kind == "oxygen_by_stoichiometry":
            return OxygenByStoichiometry(spec["cations"])
        if kind == "waters_of_crystallization":
            return WatersOfCrystallization(spec["cations"])
    except KeyError as e:
        raise ValueError(f"Rule '{kind}' requires key {e}") from None
    raise ValueError(f"Unknown rule type: {kind}. Must be one of: {list(RULE_TYPES)}")
