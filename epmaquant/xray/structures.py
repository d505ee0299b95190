"""
Data structures for characteristic X-ray lines.
"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Tuple

from epmaquant.xray.elements import Element, NO_ELEMENT

# Characteristic line families in order of decreasing energy
FAMILIES = ("K", "L", "M", "N")


@dataclass(frozen=True, order=True)
class AtomicShell:
    """
    An atomic shell of a specific element (e.g., Fe K, Au LIII).

    Attributes
    ----------
    element : Element
        Element owning the shell
    name : str
        Shell name ('K', 'LI', 'LII', 'LIII', 'MV', ...)
    """

    element: Element
    name: str

    @property
    def family(self) -> str:
        """Shell family ('K', 'L', 'M' or 'N')."""
        return self.name[0]

    def __str__(self) -> str:
        return f"{self.element.symbol} {self.name}"


@dataclass(frozen=True, order=True)
class XRayTransition:
    """
    Represents a characteristic X-ray transition.

    Attributes
    ----------
    element : Element
        Emitting element
    family : str
        Line family ('K', 'L', 'M' or 'N')
    shell : str
        Destination (ionized) shell name, e.g. 'K' for Ka1, 'LIII' for La1
    name : str
        Siegbahn line name (e.g., 'Ka1', 'Lb1')
    energy_kev : float
        Line energy in keV
    weight : float
        Line weight normalized within its family (weighiest line = 1.0)
    """

    element: Element
    family: str
    shell: str
    name: str
    energy_kev: float = field(compare=False)
    weight: float = field(compare=False)

    def __post_init__(self):
        if self.family not in FAMILIES:
            raise ValueError(f"Unknown line family: {self.family!r}")
        if self.energy_kev <= 0.0:
            raise ValueError(f"Line energy must be positive: {self.energy_kev}")
        if self.weight < 0.0:
            raise ValueError(f"Line weight must be non-negative: {self.weight}")

    @property
    def destination(self) -> AtomicShell:
        """The shell whose vacancy this transition fills."""
        return AtomicShell(self.element, self.shell)

    def __str__(self) -> str:
        return f"{self.element.symbol} {self.name}"


@dataclass(frozen=True, order=True)
class TransitionSet:
    """
    One or more characteristic lines of a single element measured as a unit.

    The transitions are stored sorted, so equality, hashing and ordering are
    deterministic and independent of construction order.

    Attributes
    ----------
    transitions : Tuple[XRayTransition, ...]
        The member transitions
    """

    transitions: Tuple[XRayTransition, ...]

    def __init__(self, transitions: Iterable[XRayTransition]):
        if isinstance(transitions, XRayTransition):
            transitions = (transitions,)
        members = tuple(sorted(set(transitions)))
        if not members:
            raise ValueError("A TransitionSet requires at least one transition")
        elements = {xrt.element for xrt in members}
        if len(elements) > 1:
            symbols = ", ".join(sorted(el.symbol for el in elements))
            raise ValueError(f"A TransitionSet must belong to one element, got: {symbols}")
        object.__setattr__(self, "transitions", members)

    @property
    def element(self) -> Element:
        return self.transitions[0].element if self.transitions else NO_ELEMENT

    @property
    def weighiest(self) -> XRayTransition:
        """The member transition with the largest weight."""
        return max(self.transitions, key=lambda xrt: xrt.weight)

    @property
    def family(self) -> str:
        return self.weighiest.family

    @property
    def energy_kev(self) -> float:
        """Energy of the weighiest transition."""
        return self.weighiest.energy_kev

    @property
    def sum_weight(self) -> float:
        return sum(xrt.weight for xrt in self.transitions)

    def __iter__(self) -> Iterator[XRayTransition]:
        return iter(self.transitions)

    def __len__(self) -> int:
        return len(self.transitions)

    def __contains__(self, xrt: object) -> bool:
        return xrt in self.transitions

    def __str__(self) -> str:
        if len(self.transitions) == 1:
            return str(self.transitions[0])
        return f"{self.weighiest} + {len(self.transitions) - 1} others"

    def __repr__(self) -> str:
        return f"TransitionSet({self})"
