"""
Chemical elements.

Elements are immutable and interned: ``element("Fe") is element(26)``.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple, Union


@dataclass(frozen=True, order=True)
class Element:
    """
    An atomic species.

    Attributes
    ----------
    atomic_number : int
        Atomic number Z (0 for the NO_ELEMENT sentinel)
    symbol : str
        Chemical symbol (e.g., 'Fe')
    name : str
        Element name
    atomic_weight : float
        Standard atomic weight in g/mol
    """

    atomic_number: int
    symbol: str = field(compare=False)
    name: str = field(compare=False)
    atomic_weight: float = field(compare=False, repr=False)

    def __str__(self) -> str:
        return self.symbol


# (symbol, name, standard atomic weight) indexed by Z - 1
_ELEMENT_DATA: Tuple[Tuple[str, str, float], ...] = (
    ("H", "Hydrogen", 1.008),
    ("He", "Helium", 4.0026),
    ("Li", "Lithium", 6.94),
    ("Be", "Beryllium", 9.0122),
    ("B", "Boron", 10.81),
    ("C", "Carbon", 12.011),
    ("N", "Nitrogen", 14.007),
    ("O", "Oxygen", 15.999),
    ("F", "Fluorine", 18.998),
    ("Ne", "Neon", 20.180),
    ("Na", "Sodium", 22.990),
    ("Mg", "Magnesium", 24.305),
    ("Al", "Aluminum", 26.982),
    ("Si", "Silicon", 28.085),
    ("P", "Phosphorus", 30.974),
    ("S", "Sulfur", 32.06),
    ("Cl", "Chlorine", 35.45),
    ("Ar", "Argon", 39.948),
    ("K", "Potassium", 39.098),
    ("Ca", "Calcium", 40.078),
    ("Sc", "Scandium", 44.956),
    ("Ti", "Titanium", 47.867),
    ("V", "Vanadium", 50.942),
    ("Cr", "Chromium", 51.996),
    ("Mn", "Manganese", 54.938),
    ("Fe", "Iron", 55.845),
    ("Co", "Cobalt", 58.933),
    ("Ni", "Nickel", 58.693),
    ("Cu", "Copper", 63.546),
    ("Zn", "Zinc", 65.38),
    ("Ga", "Gallium", 69.723),
    ("Ge", "Germanium", 72.630),
    ("As", "Arsenic", 74.922),
    ("Se", "Selenium", 78.971),
    ("Br", "Bromine", 79.904),
    ("Kr", "Krypton", 83.798),
    ("Rb", "Rubidium", 85.468),
    ("Sr", "Strontium", 87.62),
    ("Y", "Yttrium", 88.906),
    ("Zr", "Zirconium", 91.224),
    ("Nb", "Niobium", 92.906),
    ("Mo", "Molybdenum", 95.95),
    ("Tc", "Technetium", 98.0),
    ("Ru", "Ruthenium", 101.07),
    ("Rh", "Rhodium", 102.91),
    ("Pd", "Palladium", 106.42),
    ("Ag", "Silver", 107.87),
    ("Cd", "Cadmium", 112.41),
    ("In", "Indium", 114.82),
    ("Sn", "Tin", 118.71),
    ("Sb", "Antimony", 121.76),
    ("Te", "Tellurium", 127.60),
    ("I", "Iodine", 126.90),
    ("Xe", "Xenon", 131.29),
    ("Cs", "Cesium", 132.91),
    ("Ba", "Barium", 137.33),
    ("La", "Lanthanum", 138.91),
    ("Ce", "Cerium", 140.12),
    ("Pr", "Praseodymium", 140.91),
    ("Nd", "Neodymium", 144.24),
    ("Pm", "Promethium", 145.0),
    ("Sm", "Samarium", 150.36),
    ("Eu", "Europium", 151.96),
    ("Gd", "Gadolinium", 157.25),
    ("Tb", "Terbium", 158.93),
    ("Dy", "Dysprosium", 162.50),
    ("Ho", "Holmium", 164.93),
    ("Er", "Erbium", 167.26),
    ("Tm", "Thulium", 168.93),
    ("Yb", "Ytterbium", 173.05),
    ("Lu", "Lutetium", 174.97),
    ("Hf", "Hafnium", 178.49),
    ("Ta", "Tantalum", 180.95),
    ("W", "Tungsten", 183.84),
    ("Re", "Rhenium", 186.21),
    ("Os", "Osmium", 190.23),
    ("Ir", "Iridium", 192.22),
    ("Pt", "Platinum", 195.08),
    ("Au", "Gold", 196.97),
    ("Hg", "Mercury", 200.59),
    ("Tl", "Thallium", 204.38),
    ("Pb", "Lead", 207.2),
    ("Bi", "Bismuth", 208.98),
    ("Po", "Polonium", 209.0),
    ("At", "Astatine", 210.0),
    ("Rn", "Radon", 222.0),
    ("Fr", "Francium", 223.0),
    ("Ra", "Radium", 226.0),
    ("Ac", "Actinium", 227.0),
    ("Th", "Thorium", 232.04),
    ("Pa", "Protactinium", 231.04),
    ("U", "Uranium", 238.03),
    ("Np", "Neptunium", 237.0),
    ("Pu", "Plutonium", 244.0),
)

NO_ELEMENT = Element(0, "None", "None", 0.0)

_BY_NUMBER: Dict[int, Element] = {
    z: Element(z, symbol, name, weight)
    for z, (symbol, name, weight) in enumerate(_ELEMENT_DATA, start=1)
}
_BY_SYMBOL: Dict[str, Element] = {el.symbol.lower(): el for el in _BY_NUMBER.values()}


def element(key: Union[str, int, Element]) -> Element:
    """
    Look up an interned Element.

    Parameters
    ----------
    key : str, int or Element
        Chemical symbol (case-insensitive), atomic number, or an Element

    Returns
    -------
    Element

    Raises
    ------
    ValueError
        If the key does not identify a known element
    """
    if isinstance(key, Element):
        return key
    if isinstance(key, int):
        try:
            return _BY_NUMBER[key]
        except KeyError:
            raise ValueError(f"Unknown atomic number: {key}") from None
    try:
        return _BY_SYMBOL[str(key).strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown element symbol: {key!r}") from None


def all_elements() -> List[Element]:
    """All known elements in atomic-number order."""
    return [_BY_NUMBER[z] for z in sorted(_BY_NUMBER)]
