"""
X-ray reference data: elements, characteristic transitions and line tables.
"""

from epmaquant.xray.elements import Element, NO_ELEMENT, element, all_elements
from epmaquant.xray.structures import AtomicShell, XRayTransition, TransitionSet, FAMILIES
from epmaquant.xray.database import XRayLineDatabase

__all__ = [
    "Element",
    "NO_ELEMENT",
    "element",
    "all_elements",
    "AtomicShell",
    "XRayTransition",
    "TransitionSet",
    "FAMILIES",
    "XRayLineDatabase",
]
