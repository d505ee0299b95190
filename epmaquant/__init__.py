"""
epmaquant: Composition from k-ratios for electron-probe X-ray microanalysis

Converts measured characteristic X-ray intensity ratios (k-ratios, measured
relative to reference standards) into elemental mass-fraction estimates by
self-consistent iteration over a pluggable matrix-correction model.
"""

__version__ = "0.1.0"
__author__ = "TheFermiSea"

# Core imports for convenience
from epmaquant.core import constants
from epmaquant.xray.elements import element

__all__ = [
    "constants",
    "element",
]
