"""
Registry of reference standards, one per TransitionSet.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

from epmaquant.core.abc import MatrixCorrection
from epmaquant.core.constants import BEAM_ENERGY_TOLERANCE_KEV, TAKE_OFF_ANGLE_TOLERANCE_DEG
from epmaquant.core.exceptions import GeometryMismatchError
from epmaquant.core.logging_config import get_logger
from epmaquant.quant.composition import Composition
from epmaquant.quant.correction import try_transmission, try_zaf
from epmaquant.quant.properties import AcquisitionProperties
from epmaquant.xray.structures import TransitionSet, XRayTransition

logger = get_logger("quant.standards")


@dataclass
class StandardEntry:
    """
    A reference standard for one TransitionSet.

    Attributes
    ----------
    composition : Composition
        Known composition of the standard
    properties : AcquisitionProperties
        Conditions under which the standard was measured
    validate : bool
        Whether the unknown's geometry must match the standard's
    k_std_cache : Dict[XRayTransition, float]
        Memoized ZAF[std] * C[std] * transmission[std] per line
    """

    composition: Composition
    properties: AcquisitionProperties
    validate: bool = True
    k_std_cache: Dict[XRayTransition, float] = field(default_factory=dict, repr=False)

    def check_geometry(self, unknown: AcquisitionProperties) -> None:
        """
        Verify the unknown was acquired under the standard's conditions.

        Does nothing for entries registered with ``validate=False``.

        Raises
        ------
        GeometryMismatchError
            If beam energy or take-off angle differ beyond tolerance
        """
        if not self.validate:
            return
        std = self.properties
        if abs(std.beam_energy_kev - unknown.beam_energy_kev) > BEAM_ENERGY_TOLERANCE_KEV:
            raise GeometryMismatchError(
                f"The beam energy for the standard ({std.beam_energy_kev} keV) and "
                f"unknown ({unknown.beam_energy_kev} keV) must match."
            )
        if abs(std.take_off_angle_deg - unknown.take_off_angle_deg) > TAKE_OFF_ANGLE_TOLERANCE_DEG:
            raise GeometryMismatchError(
                f"The take-off angle for the standard ({std.take_off_angle_deg}°) and "
                f"unknown ({unknown.take_off_angle_deg}°) must match to within a degree."
            )

    def k_std(self, transition: XRayTransition, correction: MatrixCorrection) -> float:
        """
        Modeled standard intensity factor ZAF[std] * C[std] * transmission[std].

        Falls back to C[std] when the correction model cannot handle the
        standard. 0.0, which excludes the line, when the standard's coating
        cannot be modeled for it. Values are memoized per line for the
        lifetime of the entry.
        """
        cached = self.k_std_cache.get(transition)
        if cached is not None:
            return cached
        c_std = self.composition.weight_fraction(transition.element)
        transmission = try_transmission(self.properties, transition)
        zaf = try_zaf(correction, self.composition, transition, self.properties)
        if transmission is None:
            value = 0.0
        elif zaf is None:
            value = c_std
        else:
            value = zaf * c_std * transmission
        self.k_std_cache[transition] = value
        return value


class StandardRegistry:
    """
    At most one StandardEntry per TransitionSet.

    Entries are added or replaced explicitly, never merged.
    """

    def __init__(self):
        self._entries: Dict[TransitionSet, StandardEntry] = {}

    def add(
        self,
        xrts: TransitionSet,
        composition: Composition,
        properties: AcquisitionProperties,
        validate: bool = True,
    ) -> StandardEntry:
        """
        Register (or replace) the standard for a TransitionSet.

        Raises
        ------
        ValueError
            If the standard does not contain the measured element
        """
        if composition.weight_fraction(xrts.element) <= 0.0:
            raise ValueError(f"Standard {composition.name or ''} contains no {xrts.element.symbol}")
        if xrts in self._entries:
            logger.info(f"Replacing standard for {xrts}")
        entry = StandardEntry(composition.copy(), properties, validate)
        self._entries[xrts] = entry
        return entry

    def get(self, xrts: TransitionSet) -> Optional[StandardEntry]:
        return self._entries.get(xrts)

    def __getitem__(self, xrts: TransitionSet) -> StandardEntry:
        try:
            return self._entries[xrts]
        except KeyError:
            raise KeyError(f"No standard registered for {xrts}") from None

    def remove(self, xrts: TransitionSet) -> None:
        self._entries.pop(xrts, None)

    def __contains__(self, xrts: object) -> bool:
        return xrts in self._entries

    def __iter__(self) -> Iterator[TransitionSet]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
