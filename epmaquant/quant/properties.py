"""
Acquisition conditions for a measured spectrum and optional surface coatings.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from epmaquant.core.abc import SurfaceCoating
from epmaquant.core.constants import DEG_TO_RAD, NM_TO_CM
from epmaquant.core.exceptions import CorrectionComputationError
from epmaquant.xray.structures import XRayTransition


@dataclass
class AcquisitionProperties:
    """
    Conditions under which a spectrum was acquired.

    Attributes
    ----------
    beam_energy_kev : float
        Incident beam energy in keV
    take_off_angle_deg : float
        Detector take-off angle in degrees
    coating : SurfaceCoating, optional
        Conductive coating on the specimen surface
    sample_shape : Any, optional
        Sample-shape descriptor understood by the matrix-correction model
    extra : dict
        Other properties passed through to the correction model
    """

    beam_energy_kev: float
    take_off_angle_deg: float
    coating: Optional[SurfaceCoating] = None
    sample_shape: Optional[Any] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Validate acquisition properties.

        Raises
        ------
        ValueError
            If the beam energy or take-off angle is out of range
        """
        if self.beam_energy_kev <= 0.0:
            raise ValueError(f"Beam energy must be positive: {self.beam_energy_kev}")
        if not 0.0 < self.take_off_angle_deg <= 90.0:
            raise ValueError(f"Take-off angle must be in (0, 90] degrees: {self.take_off_angle_deg}")

    def transmission(self, transition: XRayTransition) -> float:
        """Coating transmission for a transition (1.0 when uncoated)."""
        if self.coating is None:
            return 1.0
        return float(self.coating.transmission(self.take_off_angle_deg, transition))


class ConductiveCoating:
    """
    A thin conductive coating (carbon, gold, ...) on the specimen surface.

    Transmission follows Beer-Lambert absorption along the path to the
    detector: T = exp(-(mu/rho) * rho * t / sin(take-off angle)).

    Parameters
    ----------
    thickness_nm : float
        Coating thickness in nm
    density_g_cm3 : float
        Coating density in g/cm^3
    mass_absorption : Dict[XRayTransition, float]
        Mass absorption coefficient of the coating material for each
        transition, in cm^2/g
    name : str
        Coating description
    """

    def __init__(
        self,
        thickness_nm: float,
        density_g_cm3: float,
        mass_absorption: Dict[XRayTransition, float],
        name: str = "coating",
    ):
        if thickness_nm < 0.0:
            raise ValueError("Coating thickness must be non-negative")
        if density_g_cm3 <= 0.0:
            raise ValueError("Coating density must be positive")
        self.thickness_nm = thickness_nm
        self.density_g_cm3 = density_g_cm3
        self.mass_absorption = dict(mass_absorption)
        self.name = name

    def transmission(self, take_off_angle_deg: float, transition: XRayTransition) -> float:
        """
        Transmitted fraction for a transition.

        Raises
        ------
        CorrectionComputationError
            If no mass absorption coefficient is known for the transition
        """
        if transition not in self.mass_absorption:
            raise CorrectionComputationError(
                f"No mass absorption coefficient in {self.name} for {transition}"
            )
        mac = self.mass_absorption[transition]
        mass_thickness = self.density_g_cm3 * self.thickness_nm * NM_TO_CM
        path = mass_thickness / np.sin(take_off_angle_deg * DEG_TO_RAD)
        return float(np.exp(-mac * path))

    def __repr__(self) -> str:
        return f"ConductiveCoating({self.name}, {self.thickness_nm} nm)"
