"""
Abstract base classes and protocols for extensibility.

ABCs are used for core interfaces (IterationStep) that must be inherited.
Protocols are used for structural typing of external collaborators
(MatrixCorrection, SurfaceCoating) that may implement the interface without
explicit inheritance.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol, Sequence, TYPE_CHECKING, runtime_checkable

if TYPE_CHECKING:
    from epmaquant.quant.composition import Composition
    from epmaquant.quant.kratio import KRatioSet
    from epmaquant.quant.properties import AcquisitionProperties
    from epmaquant.xray.structures import AtomicShell, TransitionSet, XRayTransition


@runtime_checkable
class MatrixCorrection(Protocol):
    """
    Protocol for matrix (ZAF) correction models.

    Implementations raise ``CorrectionComputationError`` when the inputs are
    physically invalid (unsupported sample shape, missing data, ...) rather
    than returning a silent default.
    """

    def initialize(
        self,
        composition: "Composition",
        shell: "AtomicShell",
        props: "AcquisitionProperties",
    ) -> Any:
        """Prepare a computation for one material and ionized shell."""
        ...

    def zaf_factor(self, handle: Any, transition: "XRayTransition") -> float:
        """ZAF correction for a transition of an initialized material."""
        ...

    def relative_zaf(
        self,
        standard: "Composition",
        unknown: "Composition",
        transition: "XRayTransition",
        props: "AcquisitionProperties",
    ) -> Sequence[Any]:
        """
        Unknown-relative-to-standard correction components.

        Returns (Z, A, F, ZAF). Entries may be floats or ufloats carrying
        the correction-model uncertainty.
        """
        ...


@runtime_checkable
class SurfaceCoating(Protocol):
    """Protocol for a conductive surface coating on a specimen."""

    def transmission(self, take_off_angle_deg: float, transition: "XRayTransition") -> float:
        """Fraction of the transition's intensity transmitted through the coating."""
        ...


class IterationStep(ABC):
    """
    Abstract interface for composition iteration algorithms.

    Given the correction factor for each selected TransitionSet (modeled
    k-ratio per unit mass fraction), an IterationStep proposes the next
    composition estimate. Implementations keep a history of the estimates
    they produced since the last call to ``initialize``.
    """

    name: str = "abstract"

    def __init__(self):
        self._desired: Optional["KRatioSet"] = None
        self._history: List["Composition"] = []

    def initialize(self, desired: "KRatioSet", estimate: "Composition") -> None:
        """
        Start a new iteration run.

        Parameters
        ----------
        desired : KRatioSet
            Measured k-ratios the iteration should reproduce
        estimate : Composition
            Initial composition estimate
        """
        self._desired = desired
        self._history = [estimate]

    @property
    def history(self) -> List["Composition"]:
        """Composition estimates visited during the current run."""
        return list(self._history)

    def previous_estimate(self) -> "Composition":
        """Most recent composition estimate."""
        return self._history[-1]

    def step(self, factors: Dict["TransitionSet", float]) -> "Composition":
        """
        Compute the next composition estimate.

        Parameters
        ----------
        factors : Dict[TransitionSet, float]
            Correction factor per TransitionSet for the previous estimate

        Returns
        -------
        Composition
        """
        if self._desired is None:
            raise RuntimeError(f"{type(self).__name__} used before initialize()")
        result = self._perform(factors)
        self._history.append(result)
        return result

    @abstractmethod
    def _perform(self, factors: Dict["TransitionSet", float]) -> "Composition":
        """Algorithm-specific update."""
        pass
