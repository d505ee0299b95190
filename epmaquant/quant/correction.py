"""
Matrix-correction models and safe per-line evaluation.

The physics of ZAF correction lives outside this package; any object
satisfying ``epmaquant.core.abc.MatrixCorrection`` can be plugged into the
estimator. Two reference models are provided:

1. **UnityCorrection** - no matrix effect (ZAF = 1). Useful when unknown and
   standard are matrix-matched, and for testing.
2. **AlphaFactorCorrection** - Bence-Albee style empirical correction built
   from binary alpha coefficients.

``try_zaf``, ``try_relative_zaf`` and ``try_transmission`` turn a
``CorrectionComputationError`` into ``None`` so callers aggregate only the
lines that succeeded.

References
----------
- Bence & Albee (1968): Empirical correction factors for the electron
  microanalysis of silicates and oxides. J. Geol. 76, 382-403
"""

from typing import Dict, Mapping, Optional, Sequence, Tuple

from uncertainties import ufloat, UFloat

from epmaquant.core.abc import MatrixCorrection
from epmaquant.core.exceptions import CorrectionComputationError
from epmaquant.core.logging_config import get_logger
from epmaquant.quant.composition import Composition
from epmaquant.quant.properties import AcquisitionProperties
from epmaquant.xray.elements import Element, element
from epmaquant.xray.structures import AtomicShell, XRayTransition

logger = get_logger("quant.correction")


def try_zaf(
    correction: MatrixCorrection,
    composition: Composition,
    transition: XRayTransition,
    props: AcquisitionProperties,
) -> Optional[float]:
    """
    ZAF factor for a transition in a material, or None if the model fails.

    Parameters
    ----------
    correction : MatrixCorrection
        Correction model
    composition : Composition
        Material
    transition : XRayTransition
        Measured line
    props : AcquisitionProperties
        Acquisition conditions

    Returns
    -------
    float or None
    """
    try:
        handle = correction.initialize(composition, transition.destination, props)
        return float(correction.zaf_factor(handle, transition))
    except CorrectionComputationError as e:
        logger.warning(f"ZAF computation failed for {transition}: {e}")
        return None


def try_relative_zaf(
    correction: MatrixCorrection,
    standard: Composition,
    unknown: Composition,
    transition: XRayTransition,
    props: AcquisitionProperties,
) -> Optional[Sequence]:
    """(Z, A, F, ZAF) of unknown relative to standard, or None if the model fails."""
    try:
        return correction.relative_zaf(standard, unknown, transition, props)
    except CorrectionComputationError as e:
        logger.warning(f"Relative ZAF computation failed for {transition}: {e}")
        return None


def try_transmission(props: AcquisitionProperties, transition: XRayTransition) -> Optional[float]:
    """Coating transmission for a transition, or None if the coating cannot model it."""
    try:
        return props.transmission(transition)
    except CorrectionComputationError as e:
        logger.warning(f"Coating transmission failed for {transition}: {e}")
        return None


class UnityCorrection:
    """
    Matrix correction with no matrix effect.

    Parameters
    ----------
    model_uncertainty : float
        Fractional uncertainty attached to the combined ZAF in ``relative_zaf``
    """

    def __init__(self, model_uncertainty: float = 0.0):
        if model_uncertainty < 0.0:
            raise ValueError("Model uncertainty must be non-negative")
        self.model_uncertainty = model_uncertainty

    def initialize(
        self, composition: Composition, shell: AtomicShell, props: AcquisitionProperties
    ) -> Tuple[Composition, AtomicShell]:
        return (composition, shell)

    def zaf_factor(self, handle, transition: XRayTransition) -> float:
        return 1.0

    def relative_zaf(
        self,
        standard: Composition,
        unknown: Composition,
        transition: XRayTransition,
        props: AcquisitionProperties,
    ) -> Tuple[float, float, float, UFloat]:
        return (1.0, 1.0, 1.0, ufloat(1.0, self.model_uncertainty, f"ZAF[{transition}]"))


class AlphaFactorCorrection:
    """
    Bence-Albee empirical matrix correction.

    For element i measured in a material with mass fractions C_j, the
    correction relative to the pure element is

        ZAF_i = 1 / sum_j(C_j * alpha_ij)

    with alpha_ii = 1 and alpha_ij = 1 for pairs with no tabulated
    coefficient. Mass fractions are normalized before use. The model does not
    separate atomic-number, absorption and fluorescence effects, so
    ``relative_zaf`` reports 1.0 for Z, A and F.

    Parameters
    ----------
    alphas : Mapping[Tuple[element, element], float]
        Alpha coefficient for (measured element, matrix element) pairs
    model_uncertainty : float
        Fractional uncertainty attached to the combined ZAF in ``relative_zaf``
    supported_shapes : tuple
        Sample-shape descriptors the model accepts (None means bulk)
    """

    def __init__(
        self,
        alphas: Mapping[Tuple, float],
        model_uncertainty: float = 0.0,
        supported_shapes: Tuple = (None,),
    ):
        self.alphas: Dict[Tuple[Element, Element], float] = {}
        for (measured, matrix), alpha in alphas.items():
            if alpha <= 0.0:
                raise ValueError(f"Alpha coefficient must be positive: {measured}/{matrix}")
            self.alphas[(element(measured), element(matrix))] = float(alpha)
        if model_uncertainty < 0.0:
            raise ValueError("Model uncertainty must be non-negative")
        self.model_uncertainty = model_uncertainty
        self.supported_shapes = supported_shapes

    def alpha(self, measured: Element, matrix: Element) -> float:
        if measured == matrix:
            return 1.0
        return self.alphas.get((measured, matrix), 1.0)

    def _zaf(self, composition: Composition, elm: Element) -> float:
        normalized = composition.normalize()
        denom = sum(
            normalized.weight_fraction(other) * self.alpha(elm, other) for other in normalized
        )
        if denom <= 0.0:
            raise CorrectionComputationError(f"Empty matrix for {elm.symbol}")
        return 1.0 / denom

    def initialize(
        self, composition: Composition, shell: AtomicShell, props: AcquisitionProperties
    ) -> Tuple[Composition, AtomicShell]:
        if props.sample_shape not in self.supported_shapes:
            raise CorrectionComputationError(
                f"Sample shape {props.sample_shape!r} not supported by {type(self).__name__}"
            )
        return (composition, shell)

    def zaf_factor(self, handle: Tuple[Composition, AtomicShell], transition: XRayTransition) -> float:
        composition, _ = handle
        return self._zaf(composition, transition.element)

    def relative_zaf(
        self,
        standard: Composition,
        unknown: Composition,
        transition: XRayTransition,
        props: AcquisitionProperties,
    ) -> Tuple[float, float, float, UFloat]:
        self.initialize(unknown, transition.destination, props)
        ratio = self._zaf(unknown, transition.element) / self._zaf(standard, transition.element)
        return (1.0, 1.0, 1.0, ufloat(ratio, ratio * self.model_uncertainty, f"ZAF[{transition}]"))
