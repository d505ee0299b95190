"""
Choosing one TransitionSet per element when redundant k-ratios were measured.

Both passes are pure functions of their inputs. Ties are broken by the
natural ordering of TransitionSet.

1. **Initial selection** - before any composition is known, favour lines
   with high signal-to-noise and high energy (less sensitive to absorption
   correction error): score = S/N * E^2.
2. **Optimized selection** - with a converged composition, compare one
   candidate per line family on the total uncertainty of the resulting
   mass fraction.
"""

from typing import Callable, Collection, Dict, Mapping, Optional

from uncertainties import UFloat

from epmaquant.core.constants import SNR_FRACTION_OF_BEST, SNR_USABILITY_FLOOR
from epmaquant.core.logging_config import get_logger
from epmaquant.quant.composition import Composition
from epmaquant.quant.kratio import KRatioSet
from epmaquant.quant.properties import AcquisitionProperties
from epmaquant.quant.standards import StandardRegistry
from epmaquant.quant.uncertain import fractional_uncertainty, fractional_uncertainty_u, signal_to_noise
from epmaquant.xray.elements import Element
from epmaquant.xray.structures import TransitionSet

logger = get_logger("quant.selection")

MassFractionFn = Callable[[TransitionSet, Composition, AcquisitionProperties], UFloat]


def score(measured: KRatioSet, xrts: TransitionSet) -> float:
    """
    Initial-selection score of a candidate: S/N * E^2 (E in keV).

    For Fe, I(Ka) ~ 10 I(Kb) and E(Ka)/E(Kb) = 6.4/7.1, so Ka scores about
    8 times higher than Kb at equal counting time.
    """
    return signal_to_noise(measured.kratio_u(xrts)) * xrts.energy_kev**2


def _pinned(
    elm: Element,
    measured: KRatioSet,
    standards: StandardRegistry,
    user_selected: Mapping[Element, TransitionSet],
) -> Optional[TransitionSet]:
    xrts = user_selected.get(elm)
    if xrts is None:
        return None
    if xrts not in measured or xrts not in standards:
        logger.warning(f"Ignoring user-selected {xrts}: not measured or no standard")
        return None
    return xrts


def select_initial_kratios(
    measured: KRatioSet,
    standards: StandardRegistry,
    user_selected: Optional[Mapping[Element, TransitionSet]] = None,
    unmeasured: Collection[Element] = (),
) -> KRatioSet:
    """
    Pick the best-scoring TransitionSet for each measured element.

    Parameters
    ----------
    measured : KRatioSet
        Detected (non-zero) k-ratios
    standards : StandardRegistry
        Only candidates with a registered standard are considered
    user_selected : Mapping[Element, TransitionSet], optional
        Pinned choices, used as-is when measured and standardized
    unmeasured : Collection[Element]
        Elements assigned by an unmeasured-element rule (skipped)

    Returns
    -------
    KRatioSet
        At most one k-ratio per element
    """
    user_selected = user_selected or {}
    res = KRatioSet()
    for elm in measured.elements():
        if elm in unmeasured:
            continue
        best = _pinned(elm, measured, standards, user_selected)
        if best is None:
            best_score = 0.0
            for xrts in measured.transitions(elm):
                if xrts not in standards:
                    continue
                this_score = score(measured, xrts)
                if best is None or this_score > best_score:
                    best, best_score = xrts, this_score
        if best is not None:
            res.add_kratio(best, measured.kratio_u(best))
    return res


def best_per_family(candidates) -> Dict[str, TransitionSet]:
    """The candidate with the largest summed line weight in each family."""
    res: Dict[str, TransitionSet] = {}
    for xrts in sorted(candidates):
        current = res.get(xrts.family)
        if current is None or xrts.sum_weight > current.sum_weight:
            res[xrts.family] = xrts
    return res


def pick_optimized(
    measured: KRatioSet,
    estimate: Composition,
    props: AcquisitionProperties,
    mass_fraction_u: MassFractionFn,
    standards: StandardRegistry,
    user_selected: Optional[Mapping[Element, TransitionSet]] = None,
    unmeasured: Collection[Element] = (),
) -> KRatioSet:
    """
    Re-select TransitionSets using the uncertainty of the resulting mass fraction.

    Per element, the strongest candidate of each line family is ranked by
    signal-to-noise. The top-ranked candidate is kept unless a lower-ranked
    one has signal-to-noise within 10% of the best, above Curry's usability
    floor (10), and a mass fraction with strictly smaller fractional
    uncertainty.

    Parameters
    ----------
    measured : KRatioSet
        Detected (non-zero) k-ratios
    estimate : Composition
        Converged composition from the initial selection
    props : AcquisitionProperties
        Unknown's acquisition conditions
    mass_fraction_u : callable
        (xrts, composition, props) -> mass fraction per unit k-ratio with
        correction-model uncertainty
    standards : StandardRegistry
        Only candidates with a registered standard are considered
    user_selected : Mapping[Element, TransitionSet], optional
        Pinned choices
    unmeasured : Collection[Element]
        Elements assigned by an unmeasured-element rule (skipped)

    Returns
    -------
    KRatioSet
    """
    user_selected = user_selected or {}
    res = KRatioSet()
    for elm in measured.elements():
        if elm in unmeasured:
            continue
        best = _pinned(elm, measured, standards, user_selected)
        if best is None:
            candidates = [xrts for xrts in measured.transitions(elm) if xrts in standards]
            if not candidates:
                continue
            ranked = sorted(
                best_per_family(candidates).values(),
                key=lambda xrts: (-signal_to_noise(measured.kratio_u(xrts)), xrts),
            )
            best_snr, best_c = 0.0, None
            for xrts in ranked:
                k = measured.kratio_u(xrts)
                snr = signal_to_noise(k)
                c = mass_fraction_u(xrts, estimate, props) * fractional_uncertainty_u(k)
                if best is None:
                    best, best_snr, best_c = xrts, snr, c
                elif (
                    snr >= (1.0 - SNR_FRACTION_OF_BEST) * best_snr
                    and snr > SNR_USABILITY_FLOOR
                    and fractional_uncertainty(c) < fractional_uncertainty(best_c)
                ):
                    logger.debug(f"{xrts} replaces {best} for {elm.symbol}")
                    best, best_c = xrts, c
        res.add_kratio(best, measured.kratio_u(best))
    return res
