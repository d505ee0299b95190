"""
Composition from k-ratios by self-consistent iteration.

The matrix correction relating a measured k-ratio to a mass fraction depends
on the composition being determined, so the composition is found as the fixed
point of

    k_measured = C * f(C),   f = ZAF[unk] * T[unk] / (C[std] * ZAF[std] * T[std])

Algorithm:
1. Split the measured k-ratios into detected (k > 0) and absent (k <= 0)
2. Pick one TransitionSet per element (S/N * E^2 score)
3. First guess C = C[std] * k, apply unmeasured-element rules, normalize
4. Iterate with the IterationStep, tracking the best (lowest mismatch)
   estimate, until the mismatch is below epsilon or below 10% of its own
   uncertainty, or the iteration cap is reached
5. Re-select TransitionSets with the converged composition and iterate again
   only if the selection changed
6. Assemble the final composition with the full uncertainty budget and add
   the elements measured as absent
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from uncertainties import ufloat, UFloat

from epmaquant.core.abc import IterationStep, MatrixCorrection
from epmaquant.core.config import load_config, validate_estimator_config
from epmaquant.core.constants import (
    DEFAULT_EPSILON,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MIN_WEIGHT,
    ITERATIONS_PER_ELEMENT,
    UNCERTAINTY_CONVERGENCE_FRACTION,
)
from epmaquant.core.exceptions import ConfigurationError
from epmaquant.core.logging_config import get_logger
from epmaquant.quant.composition import Composition
from epmaquant.quant.correction import try_relative_zaf, try_transmission, try_zaf
from epmaquant.quant.iteration import DEFAULT_ITERATION, IterationStepFactory
from epmaquant.quant.kratio import KRatioSet
from epmaquant.quant.oxidizer import Oxidizer
from epmaquant.quant.properties import AcquisitionProperties
from epmaquant.quant.result import ConvergenceWarning, IterationContext, QuantificationResult
from epmaquant.quant.rules import UnmeasuredElementRule, rule_from_config
from epmaquant.quant.selection import pick_optimized, select_initial_kratios
from epmaquant.quant.standards import StandardEntry, StandardRegistry
from epmaquant.quant.uncertain import as_ufloat, fractional_uncertainty_u
from epmaquant.xray.elements import Element, NO_ELEMENT, element
from epmaquant.xray.structures import TransitionSet

logger = get_logger("quant.estimator")


class CompositionEstimator:
    """
    Estimates the composition of an unknown from measured k-ratios.

    Standards and unmeasured-element rules are registered before calling
    ``compute``. The estimator holds configuration only; all per-call state
    is returned in the QuantificationResult. An instance (and its standard
    registry, whose correction cache it owns) must not be shared between
    threads without external locking.

    Parameters
    ----------
    correction : MatrixCorrection
        Matrix-correction model
    iteration_step : IterationStep, optional
        Fixed-point update (Wegstein iteration by default)
    epsilon : float
        Convergence criterion on the k-ratio mismatch, in [0, 1)
    max_iterations : int
        Minimum iteration cap; the cap is max(4 * element count, max_iterations)
    min_weight : float
        Lines weaker than this fraction of the TransitionSet's strongest line
        are excluded from correction averages, in [0, 1)
    oxidizer : Oxidizer, optional
        Given to stoichiometry rules registered without their own oxidizer
    """

    def __init__(
        self,
        correction: MatrixCorrection,
        iteration_step: Optional[IterationStep] = None,
        epsilon: float = DEFAULT_EPSILON,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        min_weight: float = DEFAULT_MIN_WEIGHT,
        oxidizer: Optional[Oxidizer] = None,
    ):
        self.correction = correction
        self.iteration_step = iteration_step or IterationStepFactory.create(DEFAULT_ITERATION)
        self.epsilon = epsilon
        self.max_iterations = max_iterations
        self.min_weight = min_weight
        self.oxidizer = oxidizer
        self.standards = StandardRegistry()
        self._rules: List[UnmeasuredElementRule] = []
        self._user_selected: Dict[Element, TransitionSet] = {}

    @classmethod
    def from_config(
        cls, config: Union[str, Path, Mapping[str, Any]], correction: MatrixCorrection
    ) -> "CompositionEstimator":
        """
        Build an estimator from a configuration file or dictionary.

        Recognized keys of the ``estimator`` section: ``epsilon``,
        ``max_iterations``, ``min_weight``, ``iteration`` (step name),
        ``diagnostic`` (wrap the step in a DiagnosticIteration),
        ``oxidation_states`` (element -> state overrides) and ``rules``
        (list of unmeasured-element rule definitions).

        Parameters
        ----------
        config : str, Path or dict
            Configuration file path or parsed configuration
        correction : MatrixCorrection
            Matrix-correction model

        Returns
        -------
        CompositionEstimator

        Raises
        ------
        ValueError
            If the configuration is invalid
        """
        if isinstance(config, (str, Path)):
            config = load_config(config)
        validate_estimator_config(config)
        est_config = config["estimator"] or {}

        step = IterationStepFactory.create(
            est_config.get("iteration", DEFAULT_ITERATION),
            diagnostic=bool(est_config.get("diagnostic", False)),
        )
        estimator = cls(
            correction,
            iteration_step=step,
            epsilon=float(est_config.get("epsilon", DEFAULT_EPSILON)),
            max_iterations=int(est_config.get("max_iterations", DEFAULT_MAX_ITERATIONS)),
            min_weight=float(est_config.get("min_weight", DEFAULT_MIN_WEIGHT)),
            oxidizer=Oxidizer(est_config.get("oxidation_states")),
        )
        for rule_config in est_config.get("rules") or []:
            estimator.add_unmeasured_element_rule(rule_from_config(rule_config))
        logger.info(
            f"Configured estimator: {estimator.iteration_step.name}, epsilon={estimator.epsilon}, "
            f"max_iterations={estimator.max_iterations}, {len(estimator._rules)} rule(s)"
        )
        return estimator

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def epsilon(self) -> float:
        return self._epsilon

    @epsilon.setter
    def epsilon(self, value: float) -> None:
        if not 0.0 <= value < 1.0:
            raise ValueError(f"Convergence criterion must be in [0, 1): {value}")
        self._epsilon = float(value)

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @max_iterations.setter
    def max_iterations(self, value: int) -> None:
        if value < 1:
            raise ValueError(f"Maximum iterations must be at least 1: {value}")
        self._max_iterations = int(value)

    @property
    def min_weight(self) -> float:
        return self._min_weight

    @min_weight.setter
    def min_weight(self, value: float) -> None:
        if not 0.0 <= value < 1.0:
            raise ValueError(f"Minimum line weight must be in [0, 1): {value}")
        self._min_weight = float(value)

    def add_standard(
        self,
        xrts: TransitionSet,
        composition: Composition,
        props: AcquisitionProperties,
        validate: bool = True,
    ) -> StandardEntry:
        """
        Register the standard for a TransitionSet, replacing any previous one.

        With ``validate`` the unknown's beam energy and take-off angle must
        match the standard's (0.01 keV, 1 degree).
        """
        return self.standards.add(xrts, composition, props, validate)

    def add_extra_standard(
        self, xrts: TransitionSet, composition: Composition, props: AcquisitionProperties
    ) -> StandardEntry:
        """Register a standard whose acquisition geometry is not checked."""
        return self.standards.add(xrts, composition, props, validate=False)

    def add_unmeasured_element_rule(self, rule: UnmeasuredElementRule) -> None:
        """
        Append a rule; an existing rule for the same element is replaced.

        Rules that own no specific element (``NO_ELEMENT``) accumulate.
        Stoichiometry rules without an oxidizer receive the estimator's.
        """
        if rule.uses_oxidizer() and rule.oxidizer is None and self.oxidizer is not None:
            rule = rule.with_oxidizer(self.oxidizer)
        if rule.element != NO_ELEMENT:
            self._rules = [r for r in self._rules if r.element != rule.element]
        self._rules.append(rule)
        logger.info(f"Added rule: {rule}")

    def clear_unmeasured_element_rules(self) -> None:
        self._rules.clear()

    @property
    def unmeasured_element_rules(self) -> Tuple[UnmeasuredElementRule, ...]:
        return tuple(self._rules)

    def is_unmeasured_element(self, elm: Union[str, int, Element]) -> bool:
        el = element(elm)
        return any(rule.element == el for rule in self._rules)

    def _unmeasured_elements(self) -> set:
        return {rule.element for rule in self._rules if rule.element != NO_ELEMENT}

    def add_user_selected_transition(self, xrts: TransitionSet) -> None:
        """Always use this TransitionSet for its element when it was measured."""
        self._user_selected[xrts.element] = xrts

    def clear_user_selected_transitions(self) -> None:
        self._user_selected.clear()

    @property
    def user_selected_transitions(self) -> Dict[Element, TransitionSet]:
        return dict(self._user_selected)

    def missing_references(self, krs: KRatioSet) -> List[Element]:
        """
        Measured elements with neither a rule nor a standard for any of their
        measured TransitionSets.

        A standard registered for a line of the element that was not measured
        does not count.
        """
        unmeasured = self._unmeasured_elements()
        return [
            elm
            for elm in krs.elements()
            if elm not in unmeasured
            and not any(xrts in self.standards for xrts in krs.transitions(elm))
        ]

    def is_ready(self, krs: KRatioSet) -> bool:
        return not self.missing_references(krs)

    def apply_rules(self, composition: Composition) -> Composition:
        """Apply every unmeasured-element rule in registration order."""
        for rule in self._rules:
            composition = rule.apply(composition)
        return composition

    # ------------------------------------------------------------------
    # Correction
    # ------------------------------------------------------------------

    def correction_factor(
        self, xrts: TransitionSet, composition: Composition, props: AcquisitionProperties
    ) -> float:
        """
        Modeled k-ratio per unit mass fraction for a TransitionSet.

        f = ZAF[unk] * T[unk] / (C[std] * ZAF[std] * T[std]), averaged over
        the set's lines weighted by line weight. Lines below ``min_weight``
        relative to the strongest line, and lines whose correction or coating
        transmission fails, are skipped; 1.0 is returned when no line contributes.

        Raises
        ------
        GeometryMismatchError
            If a validated standard's geometry differs from the unknown's
        KeyError
            If no standard is registered for the TransitionSet
        """
        entry = self.standards[xrts]
        entry.check_geometry(props)
        norm = xrts.weighiest.weight
        total, total_weight = 0.0, 0.0
        for xrt in xrts:
            w = xrt.weight
            if norm <= 0.0 or w / norm < self.min_weight:
                continue
            if not composition.contains(xrt.element):
                continue
            k_std = entry.k_std(xrt, self.correction)
            if k_std <= 0.0:
                continue
            transmission = try_transmission(props, xrt)
            if transmission is None:
                continue
            zaf = try_zaf(self.correction, composition, xrt, props)
            if zaf is None:
                continue
            total += w * zaf * transmission / k_std
            total_weight += w
        return total / total_weight if total_weight > 0.0 else 1.0

    def mass_fraction_u(
        self, xrts: TransitionSet, composition: Composition, props: AcquisitionProperties
    ) -> UFloat:
        """
        Mass fraction of the TransitionSet's element carrying the relative
        correction-model uncertainty.

        Multiplying the result by the k-ratio's fractional uncertainty
        (1 +/- dk/k) gives the full uncertainty budget. When the element is
        absent from ``composition``, 1 / C[std] is returned.
        """
        entry = self.standards[xrts]
        entry.check_geometry(props)
        elm = xrts.element
        c_unk = composition.weight_fraction(elm)
        if c_unk <= 0.0:
            return 1.0 / entry.composition.weight_fraction_u(elm)
        norm = xrts.weighiest.weight
        total: UFloat = ufloat(0.0, 0.0)
        total_weight = 0.0
        for xrt in xrts:
            w = xrt.weight
            if norm <= 0.0 or w / norm < self.min_weight:
                continue
            zaf = try_relative_zaf(self.correction, entry.composition, composition, xrt, props)
            if zaf is None:
                continue
            total = total + w * as_ufloat(zaf[3])
            total_weight += w
        if total_weight <= 0.0:
            return as_ufloat(c_unk)
        return c_unk * fractional_uncertainty_u(total / total_weight)

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------

    def estimate_initial_composition(self, krs: KRatioSet) -> Composition:
        """C = C[std] * k for each TransitionSet, then the rules, normalized."""
        comp = Composition()
        for xrts in krs.transitions():
            entry = self.standards[xrts]
            c_std = entry.composition.weight_fraction_u(xrts.element, normalized=True)
            comp.add_element(xrts.element, c_std * krs.kratio_u(xrts))
        return self.apply_rules(comp).normalize()

    def iterate(
        self,
        krs: KRatioSet,
        props: AcquisitionProperties,
        initial: Composition,
        context: Optional[IterationContext] = None,
    ) -> Composition:
        """
        Fixed-point iteration from an initial estimate.

        Returns the estimate with the smallest k-ratio mismatch seen, which
        need not be the last one. Each call gets the full iteration cap. If
        the cap is reached without converging, ``context.warning`` is set and
        the best estimate is still returned.

        Parameters
        ----------
        krs : KRatioSet
            One k-ratio per measured element
        props : AcquisitionProperties
            Unknown's acquisition conditions
        initial : Composition
            Starting estimate
        context : IterationContext, optional
            Receives the total iteration count (summed across calls) and the
            warning of this call

        Returns
        -------
        Composition
        """
        if context is None:
            context = IterationContext()
        context.warning = None
        step = self.iteration_step
        step.initialize(krs, initial)
        prev = initial
        best_comp, best_delta, best_calc = initial, None, None
        finish = False
        max_iter = max(ITERATIONS_PER_ELEMENT * initial.element_count, self.max_iterations)
        for n in range(1, max_iter + 1):
            context.iterations += 1
            factors: Dict[TransitionSet, float] = {}
            calc = KRatioSet()
            for xrts in krs.transitions():
                c = prev.weight_fraction(xrts.element)
                f = self.correction_factor(xrts, prev, props) if c > 0.0 else 1.0
                calc.add_kratio(xrts, ufloat(f * c, krs.uncertainty(xrts)))
                factors[xrts] = f
            delta = calc.difference_u(krs)
            if best_delta is None or delta.nominal_value < best_delta.nominal_value:
                best_comp, best_delta, best_calc = prev, delta, calc
            logger.debug(f"Iteration {context.iterations}: delta = {delta}")
            if finish:
                break
            if (
                best_delta.nominal_value < self.epsilon
                or best_delta.nominal_value < UNCERTAINTY_CONVERGENCE_FRACTION * best_delta.std_dev
            ):
                finish = True
            elif n >= max_iter:
                context.warning = self._convergence_warning(krs, best_calc, best_comp, best_delta)
                logger.warning(context.warning.message)
                break
            prev = self.apply_rules(step.step(factors))
        return best_comp

    def _convergence_warning(
        self, krs: KRatioSet, best_calc: KRatioSet, best_comp: Composition, best_delta: UFloat
    ) -> ConvergenceWarning:
        delta = float(best_delta.nominal_value)
        relative = delta / self.epsilon if self.epsilon > 0.0 else float("inf")
        message = (
            "The composition estimate failed to converge.\n"
            f"Measured = {krs}\n"
            f"Best Calculated = {best_calc}\n"
            f"Best = {best_comp.descriptive_string()}\n"
            f"Best delta = {delta:g} = {relative:g} x tolerance\n"
        )
        return ConvergenceWarning(message=message, best_delta=delta, tolerance=self.epsilon)

    def compute(self, measured: KRatioSet, props: AcquisitionProperties) -> QuantificationResult:
        """
        Estimate the composition that reproduces the measured k-ratios.

        Parameters
        ----------
        measured : KRatioSet
            Measured k-ratios; redundant lines per element are allowed and
            k <= 0 marks an element as measured but absent
        props : AcquisitionProperties
            Unknown's acquisition conditions

        Returns
        -------
        QuantificationResult
            Best composition, the k-ratios used, the iteration count and a
            ConvergenceWarning when the iteration did not converge

        Raises
        ------
        ConfigurationError
            If a measured element has neither a standard nor a rule
        GeometryMismatchError
            If a validated standard's geometry differs from the unknown's
        """
        missing = self.missing_references(measured)
        if missing:
            raise ConfigurationError(missing)
        nonzero, zero = measured.partition()
        unmeasured = self._unmeasured_elements()
        context = IterationContext()

        first_krs = select_initial_kratios(nonzero, self.standards, self._user_selected, unmeasured)
        first_c = self.iterate(first_krs, props, self.estimate_initial_composition(first_krs), context)

        best_krs = pick_optimized(
            nonzero,
            first_c,
            props,
            self.mass_fraction_u,
            self.standards,
            self._user_selected,
            unmeasured,
        )
        if best_krs == first_krs:
            best = first_c
        else:
            logger.info(f"Re-iterating with optimized k-ratios {best_krs}")
            best = self.iterate(best_krs, props, first_c, context)

        result = Composition()
        for xrts in best_krs.transitions():
            uv = self.mass_fraction_u(xrts, best, props) * fractional_uncertainty_u(
                best_krs.kratio_u(xrts)
            )
            result.add_element(xrts.element, uv)
        result = self.apply_rules(result)

        for xrts in zero.transitions():
            elm = xrts.element
            if elm in best_krs.element_set or elm in result:
                continue
            uv = zero.kratio_u(xrts)
            best_krs.add_kratio(xrts, uv)
            result.add_element(elm, uv)

        context.best_kratios = best_krs
        return QuantificationResult(
            composition=result,
            kratios=best_krs,
            iterations=context.iterations,
            warning=context.warning,
        )

    def describe_rules(self) -> str:
        """One line per registered rule, in application order."""
        return "\n".join(str(rule) for rule in self._rules)
