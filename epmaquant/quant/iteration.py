"""
Iteration algorithms for the composition-from-k-ratios fixed point.

Each step receives the correction factor f = k/C for every selected
TransitionSet (the modeled k-ratio per unit mass fraction at the previous
estimate) and proposes the next estimate. New mass fractions are bounded to
[1e-6, 10].

Algorithms:
1. **SimpleIteration** - successive approximation, C = k / f
2. **HyperbolicIteration** - Criss & Birks hyperbolic approximation
3. **PAPIteration** - Pouchou & Pichoir hyperbolic/parabolic approximation
4. **WegsteinIteration** - secant acceleration (default)
5. **DiagnosticIteration** - wraps another step and logs each update

References
----------
- Criss & Birks (1968): The Electron Microprobe, p. 217
- Pouchou & Pichoir (1991): Electron Probe Quantitation, p. 41
- Wegstein (1958): Accelerating convergence of iterative processes.
  Commun. ACM 1, 9
- Springer (1976): damping of the Wegstein step, as discussed in Scott,
  Love & Reed, Quantitative Electron-Probe Microanalysis, 2nd ed.
"""

import logging
import math
from typing import Dict, Optional, Type

import numpy as np

from epmaquant.core.abc import IterationStep
from epmaquant.core.constants import ITERATION_HUGE, ITERATION_TINY
from epmaquant.core.logging_config import get_logger
from epmaquant.quant.composition import Composition
from epmaquant.quant.kratio import KRatioSet
from epmaquant.xray.structures import TransitionSet

logger = get_logger("quant.iteration")

# Springer's threshold on the Wegstein denominator
WEGSTEIN_MIN_DENOMINATOR = 0.2


def _bounded(value: float) -> float:
    if not math.isfinite(value):
        return ITERATION_HUGE if value > 0.0 else ITERATION_TINY
    return float(np.clip(value, ITERATION_TINY, ITERATION_HUGE))


def _simple(ka: float, factor: float) -> float:
    if factor <= 0.0:
        return ITERATION_HUGE
    return ka / factor


def _hyperbolic(ca1: float, ka1: float, ka: float) -> Optional[float]:
    """Criss-Birks estimate through (ca1, ka1); None when degenerate."""
    den1 = (1.0 - ca1) * ka1
    if den1 == 0.0:
        return None
    alpha = (ca1 * (1.0 - ka1)) / den1
    den2 = 1.0 - ka * (1.0 - alpha)
    if den2 == 0.0:
        return None
    return (alpha * ka) / den2


def _parabolic(ca1: float, ka1: float, ka: float) -> Optional[float]:
    """Parabolic estimate k = a*C + (1-a)*C^2 through (ca1, ka1); None when degenerate."""
    den1 = ca1 - ca1 * ca1
    if den1 == 0.0:
        return None
    alpha = (ka1 - ca1 * ca1) / den1
    if alpha == 1.0:
        return None
    disc = alpha * alpha + 4.0 * (1.0 - alpha) * ka
    if disc < 0.0:
        return None
    return (-alpha + math.sqrt(disc)) / (2.0 * (1.0 - alpha))


class SimpleIteration(IterationStep):
    """Successive approximation: C = k / f."""

    name = "simple"

    def _perform(self, factors: Dict[TransitionSet, float]) -> Composition:
        res = Composition()
        for xrts in self._desired:
            if xrts in factors:
                res.add_element(xrts.element, _bounded(_simple(self._desired.kratio(xrts), factors[xrts])))
        return res


class HyperbolicIteration(IterationStep):
    """
    Criss & Birks hyperbolic iteration.

    Assumes C/k = alpha + (1 - alpha) * C, with alpha fixed by the previous
    estimate. Falls back to simple iteration where alpha is undefined.
    """

    name = "hyperbolic"

    def _perform(self, factors: Dict[TransitionSet, float]) -> Composition:
        est = self.previous_estimate()
        res = Composition()
        for xrts in self._desired:
            if xrts not in factors:
                continue
            ka = self._desired.kratio(xrts)
            ca1 = est.weight_fraction(xrts.element)
            ka1 = ca1 * factors[xrts]
            value = _hyperbolic(ca1, ka1, ka)
            if value is None:
                value = _simple(ka, factors[xrts])
            res.add_element(xrts.element, _bounded(value))
        return res


class PAPIteration(IterationStep):
    """
    Pouchou & Pichoir iteration.

    Hyperbolic when the previous estimate's k/C <= 1, otherwise parabolic.
    """

    name = "pap"

    def _perform(self, factors: Dict[TransitionSet, float]) -> Composition:
        est = self.previous_estimate()
        res = Composition()
        for xrts in self._desired:
            if xrts not in factors:
                continue
            ka = self._desired.kratio(xrts)
            ca1 = est.weight_fraction(xrts.element)
            ka1 = ca1 * factors[xrts]
            if ca1 > 0.0 and ka1 / ca1 <= 1.0:
                value = _hyperbolic(ca1, ka1, ka)
            else:
                value = _parabolic(ca1, ka1, ka)
            if value is None:
                value = _simple(ka, factors[xrts])
            res.add_element(xrts.element, _bounded(value))
        return res


class WegsteinIteration(IterationStep):
    """
    Wegstein secant acceleration of C = k / f.

    Once three estimates have been produced, the inverse correction 1/f is
    linearized between the last two estimates and the fixed point of the
    secant is taken. Where the secant is ill-conditioned (|1 - k*df/dC| <=
    0.2, Springer's damping) or the factors changed more than ten times as
    much as the estimates, the step reverts to simple iteration.
    """

    name = "wegstein"

    def __init__(self):
        super().__init__()
        self._previous_factors: Optional[Dict[TransitionSet, float]] = None

    def initialize(self, desired: KRatioSet, estimate: Composition) -> None:
        super().initialize(desired, estimate)
        # History holds only the estimates this step produced.
        self._history = []
        self._previous_factors = None

    def _perform(self, factors: Dict[TransitionSet, float]) -> Composition:
        res = Composition()
        secant = len(self._history) > 2 and self._previous_factors is not None
        comp_n = self._history[-1] if secant else None
        comp_n1 = self._history[-2] if secant else None
        for xrts in self._desired:
            if xrts not in factors:
                continue
            ka = self._desired.kratio(xrts)
            value = _simple(ka, factors[xrts])
            prev = self._previous_factors.get(xrts) if secant else None
            if prev is not None and prev > 0.0 and factors[xrts] > 0.0:
                can = comp_n.weight_fraction(xrts.element)
                can_1 = comp_n1.weight_fraction(xrts.element)
                fan = 1.0 / factors[xrts]
                fan_1 = 1.0 / prev
                if 10.0 * abs(can - can_1) > abs(fan - fan_1):
                    dfa_dca = (fan - fan_1) / (can - can_1)
                    den = 1.0 - ka * dfa_dca
                    if abs(den) > WEGSTEIN_MIN_DENOMINATOR:
                        value = can + (ka * fan - can) / den
                    else:
                        value = ka * fan
            res.add_element(xrts.element, _bounded(value))
        self._previous_factors = dict(factors)
        return res


class DiagnosticIteration(IterationStep):
    """
    Wrap another IterationStep and log every update at DEBUG level.

    Parameters
    ----------
    base : IterationStep
        Step that computes the estimates
    """

    def __init__(self, base: IterationStep):
        super().__init__()
        self.base = base
        self.name = f"diagnostic[{base.name}]"
        logger.debug(f"Using the {base.name} iteration")

    def initialize(self, desired: KRatioSet, estimate: Composition) -> None:
        super().initialize(desired, estimate)
        self.base.initialize(desired, estimate)

    def _perform(self, factors: Dict[TransitionSet, float]) -> Composition:
        next_comp = self.base.step(factors)
        if logger.isEnabledFor(logging.DEBUG):
            est = self.previous_estimate()
            modeled = KRatioSet()
            for xrts in self._desired:
                if xrts in factors:
                    modeled.add_kratio(xrts, est.weight_fraction(xrts.element) * factors[xrts])
            logger.debug(f"Measured k-ratios: {self._desired}")
            logger.debug(f"Previous k-ratios: {modeled}")
            logger.debug(f"Previous estimate: {est.descriptive_string()}")
            logger.debug(f"Next estimate:     {next_comp.descriptive_string()}")
            logger.debug(f"Mismatch: {modeled.difference_u(self._desired)}")
        return next_comp


class IterationStepFactory:
    """Factory for creating iteration steps by name."""

    _steps: Dict[str, Type[IterationStep]] = {}

    @classmethod
    def register(cls, name: str, step_class: Type[IterationStep]) -> None:
        """
        Register an iteration step class.

        Parameters
        ----------
        name : str
            Step name
        step_class : Type[IterationStep]
            Step class (constructed without arguments)
        """
        cls._steps[name] = step_class
        logger.debug(f"Registered iteration step: {name}")

    @classmethod
    def create(cls, name: str, diagnostic: bool = False) -> IterationStep:
        """
        Create an iteration step.

        Parameters
        ----------
        name : str
            Step name
        diagnostic : bool
            Wrap the step in a DiagnosticIteration

        Raises
        ------
        ValueError
            If the name is not registered
        """
        if name not in cls._steps:
            available = ", ".join(cls._steps.keys())
            raise ValueError(f"Unknown iteration step: {name}. Available: {available}")
        step = cls._steps[name]()
        return DiagnosticIteration(step) if diagnostic else step

    @classmethod
    def list_steps(cls) -> list:
        """List available iteration step names."""
        return list(cls._steps.keys())


DEFAULT_ITERATION = "wegstein"

# Register default implementations
IterationStepFactory.register("simple", SimpleIteration)
IterationStepFactory.register("hyperbolic", HyperbolicIteration)
IterationStepFactory.register("pap", PAPIteration)
IterationStepFactory.register("wegstein", WegsteinIteration)
