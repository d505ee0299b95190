"""
Tests for the composition iteration algorithms.

Most tests use a one-element model whose inverse correction is linear,
1/f(C) = 1.5 - 0.5 C, so with k = 0.5 the fixed point is C = 0.6.
"""

import logging

import pytest

from epmaquant.core.constants import ITERATION_HUGE, ITERATION_TINY
from epmaquant.quant.composition import Composition
from epmaquant.quant.iteration import (
    DiagnosticIteration,
    HyperbolicIteration,
    IterationStepFactory,
    PAPIteration,
    SimpleIteration,
    WegsteinIteration,
)
from epmaquant.quant.kratio import KRatioSet


def linear_factor(c):
    return 1.0 / (1.5 - 0.5 * c)


@pytest.fixture
def desired(fe_k):
    krs = KRatioSet()
    krs.add_kratio(fe_k, 0.5, 0.005)
    return krs


def run(step, desired, fe_k, start, n):
    """Run n steps with the linear model; return the Fe estimates."""
    step.initialize(desired, Composition.from_mass_fractions(Fe=start))
    c, estimates = start, []
    for _ in range(n):
        c = step.step({fe_k: linear_factor(c)}).weight_fraction("Fe")
        estimates.append(c)
    return estimates


def test_simple_iteration(desired, fe_k):
    estimates = run(SimpleIteration(), desired, fe_k, 0.5, 3)
    assert estimates[0] == pytest.approx(0.625)
    assert estimates[1] == pytest.approx(0.59375)
    assert estimates[2] == pytest.approx(0.6015625)


def test_simple_iteration_converges_linearly(desired, fe_k):
    estimates = run(SimpleIteration(), desired, fe_k, 0.5, 12)
    errors = [abs(c - 0.6) for c in estimates]
    assert errors[-1] < 1e-7
    assert all(later < earlier for earlier, later in zip(errors, errors[1:]))


def test_wegstein_secant_reaches_fixed_point(desired, fe_k):
    estimates = run(WegsteinIteration(), desired, fe_k, 0.5, 4)
    # Plain successive approximation until three estimates exist
    assert estimates[:3] == pytest.approx([0.625, 0.59375, 0.6015625])
    # The secant of a linear 1/f is exact
    assert estimates[3] == pytest.approx(0.6, abs=1e-12)


def test_wegstein_restart_clears_history(desired, fe_k):
    step = WegsteinIteration()
    run(step, desired, fe_k, 0.5, 4)
    estimates = run(step, desired, fe_k, 0.5, 1)
    assert estimates[0] == pytest.approx(0.625)
    assert len(step.history) == 1


def test_hyperbolic_iteration(desired, fe_k):
    step = HyperbolicIteration()
    step.initialize(desired, Composition.from_mass_fractions(Fe=0.5))
    res = step.step({fe_k: 0.8})
    assert res.weight_fraction("Fe") == pytest.approx(0.6)


def test_hyperbolic_falls_back_to_simple(desired, fe_k):
    step = HyperbolicIteration()
    step.initialize(desired, Composition.from_mass_fractions(Fe=1.0))
    res = step.step({fe_k: 0.8})
    assert res.weight_fraction("Fe") == pytest.approx(0.5 / 0.8)


def test_pap_iteration_hyperbolic_branch(desired, fe_k):
    step = PAPIteration()
    step.initialize(desired, Composition.from_mass_fractions(Fe=0.5))
    assert step.step({fe_k: 0.8}).weight_fraction("Fe") == pytest.approx(0.6)


def test_pap_iteration_parabolic_branch(desired, fe_k):
    step = PAPIteration()
    step.initialize(desired, Composition.from_mass_fractions(Fe=0.5))
    c = step.step({fe_k: 1.2}).weight_fraction("Fe")
    assert c == pytest.approx(0.403709, rel=1e-5)
    # The parabola through (0.5, 0.6) reproduces the measured k-ratio
    alpha = 1.4
    assert alpha * c + (1.0 - alpha) * c * c == pytest.approx(0.5)


@pytest.mark.parametrize("step_class", [SimpleIteration, HyperbolicIteration, PAPIteration, WegsteinIteration])
def test_estimates_are_bounded(step_class, fe_k):
    zero = KRatioSet()
    zero.add_kratio(fe_k, 0.0, 0.01)
    step = step_class()
    step.initialize(zero, Composition.from_mass_fractions(Fe=0.5))
    assert step.step({fe_k: 1.0}).weight_fraction("Fe") == ITERATION_TINY

    step.initialize(zero, Composition.from_mass_fractions(Fe=0.5))
    zero.add_kratio(fe_k, 0.5, 0.01)
    assert step.step({fe_k: 0.0}).weight_fraction("Fe") == ITERATION_HUGE


def test_step_requires_initialize(fe_k):
    with pytest.raises(RuntimeError, match="before initialize"):
        SimpleIteration().step({fe_k: 1.0})


def test_history(desired, fe_k):
    step = SimpleIteration()
    run(step, desired, fe_k, 0.5, 2)
    assert len(step.history) == 3
    assert step.previous_estimate().weight_fraction("Fe") == pytest.approx(0.59375)


def test_missing_factor_skips_element(desired, fe_k, ni_k):
    desired.add_kratio(ni_k, 0.3, 0.01)
    step = SimpleIteration()
    step.initialize(desired, Composition.from_mass_fractions(Fe=0.5, Ni=0.3))
    res = step.step({fe_k: 1.0})
    assert res.elements == [fe_k.element]


def test_diagnostic_iteration_logs(desired, fe_k, caplog):
    step = DiagnosticIteration(SimpleIteration())
    assert step.name == "diagnostic[simple]"
    with caplog.at_level(logging.DEBUG, logger="epmaquant"):
        estimates = run(step, desired, fe_k, 0.5, 2)
    assert estimates == pytest.approx([0.625, 0.59375])
    assert "Next estimate" in caplog.text
    assert "Mismatch" in caplog.text


class TestIterationStepFactory:
    """Tests for the iteration step registry."""

    def test_list_steps(self):
        steps = IterationStepFactory.list_steps()
        for name in ["simple", "hyperbolic", "pap", "wegstein"]:
            assert name in steps

    def test_create(self):
        assert isinstance(IterationStepFactory.create("pap"), PAPIteration)
        wrapped = IterationStepFactory.create("wegstein", diagnostic=True)
        assert isinstance(wrapped, DiagnosticIteration)
        assert isinstance(wrapped.base, WegsteinIteration)

    def test_create_unknown(self):
        with pytest.raises(ValueError, match="Unknown iteration step"):
            IterationStepFactory.create("newton")

    def test_register(self):
        class DampedIteration(SimpleIteration):
            name = "damped"

        IterationStepFactory.register("damped", DampedIteration)
        try:
            assert isinstance(IterationStepFactory.create("damped"), DampedIteration)
        finally:
            IterationStepFactory._steps.pop("damped")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
