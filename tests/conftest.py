"""
Pytest configuration and shared fixtures for epmaquant tests.

This module provides:
- The bundled X-ray line database and common TransitionSets
- Acquisition properties and pure-element standards
- Configuration dictionaries and temporary config files
- Factory fixtures for estimators and synthetic correction models
"""

import os
import tempfile

import pytest
import yaml
from uncertainties import ufloat

from epmaquant.core.exceptions import CorrectionComputationError
from epmaquant.quant.composition import Composition
from epmaquant.quant.correction import UnityCorrection
from epmaquant.quant.estimator import CompositionEstimator
from epmaquant.quant.properties import AcquisitionProperties
from epmaquant.xray.database import XRayLineDatabase


@pytest.fixture(scope="session")
def line_db():
    """The line table bundled with the package."""
    return XRayLineDatabase.default()


@pytest.fixture
def fe_k(line_db):
    """Fe Ka1 + Ka2."""
    return line_db.transition_set("Fe", names=["Ka1", "Ka2"])


@pytest.fixture
def fe_kb(line_db):
    """Fe Kb1."""
    return line_db.transition_set("Fe", names=["Kb1"])


@pytest.fixture
def fe_l(line_db):
    """The whole Fe L family."""
    return line_db.transition_set("Fe", family="L")


@pytest.fixture
def ni_k(line_db):
    """Ni Ka1 + Ka2."""
    return line_db.transition_set("Ni", names=["Ka1", "Ka2"])


@pytest.fixture
def props():
    """Typical acquisition conditions: 15 keV, 40 degree take-off angle."""
    return AcquisitionProperties(beam_energy_kev=15.0, take_off_angle_deg=40.0)


@pytest.fixture
def pure_fe():
    return Composition.pure("Fe")


@pytest.fixture
def pure_ni():
    return Composition.pure("Ni")


@pytest.fixture
def estimator():
    """
    Factory fixture for estimators with pure-element standards.

    Usage:
        est = estimator({fe_k: "Fe", ni_k: "Ni"}, props)
    """

    def _create(standards, props, correction=None, **kwargs):
        est = CompositionEstimator(correction or UnityCorrection(), **kwargs)
        for xrts, symbol in standards.items():
            est.add_standard(xrts, Composition.pure(symbol), props)
        return est

    return _create


class FamilyUncertaintyCorrection(UnityCorrection):
    """ZAF = 1 with a model uncertainty that depends on the line family."""

    def __init__(self, family_uncertainty):
        super().__init__()
        self.family_uncertainty = family_uncertainty

    def relative_zaf(self, standard, unknown, transition, props):
        mu = self.family_uncertainty[transition.family]
        return (1.0, 1.0, 1.0, ufloat(1.0, mu, f"ZAF[{transition}]"))


class StepCorrection(UnityCorrection):
    """A discontinuous ZAF for Fe that admits no fixed point at k = 0.6."""

    def zaf_factor(self, handle, transition):
        composition, _ = handle
        c = composition.weight_fraction("Fe")
        if c >= 0.999:
            return 1.0
        return 0.5 if c < 0.7 else 2.0


class FailingCorrection(UnityCorrection):
    """Raises CorrectionComputationError for every material."""

    def initialize(self, composition, shell, props):
        raise CorrectionComputationError("unsupported sample")

    def relative_zaf(self, standard, unknown, transition, props):
        raise CorrectionComputationError("unsupported sample")


@pytest.fixture
def family_uncertainty_correction():
    """Factory fixture for FamilyUncertaintyCorrection."""
    return FamilyUncertaintyCorrection


@pytest.fixture
def failing_correction():
    return FailingCorrection()


@pytest.fixture
def step_correction():
    return StepCorrection()


@pytest.fixture
def sample_config_dict():
    """Sample estimator configuration dictionary."""
    return {
        "estimator": {
            "epsilon": 1.0e-5,
            "max_iterations": 40,
            "min_weight": 0.02,
            "iteration": "pap",
            "rules": [
                {"type": "by_difference", "element": "Ni"},
                {"type": "oxygen_by_stoichiometry", "cations": ["Si", "Mg"]},
            ],
        },
        "logging": {"level": "INFO", "levels": {"quant.iteration": "DEBUG"}},
    }


@pytest.fixture
def temp_config_file(sample_config_dict):
    """Create a temporary YAML configuration file."""
    config_fd, config_path = tempfile.mkstemp(suffix=".yaml")
    os.close(config_fd)

    with open(config_path, "w") as f:
        yaml.dump(sample_config_dict, f)

    yield config_path

    if os.path.exists(config_path):
        os.unlink(config_path)
