"""
Quantification: composition from measured k-ratios.

This module provides:
- Composition and KRatioSet data types with propagated uncertainties
- StandardRegistry of reference standards
- Unmeasured-element rules and the Oxidizer
- Iteration algorithms and transition selection
- CompositionEstimator, the self-consistent solver
"""

from epmaquant.quant.composition import Composition
from epmaquant.quant.kratio import KRatioSet
from epmaquant.quant.properties import AcquisitionProperties, ConductiveCoating
from epmaquant.quant.standards import StandardEntry, StandardRegistry
from epmaquant.quant.correction import AlphaFactorCorrection, UnityCorrection
from epmaquant.quant.oxidizer import Oxidizer
from epmaquant.quant.rules import (
    UnmeasuredElementRule,
    ByDifference,
    ByFiat,
    OxygenByStoichiometry,
    WatersOfCrystallization,
    rule_from_config,
)
from epmaquant.quant.iteration import (
    SimpleIteration,
    HyperbolicIteration,
    PAPIteration,
    WegsteinIteration,
    DiagnosticIteration,
    IterationStepFactory,
)
from epmaquant.quant.result import ConvergenceWarning, IterationContext, QuantificationResult
from epmaquant.quant.estimator import CompositionEstimator

__all__ = [
    # Data types
    "Composition",
    "KRatioSet",
    "AcquisitionProperties",
    "ConductiveCoating",
    "StandardEntry",
    "StandardRegistry",
    # Correction models
    "UnityCorrection",
    "AlphaFactorCorrection",
    # Rules
    "Oxidizer",
    "UnmeasuredElementRule",
    "ByDifference",
    "ByFiat",
    "OxygenByStoichiometry",
    "WatersOfCrystallization",
    "rule_from_config",
    # Iteration
    "SimpleIteration",
    "HyperbolicIteration",
    "PAPIteration",
    "WegsteinIteration",
    "DiagnosticIteration",
    "IterationStepFactory",
    # Results
    "ConvergenceWarning",
    "IterationContext",
    "QuantificationResult",
    "CompositionEstimator",
]
