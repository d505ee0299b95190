"""
Numerical constants and default tolerances for k-ratio quantification.

Energies are in keV and angles in degrees unless otherwise specified.
"""

import numpy as np

# ============================================================================
# Unit Conversions
# ============================================================================

EV_TO_KEV = 1.0e-3
KEV_TO_EV = 1.0e3
DEG_TO_RAD = np.pi / 180.0
NM_TO_CM = 1.0e-7

# ============================================================================
# Iteration Defaults
# ============================================================================

# Convergence criterion on the k-ratio mismatch
DEFAULT_EPSILON = 1.0e-4

# Lower bound on the iteration cap; the effective cap is
# max(4 * element_count, max_iterations)
DEFAULT_MAX_ITERATIONS = 50
ITERATIONS_PER_ELEMENT = 4

# Lines weaker than this (relative to the weighiest line in the set) are
# excluded from the weighted correction-factor average
DEFAULT_MIN_WEIGHT = 0.01

# Fraction of its own uncertainty below which the mismatch counts as converged
UNCERTAINTY_CONVERGENCE_FRACTION = 0.1

# Bounds applied to every mass fraction produced by an iteration step
ITERATION_TINY = 1.0e-6
ITERATION_HUGE = 10.0

# ============================================================================
# Transition Selection
# ============================================================================

# Curry's criterion for measurability
SNR_USABILITY_FLOOR = 10.0

# A lower-ranked candidate must have a signal-to-noise within this fraction
# of the best candidate's to be considered as a replacement
SNR_FRACTION_OF_BEST = 0.1

# ============================================================================
# Standard/Unknown Geometry Tolerances
# ============================================================================

BEAM_ENERGY_TOLERANCE_KEV = 0.01
TAKE_OFF_ANGLE_TOLERANCE_DEG = 1.0

# ============================================================================
# Stoichiometry
# ============================================================================

OXYGEN_OXIDATION_STATE = -2

# Residual oxygen smaller than this is dropped from oxide tables
OXIDE_RESIDUAL_THRESHOLD = 1.0e-6
