"""
grid/constants.py - Simulation Constants and Closed Enums

All constants for the stepping engine and the scoring layer. Centralized for tuning.
Pure data, no behavior.
"""

from enum import Enum


# =============================================================================
# INVERSION KINDS (closed set)
# =============================================================================

class InversionKind(Enum):
    """Kinds an inversion schedule entry can switch the run into."""
    GEOM = "GEOM"
    SPHERE = "SPHERE"
    OBSERVER = "OBSERVER"
    CAUSAL = "CAUSAL"


# =============================================================================
# VARIANT KINDS (closed set of boundary behaviors)
# =============================================================================

class VariantKind(Enum):
    """Boundary-behavior strategies sharing one step contract."""
    REFLECT = "reflect"                      # mirror overshoot back inside, negate velocity
    CLAMP = "clamp"                          # clamp to wall, negate velocity
    STICKY = "sticky"                        # clamp to wall, keep velocity
    INVERSION_REFLECT = "inversion_reflect"  # center-anchored inversion once a kind is active


# Command-line names used by the original runner
VARIANT_ALIASES = {
    "inversion": VariantKind.INVERSION_REFLECT,
    "mirror": VariantKind.REFLECT,
    "reflect": VariantKind.REFLECT,
    "clamp": VariantKind.CLAMP,
    "sticky": VariantKind.STICKY,
}

# =============================================================================
# EVENT TYPES
# =============================================================================

BOUNDARY_EVENT_TYPES = {
    VariantKind.REFLECT: "REFLECT",
    VariantKind.CLAMP: "CLAMP",
    VariantKind.STICKY: "STICKY",
    VariantKind.INVERSION_REFLECT: "INVERSION_REFLECT",
}

INVERSION_EVENT_PREFIX = "INVERSION:"

EVENT_TABLE_COLUMNS = [
    "step", "eventType", "phaseBefore", "phaseAfter", "x", "y", "vx", "vy"
]

# =============================================================================
# REFERENCE RUN PARAMETERS
# =============================================================================

REFERENCE_SIZE_X = 5
REFERENCE_SIZE_Y = 7
REFERENCE_STEPS = 200003
REFERENCE_MULTIPLIER = 7
REFERENCE_MOD = 1000003
REFERENCE_SCHEDULE_FRACTIONS = (0.20, 0.40, 0.60, 0.80)
REFERENCE_SCHEDULE_KINDS = (
    InversionKind.GEOM,
    InversionKind.SPHERE,
    InversionKind.OBSERVER,
    InversionKind.CAUSAL,
)

# =============================================================================
# ANOMALY SCORING CONSTANTS
# =============================================================================

BAND_THRESHOLD = 5                  # max distinct event spacings that still count as banded
SPECTRAL_THRESHOLD = 0.5            # periodicity score a phase sequence must exceed
PHASE_PERIODICITY_CAP = 1.0e12      # finite stand-in for 1 / 0 variance

SCORE_NAMES = [
    "randomness",
    "structure",
    "reemergence",
    "event_density",
    "trajectory_variance",
    "phase_periodicity",
    "inversion_frequency",
    "velocity_anomaly",
    "chaos_index",
]

# =============================================================================
# SPECTRAL ANALYZER CONSTANTS
# =============================================================================

SPECTRAL_WINDOW_CAPACITY = 1000
SPECTRAL_MAX_BINS = 64
MIN_SPECTRAL_SAMPLES = 10
SPECTRAL_CADENCE = 10               # analyze every Nth pushed sample in the driver

# =============================================================================
# LEADERBOARD CONSTANTS
# =============================================================================

LEADERBOARD_CAPACITY = 1000
BUILTIN_CATEGORIES = ["randomness", "structure", "reemergence", "event_density"]
EVENT_DENSITY_MIN_EVENTS = 5        # runs with more events than this enter event_density

# =============================================================================
# RECEIPT SCHEMA
# =============================================================================

RECEIPT_SCHEMA = [
    "run_complete", "config_rejected", "leaderboard_insert",
    "spectral_analysis", "criterion_registered", "runs_pruned", "fleet_iteration",
    "anomaly",
]
