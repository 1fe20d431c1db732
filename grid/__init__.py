"""
grid - Bounded Grid Simulation Package

Public API for the stepping engine: configs, per-step state, variant
strategies, the inversion scheduler and the run loop.
One file = one responsibility.
"""

# =============================================================================
# TYPES (Dataclasses)
# =============================================================================
from .types_config import (
    RunConfig,
    ScheduleEntry,
    reference_schedule,
    make_reference_config,
    SCENARIO_REFERENCE,
    SCENARIO_NO_SCHEDULE,
    SCENARIO_SHORT,
    SCENARIO_WIDE,
    MANDATORY_SCENARIOS,
)
from .types_state import GridState, Event, TrajectoryBuffer, EventLog, inversion_event_type
from .types_result import RunResult

# =============================================================================
# CONSTANTS
# =============================================================================
from .constants import (
    InversionKind,
    VariantKind,
    VARIANT_ALIASES,
    BOUNDARY_EVENT_TYPES,
    EVENT_TABLE_COLUMNS,
    RECEIPT_SCHEMA,
    BAND_THRESHOLD,
    SPECTRAL_THRESHOLD,
    PHASE_PERIODICITY_CAP,
    SCORE_NAMES,
)

# =============================================================================
# VALIDATION
# =============================================================================
from .validation import (
    ConfigError,
    collect_config_errors,
    validate_config,
    emit_config_rejected,
    stoprule_out_of_bounds,
)

# =============================================================================
# VARIANTS + SCHEDULER
# =============================================================================
from .variants import (
    step,
    advance_phase,
    axis_rule,
    reflect_axis,
    clamp_axis,
    sticky_axis,
    center_inversion_axis,
    DEFAULT_BOUNDARY_TRANSFORMS,
    boundary_transforms,
)
from .scheduler import InversionScheduler

# =============================================================================
# CORE SIMULATION
# =============================================================================
from .cycle import (
    run_simulation,
    run_batch,
    initialize_state,
    simulate_step,
)

# =============================================================================
# EXPORT
# =============================================================================
from .export import (
    event_table,
    events_to_csv,
    events_from_csv,
    trajectory_table,
    trajectory_to_json,
    config_to_json,
    generate_report,
)

__all__ = [
    # Types
    "RunConfig", "ScheduleEntry", "reference_schedule", "make_reference_config",
    "SCENARIO_REFERENCE", "SCENARIO_NO_SCHEDULE", "SCENARIO_SHORT", "SCENARIO_WIDE",
    "MANDATORY_SCENARIOS",
    "GridState", "Event", "TrajectoryBuffer", "EventLog", "inversion_event_type",
    "RunResult",
    # Constants
    "InversionKind", "VariantKind", "VARIANT_ALIASES", "BOUNDARY_EVENT_TYPES",
    "EVENT_TABLE_COLUMNS", "RECEIPT_SCHEMA", "BAND_THRESHOLD", "SPECTRAL_THRESHOLD",
    "PHASE_PERIODICITY_CAP", "SCORE_NAMES",
    # Validation
    "ConfigError", "collect_config_errors", "validate_config", "emit_config_rejected",
    "stoprule_out_of_bounds",
    # Variants + scheduler
    "step", "advance_phase", "axis_rule", "reflect_axis", "clamp_axis", "sticky_axis",
    "center_inversion_axis", "DEFAULT_BOUNDARY_TRANSFORMS", "boundary_transforms",
    "InversionScheduler",
    # Core simulation
    "run_simulation", "run_batch", "initialize_state", "simulate_step",
    # Export
    "event_table", "events_to_csv", "events_from_csv", "trajectory_table",
    "trajectory_to_json", "config_to_json", "generate_report",
]
