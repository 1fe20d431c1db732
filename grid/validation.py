"""
grid/validation.py - RunConfig Validation and Run Invariant Checks

Configuration errors are rejected before any stepping starts. Each failure
names the offending field so callers can report it without parsing text.
"""

import math
from numbers import Integral, Real
from typing import List, Tuple

from receipts import emit_receipt, StopRule

from .constants import InversionKind
from .types_config import ConfigError, RunConfig
from .types_state import GridState


def _is_int(value) -> bool:
    return isinstance(value, Integral) and not isinstance(value, bool)


def collect_config_errors(config: RunConfig) -> List[Tuple[str, str]]:
    """
    Check every RunConfig invariant.

    Returns:
        List of (field, message) tuples; empty when the config is valid
    """
    errors: List[Tuple[str, str]] = []

    # Positive integer dimensions
    for name in ("size_x", "size_y", "steps", "multiplier", "mod"):
        value = getattr(config, name)
        if not _is_int(value):
            errors.append((name, f"must be an integer, got {type(value).__name__}"))
        elif value <= 0:
            errors.append((name, f"must be positive, got {value}"))

    # Initial position inside [0, size]
    for name, bound_name in (("x0", "size_x"), ("y0", "size_y")):
        value = getattr(config, name)
        bound = getattr(config, bound_name)
        if not _is_int(value):
            errors.append((name, f"must be an integer, got {type(value).__name__}"))
        elif _is_int(bound) and not 0 <= value <= bound:
            errors.append((name, f"{value} outside [0, {bound}]"))

    for name in ("vx0", "vy0"):
        value = getattr(config, name)
        if not _is_int(value):
            errors.append((name, f"must be an integer, got {type(value).__name__}"))

    phase0 = config.phase0
    if not isinstance(phase0, Real) or isinstance(phase0, bool) or not math.isfinite(phase0):
        errors.append(("phase0", f"must be a finite real, got {phase0!r}"))
    elif not 0.0 <= phase0 < 1.0:
        errors.append(("phase0", f"{phase0} outside [0, 1)"))

    # Schedule: known kinds, steps in [0, steps], non-decreasing
    previous = None
    for i, entry in enumerate(config.inversion_schedule):
        field = f"inversion_schedule[{i}]"
        if not isinstance(entry.kind, InversionKind):
            errors.append((f"{field}.kind", f"unknown kind {entry.kind!r}"))
        if not _is_int(entry.step):
            errors.append((f"{field}.step", f"must be an integer, got {entry.step!r}"))
            continue
        if _is_int(config.steps) and not 0 <= entry.step <= config.steps:
            errors.append((f"{field}.step", f"{entry.step} outside [0, {config.steps}]"))
        if previous is not None and entry.step < previous:
            errors.append((f"{field}.step", f"{entry.step} precedes earlier step {previous}"))
        previous = entry.step

    return errors


def validate_config(config: RunConfig) -> RunConfig:
    """
    Fail fast on an invalid RunConfig.

    Args:
        config: RunConfig to check

    Returns:
        The same config, when valid

    Raises:
        ConfigError: naming the first offending field (all failures in .errors)
    """
    errors = collect_config_errors(config)
    if errors:
        field, message = errors[0]
        raise ConfigError(field, message, errors)
    return config


def emit_config_rejected(error: ConfigError, run_label: str = "") -> dict:
    """Receipt for a config that never reached the stepping loop."""
    return emit_receipt("config_rejected", {
        "run_label": run_label,
        "field": error.field,
        "message": error.message,
        "error_count": len(error.errors),
        "errors": [f"{f}: {m}" for f, m in error.errors],
    })


# =============================================================================
# RUN INVARIANTS
# =============================================================================

def stoprule_out_of_bounds(state: GridState, config: RunConfig) -> None:
    """
    Stoprule for a recorded position outside [0, size_x] x [0, size_y].

    A boundary rule that leaves the point outside the grid is an engine
    defect, so the run halts instead of recording the state.
    """
    if 0 <= state.x <= config.size_x and 0 <= state.y <= config.size_y:
        return
    emit_receipt("anomaly", {
        "metric": "position",
        "step": state.step,
        "x": state.x,
        "y": state.y,
        "size_x": config.size_x,
        "size_y": config.size_y,
        "classification": "out_of_bounds",
        "action": "halt",
    })
    raise StopRule(
        f"Position ({state.x}, {state.y}) at step {state.step} outside "
        f"[0, {config.size_x}] x [0, {config.size_y}]"
    )
