"""
grid/variants.py - Variant Strategies (boundary rule + phase law)

Every variant implements the same contract:

    step(state, config, variant, active_kind) -> (next_state, optional_event)

Dispatch is an explicit branch on the closed VariantKind enum. Positions and
velocities stay integral and the phase comes from an integer residue, so a run
is bit-reproducible for a fixed config and variant.
"""

import math
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Tuple

from .constants import InversionKind, VariantKind, BOUNDARY_EVENT_TYPES
from .types_config import RunConfig
from .types_state import Event, GridState

# (coordinate, velocity, size) -> (coordinate, velocity)
BoundaryTransform = Callable[[int, int, int], Tuple[int, int]]


# =============================================================================
# PHASE LAW
# =============================================================================

def phase_residue(phase: float, mod: int) -> int:
    """Integer residue r with phase == r / mod."""
    return int(round(phase * mod)) % mod


def advance_phase(phase: float, config: RunConfig) -> float:
    """phase' = ((r * multiplier) mod mod) / mod, always in [0, 1)."""
    residue = phase_residue(phase, config.mod)
    return ((residue * config.multiplier) % config.mod) / config.mod


# =============================================================================
# PER-AXIS BOUNDARY RULES
# =============================================================================

def _clamp(u: int, size: int) -> int:
    return min(max(u, 0), size)


def reflect_axis(u: int, v: int, size: int) -> Tuple[int, int]:
    """Mirror the overshoot back inside and negate velocity."""
    if u < 0:
        u = -u
    else:
        u = 2 * size - u
    # Overshoot larger than the grid still ends on the wall
    return _clamp(u, size), -v


def clamp_axis(u: int, v: int, size: int) -> Tuple[int, int]:
    """Stop on the wall and negate velocity."""
    return _clamp(u, size), -v


def sticky_axis(u: int, v: int, size: int) -> Tuple[int, int]:
    """Stop on the wall; velocity unchanged, so the point keeps pressing outward."""
    return _clamp(u, size), v


def center_inversion_axis(u: int, v: int, size: int) -> Tuple[int, int]:
    """
    Map u through its reciprocal about the grid center.

    With center c = size/2 and half extent h = size/2, an outside point at
    offset d = u - c (|d| > h) maps to c + h^2/d, which lies inside. The result
    is rounded toward the center and velocity is negated.
    """
    center = size / 2.0
    half = size / 2.0
    offset = u - center
    mapped = center + (half * half) / offset
    if offset > 0:
        inside = int(math.floor(mapped))
    else:
        inside = int(math.ceil(mapped))
    return _clamp(inside, size), -v


# =============================================================================
# INVERSION-KIND TRANSFORMS
# =============================================================================

TransformTable = Mapping[InversionKind, BoundaryTransform]

# One entry per kind. All kinds share the center inversion until a per-kind
# formula has been checked against a reference run.
DEFAULT_BOUNDARY_TRANSFORMS: TransformTable = MappingProxyType({
    kind: center_inversion_axis for kind in InversionKind
})


def boundary_transforms(overrides: Optional[TransformTable] = None) -> TransformTable:
    """
    Read-only transform table for INVERSION_REFLECT.

    Starts from DEFAULT_BOUNDARY_TRANSFORMS and applies per-kind overrides.
    The default table itself never changes; callers hand the returned table
    to run_simulation (or keep it on an EngineContext).

    Raises:
        ValueError: if an override key is not an InversionKind
    """
    table = dict(DEFAULT_BOUNDARY_TRANSFORMS)
    for kind, transform in (overrides or {}).items():
        if not isinstance(kind, InversionKind):
            raise ValueError(f"Unknown inversion kind {kind!r}")
        table[kind] = transform
    return MappingProxyType(table)


def axis_rule(variant: VariantKind, active_kind: Optional[InversionKind],
              transforms: TransformTable = DEFAULT_BOUNDARY_TRANSFORMS) -> BoundaryTransform:
    """Select the per-axis boundary rule for a variant and the active kind."""
    if variant is VariantKind.REFLECT:
        return reflect_axis
    elif variant is VariantKind.CLAMP:
        return clamp_axis
    elif variant is VariantKind.STICKY:
        return sticky_axis
    elif variant is VariantKind.INVERSION_REFLECT:
        if active_kind is None:
            return reflect_axis
        return transforms[active_kind]
    raise ValueError(f"Unknown variant {variant!r}")


# =============================================================================
# STEP CONTRACT
# =============================================================================

def step(state: GridState, config: RunConfig, variant: VariantKind,
         active_kind: Optional[InversionKind],
         transforms: TransformTable = DEFAULT_BOUNDARY_TRANSFORMS) -> Tuple[GridState, Optional[Event]]:
    """
    Advance one step.

    Args:
        state: Current snapshot
        config: Run parameters
        variant: Boundary behavior
        active_kind: Kind currently switched on by the scheduler (or None)
        transforms: Per-kind table used by INVERSION_REFLECT

    Returns:
        (next_state, event) where event is the boundary Event when the
        tentative position left the grid, else None
    """
    rule = axis_rule(variant, active_kind, transforms)

    x, vx = state.x + state.vx, state.vx
    y, vy = state.y + state.vy, state.vy
    crossed = False
    if not 0 <= x <= config.size_x:
        x, vx = rule(x, vx, config.size_x)
        crossed = True
    if not 0 <= y <= config.size_y:
        y, vy = rule(y, vy, config.size_y)
        crossed = True

    phase_after = advance_phase(state.phase, config)
    next_state = GridState(
        x=x, y=y, vx=vx, vy=vy,
        phase=phase_after,
        inverted=active_kind,
        step=state.step + 1,
    )

    event = None
    if crossed:
        event = Event(
            step=next_state.step,
            event_type=BOUNDARY_EVENT_TYPES[variant],
            phase_before=state.phase,
            phase_after=phase_after,
            x=x, y=y, vx=vx, vy=vy,
        )
    return next_state, event
