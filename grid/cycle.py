"""
grid/cycle.py - Grid State Machine

Main simulation entry points: initialize_state, run_simulation, run_batch.

Iteration order for index i (0 <= i < steps):
  1. the scheduler fires every entry with step <= i and may switch the active kind
  2. for i > 0 the variant moves the point and updates the phase
  3. the state is appended; inversion events precede the boundary event of the same step
Entries scheduled exactly at `steps` are drained after the loop.
"""

from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from .constants import VariantKind
from .scheduler import InversionScheduler
from .types_config import RunConfig, ScheduleEntry
from .types_result import RunResult
from .types_state import Event, EventLog, GridState, TrajectoryBuffer, inversion_event_type
from .validation import ConfigError, emit_config_rejected, stoprule_out_of_bounds, validate_config
from .variants import DEFAULT_BOUNDARY_TRANSFORMS, TransformTable, step


def initialize_state(config: RunConfig) -> GridState:
    """
    Initial snapshot from the config.

    Args:
        config: Validated RunConfig

    Returns:
        GridState at step 0 with no active kind
    """
    return GridState(
        x=config.x0,
        y=config.y0,
        vx=config.vx0,
        vy=config.vy0,
        phase=float(config.phase0),
        inverted=None,
        step=0,
    )


def _inversion_event(entry: ScheduleEntry, index: int, trigger: GridState,
                     phase_before: float, phase_after: float) -> Event:
    return Event(
        step=index,
        event_type=inversion_event_type(entry.kind),
        phase_before=phase_before,
        phase_after=phase_after,
        x=trigger.x,
        y=trigger.y,
        vx=trigger.vx,
        vy=trigger.vy,
    )


def simulate_step(state: GridState, index: int, config: RunConfig, variant: VariantKind,
                  scheduler: InversionScheduler,
                  transforms: TransformTable = DEFAULT_BOUNDARY_TRANSFORMS
                  ) -> Tuple[GridState, List[Event]]:
    """
    One iteration of the state machine.

    Args:
        state: Snapshot recorded at index - 1 (or the initial state for index 0)
        index: Iteration index
        config: Run parameters
        variant: Boundary behavior
        scheduler: Scheduler for this run (advanced in place)
        transforms: Per-kind boundary table for INVERSION_REFLECT

    Returns:
        (state to record at `index`, events produced at `index` in order)
    """
    fired = scheduler.advance(index)
    trigger = state

    if index == 0:
        # Nothing moves on the first iteration; only the marker can change
        next_state = replace(state, inverted=scheduler.active_kind)
        boundary_event = None
    else:
        next_state, boundary_event = step(state, config, variant, scheduler.active_kind, transforms)

    stoprule_out_of_bounds(next_state, config)

    events = [
        _inversion_event(entry, index, trigger, state.phase, next_state.phase)
        for entry in fired
    ]
    if boundary_event is not None:
        events.append(boundary_event)
    return next_state, events


def run_simulation(config: RunConfig,
                   variant: VariantKind = VariantKind.INVERSION_REFLECT,
                   transforms: TransformTable = DEFAULT_BOUNDARY_TRANSFORMS) -> RunResult:
    """
    Run a complete simulation.

    Args:
        config: RunConfig (validated here before stepping)
        variant: Boundary behavior for the whole run
        transforms: Per-kind boundary table (see grid.variants.boundary_transforms)

    Returns:
        RunResult with a trajectory of exactly `config.steps` states

    Raises:
        ConfigError: when the config is invalid; nothing is produced
    """
    validate_config(config)

    scheduler = InversionScheduler(config.inversion_schedule)
    trajectory = TrajectoryBuffer()
    events = EventLog()

    state = initialize_state(config)
    for index in range(config.steps):
        state, step_events = simulate_step(state, index, config, variant, scheduler, transforms)
        trajectory.append(state)
        for event in step_events:
            events.append(event)

    # Entries at step == steps lie past the last recorded index
    for entry in scheduler.advance(config.steps):
        events.append(_inversion_event(entry, config.steps, state, state.phase, state.phase))

    inversion_count = len(events.inversion_events())
    statistics = {
        "steps": config.steps,
        "trajectory_length": len(trajectory),
        "events": len(events),
        "inversion_events": inversion_count,
        "boundary_events": len(events) - inversion_count,
        "last_inversion_step": scheduler.last_fired_step(),
        "final_kind": scheduler.active_kind.value if scheduler.active_kind is not None else None,
        "final_position": [state.x, state.y],
    }

    return RunResult(
        config=config,
        variant=variant,
        trajectory=trajectory,
        events=events,
        fired_schedule=tuple(scheduler.fired),
        statistics=statistics,
    )


def run_batch(configs: Sequence[RunConfig],
              variant: VariantKind = VariantKind.INVERSION_REFLECT,
              transforms: TransformTable = DEFAULT_BOUNDARY_TRANSFORMS
              ) -> Tuple[List[Optional[RunResult]], List[dict]]:
    """
    Run independent simulations in sequence.

    A rejected config does not abort the batch: its slot holds None and a
    config_rejected receipt is returned.

    Args:
        configs: RunConfig objects
        variant: Boundary behavior for every run
        transforms: Per-kind boundary table shared by every run

    Returns:
        (results aligned with configs, config_rejected receipts)
    """
    results: List[Optional[RunResult]] = []
    rejected: List[dict] = []
    for i, config in enumerate(configs):
        try:
            results.append(run_simulation(config, variant, transforms))
        except ConfigError as e:
            rejected.append(emit_config_rejected(e, run_label=f"batch[{i}]"))
            results.append(None)
    return results, rejected
