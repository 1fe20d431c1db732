"""
grid/types_config.py - RunConfig Dataclass and Scenario Presets

Immutable configuration for simulation runs. Frozen dataclasses, no stepping behavior.
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from .constants import (
    InversionKind,
    REFERENCE_SIZE_X,
    REFERENCE_SIZE_Y,
    REFERENCE_STEPS,
    REFERENCE_MULTIPLIER,
    REFERENCE_MOD,
    REFERENCE_SCHEDULE_FRACTIONS,
    REFERENCE_SCHEDULE_KINDS,
)


class ConfigError(ValueError):
    """Invalid RunConfig. `field` names the first offending field."""

    def __init__(self, field: str, message: str, errors: Optional[List[Tuple[str, str]]] = None):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message
        self.errors = errors if errors is not None else [(field, message)]


@dataclass(frozen=True)
class ScheduleEntry:
    """One inversion threshold: switch to `kind` once the step index reaches `step`."""
    step: int
    kind: Union[InversionKind, str]

    def __post_init__(self):
        # Known names become enum members; unknown names are left for validation to report
        if isinstance(self.kind, str):
            try:
                object.__setattr__(self, "kind", InversionKind(self.kind))
            except ValueError:
                pass

    @property
    def kind_name(self) -> str:
        return self.kind.value if isinstance(self.kind, InversionKind) else str(self.kind)

    def to_dict(self) -> Dict[str, Any]:
        return {"step": self.step, "kind": self.kind_name}


@dataclass(frozen=True)
class RunConfig:
    """Simulation parameters for one run (immutable)."""
    size_x: int = REFERENCE_SIZE_X
    size_y: int = REFERENCE_SIZE_Y
    x0: int = 1
    y0: int = 1
    vx0: int = 1
    vy0: int = 1
    phase0: float = 0.0
    steps: int = REFERENCE_STEPS
    multiplier: int = REFERENCE_MULTIPLIER
    mod: int = REFERENCE_MOD
    inversion_schedule: Tuple[ScheduleEntry, ...] = field(default_factory=tuple)

    def __post_init__(self):
        """
        Normalize the schedule to a tuple of ScheduleEntry.

        Raises:
            ConfigError: if the schedule or one of its entries has the wrong shape
        """
        schedule = self.inversion_schedule
        if isinstance(schedule, (str, bytes, Mapping)) or not isinstance(schedule, Iterable):
            raise ConfigError("inversion_schedule",
                              f"must be a list of entries, got {type(schedule).__name__}")
        entries = []
        for i, entry in enumerate(schedule):
            if isinstance(entry, ScheduleEntry):
                entries.append(entry)
            elif isinstance(entry, Mapping):
                entries.append(ScheduleEntry(step=entry.get("step"), kind=entry.get("kind")))
            elif isinstance(entry, (list, tuple)) and len(entry) == 2:
                step, kind = entry
                entries.append(ScheduleEntry(step=step, kind=kind))
            else:
                raise ConfigError(f"inversion_schedule[{i}]",
                                  f"expected (step, kind) or a mapping, got {entry!r}")
        object.__setattr__(self, "inversion_schedule", tuple(entries))

    def to_dict(self) -> Dict[str, Any]:
        """Export as the camelCase dict used in run artifacts."""
        return {
            "sizeX": self.size_x,
            "sizeY": self.size_y,
            "x0": self.x0,
            "y0": self.y0,
            "vx0": self.vx0,
            "vy0": self.vy0,
            "phase0": self.phase0,
            "steps": self.steps,
            "multiplier": self.multiplier,
            "mod": self.mod,
            "inversionSchedule": [e.to_dict() for e in self.inversion_schedule],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunConfig":
        """
        Build a RunConfig from either camelCase (artifact) or snake_case keys.

        Missing keys take the dataclass defaults. No validation happens here;
        call grid.validation.validate_config before stepping.
        """
        aliases = {
            "sizeX": "size_x",
            "sizeY": "size_y",
            "inversionSchedule": "inversion_schedule",
        }
        kwargs = {}
        for key, value in data.items():
            name = aliases.get(key, key)
            if name in cls.__dataclass_fields__:
                kwargs[name] = value
        if "inversion_schedule" in kwargs and kwargs["inversion_schedule"] is None:
            kwargs["inversion_schedule"] = ()
        return cls(**kwargs)


def reference_schedule(steps: int) -> Tuple[ScheduleEntry, ...]:
    """Inversions at 20/40/60/80 % of `steps`, one per kind."""
    return tuple(
        ScheduleEntry(step=int(math.floor(steps * fraction)), kind=kind)
        for fraction, kind in zip(REFERENCE_SCHEDULE_FRACTIONS, REFERENCE_SCHEDULE_KINDS)
    )


def make_reference_config(steps: int = REFERENCE_STEPS,
                          size_x: int = REFERENCE_SIZE_X,
                          size_y: int = REFERENCE_SIZE_Y,
                          schedule: bool = True) -> RunConfig:
    """Reference run: start (1,1), velocity (1,1), phase 0, x7 mod 1000003."""
    return RunConfig(
        size_x=size_x,
        size_y=size_y,
        x0=1,
        y0=1,
        vx0=1,
        vy0=1,
        phase0=0.0,
        steps=steps,
        multiplier=REFERENCE_MULTIPLIER,
        mod=REFERENCE_MOD,
        inversion_schedule=reference_schedule(steps) if schedule else (),
    )


# =============================================================================
# SCENARIO PRESETS
# =============================================================================

SCENARIO_REFERENCE = make_reference_config()

SCENARIO_NO_SCHEDULE = make_reference_config(schedule=False)

SCENARIO_SHORT = make_reference_config(steps=2003)

SCENARIO_WIDE = RunConfig(
    size_x=20,
    size_y=20,
    x0=3,
    y0=11,
    vx0=-4,
    vy0=3,
    phase0=0.25,
    steps=10007,
    multiplier=3,
    mod=REFERENCE_MOD,
    inversion_schedule=reference_schedule(10007),
)

MANDATORY_SCENARIOS = {
    "REFERENCE": SCENARIO_REFERENCE,
    "NO_SCHEDULE": SCENARIO_NO_SCHEDULE,
    "SHORT": SCENARIO_SHORT,
    "WIDE": SCENARIO_WIDE,
}
