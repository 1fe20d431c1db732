"""
grid/types_result.py - RunResult Dataclass

Immutable container for one completed run.
"""

from dataclasses import dataclass, field
from typing import Tuple

from .constants import VariantKind
from .types_config import RunConfig, ScheduleEntry
from .types_state import EventLog, TrajectoryBuffer


@dataclass(frozen=True)
class RunResult:
    """Immutable run result."""
    config: RunConfig
    variant: VariantKind
    trajectory: TrajectoryBuffer
    events: EventLog
    fired_schedule: Tuple[ScheduleEntry, ...] = field(default_factory=tuple)
    statistics: dict = field(default_factory=dict)
