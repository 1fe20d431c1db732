"""
grid/types_state.py - Per-Step State, Events, and Append-Only Run Buffers

GridState and Event are frozen once created. TrajectoryBuffer and EventLog are
owned by exactly one run and only ever grow.
"""

from dataclasses import dataclass
from collections.abc import Sequence
from typing import Any, Dict, Iterator, List, Optional

from .constants import InversionKind, INVERSION_EVENT_PREFIX


# =============================================================================
# SNAPSHOTS
# =============================================================================

@dataclass(frozen=True)
class GridState:
    """One per-step snapshot of the moving point."""
    x: int
    y: int
    vx: int
    vy: int
    phase: float
    inverted: Optional[InversionKind] = None  # active kind, None before any inversion
    step: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "x": self.x,
            "y": self.y,
            "vx": self.vx,
            "vy": self.vy,
            "phase": self.phase,
            "inverted": self.inverted.value if self.inverted is not None else None,
        }


@dataclass(frozen=True)
class Event:
    """
    A discrete occurrence during a run.

    Boundary events carry the variant's boundary kind as event_type
    (e.g. "REFLECT"); scheduler events carry "INVERSION:<KIND>".
    Position and velocity are taken at trigger time.
    """
    step: int
    event_type: str
    phase_before: float
    phase_after: float
    x: int
    y: int
    vx: int
    vy: int

    @property
    def is_inversion(self) -> bool:
        return self.event_type.startswith(INVERSION_EVENT_PREFIX)

    def to_row(self) -> List[Any]:
        """Row in EVENT_TABLE_COLUMNS order."""
        return [self.step, self.event_type, self.phase_before, self.phase_after,
                self.x, self.y, self.vx, self.vy]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "eventType": self.event_type,
            "phaseBefore": self.phase_before,
            "phaseAfter": self.phase_after,
            "x": self.x,
            "y": self.y,
            "vx": self.vx,
            "vy": self.vy,
        }


def inversion_event_type(kind: InversionKind) -> str:
    """Event type recorded when the scheduler switches into `kind`."""
    return f"{INVERSION_EVENT_PREFIX}{kind.value}"


# =============================================================================
# APPEND-ONLY BUFFERS
# =============================================================================

class TrajectoryBuffer(Sequence):
    """Ordered, append-only sequence of GridState for one run."""

    def __init__(self):
        self._states: List[GridState] = []

    def append(self, state: GridState) -> None:
        self._states.append(state)

    def __getitem__(self, index):
        return self._states[index]

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[GridState]:
        return iter(self._states)


class EventLog(Sequence):
    """Ordered, append-only event list; steps never decrease."""

    def __init__(self):
        self._events: List[Event] = []

    def append(self, event: Event) -> None:
        if self._events and event.step < self._events[-1].step:
            raise ValueError(
                f"Event at step {event.step} appended after step {self._events[-1].step}"
            )
        self._events.append(event)

    def __getitem__(self, index):
        return self._events[index]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def inversion_events(self) -> List[Event]:
        return [e for e in self._events if e.is_inversion]

    def boundary_events(self) -> List[Event]:
        return [e for e in self._events if not e.is_inversion]
