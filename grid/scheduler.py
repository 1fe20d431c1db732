"""
grid/scheduler.py - Inversion Scheduler

Walks an ordered (step, kind) schedule with a cursor. Thresholds use ">="
semantics: every entry whose step is at or below the current index fires on
the next call, so no entry is skipped when the loop moves past its exact step.
"""

from typing import List, Optional, Sequence

from .constants import InversionKind
from .types_config import ScheduleEntry


class InversionScheduler:
    """Fires each schedule entry exactly once, in schedule order."""

    def __init__(self, schedule: Sequence[ScheduleEntry], initial_kind: Optional[InversionKind] = None):
        # Stable sort keeps equal-step entries in their listed order
        self._schedule: List[ScheduleEntry] = sorted(schedule, key=lambda e: e.step)
        self._cursor = 0
        self.active_kind: Optional[InversionKind] = initial_kind
        self.fired: List[ScheduleEntry] = []

    @property
    def pending(self) -> int:
        return len(self._schedule) - self._cursor

    @property
    def exhausted(self) -> bool:
        return self._cursor >= len(self._schedule)

    def peek(self) -> Optional[ScheduleEntry]:
        """Next unapplied entry, if any."""
        if self.exhausted:
            return None
        return self._schedule[self._cursor]

    def advance(self, index: int) -> List[ScheduleEntry]:
        """
        Apply every unapplied entry with step <= index.

        Args:
            index: Current step index

        Returns:
            Entries fired by this call, in schedule order (possibly empty)
        """
        fired = []
        while not self.exhausted and self._schedule[self._cursor].step <= index:
            entry = self._schedule[self._cursor]
            self.active_kind = entry.kind
            self._cursor += 1
            fired.append(entry)
        self.fired.extend(fired)
        return fired

    def last_fired_step(self) -> Optional[int]:
        return self.fired[-1].step if self.fired else None
