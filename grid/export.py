"""
grid/export.py - Event and Trajectory Tables, Run Report

Converts a RunResult into the tables handed to the persistence layer and
into a human-readable summary. No file layout decisions live here; see
run_store.py for where the tables go.
"""

import csv
import io
import json
from typing import Any, Dict, Iterable, List

from .constants import EVENT_TABLE_COLUMNS
from .types_config import RunConfig
from .types_result import RunResult
from .types_state import Event, GridState


def event_table(events: Iterable[Event]) -> List[List[Any]]:
    """Rows in EVENT_TABLE_COLUMNS order, step-ordered."""
    return [event.to_row() for event in events]


def events_to_csv(events: Iterable[Event]) -> str:
    """Event table as CSV text with a header row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EVENT_TABLE_COLUMNS)
    writer.writerows(event_table(events))
    return buffer.getvalue()


def events_from_csv(text: str) -> List[Event]:
    """
    Parse an event table written by events_to_csv.

    Rows with fewer than eight columns are skipped.
    """
    reader = csv.reader(io.StringIO(text))
    rows = list(reader)
    parsed = []
    for row in rows[1:]:
        if len(row) < len(EVENT_TABLE_COLUMNS):
            continue
        step, event_type, phase_before, phase_after, x, y, vx, vy = row[:8]
        parsed.append(Event(
            step=int(step),
            event_type=event_type,
            phase_before=float(phase_before),
            phase_after=float(phase_after),
            x=int(x),
            y=int(y),
            vx=int(vx),
            vy=int(vy),
        ))
    return parsed


def trajectory_table(trajectory: Iterable[GridState]) -> List[Dict[str, Any]]:
    return [state.to_dict() for state in trajectory]


def trajectory_to_json(trajectory: Iterable[GridState]) -> str:
    return json.dumps(trajectory_table(trajectory), separators=(",", ":"))


def config_to_json(config: RunConfig, variant_name: str = "") -> str:
    data = config.to_dict()
    if variant_name:
        data["variant"] = variant_name
    return json.dumps(data, indent=2)


def generate_report(result: RunResult) -> str:
    """
    Generate human-readable summary.

    Args:
        result: RunResult to summarize

    Returns:
        str: Report text
    """
    config = result.config
    stats = result.statistics
    schedule = ", ".join(f"{e.step}:{e.kind_name}" for e in config.inversion_schedule) or "none"
    lines = [
        "=== RUN REPORT ===",
        f"Variant: {result.variant.value}",
        f"Steps: {config.steps}",
        f"Grid: {config.size_x}x{config.size_y}",
        f"Start: x0={config.x0}, y0={config.y0}",
        f"Velocity: vx0={config.vx0}, vy0={config.vy0}",
        f"Multiplier: {config.multiplier}",
        f"Mod: {config.mod}",
        f"Schedule: {schedule}",
        f"Events: {stats.get('events', len(result.events))}",
        f"  inversion: {stats.get('inversion_events', 0)}",
        f"  boundary: {stats.get('boundary_events', 0)}",
        f"Trajectory points: {len(result.trajectory)}",
    ]
    return "\n".join(lines)
