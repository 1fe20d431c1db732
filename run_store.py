"""
run_store.py - Run Artifact Store

Layout under a runs directory:

    runs/
      run_000001/
        run_000001.events.csv
        run_000001.trajectory.json
        run_000001.config.json
        receipts.jsonl

Run ids come from a persistent counter file. A run directory is written once;
allocating an id whose directory already exists is an error.
"""

import logging
import shutil
from pathlib import Path
from typing import List, Optional, Tuple, Union

from receipts import append_receipts, emit_receipt
from grid.export import config_to_json, events_to_csv, events_from_csv, trajectory_to_json
from grid.types_result import RunResult
from grid.types_state import Event

logger = logging.getLogger(__name__)

__all__ = [
    "RunCounter",
    "format_run_id",
    "allocate_run_dir",
    "write_outputs",
    "read_events",
    "list_run_ids",
    "delete_run",
]

RUN_ID_PREFIX = "run_"
RECEIPTS_FILE = "receipts.jsonl"


def format_run_id(number: int) -> str:
    """Zero-padded run id, e.g. 1 -> run_000001."""
    return f"{RUN_ID_PREFIX}{number:06d}"


class RunCounter:
    """
    Persistent run number in a text file holding the next number to hand out.

    A missing file starts the count at 1. Anything other than a positive
    integer in the file raises ValueError.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def peek(self) -> int:
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("1")
            return 1
        text = self.path.read_text().strip()
        if not text.isdigit() or int(text) < 1:
            raise ValueError(f"Invalid run counter in {self.path}: {text!r}")
        return int(text)

    def claim(self, runs_dir: Union[str, Path]) -> Tuple[str, Path]:
        """
        Create the directory for the next run, then advance the counter.

        The counter only moves once the directory exists, so a collision
        leaves it untouched.

        Raises:
            FileExistsError: if the run directory already exists
        """
        number = self.peek()
        run_id = format_run_id(number)
        run_dir = allocate_run_dir(runs_dir, run_id)
        self.path.write_text(str(number + 1))
        return run_id, run_dir


def allocate_run_dir(runs_dir: Union[str, Path], run_id: str) -> Path:
    """
    Create the directory for a new run.

    Raises:
        FileExistsError: if the run directory already exists
    """
    run_dir = Path(runs_dir) / run_id
    if run_dir.exists():
        raise FileExistsError(f"Run directory already exists: {run_dir}")
    run_dir.mkdir(parents=True)
    return run_dir


def write_outputs(run_dir: Union[str, Path], run_id: str, result: RunResult,
                  extra_receipts: Optional[List[dict]] = None) -> dict:
    """
    Write the artifacts of one completed run.

    Args:
        run_dir: Directory from allocate_run_dir
        run_id: Run id used as the file stem
        result: Completed RunResult
        extra_receipts: Receipts appended after run_complete (e.g. scoring)

    Returns:
        The run_complete receipt
    """
    run_dir = Path(run_dir)
    events_path = run_dir / f"{run_id}.events.csv"
    trajectory_path = run_dir / f"{run_id}.trajectory.json"
    config_path = run_dir / f"{run_id}.config.json"

    events_path.write_text(events_to_csv(result.events))
    trajectory_path.write_text(trajectory_to_json(result.trajectory))
    config_path.write_text(config_to_json(result.config, result.variant.value))

    receipt = emit_receipt("run_complete", {
        "run_id": run_id,
        "variant": result.variant.value,
        "steps": result.config.steps,
        "trajectory_length": len(result.trajectory),
        "events": len(result.events),
        "inversion_events": result.statistics.get("inversion_events", 0),
        "files": [events_path.name, trajectory_path.name, config_path.name],
    })
    append_receipts([receipt] + list(extra_receipts or []), run_dir / RECEIPTS_FILE)
    logger.debug(f"Wrote run {run_id} to {run_dir}")
    return receipt


def read_events(run_dir: Union[str, Path], run_id: str) -> List[Event]:
    """Event table of a stored run."""
    return events_from_csv((Path(run_dir) / f"{run_id}.events.csv").read_text())


def list_run_ids(runs_dir: Union[str, Path]) -> List[str]:
    """Run ids with a directory under runs_dir, sorted."""
    root = Path(runs_dir)
    if not root.exists():
        return []
    return sorted(p.name for p in root.iterdir() if p.is_dir() and p.name.startswith(RUN_ID_PREFIX))


def delete_run(runs_dir: Union[str, Path], run_id: str) -> bool:
    """Remove a run directory. Returns False if it did not exist."""
    run_dir = Path(runs_dir) / run_id
    if not run_dir.exists():
        return False
    shutil.rmtree(run_dir)
    return True
