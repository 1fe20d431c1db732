"""
category_store.py - Category Persistence and Run Retention

Each category leaderboard is stored as one JSON file named after the
category, spaces replaced by underscores ("Spacing Bands" ->
Spacing_Bands.json). Missing or unreadable files load as empty categories
with a logged warning.

Retention: a run directory is kept only while at least one leaderboard
holds its run id.
"""

import json
import logging
import math
from pathlib import Path
from typing import List, Union

from receipts import emit_receipt
from grid.constants import LEADERBOARD_CAPACITY
from leaderboard import LeaderboardBook, LeaderboardEntry
from run_store import delete_run, list_run_ids

logger = logging.getLogger(__name__)

__all__ = [
    "category_filename",
    "save_categories",
    "load_categories",
    "prune_runs",
]


def category_filename(category: str) -> str:
    return category.replace(" ", "_") + ".json"


def save_categories(book: LeaderboardBook, categories_dir: Union[str, Path]) -> List[Path]:
    """
    Write every category of the book, best entry first.

    Returns:
        Paths written
    """
    root = Path(categories_dir)
    root.mkdir(parents=True, exist_ok=True)
    written = []
    for category, board in book.boards.items():
        path = root / category_filename(category)
        doc = {
            "category": category,
            "capacity": board.capacity,
            "entries": [entry.to_dict() for entry in board.query()],
        }
        path.write_text(json.dumps(doc, indent=2))
        written.append(path)
    return written


def load_categories(categories_dir: Union[str, Path],
                    capacity: int = LEADERBOARD_CAPACITY) -> LeaderboardBook:
    """
    Rebuild a LeaderboardBook from category files.

    Entries are re-inserted in stored order, so ties keep their ranking. A file
    with any non-finite score is skipped whole.
    """
    book = LeaderboardBook(capacity=capacity)
    root = Path(categories_dir)
    if not root.exists():
        logger.warning(f"Categories directory not found: {root} - starting empty")
        return book

    for path in sorted(root.glob("*.json")):
        try:
            doc = json.loads(path.read_text())
            category = str(doc["category"])
            entries = [LeaderboardEntry.from_dict(e) for e in doc.get("entries", [])]
            for entry in entries:
                if not math.isfinite(entry.score):
                    raise ValueError(f"non-finite score {entry.score!r} for {entry.run_id}")
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Failed to read category file {path}: {e} - treating as empty")
            continue
        board = book.board(category)
        for entry in entries:
            board.insert(entry)
    return book


def prune_runs(runs_dir: Union[str, Path], book: LeaderboardBook) -> dict:
    """
    Delete run directories held by no leaderboard.

    Returns:
        runs_pruned receipt listing the deleted run ids
    """
    keep = book.run_ids()
    deleted = []
    for run_id in list_run_ids(runs_dir):
        if run_id not in keep and delete_run(runs_dir, run_id):
            deleted.append(run_id)
    if deleted:
        logger.info(f"Pruned {len(deleted)} runs outside every category")
    return emit_receipt("runs_pruned", {
        "deleted": deleted,
        "kept": len(keep),
    })
