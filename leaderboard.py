"""
leaderboard.py - Bounded TopK Leaderboards per Category

A TopKLeaderboard keeps at most `capacity` entries sorted by score
descending; equal scores keep insertion order. Once full, a candidate must
beat the current minimum to get in, and the minimum is evicted.

LeaderboardBook owns one leaderboard per category and the criteria that turn
a scored run into (category, score) candidates. Custom criteria can be
registered at runtime.
"""

import math
from bisect import bisect_right
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from receipts import emit_receipt
from grid.constants import (
    BAND_THRESHOLD,
    BUILTIN_CATEGORIES,
    EVENT_DENSITY_MIN_EVENTS,
    LEADERBOARD_CAPACITY,
    PHASE_PERIODICITY_CAP,
)
from grid.types_result import RunResult
from anomaly import AnomalyScoreSet, event_spacings

__all__ = [
    "LeaderboardEntry",
    "TopKLeaderboard",
    "LeaderboardBook",
    "Criterion",
    "builtin_criterion",
    "spacing_band_criterion",
    "phase_anomaly_criterion",
    "SPACING_BANDS_CATEGORY",
    "PHASE_ANOMALY_CATEGORY",
]

# (result, scores) -> iterable of (category, score)
Criterion = Callable[[RunResult, AnomalyScoreSet], Iterable[Tuple[str, float]]]

SPACING_BANDS_CATEGORY = "Spacing Bands"
PHASE_ANOMALY_CATEGORY = "Phase Anomaly"


@dataclass(frozen=True)
class LeaderboardEntry:
    run_id: str
    config: Dict[str, Any] = field(default_factory=dict)  # RunConfig.to_dict() snapshot
    scores: Optional[AnomalyScoreSet] = None
    score: float = 0.0
    category: str = ""
    seq: int = 0                                           # insertion order, assigned on insert

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "config": dict(self.config),
            "scores": self.scores.to_dict() if self.scores is not None else None,
            "score": self.score,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LeaderboardEntry":
        scores = data.get("scores")
        return cls(
            run_id=str(data["run_id"]),
            config=dict(data.get("config") or {}),
            scores=AnomalyScoreSet.from_dict(scores) if scores else None,
            score=float(data["score"]),
            category=str(data.get("category", "")),
        )


# =============================================================================
# TOPK LEADERBOARD
# =============================================================================

class TopKLeaderboard:
    """Capacity-bounded ranking for one category."""

    def __init__(self, capacity: int = LEADERBOARD_CAPACITY, category: str = ""):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.category = category
        self._entries: List[LeaderboardEntry] = []
        self._keys: List[Tuple[float, int]] = []  # (-score, seq), ascending
        self._next_seq = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LeaderboardEntry]:
        return iter(self._entries)

    @property
    def is_full(self) -> bool:
        return len(self._entries) >= self.capacity

    @property
    def min_score(self) -> Optional[float]:
        return self._entries[-1].score if self._entries else None

    def insert(self, entry: LeaderboardEntry) -> bool:
        """
        Offer an entry.

        Args:
            entry: Candidate; its seq and category are overwritten

        Returns:
            True if the entry was stored, False if it did not qualify

        Raises:
            ValueError: if the score is not finite
        """
        score = float(entry.score)
        if not math.isfinite(score):
            raise ValueError(f"score must be finite, got {entry.score!r}")
        if self.is_full and score <= self._entries[-1].score:
            return False

        if self.is_full:
            self._entries.pop()
            self._keys.pop()

        entry = replace(entry, score=score, category=self.category, seq=self._next_seq)
        self._next_seq += 1
        key = (-score, entry.seq)
        i = bisect_right(self._keys, key)
        self._keys.insert(i, key)
        self._entries.insert(i, entry)

        self._check_invariants()
        return True

    def query(self, n: Optional[int] = None) -> List[LeaderboardEntry]:
        """Top n entries (all when n is None), best first."""
        if n is None:
            return list(self._entries)
        return self._entries[:max(n, 0)]

    def run_ids(self) -> List[str]:
        return [e.run_id for e in self._entries]

    def _check_invariants(self) -> None:
        assert len(self._entries) <= self.capacity, "leaderboard over capacity"
        assert all(
            self._keys[i] <= self._keys[i + 1] for i in range(len(self._keys) - 1)
        ), "leaderboard out of order"


# =============================================================================
# CRITERIA
# =============================================================================

def builtin_criterion(result: RunResult, scores: AnomalyScoreSet) -> Iterable[Tuple[str, float]]:
    """Candidates for the built-in categories."""
    yield "randomness", scores["randomness"]
    yield "structure", scores["structure"]
    yield "reemergence", scores["reemergence"]
    n_events = len(result.events)
    if n_events > EVENT_DENSITY_MIN_EVENTS:
        yield "event_density", float(n_events)


def spacing_band_criterion(result: RunResult, scores: AnomalyScoreSet) -> Iterable[Tuple[str, float]]:
    """Runs whose event spacings fall into a few discrete bands, ranked by band count."""
    unique = set(event_spacings(result.events))
    if unique and len(unique) <= BAND_THRESHOLD:
        yield SPACING_BANDS_CATEGORY, float(len(unique))


def phase_anomaly_criterion(result: RunResult, scores: AnomalyScoreSet) -> Iterable[Tuple[str, float]]:
    """Runs with a varying phase sequence, ranked by phase periodicity."""
    periodicity = scores["phase_periodicity"]
    # The cap marks a constant phase sequence
    if periodicity < PHASE_PERIODICITY_CAP:
        yield PHASE_ANOMALY_CATEGORY, periodicity


# =============================================================================
# CATEGORY BOOK
# =============================================================================

class LeaderboardBook:
    """One TopKLeaderboard per category, fed by registered criteria."""

    def __init__(self, capacity: int = LEADERBOARD_CAPACITY,
                 categories: Iterable[str] = BUILTIN_CATEGORIES):
        self.capacity = capacity
        self.boards: Dict[str, TopKLeaderboard] = {}
        self.criteria: Dict[str, Criterion] = {"builtin": builtin_criterion}
        for category in categories:
            self.board(category)

    def board(self, category: str) -> TopKLeaderboard:
        """Leaderboard for a category, created empty on first use."""
        if category not in self.boards:
            self.boards[category] = TopKLeaderboard(self.capacity, category)
        return self.boards[category]

    def categories(self) -> List[str]:
        return list(self.boards)

    def register_criterion(self, name: str, criterion: Criterion) -> dict:
        """
        Add a custom criterion.

        Raises:
            ValueError: if a criterion with that name already exists
        """
        if name in self.criteria:
            raise ValueError(f"Criterion '{name}' already registered")
        self.criteria[name] = criterion
        return emit_receipt("criterion_registered", {"criterion": name})

    def submit(self, run_id: str, result: RunResult, scores: AnomalyScoreSet) -> List[dict]:
        """
        Rank one scored run in every category its criteria produce.

        Returns:
            One leaderboard_insert receipt per accepted entry
        """
        snapshot = result.config.to_dict()
        receipts = []
        for name, criterion in self.criteria.items():
            for category, score in criterion(result, scores):
                board = self.board(category)
                entry = LeaderboardEntry(run_id=run_id, config=snapshot, scores=scores, score=score)
                if board.insert(entry):
                    receipts.append(emit_receipt("leaderboard_insert", {
                        "run_id": run_id,
                        "category": category,
                        "criterion": name,
                        "score": float(score),
                        "size": len(board),
                        "min_score": board.min_score,
                    }))
        return receipts

    def query(self, category: str, n: Optional[int] = None) -> List[LeaderboardEntry]:
        if category not in self.boards:
            return []
        return self.boards[category].query(n)

    def run_ids(self) -> set:
        """Every run id held by at least one leaderboard."""
        ids = set()
        for board in self.boards.values():
            ids.update(board.run_ids())
        return ids
