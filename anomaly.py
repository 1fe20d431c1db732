"""
anomaly.py - Anomaly Metrics Engine

Pure scoring over a completed run: (trajectory, event log, config) in,
AnomalyScoreSet out. No receipts, no hidden state; calling it twice on the
same inputs returns equal score sets.

Degenerate inputs never raise. A zero denominator yields 0.0 and a zero
phase variance yields PHASE_PERIODICITY_CAP, so every score is finite.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np
from sympy import isprime

from grid.constants import (
    BAND_THRESHOLD,
    SPECTRAL_THRESHOLD,
    PHASE_PERIODICITY_CAP,
    SPECTRAL_WINDOW_CAPACITY,
    SCORE_NAMES,
)
from grid.types_config import RunConfig
from grid.types_state import Event, GridState
from spectral import SpectralAnalyzer

__all__ = [
    "AnomalyScoreSet",
    "PrimePolicy",
    "all_spacings_prime",
    "distinct_spacing_count_prime",
    "event_spacings",
    "compute_scores",
]

# spacings -> bool
PrimePolicy = Callable[[Sequence[int]], bool]


@dataclass(frozen=True)
class AnomalyScoreSet:
    """Named finite scores for one run plus the derived checks."""
    scores: Dict[str, float] = field(default_factory=dict)
    band_ok: bool = False
    prime_ok: bool = False
    spectral_ok: bool = False

    @property
    def is_optimal(self) -> bool:
        return self.band_ok and self.prime_ok and self.spectral_ok

    def __getitem__(self, name: str) -> float:
        return self.scores[name]

    def behavior_sample(self) -> float:
        """
        Scalar summary fed to a per-entity SpectralAnalyzer.

        Sum of all scores, with the zero-variance sentinel left out.
        """
        return float(sum(v for v in self.scores.values() if v != PHASE_PERIODICITY_CAP))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scores": dict(self.scores),
            "band_ok": self.band_ok,
            "prime_ok": self.prime_ok,
            "spectral_ok": self.spectral_ok,
            "is_optimal": self.is_optimal,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnomalyScoreSet":
        return cls(
            scores={k: float(v) for k, v in data.get("scores", {}).items()},
            band_ok=bool(data.get("band_ok", False)),
            prime_ok=bool(data.get("prime_ok", False)),
            spectral_ok=bool(data.get("spectral_ok", False)),
        )


# =============================================================================
# PRIME POLICIES
# =============================================================================

def all_spacings_prime(spacings: Sequence[int]) -> bool:
    """Default policy: at least one spacing, and every distinct spacing is prime."""
    distinct = set(spacings)
    return bool(distinct) and all(isprime(s) for s in distinct)


def distinct_spacing_count_prime(spacings: Sequence[int]) -> bool:
    """Alternative policy: the number of distinct spacings is prime."""
    return bool(isprime(len(set(spacings))))


# =============================================================================
# METRICS
# =============================================================================

def _ratio(numerator: float, denominator: float) -> float:
    return float(numerator) / float(denominator) if denominator else 0.0


def event_spacings(events: Sequence[Event]) -> list:
    """Step distance between consecutive events."""
    return [events[i].step - events[i - 1].step for i in range(1, len(events))]


def _trajectory_variance(trajectory: Sequence[GridState]) -> float:
    if not trajectory:
        return 0.0
    xs = np.fromiter((s.x for s in trajectory), dtype=np.float64, count=len(trajectory))
    ys = np.fromiter((s.y for s in trajectory), dtype=np.float64, count=len(trajectory))
    return float(np.var(xs) + np.var(ys))


def _phase_periodicity(phases: np.ndarray) -> float:
    if phases.size == 0:
        return PHASE_PERIODICITY_CAP
    variance = float(np.var(phases))
    if variance == 0.0:
        return PHASE_PERIODICITY_CAP
    return min(1.0 / variance, PHASE_PERIODICITY_CAP)


def _velocity_anomaly(trajectory: Sequence[GridState]) -> float:
    if not trajectory:
        return 0.0
    vx = np.fromiter((s.vx for s in trajectory), dtype=np.float64, count=len(trajectory))
    vy = np.fromiter((s.vy for s in trajectory), dtype=np.float64, count=len(trajectory))
    return float(np.mean(np.sqrt(vx * vx + vy * vy)))


def compute_scores(trajectory: Sequence[GridState],
                   events: Sequence[Event],
                   config: RunConfig,
                   prime_policy: Optional[PrimePolicy] = None,
                   band_threshold: int = BAND_THRESHOLD,
                   spectral_threshold: float = SPECTRAL_THRESHOLD) -> AnomalyScoreSet:
    """
    Score one completed run.

    Args:
        trajectory: Recorded states, in step order
        events: Event log, in step order
        config: RunConfig that produced the run
        prime_policy: Predicate over event spacings (default all_spacings_prime)
        band_threshold: Max distinct spacings for band_ok
        spectral_threshold: Periodicity score the phase sequence must exceed

    Returns:
        AnomalyScoreSet with every name in SCORE_NAMES
    """
    policy = prime_policy if prime_policy is not None else all_spacings_prime
    steps = config.steps
    n_events = len(events)

    inversion_events = [e for e in events if e.is_inversion]
    randomness = _ratio(n_events, steps)

    if inversion_events:
        reemergence = float(steps - inversion_events[-1].step)
    else:
        reemergence = 0.0

    phases = np.fromiter((s.phase for s in trajectory), dtype=np.float64, count=len(trajectory))
    unique_positions = len({(s.x, s.y) for s in trajectory})

    scores = {
        "randomness": randomness,
        "structure": 1.0 - randomness,
        "reemergence": reemergence,
        "event_density": _ratio(n_events, steps),
        "trajectory_variance": _trajectory_variance(trajectory),
        "phase_periodicity": _phase_periodicity(phases),
        "inversion_frequency": _ratio(len(inversion_events), steps),
        "velocity_anomaly": _velocity_anomaly(trajectory),
        "chaos_index": _ratio(steps, unique_positions),
    }
    assert list(scores) == SCORE_NAMES, "score names drifted from SCORE_NAMES"

    spacings = event_spacings(events)
    band_ok = len(set(spacings)) <= band_threshold
    prime_ok = bool(policy(spacings))

    # Fresh analyzer so scoring stays free of shared state
    analyzer = SpectralAnalyzer(capacity=SPECTRAL_WINDOW_CAPACITY)
    analyzer.extend(phases.tolist())
    spectral_ok = analyzer.analyze().periodicity_score > spectral_threshold

    return AnomalyScoreSet(
        scores=scores,
        band_ok=band_ok,
        prime_ok=prime_ok,
        spectral_ok=spectral_ok,
    )
