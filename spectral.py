"""
spectral.py - Bounded Spectral Analyzer

Keeps a sliding window of scalar behavior samples (one analyzer per monitored
entity) and computes an approximate frequency-domain summary on demand.

The transform is a direct DFT restricted to min(N, 64) bins:

    real_k = sum_t x_t cos(2 pi k t / N)
    imag_k = -sum_t x_t sin(2 pi k t / N)
    mag_k  = sqrt(real_k^2 + imag_k^2) / N

Cost is O(N * 64) per analyze() call, with N capped by the window capacity.
Callers invoke analyze() at a coarse cadence, not on every sample.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterable, List, Optional

import numpy as np

from receipts import emit_receipt
from grid.constants import (
    SPECTRAL_WINDOW_CAPACITY,
    SPECTRAL_MAX_BINS,
    MIN_SPECTRAL_SAMPLES,
)

__all__ = [
    "SpectralData",
    "SpectralAnalyzer",
    "spectral_summary",
]


@dataclass(frozen=True)
class SpectralData:
    """Spectrum snapshot of one window."""
    frequencies: List[float] = field(default_factory=list)
    magnitudes: List[float] = field(default_factory=list)
    dominant_frequency: float = 0.0
    harmonics: List[float] = field(default_factory=list)
    periodicity_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frequencies": list(self.frequencies),
            "magnitudes": list(self.magnitudes),
            "dominantFrequency": self.dominant_frequency,
            "harmonics": list(self.harmonics),
            "periodicityScore": self.periodicity_score,
        }


def spectral_summary(samples: Iterable[float], max_bins: int = SPECTRAL_MAX_BINS) -> SpectralData:
    """
    Approximate DFT summary of a finite sample sequence.

    Args:
        samples: Scalar observations, oldest first
        max_bins: Upper bound on the number of frequency bins

    Returns:
        SpectralData. Bin 0 (the mean) is excluded from the dominant
        frequency and from the harmonics.
    """
    x = np.asarray(list(samples), dtype=np.float64)
    N = x.size
    if N == 0:
        return SpectralData()

    n_bins = min(N, max_bins)
    k = np.arange(n_bins, dtype=np.float64)[:, None]
    t = np.arange(N, dtype=np.float64)[None, :]
    angle = 2.0 * np.pi * k * t / N
    real = (x * np.cos(angle)).sum(axis=1)
    imag = -(x * np.sin(angle)).sum(axis=1)
    magnitudes = np.sqrt(real * real + imag * imag) / N
    frequencies = np.arange(n_bins, dtype=np.float64) / N

    dominant = 0.0
    max_mag = 0.0
    if n_bins > 1:
        idx = int(np.argmax(magnitudes[1:])) + 1
        if magnitudes[idx] > 0.0:
            max_mag = float(magnitudes[idx])
            dominant = float(frequencies[idx])

    threshold = max_mag * 0.5
    harmonics = [float(frequencies[i]) for i in range(1, n_bins) if magnitudes[i] > threshold]
    periodicity = len(harmonics) / n_bins if harmonics else 0.0

    return SpectralData(
        frequencies=[float(f) for f in frequencies],
        magnitudes=[float(m) for m in magnitudes],
        dominant_frequency=dominant,
        harmonics=harmonics,
        periodicity_score=periodicity,
    )


class SpectralAnalyzer:
    """
    Sliding window of behavior samples with an on-demand spectrum.

    Samples beyond `capacity` are dropped oldest-first. analyze() needs at
    least MIN_SPECTRAL_SAMPLES samples; below that it returns the previous
    snapshot unchanged.
    """

    def __init__(self, capacity: int = SPECTRAL_WINDOW_CAPACITY, max_bins: int = SPECTRAL_MAX_BINS,
                 entity_id: Optional[str] = None):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.max_bins = max_bins
        self.entity_id = entity_id
        self._window: Deque[float] = deque(maxlen=capacity)
        self._snapshot = SpectralData()
        self.pushed = 0

    def push(self, value: float) -> None:
        self._window.append(float(value))
        self.pushed += 1

    def extend(self, values: Iterable[float]) -> None:
        for value in values:
            self.push(value)

    def __len__(self) -> int:
        return len(self._window)

    @property
    def window(self) -> List[float]:
        return list(self._window)

    @property
    def snapshot(self) -> SpectralData:
        """Most recent analyze() result."""
        return self._snapshot

    def analyze(self) -> SpectralData:
        if len(self._window) < MIN_SPECTRAL_SAMPLES:
            return self._snapshot
        self._snapshot = spectral_summary(self._window, self.max_bins)
        return self._snapshot

    def analysis_receipt(self) -> dict:
        """Receipt describing the current snapshot."""
        return emit_receipt("spectral_analysis", {
            "entity_id": self.entity_id,
            "window_length": len(self._window),
            "samples_pushed": self.pushed,
            "dominant_frequency": self._snapshot.dominant_frequency,
            "harmonics": len(self._snapshot.harmonics),
            "periodicity_score": self._snapshot.periodicity_score,
        })
