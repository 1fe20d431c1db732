"""
fleet.py - Engine Context, Config Policy, Periodic Driver

One EngineContext owns everything that outlives a single run: settings, the
run counter, the leaderboard book with its registered criteria, the boundary
transform table, per-bot spectral analyzers, bounded score history and the
receipt ledger. No module-level state.

Each driver iteration runs one simulation per bot, sequentially:
  1. policy picks the next RunConfig from the bot's score history
  2. run, score, allocate a run id, rank, write artifacts
  3. push the bot's behavior sample; analyze every `spectral_cadence` runs
After all bots: persist categories, then prune runs held by no leaderboard.
"""

import random
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Deque, Dict, List, Mapping, Optional, Sequence

from tqdm import tqdm

from receipts import emit_receipt
from grid.constants import InversionKind, VariantKind, REFERENCE_MOD
from grid.cycle import run_simulation
from grid.variants import DEFAULT_BOUNDARY_TRANSFORMS, TransformTable
from grid.types_config import RunConfig, ScheduleEntry
from grid.validation import ConfigError, emit_config_rejected
from anomaly import AnomalyScoreSet, compute_scores
from category_store import load_categories, prune_runs, save_categories
from engine_config import EngineSettings
from leaderboard import Criterion, LeaderboardBook, phase_anomaly_criterion, spacing_band_criterion
from run_store import RunCounter, write_outputs
from spectral import SpectralAnalyzer

__all__ = [
    "ConfigPolicy",
    "RandomConfigPolicy",
    "EngineContext",
    "DEFAULT_CRITERIA",
    "run_iteration",
    "run_periodic",
]


# =============================================================================
# CONFIG POLICY
# =============================================================================

class ConfigPolicy(ABC):
    """Maps a bot's recent score history to its next RunConfig."""

    @abstractmethod
    def next_config(self, bot_id: str, history: Sequence[AnomalyScoreSet]) -> RunConfig:
        ...


class RandomConfigPolicy(ConfigPolicy):
    """
    Draws configs uniformly from the settings' bounds. History is ignored.

    Velocity components in [-5, 4], multiplier 3 or 7, mod 1000003,
    0..max_inversions schedule entries between 20 % and 80 % of the run.
    """

    MULTIPLIERS = (3, 7)
    VELOCITY_RANGE = (-5, 4)
    SCHEDULE_WINDOW = (0.2, 0.8)

    def __init__(self, settings: EngineSettings, seed: Optional[int] = None):
        self.settings = settings
        self._rng = random.Random(settings.seed if seed is None else seed)

    def next_config(self, bot_id: str, history: Sequence[AnomalyScoreSet]) -> RunConfig:
        s = self.settings
        rng = self._rng
        size_x = rng.randint(s.min_grid, s.max_grid)
        size_y = rng.randint(s.min_grid, s.max_grid)
        steps = rng.randint(s.min_steps, s.max_steps)

        lo, hi = self.SCHEDULE_WINDOW
        schedule = [
            ScheduleEntry(step=int(steps * rng.uniform(lo, hi)), kind=rng.choice(list(InversionKind)))
            for _ in range(rng.randint(0, s.max_inversions))
        ]
        schedule.sort(key=lambda e: e.step)

        return RunConfig(
            size_x=size_x,
            size_y=size_y,
            x0=rng.randrange(size_x),
            y0=rng.randrange(size_y),
            vx0=rng.randint(*self.VELOCITY_RANGE),
            vy0=rng.randint(*self.VELOCITY_RANGE),
            phase0=rng.randrange(REFERENCE_MOD) / REFERENCE_MOD,
            steps=steps,
            multiplier=rng.choice(self.MULTIPLIERS),
            mod=REFERENCE_MOD,
            inversion_schedule=tuple(schedule),
        )


# =============================================================================
# ENGINE CONTEXT
# =============================================================================

# Criteria registered on every new context unless the caller passes its own
DEFAULT_CRITERIA: Mapping[str, Criterion] = {
    "spacing_bands": spacing_band_criterion,
    "phase_anomaly": phase_anomaly_criterion,
}


@dataclass
class EngineContext:
    settings: EngineSettings
    book: LeaderboardBook
    counter: RunCounter
    policy: ConfigPolicy
    variant: VariantKind = VariantKind.INVERSION_REFLECT
    transforms: TransformTable = field(default_factory=lambda: DEFAULT_BOUNDARY_TRANSFORMS)
    analyzers: Dict[str, SpectralAnalyzer] = field(default_factory=dict)
    history: Dict[str, Deque[AnomalyScoreSet]] = field(default_factory=dict)  # last spectral_capacity runs
    run_counts: Dict[str, int] = field(default_factory=dict)
    receipt_ledger: List[dict] = field(default_factory=list)
    iterations: int = 0

    @classmethod
    def create(cls, settings: Optional[EngineSettings] = None,
               policy: Optional[ConfigPolicy] = None,
               variant: VariantKind = VariantKind.INVERSION_REFLECT,
               transforms: Optional[TransformTable] = None,
               criteria: Optional[Mapping[str, Criterion]] = None,
               load_existing: bool = True) -> "EngineContext":
        """
        Build a context from settings, reloading stored categories if asked.

        Args:
            settings: Engine settings (defaults when None)
            policy: Config policy (RandomConfigPolicy when None)
            variant: Boundary behavior for every run
            transforms: Per-kind boundary table (grid.variants.boundary_transforms)
            criteria: Custom leaderboard criteria to register (DEFAULT_CRITERIA when None)
            load_existing: Reload stored category files
        """
        settings = settings or EngineSettings()
        if load_existing and Path(settings.categories_dir).exists():
            book = load_categories(settings.categories_dir, capacity=settings.leaderboard_capacity)
        else:
            book = LeaderboardBook(capacity=settings.leaderboard_capacity)
        ctx = cls(
            settings=settings,
            book=book,
            counter=RunCounter(settings.counter_path),
            policy=policy or RandomConfigPolicy(settings),
            variant=variant,
            transforms=transforms if transforms is not None else DEFAULT_BOUNDARY_TRANSFORMS,
        )
        for name, criterion in (DEFAULT_CRITERIA if criteria is None else criteria).items():
            ctx.receipt_ledger.append(book.register_criterion(name, criterion))
        return ctx

    def bot_ids(self) -> List[str]:
        return [f"bot_{i}" for i in range(self.settings.n_bots)]

    def history_of(self, bot_id: str) -> Deque[AnomalyScoreSet]:
        if bot_id not in self.history:
            self.history[bot_id] = deque(maxlen=self.settings.spectral_capacity)
        return self.history[bot_id]

    def analyzer(self, bot_id: str) -> SpectralAnalyzer:
        if bot_id not in self.analyzers:
            self.analyzers[bot_id] = SpectralAnalyzer(
                capacity=self.settings.spectral_capacity, entity_id=bot_id,
            )
        return self.analyzers[bot_id]


# =============================================================================
# DRIVER
# =============================================================================

def _run_bot(ctx: EngineContext, bot_id: str) -> Optional[str]:
    """One run for one bot. Returns the run id, or None if the config was rejected."""
    history = ctx.history_of(bot_id)
    config = ctx.policy.next_config(bot_id, history)

    try:
        result = run_simulation(config, ctx.variant, ctx.transforms)
    except ConfigError as e:
        ctx.receipt_ledger.append(emit_config_rejected(e, run_label=bot_id))
        return None

    scores = compute_scores(
        result.trajectory, result.events, config,
        band_threshold=ctx.settings.band_threshold,
        spectral_threshold=ctx.settings.spectral_threshold,
    )

    run_id, run_dir = ctx.counter.claim(ctx.settings.runs_dir)
    inserts = ctx.book.submit(run_id, result, scores)
    ctx.receipt_ledger.append(write_outputs(run_dir, run_id, result, extra_receipts=inserts))
    ctx.receipt_ledger.extend(inserts)

    history.append(scores)
    ctx.run_counts[bot_id] = ctx.run_counts.get(bot_id, 0) + 1
    analyzer = ctx.analyzer(bot_id)
    analyzer.push(scores.behavior_sample())
    if ctx.run_counts[bot_id] % ctx.settings.spectral_cadence == 0:
        analyzer.analyze()
        ctx.receipt_ledger.append(analyzer.analysis_receipt())
    return run_id


def run_iteration(ctx: EngineContext) -> dict:
    """
    One pass over every bot, then persistence and retention.

    Returns:
        fleet_iteration receipt (also appended to the ledger)
    """
    run_ids = [rid for rid in (_run_bot(ctx, bot_id) for bot_id in ctx.bot_ids()) if rid]

    save_categories(ctx.book, ctx.settings.categories_dir)
    pruned = prune_runs(ctx.settings.runs_dir, ctx.book)
    ctx.receipt_ledger.append(pruned)
    ctx.iterations += 1

    receipt = emit_receipt("fleet_iteration", {
        "iteration": ctx.iterations,
        "runs": run_ids,
        "rejected": ctx.settings.n_bots - len(run_ids),
        "pruned": len(pruned["deleted"]),
    })
    ctx.receipt_ledger.append(receipt)
    return receipt


def run_periodic(ctx: EngineContext, interval_s: float = 0.0, iterations: int = 1,
                 progress: bool = False,
                 sleep: Callable[[float], None] = time.sleep) -> List[dict]:
    """
    Call run_iteration `iterations` times, waiting `interval_s` between calls.

    Iterations never overlap; the next one starts after the previous returns.
    """
    receipts = []
    for i in tqdm(range(iterations), desc="Fleet iterations", disable=not progress):
        if i and interval_s > 0:
            sleep(interval_s)
        receipts.append(run_iteration(ctx))
    return receipts
