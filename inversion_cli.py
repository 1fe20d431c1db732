"""
inversion_cli.py - Command Line

Examples:
  python inversion_cli.py run                                  # reference run, inversion variant
  python inversion_cli.py run --steps 2003 --variant clamp     # short clamp run
  python inversion_cli.py run --config my_run.yaml             # RunConfig from file
  python inversion_cli.py fleet --iterations 3                 # three driver iterations
  python inversion_cli.py leaderboard randomness --top 10      # show a category
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from grid.constants import VARIANT_ALIASES, REFERENCE_STEPS, REFERENCE_SIZE_X, REFERENCE_SIZE_Y
from grid.cycle import run_simulation
from grid.export import generate_report
from grid.types_config import make_reference_config
from grid.validation import ConfigError, emit_config_rejected
from anomaly import AnomalyScoreSet, compute_scores
from category_store import load_categories
from engine_config import EngineSettings, load as load_settings, load_run_config
from fleet import EngineContext, run_periodic
from receipts import append_receipts
from run_store import RECEIPTS_FILE, RunCounter, write_outputs

console = Console()

VARIANT_CHOICES = ["inversion", "mirror", "clamp", "sticky"]


# --- Output helpers ---


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    console.print(f"[red]✗[/red] {message}")


def scores_table(scores: AnomalyScoreSet, title: str = "Anomaly Scores") -> Table:
    table = Table(title=title)
    table.add_column("metric", style="cyan", no_wrap=True)
    table.add_column("value", justify="right", style="magenta")
    for name, value in scores.scores.items():
        table.add_row(name, f"{value:.6g}")
    for name in ("band_ok", "prime_ok", "spectral_ok"):
        table.add_row(name, "Yes" if getattr(scores, name) else "No")
    table.add_row("is_optimal", "[bold]Yes[/bold]" if scores.is_optimal else "No")
    return table


def _settings(path: Optional[str]) -> EngineSettings:
    """Settings from a file, relative paths anchored at the file's directory."""
    if not path:
        return EngineSettings()
    return load_settings(path).resolve(Path(path).resolve().parent)


# --- Commands ---


def cmd_run(args: argparse.Namespace) -> int:
    settings = _settings(args.settings)
    variant = VARIANT_ALIASES[args.variant]

    try:
        if args.config:
            config = load_run_config(args.config)
        else:
            config = make_reference_config(
                steps=args.steps, size_x=args.size_x, size_y=args.size_y,
                schedule=not args.no_schedule,
            )
        result = run_simulation(config, variant)
    except ConfigError as e:
        append_receipts([emit_config_rejected(e, run_label="cli")],
                        Path(settings.runs_dir) / RECEIPTS_FILE)
        print_error(f"Invalid config: {e}")
        return 2

    scores = compute_scores(
        result.trajectory, result.events, config,
        band_threshold=settings.band_threshold,
        spectral_threshold=settings.spectral_threshold,
    )

    try:
        run_id, run_dir = RunCounter(settings.counter_path).claim(settings.runs_dir)
    except FileExistsError as e:
        print_error(str(e))
        return 1
    write_outputs(run_dir, run_id, result)

    console.print(generate_report(result))
    console.print(scores_table(scores, title=f"Anomaly Scores ({run_id})"))
    print_success(f"Wrote {run_id} to {run_dir}")
    return 0


def cmd_fleet(args: argparse.Namespace) -> int:
    settings = _settings(args.settings)
    ctx = EngineContext.create(settings, variant=VARIANT_ALIASES[args.variant])
    receipts = run_periodic(ctx, interval_s=args.interval, iterations=args.iterations, progress=True)

    table = Table(title="Fleet Iterations")
    table.add_column("iteration", justify="right", style="cyan")
    table.add_column("runs", justify="right", style="green")
    table.add_column("rejected", justify="right", style="red")
    table.add_column("pruned", justify="right", style="yellow")
    for r in receipts:
        table.add_row(str(r["iteration"]), str(len(r["runs"])), str(r["rejected"]), str(r["pruned"]))
    console.print(table)

    for category in ctx.book.categories():
        board = ctx.book.boards[category]
        console.print(f"{category}: {len(board)} entries, min score {board.min_score}")
    return 0


def cmd_leaderboard(args: argparse.Namespace) -> int:
    settings = _settings(args.settings)
    book = load_categories(settings.categories_dir, capacity=settings.leaderboard_capacity)
    entries = book.query(args.category, args.top)
    if not entries:
        print_error(f"No entries in category '{args.category}'")
        return 1

    table = Table(title=f"Leaderboard: {args.category}")
    table.add_column("rank", justify="right", style="bold")
    table.add_column("run_id", style="cyan", no_wrap=True)
    table.add_column("score", justify="right", style="magenta")
    table.add_column("grid", style="green")
    table.add_column("steps", justify="right")
    table.add_column("optimal", justify="center")
    for rank, entry in enumerate(entries, start=1):
        grid = f"{entry.config.get('sizeX', '?')}x{entry.config.get('sizeY', '?')}"
        optimal = "Yes" if entry.scores is not None and entry.scores.is_optimal else "No"
        table.add_row(str(rank), entry.run_id, f"{entry.score:.6g}", grid,
                      str(entry.config.get("steps", "")), optimal)
    console.print(table)
    return 0


# --- CLI Main ---


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bounded grid inversion simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--settings", default=None, help="Engine settings file (JSON or YAML)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run one simulation and write its outputs")
    run_parser.add_argument("--steps", type=int, default=REFERENCE_STEPS, help="Total iterations")
    run_parser.add_argument("--size-x", type=int, default=REFERENCE_SIZE_X, help="Grid width")
    run_parser.add_argument("--size-y", type=int, default=REFERENCE_SIZE_Y, help="Grid height")
    run_parser.add_argument("--variant", choices=VARIANT_CHOICES, default="inversion",
                            help="Boundary behavior")
    run_parser.add_argument("--config", default=None, help="RunConfig file (JSON or YAML)")
    run_parser.add_argument("--no-schedule", action="store_true",
                            help="Run without the 20/40/60/80 %% inversion schedule")

    fleet_parser = subparsers.add_parser("fleet", help="Run driver iterations over all bots")
    fleet_parser.add_argument("--iterations", type=int, default=1, help="Number of iterations")
    fleet_parser.add_argument("--interval", type=float, default=0.0,
                              help="Seconds to wait between iterations")
    fleet_parser.add_argument("--variant", choices=VARIANT_CHOICES, default="inversion",
                              help="Boundary behavior")

    board_parser = subparsers.add_parser("leaderboard", help="Show a category leaderboard")
    board_parser.add_argument("category", help="Category name")
    board_parser.add_argument("--top", type=int, default=20, help="Entries to show")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "run":
        return cmd_run(args)
    elif args.command == "fleet":
        return cmd_fleet(args)
    elif args.command == "leaderboard":
        return cmd_leaderboard(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
