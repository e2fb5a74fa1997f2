"""Entry point for ``python -m hamlet``.

Loads the YAML config, founds a settlement and either opens a Pygame
window or, with ``--headless``, plays a fixed number of turns and prints
the resulting ledger.
"""

from __future__ import annotations

import argparse
import logging
import pathlib
import time

from hamlet.catalogs.theme import available_themes
from hamlet.simulation.config import EngineConfig, TickPolicy
from hamlet.simulation.engine import SettlementEngine, initialize

_DEFAULT_CONFIG = (
    pathlib.Path(__file__).resolve().parent.parent / "config" / "default.yaml"
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hamlet",
        description="Hamlet - grid settlement builder",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=pathlib.Path,
        default=_DEFAULT_CONFIG,
        help="Path to YAML config file (default: config/default.yaml)",
    )
    parser.add_argument(
        "-t",
        "--theme",
        help=f"Theme name or YAML path (shipped: {', '.join(available_themes())})",
    )
    parser.add_argument("--seed", type=int, help="Override the map seed")
    parser.add_argument("--player", default="Player", help="Player name")
    parser.add_argument("--name", default="Hamlet", help="Settlement name")
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without a window and print a summary",
    )
    parser.add_argument(
        "--turns",
        type=int,
        default=20,
        help="Turns (or accrual seconds) to run in headless mode (default: 20)",
    )
    parser.add_argument(
        "--cell-size",
        type=int,
        default=14,
        help="Pixel size per grid tile (default: 14)",
    )
    parser.add_argument(
        "--fps",
        type=int,
        default=30,
        help="Target frames per second (default: 30)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    return parser


def load_config(args: argparse.Namespace) -> EngineConfig:
    """Read the config file, if present, and apply CLI overrides."""
    config = (
        EngineConfig.from_yaml(args.config) if args.config.exists() else EngineConfig()
    )
    if args.theme:
        config.theme = args.theme
    if args.seed is not None:
        config.seed = args.seed
    return config


def run_headless(engine: SettlementEngine, turns: int) -> None:
    """Play ``turns`` turns (or seconds of accrual) and print the ledger."""
    if engine.tick_policy is TickPolicy.EXPLICIT:
        engine.run(turns)
    else:
        time.sleep(turns * engine.config.accrual_interval)
        engine.stop_accrual()

    snap = engine.snapshot()
    print(f"{snap.settlement_name} ({engine.theme.title}) - tick {snap.tick}, level {snap.level}")
    for name, amount in snap.resources.items():
        print(f"  {engine.theme.label(name):<18}{amount:>10}")
    for name, value in snap.stats.items():
        print(f"  {engine.theme.label(name):<18}{value:>10.0f}")
    print(f"  structures: {len(snap.buildings)}")


def main() -> None:
    """Parse CLI args, create engine, launch renderer or headless run."""
    args = build_parser().parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    engine = initialize(args.player, args.name, load_config(args))
    try:
        if args.headless:
            run_headless(engine, args.turns)
        else:
            from hamlet.ui.pygame_client import PygameRenderer

            PygameRenderer(engine=engine, cell_size=args.cell_size).run(fps=args.fps)
    finally:
        engine.close()


if __name__ == "__main__":
    main()
