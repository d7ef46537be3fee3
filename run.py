"""
TribeSim: run.py
Main entry point: interactive tcod map, or a headless batch run.
"""

import argparse
import logging
import sys
from functools import partial
from pathlib import Path

# Ensure we can import the project packages when run from a checkout
project_root = Path(__file__).parent.resolve()
sys.path.insert(0, str(project_root))

from simcore.config import SimulationConfig, load_config
from simcore.errors import CorruptSaveError
from simcore.loop import SimulationLoop
from simcore.storage import GameStorage

logger = logging.getLogger("tribesim")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tribal society simulation.")
    parser.add_argument("--seed", type=float, default=None, help="world seed (random if omitted)")
    parser.add_argument("--tribes", type=int, default=None, help="maximum number of tribes to place")
    parser.add_argument("--headless", type=int, metavar="N", default=None, help="run N ticks without a window and exit")
    parser.add_argument("--save-dir", type=Path, default=Path("saves"), help="directory for save slots and settings")
    parser.add_argument("--config", type=Path, default=None, help="TOML file with a [simulation] table")
    parser.add_argument("--resume", action="store_true", help="headless: start from the quicksave slot")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def build_config(args: argparse.Namespace) -> SimulationConfig:
    config = load_config(args.config) if args.config else SimulationConfig()
    overrides = {}
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.tribes is not None:
        overrides["max_tribes"] = args.tribes
    return config.model_copy(update=overrides) if overrides else config


def run_headless(sim: SimulationLoop, ticks: int, resume: bool) -> int:
    if resume:
        try:
            if not sim.quick_load():
                logger.error("No quicksave to resume from")
                return 1
        except CorruptSaveError as exc:
            logger.error("%s", exc)
            return 1
    else:
        sim.init()

    sim.open_session()
    for _ in range(ticks):
        sim.tick()
        if not sim.tribes:
            logger.info("Every tribe has died out")
            break
    sim.quick_save()
    sim.close_session()

    status = sim.status()
    logger.info(
        "Finished at tick %d: %d tribes, player population %d, %d events pending",
        status["tick"], status["tribe_count"], status["player_population"], status["pending_events"],
    )
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    config = build_config(args)
    storage = GameStorage(args.save_dir)
    chronicle_path = args.save_dir / "chronicle.jsonl"

    if args.headless is not None:
        sim = SimulationLoop(config=config, storage=storage, chronicle_path=chronicle_path)
        return run_headless(sim, args.headless, args.resume)

    from ui.renderer import Renderer
    from ui.screens import MainMenuState
    from ui.states import Engine

    renderer = Renderer(width=100, height=50, title="TribeSim")
    engine = Engine(
        renderer=renderer,
        initial_state=partial(MainMenuState, config=config, storage=storage, chronicle_path=chronicle_path),
    )
    engine.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
