"""
Script to run a headless AI-vs-AI Warring States match.
"""

import argparse
import logging
import os
import sys
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv

from conquest_game_engine.core.map import Faction
from conquest_game_engine.gamemaster.simulator import MatchSimulator, build_match
from conquest_game_engine.io.yaml_scenario import load_scenario

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def configure_logging(level: str, log_file: Optional[str]) -> None:
    """Log to stdout and, optionally, to a file."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def env_seed() -> Optional[int]:
    """CONQUEST_SEED as an int, or None when it is not set."""
    value = os.getenv('CONQUEST_SEED')
    if value is None or not value.strip():
        return None
    return int(value)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Run a headless Warring States conquest match')
    parser.add_argument('--scenario', default=os.getenv('CONQUEST_SCENARIO'),
                        help='Scenario YAML file (default: bundled Warring States)')
    parser.add_argument('--seed', type=int, default=env_seed(),
                        help='Random seed for the nation draw and the match')
    parser.add_argument('--player', default=os.getenv('CONQUEST_PLAYER'),
                        help='Player faction id (qin, chu, han, wei, zhao, qi, yan); drawn if omitted')
    parser.add_argument('--duration', type=float, default=float(os.getenv('CONQUEST_DURATION_S', '300')),
                        help='Simulated seconds to run')
    parser.add_argument('--frame-ms', type=float, default=50.0,
                        help='Display-loop step in milliseconds')
    parser.add_argument('--snapshot-every', type=float, default=30.0,
                        help='Seconds between snapshots')
    parser.add_argument('--output-dir', default=None,
                        help='Folder for map images and the JSON report')
    parser.add_argument('--idle-player', action='store_true',
                        help='Leave the player faction without orders instead of letting the AI play it')
    parser.add_argument('--log-level', default=os.getenv('CONQUEST_LOG_LEVEL', 'INFO'))
    parser.add_argument('--log-file', default=os.getenv('CONQUEST_LOG_FILE'))
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level, args.log_file)

    try:
        scenario = load_scenario(args.scenario)
        player = Faction.from_string(args.player) if args.player else None
        match = build_match(
            scenario,
            player=player,
            seed=args.seed,
            ai_controls_player=not args.idle_player
        )

        output_dir = args.output_dir
        if output_dir:
            output_dir = os.path.join(output_dir, datetime.now().strftime('match_%Y%m%d_%H%M%S'))

        logger.info("=" * 60)
        logger.info(f"{scenario.name}: player {match.player.value}, seed {args.seed}")
        logger.info("=" * 60)

        simulator = MatchSimulator(
            match,
            frame_ms=args.frame_ms,
            snapshot_every_ms=args.snapshot_every * 1000,
            output_dir=output_dir
        )
        report = simulator.run(args.duration * 1000)

        logger.info("=" * 60)
        logger.info(f"Result: {report.result} after {report.elapsed_s:.1f}s")
        for name, count in report.standings.items():
            logger.info(f"  {name:6} {count:3} provinces")
        logger.info(f"AI orders issued: {report.ai_orders_issued}, skipped: {report.ai_orders_skipped}")
        logger.info("=" * 60)
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except Exception as e:
        logger.error(f"Match failed: {e}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
