"""
Headless match simulator.
Builds a match from the bundled (or a given) scenario, lets the AI Director
play every faction on a fixed frame clock, and records periodic snapshots.
"""

import json
import logging
import os
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from conquest_game_engine.core.game import Match
from conquest_game_engine.core.map import Faction, TerritoryMap
from conquest_game_engine.core.scenario import ScenarioConfig
from conquest_game_engine.core.world_state import MatchResult
from conquest_game_engine.gamemaster.ai_director import AIDirector
from conquest_game_engine.io.geojson_loader import load_territory_map
from conquest_game_engine.io.yaml_scenario import load_scenario

logger = logging.getLogger(__name__)


def build_match(
    scenario: Optional[ScenarioConfig] = None,
    territory_map: Optional[TerritoryMap] = None,
    player: Optional[Faction] = None,
    seed: Optional[int] = None,
    ai_controls_player: bool = False
) -> Match:
    """
    Create a ready-to-run match with an AI Director attached.

    Args:
        scenario: Scenario config; defaults to the bundled Warring States file
        territory_map: Province graph; defaults to the scenario's geometry file
        player: Human faction; drawn with the weighted nation draw if None
        seed: Seed for the nation draw and the match
        ai_controls_player: Let the director play the player's faction too

    Returns:
        The match (its director is available as ``match.director``)
    """
    scenario = scenario or load_scenario()
    if territory_map is None:
        if not scenario.geometry_path:
            raise ValueError("Scenario has no geometry file and no map was given")
        territory_map = load_territory_map(scenario.geometry_path, scenario.tunables.edge_precision)

    if player is None:
        player = scenario.draw_player_faction(random.Random(seed))
        logger.info(f"Nation draw: player leads {player.value}")

    match = Match(territory_map, scenario, player, seed)
    factions = list(scenario.factions) if ai_controls_player else None
    match.director = AIDirector(match, factions=factions)
    return match


@dataclass
class SimulationReport:
    """Summary of a simulated match."""
    player: str
    result: str
    elapsed_s: float
    standings: Dict[str, int]
    ai_orders_issued: int
    ai_orders_skipped: int
    snapshots: List[Dict] = field(default_factory=list)
    images: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'player': self.player,
            'result': self.result,
            'elapsed_s': self.elapsed_s,
            'standings': self.standings,
            'ai_orders_issued': self.ai_orders_issued,
            'ai_orders_skipped': self.ai_orders_skipped,
            'snapshots': self.snapshots,
            'images': self.images,
        }


class MatchSimulator:
    """Runs a match without a host clock."""

    def __init__(
        self,
        match: Match,
        frame_ms: float = 50.0,
        snapshot_every_ms: float = 10000.0,
        output_dir: Optional[str] = None
    ):
        self.match = match
        self.frame_ms = frame_ms
        self.snapshot_every_ms = snapshot_every_ms
        self.output_dir = output_dir
        self.snapshots: List[Dict] = []
        self.images: List[str] = []

    def run(self, duration_ms: float) -> SimulationReport:
        """
        Simulate up to ``duration_ms`` of match time or until it is decided.

        Snapshots (and map images, when an output directory is set) are taken
        every ``snapshot_every_ms`` and once at the end.
        """
        match = self.match
        if not match.started:
            match.start(0.0)

        if self.output_dir:
            os.makedirs(self.output_dir, exist_ok=True)

        next_snapshot = match.now_ms + self.snapshot_every_ms
        last_snapshot = None
        end_ms = match.now_ms + duration_ms
        while match.now_ms < end_ms and match.result == MatchResult.PLAYING:
            match.advance(min(end_ms, match.now_ms + self.frame_ms))
            if match.now_ms >= next_snapshot:
                self._snapshot()
                last_snapshot = match.now_ms
                next_snapshot += self.snapshot_every_ms

        if last_snapshot != match.now_ms:
            self._snapshot()
        report = self._report()
        if self.output_dir:
            report_path = os.path.join(self.output_dir, 'report.json')
            with open(report_path, 'w', encoding='utf-8') as f:
                json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)
            logger.info(f"Report saved to {report_path}")
        return report

    def _snapshot(self) -> None:
        summary = self.match.get_summary()
        self.snapshots.append(summary)
        logger.info(
            f"[{summary['elapsed_s']:7.1f}s] " +
            " ".join(f"{name}:{count}" for name, count in summary['standings'].items())
        )
        if self.output_dir:
            from conquest_game_engine.visualization.visualizer import visualize_match
            filename = os.path.join(self.output_dir, f"match_{int(self.match.elapsed_ms):08d}.png")
            visualize_match(self.match, filename)
            self.images.append(filename)

    def _report(self) -> SimulationReport:
        director = getattr(self.match, 'director', None)
        summary = self.match.get_summary()
        return SimulationReport(
            player=summary['player'],
            result=summary['result'],
            elapsed_s=summary['elapsed_s'],
            standings=summary['standings'],
            ai_orders_issued=director.orders_issued if director else 0,
            ai_orders_skipped=director.orders_skipped if director else 0,
            snapshots=list(self.snapshots),
            images=list(self.images),
        )
