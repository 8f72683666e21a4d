"""
Match controller for the conquest game engine.
Owns the world state, dispatch engine and scheduler of one match, exposes the
commands available to both human and AI factions, and drives the clock.
"""

import logging
import random
from typing import Callable, Dict, List, Optional, Tuple

from conquest_game_engine.core.dispatch import DispatchEngine
from conquest_game_engine.core.economy import apply_economy_tick, buy_grain, recruit_troops
from conquest_game_engine.core.generals import assign_troops, hire_general
from conquest_game_engine.core.map import Faction, TerritoryMap
from conquest_game_engine.core.orders import CommandFailure, CommandResult
from conquest_game_engine.core.resolver import ResolutionResult, resolve_frame
from conquest_game_engine.core.scenario import ScenarioConfig
from conquest_game_engine.core.scheduler import Scheduler
from conquest_game_engine.core.world_state import MatchResult, WorldState, create_initial_state

logger = logging.getLogger(__name__)


class Match:
    """Main controller for one real-time match."""

    def __init__(
        self,
        territory_map: TerritoryMap,
        scenario: ScenarioConfig,
        player: Faction,
        seed: Optional[int] = None
    ):
        """
        Initialize a new match.

        Args:
            territory_map: Frozen province graph
            scenario: Faction tables and tunables
            player: The human-controlled faction
            seed: Seed for every random draw of the match (hiring, AI)
        """
        if player not in scenario.factions:
            raise ValueError(f"Player faction {player.value} is not part of the scenario")

        self.territory_map = territory_map
        self.scenario = scenario
        self.player = player
        self.seed = seed
        self.scheduler = Scheduler()
        self.director = None
        self._periodic_tasks: List[Tuple[str, float, Callable[[], None]]] = [
            ("economy", float(scenario.tunables.economy_tick_ms), self._economy_tick),
        ]
        self._setup()

    def _setup(self) -> None:
        self.rng = random.Random(self.seed)
        self.state: WorldState = create_initial_state(self.territory_map, self.scenario)
        self.engine = DispatchEngine(self.state, self.scenario.tunables, self.scheduler)
        self.result = MatchResult.PLAYING
        self.started = False
        self.start_ms = 0.0
        self.now_ms = 0.0
        self.last_resolution: Optional[ResolutionResult] = None

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def add_periodic_task(self, name: str, period_ms: float, callback: Callable[[], None]) -> None:
        """
        Register a callback that runs every ``period_ms`` once the match starts.

        Registrations survive resets; the scheduled jobs do not.
        """
        self._periodic_tasks.append((name, float(period_ms), callback))
        if self.started:
            self.scheduler.schedule_every(period_ms, callback, self.now_ms + period_ms, name)

    def start(self, now_ms: float = 0.0) -> None:
        """Start the clock and the periodic tasks."""
        if self.started:
            return
        self.started = True
        self.start_ms = float(now_ms)
        self.now_ms = float(now_ms)
        self.scheduler.now_ms = float(now_ms)
        for name, period, callback in self._periodic_tasks:
            self.scheduler.schedule_every(period, callback, now_ms + period, name)
        logger.info(f"Match started: {self.player.value} vs {len(self.scenario.factions) - 1} rivals")

    @property
    def elapsed_ms(self) -> float:
        return self.now_ms - self.start_ms if self.started else 0.0

    def advance(self, now_ms: float) -> ResolutionResult:
        """
        One display-loop step.

        Collisions resolve before arrivals; deferred callbacks (economy, AI,
        general returns) due by ``now_ms`` run afterwards, then the result is
        evaluated.
        """
        if not self.started:
            self.start(now_ms)
        if self.result != MatchResult.PLAYING:
            return ResolutionResult()

        self.now_ms = max(self.now_ms, float(now_ms))
        resolution = resolve_frame(self.engine, self.now_ms)
        self.scheduler.run_due(self.now_ms)
        self._evaluate()
        self.last_resolution = resolution
        return resolution

    def run_until(self, end_ms: float, frame_ms: float = 16.0) -> ResolutionResult:
        """Advance in fixed frames until ``end_ms`` or until the match is decided."""
        total = ResolutionResult()
        if not self.started:
            self.start(self.now_ms)
        t = self.now_ms
        while t < end_ms and self.result == MatchResult.PLAYING:
            t = min(end_ms, t + frame_ms)
            total.merge(self.advance(t))
        return total

    def _economy_tick(self) -> None:
        apply_economy_tick(self.state, self.scenario.tunables.economy_tick_ms)

    def _evaluate(self) -> None:
        result = self.state.check_result(self.player)
        if result == MatchResult.PLAYING:
            return
        self.result = result
        self.scheduler.clear()
        self.engine.cancel_all()
        logger.info(f"Match over at {self.elapsed_ms / 1000:.1f}s: {self.player.value} {result.value}")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _closed(self) -> Optional[CommandResult]:
        if self.result != MatchResult.PLAYING:
            return CommandResult.fail(CommandFailure.MATCH_OVER)
        return None

    def hire_general(self, faction: Faction) -> CommandResult:
        closed = self._closed()
        if closed is not None:
            return closed
        return hire_general(self.state, faction, self.rng)

    def assign_troops(self, faction: Faction, general_id: str, amount: float) -> CommandResult:
        closed = self._closed()
        if closed is not None:
            return closed
        return assign_troops(self.state, faction, general_id, amount)

    def issue_attack(
        self,
        faction: Faction,
        general_id: str,
        from_province: str,
        to_province: str,
        troop_count: int
    ) -> CommandResult:
        closed = self._closed()
        if closed is not None:
            return closed
        return self.engine.issue_attack(
            faction, general_id, from_province, to_province, troop_count, self.now_ms
        )

    def buy_grain(self, faction: Faction, economy_amount: float) -> CommandResult:
        closed = self._closed()
        if closed is not None:
            return closed
        return buy_grain(self.state, faction, economy_amount)

    def recruit_troops(self, faction: Faction, economy_amount: float) -> CommandResult:
        closed = self._closed()
        if closed is not None:
            return closed
        return recruit_troops(self.state, faction, economy_amount)

    def reset_match(self) -> None:
        """
        Cancel every pending callback and rebuild the match from the scenario.

        Calling it twice leaves the same state as calling it once.
        """
        self.scheduler.reset()
        self.engine.clear()
        self._setup()
        logger.info("Match reset")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def pending_callbacks(self) -> int:
        return self.scheduler.pending_count

    def provinces(self) -> List[Dict]:
        """Static and dynamic data of every province, for the presentation layer."""
        rows = []
        for pid, province in self.territory_map.provinces.items():
            province_state = self.state.provinces[pid]
            rows.append({
                'id': pid,
                'name': province.name,
                'centroid': province.centroid,
                'area': province.area,
                'owner': province_state.owner.value if province_state.owner else None,
                'garrison': province_state.display_garrison,
                'neighbours': sorted(self.territory_map.get_adjacent_provinces(pid)),
            })
        return rows

    def faction_snapshot(self, faction: Faction) -> Dict:
        faction_state = self.state.factions[faction]
        return {
            'faction': faction.value,
            'economy_stock': faction_state.economy_stock,
            'grain_stock': faction_state.grain_stock,
            'economy_per_second': self.state.economy_per_second(faction),
            'province_count': self.state.province_count(faction),
            'total_garrison': self.state.total_garrison(faction),
            'generals': [g.to_dict() for g in faction_state.generals.values()],
        }

    def in_flight_dispatches(self) -> List[Dict]:
        """Every unit currently travelling, with its position."""
        return [
            {
                'id': unit.dispatch_id,
                'group_id': unit.group_id,
                'faction': unit.faction.value,
                'from': unit.from_province,
                'to': unit.to_province,
                'position': position,
            }
            for unit, position in self.engine.in_flight_units(self.now_ms)
        ]

    def standings(self) -> List[Tuple[Faction, int]]:
        """Factions ordered by provinces held."""
        return sorted(
            ((f, self.state.province_count(f)) for f in self.scenario.factions),
            key=lambda item: (-item[1], item[0].value)
        )

    def get_summary(self) -> Dict:
        return {
            'elapsed_s': round(self.elapsed_ms / 1000, 2),
            'player': self.player.value,
            'result': self.result.value,
            'standings': {f.value: count for f, count in self.standings()},
            'in_flight_groups': len(self.engine.active_groups()),
        }
