"""
AI Director - drives every non-human faction.

Runs on a fixed period and walks each living AI faction through four
independently chance-gated behaviours: an economic action, hiring,
auto-assignment of idle generals, and at most one attack.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from conquest_game_engine.core.game import Match
from conquest_game_engine.core.map import Faction
from conquest_game_engine.core.scenario import AITuning
from conquest_game_engine.core.world_state import General, GeneralStatus

logger = logging.getLogger(__name__)


@dataclass
class AttackPlan:
    """The best attack a faction found this step."""
    general_id: str
    from_province: str
    to_province: str
    troop_count: int
    score: float


class AIDirector:
    """Issues orders for AI factions through the same commands the player uses."""

    def __init__(
        self,
        match: Match,
        factions: Optional[List[Faction]] = None,
        tuning: Optional[AITuning] = None,
        period_ms: Optional[float] = None
    ):
        """
        Initialize the director and register its periodic step with the match.

        Args:
            match: Match to play in
            factions: Factions to control; defaults to everyone but the player
            tuning: Chance gates and thresholds; defaults to the scenario's
            period_ms: Step period; defaults to the scenario's ai_period_ms
        """
        self.match = match
        self.factions = factions if factions is not None else [
            f for f in match.scenario.factions if f != match.player
        ]
        self.tuning = tuning or match.scenario.ai
        self.period_ms = period_ms or match.scenario.tunables.ai_period_ms
        self.steps = 0
        self.orders_issued = 0
        self.orders_skipped = 0
        match.add_periodic_task("ai-director", self.period_ms, self.step)

    def _chance(self, probability: float) -> bool:
        return self.match.rng.random() < probability

    def step(self) -> None:
        """One decision round for every living AI faction."""
        self.steps += 1
        for faction in self.factions:
            if self.match.state.is_defeated(faction):
                continue
            self.take_turn(faction)

    def take_turn(self, faction: Faction) -> None:
        if self._chance(self.tuning.economic_chance):
            self._economic_action(faction)
        if self._chance(self.tuning.hire_chance):
            self._maybe_hire(faction)
        if self._chance(self.tuning.assign_chance):
            self._auto_assign(faction)
        if self._chance(self.tuning.attack_chance):
            plan = self.plan_attack(faction)
            if plan is not None:
                self._record(faction, "attack", self.match.issue_attack(
                    faction, plan.general_id, plan.from_province,
                    plan.to_province, plan.troop_count
                ))

    def _record(self, faction: Faction, action: str, result) -> None:
        if result.success:
            self.orders_issued += 1
            logger.debug(f"AI {faction.value} {action}: {result.message}")
        else:
            self.orders_skipped += 1
            logger.debug(f"AI {faction.value} {action} skipped: {result.failure.value}")

    def _economic_action(self, faction: Faction) -> None:
        """Top up grain when it runs low, otherwise turn economy into garrison."""
        faction_state = self.match.state.factions[faction]
        if faction_state.grain_stock < self.tuning.grain_low_threshold:
            spend = min(faction_state.economy_stock, self.tuning.buy_grain_spend)
            if spend > 0 and self._chance(self.tuning.buy_grain_chance):
                self._record(faction, "buy grain", self.match.buy_grain(faction, spend))
            return

        spend = faction_state.economy_stock * self.tuning.convert_fraction
        if spend >= 1 and self._chance(self.tuning.convert_chance):
            self._record(faction, "recruit", self.match.recruit_troops(faction, spend))

    def _maybe_hire(self, faction: Faction) -> None:
        config = self.match.scenario.faction_config(faction)
        faction_state = self.match.state.factions[faction]
        if faction_state.economy_stock < config.hire_cost:
            return
        if len(faction_state.generals) >= self.tuning.roster_soft_cap and \
                not self._chance(self.tuning.roster_override_chance):
            return
        self._record(faction, "hire", self.match.hire_general(faction))

    def _idle_generals(self, faction: Faction) -> List[General]:
        return [
            g for g in self.match.state.factions[faction].generals.values()
            if g.status == GeneralStatus.IDLE and g.station is not None
        ]

    def _auto_assign(self, faction: Faction) -> None:
        """Raise under-assigned idle generals toward a share of their station's garrison."""
        state = self.match.state
        for general in self._idle_generals(faction):
            garrison = state.get_garrison(general.station)
            target = min(general.troop_cap, int(garrison * self.tuning.assign_fraction))
            if general.assigned_troops < target:
                self._record(faction, "assign", self.match.assign_troops(
                    faction, general.general_id, target
                ))

    def plan_attack(self, faction: Faction) -> Optional[AttackPlan]:
        """
        Score every border attack open to the faction's idle generals.

        Score is troop advantage plus bonuses for hitting the human player or
        a neutral province, plus a little jitter. Only generals whose station
        holds at least attack_min_garrison are considered, and the winning
        plan must send at least attack_floor troops with grain to cover them.

        Returns:
            The best plan, or None if nothing qualifies
        """
        state = self.match.state
        tuning = self.tuning
        in_grace = self.match.elapsed_ms < tuning.opening_grace_ms
        best: Optional[AttackPlan] = None

        for general in self._idle_generals(faction):
            station = general.station
            if state.get_garrison(station) < tuning.attack_min_garrison:
                continue
            sendable = int(min(general.assigned_troops, state.get_garrison(station)))
            if sendable <= 0:
                continue

            for target in sorted(state.territory_map.get_adjacent_provinces(station)):
                owner = state.get_owner(target)
                if owner == faction:
                    continue
                if owner == self.match.player and in_grace:
                    continue

                score = sendable - state.get_garrison(target)
                if owner == self.match.player:
                    score += tuning.human_bonus
                elif owner is None:
                    score += tuning.neutral_bonus
                score += self.match.rng.uniform(0, tuning.jitter)

                if best is None or score > best.score:
                    best = AttackPlan(general.general_id, station, target, sendable, score)

        if best is None:
            return None
        if best.troop_count < tuning.attack_floor:
            return None
        if state.factions[faction].grain_stock < best.troop_count:
            return None
        return best
