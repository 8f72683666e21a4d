"""
Combat and capture resolution for the conquest game engine.
Cancels colliding dispatch groups and applies arriving units one at a time.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from conquest_game_engine.core.dispatch import Dispatch, DispatchEngine, DispatchStatus
from conquest_game_engine.core.map import Faction
from conquest_game_engine.core.world_state import WorldState

logger = logging.getLogger(__name__)


class HitOutcome(Enum):
    REINFORCED = "reinforced"
    ATTRITION = "attrition"
    CAPTURED = "captured"


@dataclass
class Capture:
    province_id: str
    previous_owner: Optional[Faction]
    new_owner: Faction


@dataclass
class ResolutionResult:
    """What one display-loop step changed."""
    collisions: List[Tuple[int, int]] = field(default_factory=list)
    cancelled_units: int = 0
    arrivals: int = 0
    reinforcements: int = 0
    attrition: int = 0
    captures: List[Capture] = field(default_factory=list)

    def merge(self, other: 'ResolutionResult') -> None:
        self.collisions.extend(other.collisions)
        self.cancelled_units += other.cancelled_units
        self.arrivals += other.arrivals
        self.reinforcements += other.reinforcements
        self.attrition += other.attrition
        self.captures.extend(other.captures)


def resolve_hit(state: WorldState, province_id: str, attacker: Faction) -> HitOutcome:
    """
    Apply a single arriving unit to a province.

    A friendly arrival adds one troop. A hostile one removes a troop while
    more than one remains; otherwise the province flips to the attacker
    with a garrison of one.
    """
    province = state.provinces[province_id]
    if province.owner == attacker:
        state.set_garrison(province_id, province.garrison + 1)
        return HitOutcome.REINFORCED

    if province.garrison > 1:
        state.set_garrison(province_id, province.garrison - 1)
        return HitOutcome.ATTRITION

    state.set_owner(province_id, attacker)
    state.set_garrison(province_id, 1)
    return HitOutcome.CAPTURED


class CollisionResolver:
    """Finds opposing groups that meet in flight and cancels both."""

    def __init__(self, engine: DispatchEngine):
        self.engine = engine

    def find_collisions(self, now_ms: float) -> List[Tuple[int, int]]:
        """
        Pairs of group ids whose leading columns are within the collision radius.

        Computed on a snapshot of positions so the result does not depend on
        the order groups are checked in.
        """
        radius = self.engine.tunables.collision_radius
        snapshot = []
        for group in self.engine.in_flight_groups(now_ms):
            position = self.engine.group_position(group, now_ms)
            if position is not None:
                snapshot.append((group, position))

        pairs = []
        for i in range(len(snapshot)):
            group_a, pos_a = snapshot[i]
            for j in range(i + 1, len(snapshot)):
                group_b, pos_b = snapshot[j]
                if group_a.faction == group_b.faction:
                    continue
                if math.hypot(pos_a[0] - pos_b[0], pos_a[1] - pos_b[1]) <= radius:
                    pairs.append((group_a.group_id, group_b.group_id))
        return pairs

    def resolve(self, now_ms: float) -> ResolutionResult:
        result = ResolutionResult()
        pairs = self.find_collisions(now_ms)
        if not pairs:
            return result

        doomed = {gid for pair in pairs for gid in pair}
        for gid in sorted(doomed):
            group = self.engine.groups[gid]
            result.cancelled_units += group.cancel()
        result.collisions = pairs

        for a, b in pairs:
            logger.debug(
                f"Groups {a} ({self.engine.groups[a].faction.value}) and "
                f"{b} ({self.engine.groups[b].faction.value}) collided"
            )
        return result


class ArrivalResolver:
    """Resolves every unit whose travel time has elapsed, in arrival order."""

    def __init__(self, engine: DispatchEngine):
        self.engine = engine
        self.state = engine.state

    def resolve(self, now_ms: float) -> ResolutionResult:
        result = ResolutionResult()
        for unit in self.engine.due_arrivals(now_ms):
            self._resolve_unit(unit, result)
        return result

    def _resolve_unit(self, unit: Dispatch, result: ResolutionResult) -> None:
        previous_owner = self.state.get_owner(unit.to_province)
        outcome = resolve_hit(self.state, unit.to_province, unit.faction)
        unit.resolved = DispatchStatus.ARRIVED
        result.arrivals += 1

        if outcome == HitOutcome.REINFORCED:
            result.reinforcements += 1
        elif outcome == HitOutcome.ATTRITION:
            result.attrition += 1
        else:
            result.captures.append(Capture(unit.to_province, previous_owner, unit.faction))
            logger.info(
                f"{unit.faction.value} captured {unit.to_province} from "
                f"{previous_owner.value if previous_owner else 'neutral'}"
            )


def resolve_frame(engine: DispatchEngine, now_ms: float) -> ResolutionResult:
    """
    Convenience function for one display-loop step.

    All due collisions are resolved before any due arrival.
    """
    result = CollisionResolver(engine).resolve(now_ms)
    result.merge(ArrivalResolver(engine).resolve(now_ms))
    engine.prune()
    return result
