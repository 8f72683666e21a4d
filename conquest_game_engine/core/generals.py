"""
General pool and hiring.
Weighted tier draws from each faction's remaining name pool, hire rolls and
troop assignment.
"""

import logging
import random
from dataclasses import dataclass
from typing import List, Optional

from conquest_game_engine.core.map import Faction
from conquest_game_engine.core.orders import AssignTroopsOrder, CommandResult, HireOrder
from conquest_game_engine.core.scenario import GeneralTemplate, Tier
from conquest_game_engine.core.world_state import General, GeneralStatus, WorldState

logger = logging.getLogger(__name__)

STAT_NAMES = ('command', 'valor', 'strategy', 'logistics')


@dataclass
class HireOutcome:
    """What a completed hire attempt produced."""
    template: GeneralTemplate
    hired: bool
    cost: float
    refund: float
    general: Optional[General] = None


def remaining_pool(state: WorldState, faction: Faction) -> List[GeneralTemplate]:
    """Pool entries of a faction that have not been hired yet."""
    hired = state.factions[faction].hired_names
    return [t for t in state.scenario.faction_config(faction).generals if t.name not in hired]


def draw_candidate(state: WorldState, faction: Faction, rng: random.Random) -> GeneralTemplate:
    """
    Draw a tier, then a name inside it, from the remaining pool.

    Tier weights are renormalised over tiers that still have names; a tier
    whose names are all hired can never be drawn.
    """
    remaining = remaining_pool(state, faction)
    if not remaining:
        raise ValueError(f"{faction.value} has no generals left to draw")

    weights = state.scenario.tunables.tier_weights
    tiers = [tier for tier in Tier if any(t.tier == tier for t in remaining)]
    tier_weights = [max(0.0, float(weights.get(tier, 0))) for tier in tiers]
    if sum(tier_weights) <= 0:
        tier_weights = [1.0] * len(tiers)

    total = sum(tier_weights)
    roll = rng.random() * total
    chosen = tiers[-1]
    for tier, weight in zip(tiers, tier_weights):
        roll -= weight
        if roll < 0:
            chosen = tier
            break

    names = [t for t in remaining if t.tier == chosen]
    return names[rng.randrange(len(names))]


def roll_stats(tier: Tier, state: WorldState, rng: random.Random) -> dict:
    low, high = state.scenario.tunables.tier_stat_ranges[tier]
    return {name: rng.randint(low, high) for name in STAT_NAMES}


def hire_general(state: WorldState, faction: Faction, rng: random.Random) -> CommandResult:
    """
    Attempt to hire a general for a faction.

    The cost is paid whether or not the recruit accepts; a refused offer
    refunds part of it and leaves the name in the pool.

    Args:
        state: World state to mutate
        faction: Hiring faction
        rng: Random source for the tier draw, name draw and success roll

    Returns:
        CommandResult whose value is a HireOutcome on success
    """
    order = HireOrder(faction)
    failure = order.validate(state)
    if failure is not None:
        return failure

    config = state.scenario.faction_config(faction)
    tunables = state.scenario.tunables
    faction_state = state.factions[faction]

    template = draw_candidate(state, faction, rng)
    accepted = rng.random() < tunables.hire_success_rate

    cost = float(config.hire_cost)
    faction_state.economy_stock -= cost

    if not accepted:
        refund = cost * tunables.hire_refund_rate
        faction_state.economy_stock += refund
        logger.debug(f"{faction.value}: {template.name} ({template.tier.value}) declined, refunded {refund:.0f}")
        return CommandResult.ok(
            HireOutcome(template, False, cost, refund),
            f"{template.name} declined the offer"
        )

    general = General(
        general_id=f"{faction.value}_{state.general_counter + 1}",
        name=template.name,
        faction=faction,
        tier=template.tier,
        stats=roll_stats(template.tier, state, rng),
        troop_cap=int(tunables.tier_troop_caps[template.tier]),
        assigned_troops=0.0,
        status=GeneralStatus.IDLE,
        station=state.fallback_station(faction),
    )
    state.add_general(general)
    logger.info(f"{faction.value} hired {general.name} ({general.tier.value}) at {general.station}")
    return CommandResult.ok(
        HireOutcome(template, True, cost, 0.0, general),
        f"{general.name} joins {faction.value}"
    )


def max_assignable(state: WorldState, general: General) -> float:
    """Largest assignment the general's station can back right now."""
    garrison = state.get_garrison(general.station)
    available = garrison - state.claimed_at(general.station, exclude_id=general.general_id)
    return max(0.0, min(float(general.troop_cap), available))


def assign_troops(state: WorldState, faction: Faction, general_id: str, amount: float) -> CommandResult:
    """
    Set an idle general's assigned troops, clamped to what the station allows.

    Returns:
        CommandResult whose value is the assignment actually applied
    """
    order = AssignTroopsOrder(faction, general_id, amount)
    failure = order.validate(state)
    if failure is not None:
        return failure

    general = state.get_general(general_id)
    applied = float(int(min(max(0.0, float(amount)), max_assignable(state, general))))
    general.assigned_troops = applied
    return CommandResult.ok(applied, f"{general.name} commands {applied:.0f}")
