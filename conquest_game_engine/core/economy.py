"""
Economy for the conquest game engine.
Periodic income from owned territory, neutral regeneration, and the
conversions of economy into grain or garrison.
"""

import logging

from conquest_game_engine.core.map import Faction
from conquest_game_engine.core.orders import CommandResult, ConvertEconomyOrder
from conquest_game_engine.core.world_state import WorldState

logger = logging.getLogger(__name__)


def apply_economy_tick(state: WorldState, period_ms: float) -> None:
    """
    Credit every faction with one tick of income, then regenerate neutrals.

    Income uses the economy rate of the provinces owned right now, so a
    capture changes income from the next tick on.
    """
    dt_seconds = period_ms / 1000.0
    for faction, faction_state in state.factions.items():
        rate = state.economy_per_second(faction)
        if rate > 0:
            faction_state.economy_stock += rate * dt_seconds
    state.regenerate_neutral(dt_seconds)


def buy_grain(state: WorldState, faction: Faction, economy_amount: float) -> CommandResult:
    """
    Spend economy on grain at the faction's grain_per_economy rate.

    Returns:
        CommandResult whose value is the grain gained
    """
    order = ConvertEconomyOrder(faction, economy_amount, 'grain')
    failure = order.validate(state)
    if failure is not None:
        return failure

    config = state.scenario.faction_config(faction)
    faction_state = state.factions[faction]
    grain = economy_amount * config.grain_per_economy
    faction_state.economy_stock -= economy_amount
    faction_state.grain_stock += grain
    logger.debug(f"{faction.value} bought {grain:.0f} grain for {economy_amount:.0f}")
    return CommandResult.ok(grain)


def recruit_troops(state: WorldState, faction: Faction, economy_amount: float) -> CommandResult:
    """
    Spend economy on garrison at the capital (or fallback station).

    Only whole troops are bought; the economy spent matches them exactly.

    Returns:
        CommandResult whose value is the number of troops added
    """
    order = ConvertEconomyOrder(faction, economy_amount, 'troops')
    failure = order.validate(state)
    if failure is not None:
        return failure

    config = state.scenario.faction_config(faction)
    troops = int(economy_amount * config.troops_per_economy)
    if troops <= 0:
        return CommandResult.ok(0, "Too little economy for a single troop")

    spent = min(economy_amount, troops / config.troops_per_economy)
    station = state.fallback_station(faction)
    state.factions[faction].economy_stock -= spent
    state.adjust_garrison(station, troops)
    logger.debug(f"{faction.value} raised {troops} troops at {station}")
    return CommandResult.ok(troops)
