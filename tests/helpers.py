"""
Small map and scenario builders shared by the test modules.
"""

import numpy as np

from conquest_game_engine.core.geometry import BoundaryRegion
from conquest_game_engine.core.map import Faction, build_territory_map
from conquest_game_engine.core.scenario import (
    AITuning, FactionConfig, GeneralTemplate, ScenarioConfig, Tier, Tunables
)
from conquest_game_engine.core.world_state import General, GeneralStatus, create_initial_state


def cell(x, y, size=100.0):
    """Open square ring for grid cell (x, y)."""
    x0, y0 = x * size, y * size
    return np.array([[x0, y0], [x0 + size, y0], [x0 + size, y0 + size], [x0, y0 + size]], dtype=float)


def grid_map(layout):
    """
    Build a territory map from {province_id: (x, y)} unit cells.

    Cells that share a side become adjacent.
    """
    regions = [BoundaryRegion(pid, pid, [[cell(x, y)]]) for pid, (x, y) in layout.items()]
    return build_territory_map(regions)


def default_pool(faction):
    return [
        GeneralTemplate(f"{faction.value}-{tier.value}{i}", tier)
        for tier in Tier for i in range(2)
    ]


def make_scenario(territories, economy=1000.0, grain=1000.0, hire_cost=100.0,
                  generals=None, ai=None, **tunable_overrides):
    """
    Scenario where each faction owns the listed provinces (first one is the capital).

    Garrisons start at zero for owned provinces; set them on the state as needed.
    """
    factions = {}
    for faction, provinces in territories.items():
        factions[faction] = FactionConfig(
            faction=faction,
            name=faction.value.title(),
            color='#336699',
            capital=provinces[0],
            provinces=list(provinces),
            troops=0,
            grain=grain,
            economy=economy,
            economy_multiplier=0.001,
            hire_cost=hire_cost,
            generals=(generals or {}).get(faction, default_pool(faction)),
        )
    return ScenarioConfig(
        name='Test',
        factions=factions,
        tunables=Tunables(**tunable_overrides),
        ai=ai or AITuning(),
    )


def make_state(layout, territories, garrisons=None, **scenario_kwargs):
    territory_map = grid_map(layout)
    scenario = make_scenario(territories, **scenario_kwargs)
    state = create_initial_state(territory_map, scenario)
    for pid, value in (garrisons or {}).items():
        state.set_garrison(pid, value)
    return state


def place_general(state, faction, province_id, tier=Tier.A, assigned=0.0, name=None):
    """Put an idle general straight onto the roster, bypassing the hire roll."""
    general = General(
        general_id=f"{faction.value}_{state.general_counter + 1}",
        name=name or f"{faction.value} commander {state.general_counter + 1}",
        faction=faction,
        tier=tier,
        stats={'command': 80, 'valor': 80, 'strategy': 80, 'logistics': 80},
        troop_cap=state.scenario.tunables.tier_troop_caps[tier],
        assigned_troops=float(assigned),
        status=GeneralStatus.IDLE,
        station=province_id,
    )
    state.add_general(general)
    return general


def run_frames(engine, start_ms, end_ms, frame_ms=16.0):
    """Step collision and arrival resolution at a fixed frame rate."""
    from conquest_game_engine.core.resolver import ResolutionResult, resolve_frame
    total = ResolutionResult()
    t = start_ms
    while t < end_ms:
        t = min(end_ms, t + frame_ms)
        total.merge(resolve_frame(engine, t))
    return total
