"""
Conquest Game Engine
A real-time territory-conquest engine for the Warring States over a province
graph derived from boundary geometry.
"""

from conquest_game_engine.core.map import Faction, Province, TerritoryMap, build_territory_map
from conquest_game_engine.core.geometry import BoundaryRegion, MalformedGeometryError
from conquest_game_engine.core.scenario import ScenarioConfig, ScenarioValidationError, Tier
from conquest_game_engine.core.world_state import (
    WorldState, General, GeneralStatus, MatchResult, create_initial_state
)
from conquest_game_engine.core.orders import CommandFailure, CommandResult
from conquest_game_engine.core.dispatch import DispatchEngine, DispatchStatus, unit_position
from conquest_game_engine.core.resolver import resolve_frame, resolve_hit
from conquest_game_engine.core.game import Match
from conquest_game_engine.io.geojson_loader import load_territory_map
from conquest_game_engine.io.yaml_scenario import load_scenario, YAMLScenarioLoader

__version__ = "1.0.0"
__all__ = [
    'Faction', 'Province', 'TerritoryMap', 'build_territory_map',
    'BoundaryRegion', 'MalformedGeometryError',
    'ScenarioConfig', 'ScenarioValidationError', 'Tier',
    'WorldState', 'General', 'GeneralStatus', 'MatchResult', 'create_initial_state',
    'CommandFailure', 'CommandResult',
    'DispatchEngine', 'DispatchStatus', 'unit_position',
    'resolve_frame', 'resolve_hit',
    'Match',
    'load_territory_map', 'load_scenario', 'YAMLScenarioLoader',
]
