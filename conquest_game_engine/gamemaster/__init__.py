"""
Gamemaster module for running conquest matches with AI-controlled factions.
"""

from conquest_game_engine.gamemaster.ai_director import AIDirector, AttackPlan
from conquest_game_engine.gamemaster.simulator import MatchSimulator, SimulationReport, build_match

__all__ = ['AIDirector', 'AttackPlan', 'MatchSimulator', 'SimulationReport', 'build_match']
