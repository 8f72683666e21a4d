"""
YAML scenario loader for the conquest game engine.
Parses faction tables, general pools, tunables and AI settings with validation.
"""

import logging
import os
from dataclasses import fields
from typing import Dict, List, Optional

import yaml

from conquest_game_engine.core.map import Faction
from conquest_game_engine.core.scenario import (
    AITuning,
    FactionConfig,
    GeneralTemplate,
    LaneTuning,
    ProvinceOverride,
    ScenarioConfig,
    ScenarioValidationError,
    Tier,
    Tunables,
)

logger = logging.getLogger(__name__)

DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'data')
DEFAULT_SCENARIO_PATH = os.path.join(DATA_DIR, 'warring_states.yaml')

TIER_TABLES = ('tier_weights', 'tier_troop_caps', 'tier_stat_ranges')


class YAMLScenarioLoader:
    """Loads and validates a scenario from YAML."""

    def __init__(self):
        self.warnings: List[str] = []

    def load_from_file(self, filepath: str) -> ScenarioConfig:
        """Load and parse a scenario file."""
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"Scenario file not found: {filepath}")

        with open(filepath, 'r', encoding='utf-8') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ScenarioValidationError(f"{filepath} is not valid YAML: {e}")

        scenario = self.parse_scenario(data)
        if scenario.geometry_path and not os.path.isabs(scenario.geometry_path):
            scenario.geometry_path = os.path.join(
                os.path.dirname(os.path.abspath(filepath)), scenario.geometry_path
            )
        return scenario

    def parse_scenario(self, data: Dict) -> ScenarioConfig:
        """
        Build a ScenarioConfig from parsed YAML data.

        Raises:
            ScenarioValidationError: On missing or inconsistent entries
        """
        if not isinstance(data, dict):
            raise ScenarioValidationError("Scenario must be a mapping")

        raw_factions = data.get('factions')
        if not isinstance(raw_factions, dict) or not raw_factions:
            raise ScenarioValidationError("Scenario needs a 'factions' mapping")

        factions = {}
        for key, raw in raw_factions.items():
            faction = self._parse_faction_id(key)
            factions[faction] = self._parse_faction(faction, raw or {})

        scenario = ScenarioConfig(
            name=str(data.get('name', 'Unnamed scenario')),
            factions=factions,
            overrides=self._parse_overrides(data.get('province_overrides') or {}, factions),
            tunables=self._parse_tunables(data.get('tunables') or {}),
            ai=self._merge_dataclass(AITuning(), data.get('ai') or {}, 'ai'),
            geometry_path=data.get('geometry'),
        )

        if 'player_draw_weights' in data:
            scenario.player_draw_weights = {
                self._parse_faction_id(k): float(v)
                for k, v in (data['player_draw_weights'] or {}).items()
            }

        for warning in self.warnings:
            logger.warning(warning)
        return scenario

    def _parse_faction_id(self, value) -> Faction:
        try:
            return Faction.from_string(value)
        except ValueError as e:
            raise ScenarioValidationError(str(e))

    def _parse_faction(self, faction: Faction, raw: Dict) -> FactionConfig:
        provinces = [str(p) for p in raw.get('provinces') or []]
        if not provinces:
            raise ScenarioValidationError(f"Faction {faction.value} has no provinces")

        capital = str(raw.get('capital') or provinces[0])
        if capital not in provinces:
            raise ScenarioValidationError(
                f"Capital {capital} of {faction.value} is not one of its provinces"
            )

        province_troops = {str(k): int(v) for k, v in (raw.get('province_troops') or {}).items()}
        unknown = set(province_troops) - set(provinces)
        if unknown:
            raise ScenarioValidationError(
                f"Troop plan of {faction.value} names provinces it does not own: {sorted(unknown)}"
            )

        generals = []
        seen = set()
        for entry in raw.get('generals') or []:
            name = str(entry.get('name', '')).strip()
            if not name:
                raise ScenarioValidationError(f"General without a name in {faction.value}")
            if name in seen:
                raise ScenarioValidationError(f"Duplicate general {name} in {faction.value}")
            seen.add(name)
            generals.append(GeneralTemplate(name, self._parse_tier(entry.get('tier'))))
        if not generals:
            self.warnings.append(f"Faction {faction.value} has an empty general pool")

        try:
            return FactionConfig(
                faction=faction,
                name=str(raw.get('name', faction.value.title())),
                color=str(raw.get('color', '#888888')),
                capital=capital,
                provinces=provinces,
                troops=int(raw.get('troops', 0)),
                province_troops=province_troops,
                grain=float(raw.get('grain', 0)),
                economy=float(raw.get('economy', 0)),
                economy_multiplier=float(raw.get('economy_multiplier', 0.0004)),
                hire_cost=float(raw.get('hire_cost', 180)),
                troops_per_economy=float(raw.get('troops_per_economy', 2)),
                grain_per_economy=float(raw.get('grain_per_economy', 3)),
                generals=generals,
            )
        except (TypeError, ValueError) as e:
            raise ScenarioValidationError(f"Bad value in faction {faction.value}: {e}")

    def _parse_tier(self, value) -> Tier:
        try:
            return Tier(str(value).strip().upper())
        except ValueError:
            raise ScenarioValidationError(f"Unknown general tier: {value}")

    def _parse_overrides(self, raw: Dict, factions: Dict[Faction, FactionConfig]) -> Dict[str, ProvinceOverride]:
        overrides = {}
        for pid, entry in raw.items():
            entry = entry or {}
            override = ProvinceOverride()
            owner = entry.get('owner')
            if owner is not None:
                if str(owner).lower() == 'neutral':
                    override.neutral = True
                else:
                    override.owner = self._parse_faction_id(owner)
                    if override.owner not in factions:
                        raise ScenarioValidationError(
                            f"Override gives {pid} to {override.owner.value}, which is not in the scenario"
                        )
            if entry.get('garrison') is not None:
                override.garrison = float(entry['garrison'])
            overrides[str(pid)] = override
        return overrides

    def _parse_tunables(self, raw: Dict) -> Tunables:
        raw = dict(raw)
        lane_raw = raw.pop('lane', None) or {}
        tier_raw = {name: raw.pop(name) for name in TIER_TABLES if name in raw}

        tunables = self._merge_dataclass(Tunables(), raw, 'tunables')
        tunables.lane = self._merge_dataclass(LaneTuning(), lane_raw, 'lane')

        for name, table in tier_raw.items():
            parsed = {}
            for tier_key, value in (table or {}).items():
                tier = self._parse_tier(tier_key)
                parsed[tier] = tuple(value) if name == 'tier_stat_ranges' else value
            merged = dict(getattr(tunables, name))
            merged.update(parsed)
            setattr(tunables, name, merged)

        if tunables.travel_duration_ms <= 0 or tunables.economy_tick_ms <= 0 or tunables.ai_period_ms <= 0:
            raise ScenarioValidationError("Durations and periods must be positive")
        if not 0.0 <= tunables.hire_success_rate <= 1.0:
            raise ScenarioValidationError("hire_success_rate must be between 0 and 1")
        return tunables

    def _merge_dataclass(self, instance, raw: Dict, section: str):
        """Overwrite dataclass fields from a mapping, keeping the field's type."""
        known = {f.name: f for f in fields(instance)}
        for key, value in raw.items():
            if key not in known:
                self.warnings.append(f"Unknown key '{key}' in {section}")
                continue
            current = getattr(instance, key)
            try:
                if isinstance(current, bool):
                    value = bool(value)
                elif isinstance(current, int):
                    value = int(value)
                elif isinstance(current, float):
                    value = float(value)
            except (TypeError, ValueError):
                raise ScenarioValidationError(f"Bad value for {section}.{key}: {value!r}")
            setattr(instance, key, value)
        return instance


def load_scenario(filepath: Optional[str] = None) -> ScenarioConfig:
    """Load a scenario file, defaulting to the bundled Warring States scenario."""
    return YAMLScenarioLoader().load_from_file(filepath or DEFAULT_SCENARIO_PATH)
