"""
World state for the conquest game engine.
Tracks province ownership and garrisons, faction stocks and general rosters.
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from conquest_game_engine.core.map import Faction, TerritoryMap
from conquest_game_engine.core.scenario import ScenarioConfig, ScenarioValidationError, Tier

logger = logging.getLogger(__name__)


class GeneralStatus(Enum):
    IDLE = "idle"
    MARCHING = "marching"


class MatchResult(Enum):
    """Outcome of the match from the human player's point of view."""
    PLAYING = "playing"
    VICTORY = "victory"
    DEFEAT = "defeat"


@dataclass
class General:
    """A hired commander. Idle generals hold a station, marching ones do not."""
    general_id: str
    name: str
    faction: Faction
    tier: Tier
    stats: Dict[str, int]
    troop_cap: int
    assigned_troops: float = 0.0
    status: GeneralStatus = GeneralStatus.IDLE
    station: Optional[str] = None
    hire_order: int = 0

    def is_idle_at(self, province_id: str) -> bool:
        return self.status == GeneralStatus.IDLE and self.station == province_id

    def to_dict(self) -> Dict:
        return {
            'id': self.general_id,
            'name': self.name,
            'faction': self.faction.value,
            'tier': self.tier.value,
            'stats': dict(self.stats),
            'troop_cap': self.troop_cap,
            'assigned_troops': self.assigned_troops,
            'status': self.status.value,
            'station': self.station,
        }


@dataclass
class ProvinceState:
    """Mutable per-province state."""
    province_id: str
    owner: Optional[Faction]
    garrison: float

    @property
    def is_neutral(self) -> bool:
        return self.owner is None

    @property
    def display_garrison(self) -> int:
        return int(self.garrison)


@dataclass
class FactionState:
    """Mutable per-faction stocks and roster."""
    faction: Faction
    economy_stock: float = 0.0
    grain_stock: float = 0.0
    generals: Dict[str, General] = field(default_factory=dict)
    hired_names: Set[str] = field(default_factory=set)


class WorldState:
    """
    The single mutable state of a match.

    Every mutation that can change ownership or garrisons goes through
    set_owner/set_garrison so that cached per-faction aggregates stay correct.
    """

    def __init__(self, territory_map: TerritoryMap, scenario: ScenarioConfig):
        self.territory_map = territory_map
        self.scenario = scenario
        self.provinces: Dict[str, ProvinceState] = {}
        self.factions: Dict[Faction, FactionState] = {}
        self.generals: Dict[str, General] = {}
        self.general_counter = 0
        self._aggregates: Optional[Dict[Faction, Tuple[int, float, float]]] = None

    # ------------------------------------------------------------------
    # Provinces
    # ------------------------------------------------------------------

    def get_province_state(self, province_id: str) -> Optional[ProvinceState]:
        return self.provinces.get(province_id)

    def get_owner(self, province_id: str) -> Optional[Faction]:
        return self.provinces[province_id].owner

    def get_garrison(self, province_id: str) -> float:
        return self.provinces[province_id].garrison

    def set_garrison(self, province_id: str, value: float) -> None:
        """Set a garrison, clamped at zero, trimming idle claims that no longer fit."""
        province = self.provinces[province_id]
        previous = province.garrison
        province.garrison = max(0.0, float(value))
        self._aggregates = None
        if province.garrison < previous:
            self._trim_claims(province_id)

    def adjust_garrison(self, province_id: str, delta: float) -> None:
        self.set_garrison(province_id, self.provinces[province_id].garrison + delta)

    def set_owner(self, province_id: str, faction: Optional[Faction]) -> None:
        """
        Change a province's owner. This is the only conquest mechanism.

        Idle generals of the previous owner stationed there fall back to
        another province of their faction.
        """
        province = self.provinces[province_id]
        previous = province.owner
        if previous == faction:
            return

        province.owner = faction
        self._aggregates = None

        if previous is not None:
            self._evict_generals(previous, province_id)

    def regenerate_neutral(self, dt_seconds: float) -> None:
        """Move neutral garrisons below the target back up toward it."""
        tunables = self.scenario.tunables
        target = tunables.neutral_target_garrison
        gain = tunables.neutral_recover_rate * dt_seconds
        if gain <= 0:
            return
        for province in self.provinces.values():
            if province.owner is None and province.garrison < target:
                self.set_garrison(province.province_id, min(target, province.garrison + gain))

    def owned_provinces(self, faction: Faction) -> List[str]:
        return [pid for pid, p in self.provinces.items() if p.owner == faction]

    def neutral_provinces(self) -> List[str]:
        return [pid for pid, p in self.provinces.items() if p.owner is None]

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def _compute_aggregates(self) -> Dict[Faction, Tuple[int, float, float]]:
        counts = {faction: 0 for faction in Faction}
        areas = {faction: 0.0 for faction in Faction}
        troops = {faction: 0.0 for faction in Faction}
        for pid, province in self.provinces.items():
            if province.owner is None:
                continue
            counts[province.owner] += 1
            areas[province.owner] += self.territory_map.provinces[pid].area
            troops[province.owner] += province.garrison

        aggregates = {}
        for faction in Faction:
            config = self.scenario.factions.get(faction)
            multiplier = config.economy_multiplier if config else 0.0
            aggregates[faction] = (counts[faction], areas[faction] * multiplier, troops[faction])
        return aggregates

    def _aggregate(self, faction: Faction) -> Tuple[int, float, float]:
        if self._aggregates is None:
            self._aggregates = self._compute_aggregates()
        return self._aggregates[faction]

    def province_count(self, faction: Faction) -> int:
        return self._aggregate(faction)[0]

    def economy_per_second(self, faction: Faction) -> float:
        """Owned display area times the faction's economy multiplier."""
        return self._aggregate(faction)[1]

    def total_garrison(self, faction: Faction) -> float:
        return self._aggregate(faction)[2]

    def is_defeated(self, faction: Faction) -> bool:
        return self.province_count(faction) == 0

    def check_result(self, player: Faction) -> MatchResult:
        """Evaluate the match for the human player."""
        count = self.province_count(player)
        if count == 0:
            return MatchResult.DEFEAT
        if count == len(self.provinces):
            return MatchResult.VICTORY
        return MatchResult.PLAYING

    # ------------------------------------------------------------------
    # Generals
    # ------------------------------------------------------------------

    def fallback_station(self, faction: Faction) -> Optional[str]:
        """Capital if still owned, otherwise the strongest owned province."""
        config = self.scenario.factions.get(faction)
        if config and self.provinces.get(config.capital) and \
                self.provinces[config.capital].owner == faction:
            return config.capital

        owned = self.owned_provinces(faction)
        if not owned:
            return None
        return max(owned, key=lambda pid: (self.provinces[pid].garrison, pid))

    def add_general(self, general: General) -> None:
        self.general_counter += 1
        general.hire_order = self.general_counter
        self.generals[general.general_id] = general
        faction_state = self.factions[general.faction]
        faction_state.generals[general.general_id] = general
        faction_state.hired_names.add(general.name)

    def get_general(self, general_id: str) -> Optional[General]:
        return self.generals.get(general_id)

    def idle_generals_at(self, province_id: str) -> List[General]:
        return [g for g in self.generals.values() if g.is_idle_at(province_id)]

    def claimed_at(self, province_id: str, exclude_id: Optional[str] = None) -> float:
        """Troops claimed by the owner's idle generals at a station."""
        owner = self.provinces[province_id].owner
        return sum(
            g.assigned_troops for g in self.idle_generals_at(province_id)
            if g.faction == owner and g.general_id != exclude_id
        )

    def _trim_claims(self, province_id: str) -> None:
        province = self.provinces[province_id]
        garrison = province.garrison
        idle = sorted(
            (g for g in self.idle_generals_at(province_id) if g.faction == province.owner),
            key=lambda g: g.hire_order,
            reverse=True
        )
        excess = sum(g.assigned_troops for g in idle) - garrison
        for general in idle:
            if excess <= 0:
                break
            cut = min(general.assigned_troops, excess)
            general.assigned_troops -= cut
            excess -= cut

    def _evict_generals(self, faction: Faction, province_id: str) -> None:
        stranded = [g for g in self.idle_generals_at(province_id) if g.faction == faction]
        if not stranded:
            return
        fallback = self.fallback_station(faction)
        for general in stranded:
            general.assigned_troops = 0.0
            general.station = fallback
            if fallback is None:
                logger.info(f"{general.name} ({faction.value}) has no province left to hold")
            else:
                logger.debug(f"{general.name} falls back from {province_id} to {fallback}")

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict:
        """Snapshot of the mutable state, suitable for JSON or comparison."""
        return {
            'provinces': {
                pid: {
                    'owner': p.owner.value if p.owner else None,
                    'garrison': p.garrison,
                }
                for pid, p in sorted(self.provinces.items())
            },
            'factions': {
                faction.value: {
                    'economy_stock': fs.economy_stock,
                    'grain_stock': fs.grain_stock,
                    'province_count': self.province_count(faction),
                    'economy_per_second': self.economy_per_second(faction),
                    'generals': [g.to_dict() for g in fs.generals.values()],
                    'hired_names': sorted(fs.hired_names),
                }
                for faction, fs in self.factions.items()
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    def clone(self) -> 'WorldState':
        """Deep copy of the mutable state sharing the static map and scenario."""
        new_state = WorldState(self.territory_map, self.scenario)
        new_state.provinces = copy.deepcopy(self.provinces)
        new_state.factions = copy.deepcopy(self.factions)
        new_state.generals = {}
        for faction_state in new_state.factions.values():
            new_state.generals.update(faction_state.generals)
        new_state.general_counter = self.general_counter
        return new_state


def create_initial_state(territory_map: TerritoryMap, scenario: ScenarioConfig) -> WorldState:
    """
    Seed ownership, garrisons and stocks from the scenario tables.

    Raises:
        ScenarioValidationError: If the tables reference unknown provinces or
            give one province to two factions
    """
    state = WorldState(territory_map, scenario)
    neutral_garrison = scenario.tunables.neutral_garrison

    for pid in territory_map.provinces:
        state.provinces[pid] = ProvinceState(pid, None, float(neutral_garrison))

    claimed: Dict[str, Faction] = {}
    for faction, config in scenario.factions.items():
        for pid, garrison in config.starting_garrisons().items():
            if pid not in state.provinces:
                raise ScenarioValidationError(
                    f"Faction {faction.value} lists unknown province {pid}"
                )
            if pid in claimed:
                raise ScenarioValidationError(
                    f"Province {pid} is claimed by both {claimed[pid].value} and {faction.value}"
                )
            claimed[pid] = faction
            state.provinces[pid].owner = faction
            state.provinces[pid].garrison = float(garrison)

        state.factions[faction] = FactionState(
            faction=faction,
            economy_stock=float(config.economy),
            grain_stock=float(config.grain),
        )

    for pid, override in scenario.overrides.items():
        if pid not in state.provinces:
            raise ScenarioValidationError(f"Override for unknown province {pid}")
        province = state.provinces[pid]
        if override.neutral:
            province.owner = None
        elif override.owner is not None:
            province.owner = override.owner
        if override.garrison is not None:
            province.garrison = max(0.0, float(override.garrison))

    return state
