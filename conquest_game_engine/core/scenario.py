"""
Scenario configuration for the conquest game engine.
Static per-faction data and the tunables shared by every match component.
"""

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from conquest_game_engine.core.map import Faction


class ScenarioValidationError(Exception):
    """Raised when scenario data is inconsistent or incomplete."""
    pass


class Tier(Enum):
    """General quality tier."""
    S = "S"
    A = "A"
    B = "B"
    C = "C"


DEFAULT_TIER_WEIGHTS = {Tier.S: 6, Tier.A: 20, Tier.B: 34, Tier.C: 40}
DEFAULT_TIER_TROOP_CAPS = {Tier.S: 320, Tier.A: 240, Tier.B: 180, Tier.C: 120}
DEFAULT_TIER_STAT_RANGES = {
    Tier.S: (85, 100),
    Tier.A: (72, 90),
    Tier.B: (58, 78),
    Tier.C: (40, 65),
}

# Relative chance of each nation being handed to the human player
DEFAULT_PLAYER_DRAW_WEIGHTS = {
    Faction.QIN: 5,
    Faction.CHU: 5,
    Faction.ZHAO: 10,
    Faction.YAN: 20,
    Faction.WEI: 20,
    Faction.QI: 20,
    Faction.HAN: 20,
}


@dataclass
class GeneralTemplate:
    """An entry of a faction's general name pool."""
    name: str
    tier: Tier


@dataclass
class FactionConfig:
    """Static data for one faction."""
    faction: Faction
    name: str
    color: str
    capital: str
    provinces: List[str]
    troops: int = 0
    province_troops: Dict[str, int] = field(default_factory=dict)
    grain: float = 0.0
    economy: float = 0.0
    economy_multiplier: float = 0.0004
    hire_cost: float = 180.0
    troops_per_economy: float = 2.0
    grain_per_economy: float = 3.0
    generals: List[GeneralTemplate] = field(default_factory=list)

    def starting_garrisons(self) -> Dict[str, int]:
        """
        Initial garrison per owned province.

        An explicit per-province plan wins; otherwise the faction's troops are
        split evenly and the remainder goes to the capital.
        """
        if self.province_troops:
            return {pid: int(self.province_troops.get(pid, 0)) for pid in self.provinces}
        if not self.provinces:
            return {}
        share, remainder = divmod(int(self.troops), len(self.provinces))
        garrisons = {pid: share for pid in self.provinces}
        capital = self.capital if self.capital in garrisons else self.provinces[0]
        garrisons[capital] += remainder
        return garrisons


@dataclass
class ProvinceOverride:
    """Optional per-province starting override."""
    owner: Optional[Faction] = None
    neutral: bool = False
    garrison: Optional[float] = None


@dataclass
class LaneTuning:
    """Shape parameters of the in-flight unit formation."""
    forward_offset: float = 8.0
    row_gap: float = 10.0
    column_gap: float = 10.0
    lane_spread: float = 18.0
    row_spread: float = 8.0
    chevron_depth: float = 16.0
    emit_spread_ms: float = 260.0
    emit_spread_distance: float = 50.0
    absorb_distance: float = 80.0


@dataclass
class Tunables:
    """Match-wide timing, combat and hiring constants."""
    travel_duration_ms: int = 2000
    column_delay_ms: int = 220
    units_per_column: int = 5
    collision_radius: float = 20.0
    release_buffer_ms: int = 300
    economy_tick_ms: int = 200
    ai_period_ms: int = 4600
    hire_success_rate: float = 0.65
    hire_refund_rate: float = 0.5
    tier_weights: Dict[Tier, float] = field(default_factory=lambda: dict(DEFAULT_TIER_WEIGHTS))
    tier_troop_caps: Dict[Tier, int] = field(default_factory=lambda: dict(DEFAULT_TIER_TROOP_CAPS))
    tier_stat_ranges: Dict[Tier, Tuple[int, int]] = field(
        default_factory=lambda: dict(DEFAULT_TIER_STAT_RANGES)
    )
    neutral_garrison: float = 15.0
    neutral_target_garrison: float = 15.0
    neutral_recover_rate: float = 1.0
    edge_precision: int = 3
    lane: LaneTuning = field(default_factory=LaneTuning)


@dataclass
class AITuning:
    """Chance gates and thresholds for the AI Director."""
    economic_chance: float = 0.7
    grain_low_threshold: float = 300.0
    buy_grain_chance: float = 0.6
    buy_grain_spend: float = 120.0
    convert_chance: float = 0.5
    convert_fraction: float = 0.35
    hire_chance: float = 0.45
    roster_soft_cap: int = 3
    roster_override_chance: float = 0.08
    assign_chance: float = 0.85
    assign_fraction: float = 0.38
    attack_chance: float = 0.75
    attack_min_garrison: float = 65.0
    attack_floor: float = 45.0
    human_bonus: float = 25.0
    neutral_bonus: float = 10.0
    jitter: float = 8.0
    opening_grace_ms: int = 0


@dataclass
class ScenarioConfig:
    """Everything needed to start a match, apart from the geometry itself."""
    name: str
    factions: Dict[Faction, FactionConfig]
    overrides: Dict[str, ProvinceOverride] = field(default_factory=dict)
    tunables: Tunables = field(default_factory=Tunables)
    ai: AITuning = field(default_factory=AITuning)
    player_draw_weights: Dict[Faction, float] = field(
        default_factory=lambda: dict(DEFAULT_PLAYER_DRAW_WEIGHTS)
    )
    geometry_path: Optional[str] = None

    def faction_config(self, faction: Faction) -> FactionConfig:
        return self.factions[faction]

    def draw_player_faction(self, rng: random.Random) -> Faction:
        """
        Pick the human player's nation using the weighted draw table.

        Args:
            rng: Random source; a seeded one makes the draw reproducible

        Returns:
            The drawn faction (only factions present in the scenario)
        """
        candidates = [
            (faction, weight) for faction, weight in self.player_draw_weights.items()
            if faction in self.factions and weight > 0
        ]
        if not candidates:
            raise ValueError("No faction can be drawn for the player")

        total = sum(weight for _, weight in candidates)
        roll = rng.random() * total
        for faction, weight in candidates:
            roll -= weight
            if roll < 0:
                return faction
        return candidates[-1][0]
