"""
Order system for the conquest game engine.
Defines the commands a faction can issue, their validation, and command outcomes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from conquest_game_engine.core.map import Faction
from conquest_game_engine.core.world_state import GeneralStatus, WorldState


class CommandFailure(Enum):
    """Why a command was rejected. A rejected command changes nothing."""
    INSUFFICIENT_FUNDS = "insufficient_funds"
    POOL_EXHAUSTED = "pool_exhausted"
    INVALID_ORDER = "invalid_order"
    NOT_OWNED = "not_owned"
    SAME_FACTION = "same_faction"
    NO_COMMANDER = "no_commander"
    INSUFFICIENT_GRAIN = "insufficient_grain"
    INSUFFICIENT_GARRISON = "insufficient_garrison"
    UNKNOWN_GENERAL = "unknown_general"
    GENERAL_NOT_IDLE = "general_not_idle"
    FACTION_DEFEATED = "faction_defeated"
    MATCH_OVER = "match_over"


@dataclass
class CommandResult:
    """Outcome of a command."""
    success: bool
    failure: Optional[CommandFailure] = None
    message: str = ""
    value: Any = None

    @classmethod
    def ok(cls, value: Any = None, message: str = "") -> 'CommandResult':
        return cls(True, None, message, value)

    @classmethod
    def fail(cls, failure: CommandFailure, message: str = "") -> 'CommandResult':
        return cls(False, failure, message or failure.value)


class Order(ABC):
    """Base class for all faction commands."""

    def __init__(self, faction: Faction):
        self.faction = faction

    @abstractmethod
    def validate(self, state: WorldState) -> Optional[CommandResult]:
        """Return a failure result if the order cannot be executed, else None."""
        pass

    @abstractmethod
    def to_string(self) -> str:
        """Convert order to string representation."""
        pass

    def is_valid(self, state: WorldState) -> bool:
        return self.validate(state) is None

    def __repr__(self) -> str:
        return self.to_string()


class HireOrder(Order):
    """Attempt to recruit a general from the faction's name pool."""

    def validate(self, state: WorldState) -> Optional[CommandResult]:
        config = state.scenario.faction_config(self.faction)
        faction_state = state.factions[self.faction]

        if faction_state.economy_stock < config.hire_cost:
            return CommandResult.fail(
                CommandFailure.INSUFFICIENT_FUNDS,
                f"Hiring costs {config.hire_cost}, {self.faction.value} has "
                f"{faction_state.economy_stock:.1f}"
            )
        if all(t.name in faction_state.hired_names for t in config.generals):
            return CommandResult.fail(CommandFailure.POOL_EXHAUSTED)
        if state.fallback_station(self.faction) is None:
            return CommandResult.fail(CommandFailure.FACTION_DEFEATED)
        return None

    def to_string(self) -> str:
        return f"{self.faction.value} HIRE"


class AssignTroopsOrder(Order):
    """Set how many garrison troops an idle general commands."""

    def __init__(self, faction: Faction, general_id: str, amount: float):
        super().__init__(faction)
        self.general_id = general_id
        self.amount = amount

    def validate(self, state: WorldState) -> Optional[CommandResult]:
        general = state.get_general(self.general_id)
        if general is None or general.faction != self.faction:
            return CommandResult.fail(
                CommandFailure.UNKNOWN_GENERAL, f"No general {self.general_id}"
            )
        if general.status != GeneralStatus.IDLE or general.station is None:
            return CommandResult.fail(
                CommandFailure.GENERAL_NOT_IDLE, f"{general.name} is not idle"
            )
        if state.get_owner(general.station) != self.faction:
            return CommandResult.fail(
                CommandFailure.NOT_OWNED,
                f"{general.name} is stationed in {general.station}, which {self.faction.value} does not hold"
            )
        return None

    def to_string(self) -> str:
        return f"{self.faction.value} ASSIGN {self.general_id} {self.amount}"


class AttackOrder(Order):
    """Send troops led by a general from an owned province into a neighbour."""

    def __init__(
        self,
        faction: Faction,
        general_id: str,
        from_province: str,
        to_province: str,
        troop_count: int
    ):
        super().__init__(faction)
        self.general_id = general_id
        self.from_province = from_province
        self.to_province = to_province
        self.troop_count = troop_count

    def validate(self, state: WorldState) -> Optional[CommandResult]:
        """
        Check, in order:
        - both provinces exist, differ and are adjacent
        - the origin belongs to the faction
        - the target does not
        - an idle general at the origin commands enough troops
        - grain covers one unit per troop
        - the origin still holds the troops
        """
        territory_map = state.territory_map
        if (self.from_province not in state.provinces
                or self.to_province not in state.provinces
                or self.from_province == self.to_province
                or not territory_map.is_adjacent(self.from_province, self.to_province)):
            return CommandResult.fail(
                CommandFailure.INVALID_ORDER,
                f"{self.from_province} -> {self.to_province} is not a border"
            )

        if state.get_owner(self.from_province) != self.faction:
            return CommandResult.fail(CommandFailure.NOT_OWNED)
        if state.get_owner(self.to_province) == self.faction:
            return CommandResult.fail(CommandFailure.SAME_FACTION)

        general = state.get_general(self.general_id)
        if (general is None
                or general.faction != self.faction
                or not general.is_idle_at(self.from_province)
                or self.troop_count <= 0
                or general.assigned_troops < self.troop_count):
            return CommandResult.fail(CommandFailure.NO_COMMANDER)

        if state.factions[self.faction].grain_stock < self.troop_count:
            return CommandResult.fail(CommandFailure.INSUFFICIENT_GRAIN)
        if state.get_garrison(self.from_province) < self.troop_count:
            return CommandResult.fail(CommandFailure.INSUFFICIENT_GARRISON)
        return None

    def to_string(self) -> str:
        return (f"{self.faction.value} {self.general_id} "
                f"{self.from_province} -> {self.to_province} x{self.troop_count}")


class ConvertEconomyOrder(Order):
    """Spend economy on grain or on capital garrison."""

    def __init__(self, faction: Faction, economy_amount: float, into: str):
        super().__init__(faction)
        self.economy_amount = economy_amount
        self.into = into

    def validate(self, state: WorldState) -> Optional[CommandResult]:
        if self.into not in ('grain', 'troops') or self.economy_amount <= 0:
            return CommandResult.fail(CommandFailure.INVALID_ORDER)
        if state.factions[self.faction].economy_stock < self.economy_amount:
            return CommandResult.fail(CommandFailure.INSUFFICIENT_FUNDS)
        if self.into == 'troops' and state.fallback_station(self.faction) is None:
            return CommandResult.fail(CommandFailure.FACTION_DEFEATED)
        return None

    def to_string(self) -> str:
        return f"{self.faction.value} CONVERT {self.economy_amount} -> {self.into}"
