"""
Dispatch engine for the conquest game engine.
Turns attack orders into columns of travelling units and tracks them until
they arrive or are cancelled by a mid-flight collision.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from conquest_game_engine.core.map import Faction
from conquest_game_engine.core.orders import AttackOrder, CommandResult
from conquest_game_engine.core.scenario import LaneTuning, Tunables
from conquest_game_engine.core.world_state import GeneralStatus, WorldState

logger = logging.getLogger(__name__)


class DispatchStatus(Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    ARRIVED = "arrived"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class LaneParams:
    """Where a unit sits inside its group's formation."""
    row: int
    column: int
    rows_in_column: int
    lane_bias: float
    column_stagger: float


@dataclass
class Dispatch:
    """One travelling unit."""
    dispatch_id: int
    group_id: int
    index: int
    faction: Faction
    general_id: Optional[str]
    from_province: str
    to_province: str
    spawn_ms: float
    travel_ms: float
    lane: LaneParams
    resolved: Optional[DispatchStatus] = None

    @property
    def arrival_ms(self) -> float:
        return self.spawn_ms + self.travel_ms

    def status_at(self, now_ms: float) -> DispatchStatus:
        if self.resolved is not None:
            return self.resolved
        if now_ms < self.spawn_ms:
            return DispatchStatus.PENDING
        return DispatchStatus.IN_FLIGHT


@dataclass
class DispatchGroup:
    """All units created by one attack order."""
    group_id: int
    faction: Faction
    general_id: Optional[str]
    from_province: str
    to_province: str
    issued_ms: float
    release_ms: float
    units: List[Dispatch] = field(default_factory=list)
    cancelled: bool = False

    def status_at(self, now_ms: float) -> DispatchStatus:
        if self.cancelled:
            return DispatchStatus.CANCELLED
        if all(u.resolved == DispatchStatus.ARRIVED for u in self.units):
            return DispatchStatus.ARRIVED
        if any(u.status_at(now_ms) == DispatchStatus.IN_FLIGHT for u in self.units):
            return DispatchStatus.IN_FLIGHT
        return DispatchStatus.PENDING

    def is_finished(self) -> bool:
        return self.cancelled or all(u.resolved is not None for u in self.units)

    def leading_column(self, now_ms: float) -> List[Dispatch]:
        """In-flight units of the earliest-spawned column still travelling."""
        in_flight = [
            u for u in self.units
            if u.status_at(now_ms) == DispatchStatus.IN_FLIGHT and now_ms < u.arrival_ms
        ]
        if not in_flight:
            return []
        first_spawn = min(u.spawn_ms for u in in_flight)
        return [u for u in in_flight if u.spawn_ms == first_spawn]

    def cancel(self) -> int:
        """Cancel every unresolved unit. Returns how many were cancelled."""
        self.cancelled = True
        count = 0
        for unit in self.units:
            if unit.resolved is None:
                unit.resolved = DispatchStatus.CANCELLED
                count += 1
        return count


def build_lanes(count: int, units_per_column: int = 5) -> List[LaneParams]:
    """
    Formation slots for a group of ``count`` units.

    Units fill columns of ``units_per_column`` (the whole group forms a
    single column when it has fewer than three units); odd columns are
    staggered sideways.
    """
    if count <= 0:
        return []
    per_column = count if count < 3 else max(1, units_per_column)

    lanes = []
    for i in range(count):
        column = i // per_column
        row = i % per_column
        rows_in_column = min(per_column, count - column * per_column)
        centered_row = row - (rows_in_column - 1) / 2
        half_span = max(1.0, (max(rows_in_column, 2) - 1) / 2)
        lanes.append(LaneParams(
            row=row,
            column=column,
            rows_in_column=rows_in_column,
            lane_bias=centered_row / half_span,
            column_stagger=0.45 if column % 2 == 1 else 0.0,
        ))
    return lanes


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def unit_position(
    from_pos: Tuple[float, float],
    to_pos: Tuple[float, float],
    spawn_ms: float,
    now_ms: float,
    lane: LaneParams,
    travel_ms: float = 2000.0,
    tuning: Optional[LaneTuning] = None
) -> Optional[Tuple[float, float]]:
    """
    Position of a travelling unit at ``now_ms``.

    Units leave slightly ahead of the origin centre, fan out into their lane
    while emitting, hold formation mid-route and collapse onto the target
    centre as they are absorbed.

    Args:
        from_pos: Origin centroid
        to_pos: Target centroid
        spawn_ms: When the unit leaves
        now_ms: Current time
        lane: Formation slot of the unit
        travel_ms: Fixed travel duration
        tuning: Formation shape; defaults to LaneTuning()

    Returns:
        (x, y), or None before the unit has spawned
    """
    if now_ms < spawn_ms:
        return None
    tuning = tuning or LaneTuning()

    dx = to_pos[0] - from_pos[0]
    dy = to_pos[1] - from_pos[1]
    length = math.hypot(dx, dy) or 1.0
    ux, uy = dx / length, dy / length
    nx, ny = -uy, ux

    row_shift = (lane.row - (lane.rows_in_column - 1) / 2) * max(0.0, tuning.row_gap)
    col_shift = lane.column * max(0.0, tuning.column_gap)

    sx = from_pos[0] + ux * tuning.forward_offset
    sy = from_pos[1] + uy * tuning.forward_offset
    t = _clamp((now_ms - spawn_ms) / max(1.0, travel_ms), 0.0, 1.0)
    center_x = sx + (to_pos[0] - sx) * t
    center_y = sy + (to_pos[1] - sy) * t

    emit_factor = _clamp((now_ms - spawn_ms) / max(1.0, tuning.emit_spread_ms), 0.0, 1.0)
    dist_to_target = math.hypot(to_pos[0] - center_x, to_pos[1] - center_y)
    absorb_t = _clamp(1 - dist_to_target / max(1.0, tuning.absorb_distance), 0.0, 1.0)
    absorb_factor = 1 - absorb_t

    centered_row = lane.row - (lane.rows_in_column - 1) / 2
    lane_offset = lane.lane_bias * tuning.lane_spread
    stagger_offset = lane.column_stagger * tuning.row_spread
    emit_offset = lane.lane_bias * tuning.emit_spread_distance * (1 - emit_factor)
    chevron_back = abs(centered_row) * tuning.chevron_depth

    lateral = (row_shift + lane_offset + stagger_offset + emit_offset - col_shift * 0.05) \
        * emit_factor * absorb_factor
    forward = -chevron_back * emit_factor * absorb_factor

    return (center_x + nx * lateral + ux * forward, center_y + ny * lateral + uy * forward)


class DispatchEngine:
    """Creates and tracks dispatch groups for one match."""

    def __init__(self, state: WorldState, tunables: Tunables, scheduler=None):
        self.state = state
        self.tunables = tunables
        self.scheduler = scheduler
        self.groups: Dict[int, DispatchGroup] = {}
        self._next_group_id = 1
        self._next_dispatch_id = 1

    def issue_attack(
        self,
        faction: Faction,
        general_id: str,
        from_province: str,
        to_province: str,
        troop_count: int,
        now_ms: float
    ) -> CommandResult:
        """
        Validate and launch an attack.

        On success grain and the origin garrison are debited immediately, the
        general starts marching, and a return callback is scheduled.

        Returns:
            CommandResult whose value is the new DispatchGroup
        """
        order = AttackOrder(faction, general_id, from_province, to_province, troop_count)
        failure = order.validate(self.state)
        if failure is not None:
            return failure

        troop_count = int(troop_count)
        self.state.factions[faction].grain_stock -= troop_count
        self.state.adjust_garrison(from_province, -troop_count)

        general = self.state.get_general(general_id)
        general.status = GeneralStatus.MARCHING
        general.station = None
        general.assigned_troops = 0.0

        travel_ms = float(self.tunables.travel_duration_ms)
        column_delay = float(self.tunables.column_delay_ms)
        lanes = build_lanes(troop_count, self.tunables.units_per_column)

        group = DispatchGroup(
            group_id=self._next_group_id,
            faction=faction,
            general_id=general_id,
            from_province=from_province,
            to_province=to_province,
            issued_ms=now_ms,
            release_ms=now_ms,
        )
        self._next_group_id += 1

        for index, lane in enumerate(lanes):
            group.units.append(Dispatch(
                dispatch_id=self._next_dispatch_id,
                group_id=group.group_id,
                index=index,
                faction=faction,
                general_id=general_id,
                from_province=from_province,
                to_province=to_province,
                spawn_ms=now_ms + lane.column * column_delay,
                travel_ms=travel_ms,
                lane=lane,
            ))
            self._next_dispatch_id += 1

        last_spawn = max(u.spawn_ms for u in group.units)
        group.release_ms = last_spawn + travel_ms + self.tunables.release_buffer_ms
        self.groups[group.group_id] = group

        if self.scheduler is not None:
            self.scheduler.schedule_at(
                group.release_ms,
                lambda g=group: self.release_general(g),
                name=f"release-{general_id}",
            )

        logger.debug(f"Issued {order}")
        return CommandResult.ok(group, f"{troop_count} troops march on {to_province}")

    def release_general(self, group: DispatchGroup) -> None:
        """
        Return a group's general to idle.

        The general stays at the target if the faction holds it, else goes
        back to the origin; if the origin was lost too, to the faction's
        fallback station.
        """
        general = self.state.get_general(group.general_id) if group.general_id else None
        if general is None or general.status != GeneralStatus.MARCHING:
            return

        general.status = GeneralStatus.IDLE
        general.assigned_troops = 0.0
        if self.state.get_owner(group.to_province) == group.faction:
            general.station = group.to_province
        elif self.state.get_owner(group.from_province) == group.faction:
            general.station = group.from_province
        else:
            general.station = self.state.fallback_station(group.faction)
            logger.warning(
                f"{general.name} cannot return to {group.from_province}, "
                f"falling back to {general.station}"
            )

    def position_of(self, unit: Dispatch, now_ms: float) -> Optional[Tuple[float, float]]:
        """Current position of one unit, using the map centroids."""
        provinces = self.state.territory_map.provinces
        return unit_position(
            provinces[unit.from_province].centroid,
            provinces[unit.to_province].centroid,
            unit.spawn_ms,
            now_ms,
            unit.lane,
            unit.travel_ms,
            self.tunables.lane,
        )

    def group_position(self, group: DispatchGroup, now_ms: float) -> Optional[Tuple[float, float]]:
        """Mean position of the group's leading column, or None if nothing is travelling."""
        positions = [self.position_of(u, now_ms) for u in group.leading_column(now_ms)]
        positions = [p for p in positions if p is not None]
        if not positions:
            return None
        return (
            sum(p[0] for p in positions) / len(positions),
            sum(p[1] for p in positions) / len(positions),
        )

    def active_groups(self) -> List[DispatchGroup]:
        return [g for g in self.groups.values() if not g.is_finished()]

    def in_flight_groups(self, now_ms: float) -> List[DispatchGroup]:
        return [
            g for g in self.active_groups()
            if g.status_at(now_ms) == DispatchStatus.IN_FLIGHT
        ]

    def due_arrivals(self, now_ms: float) -> List[Dispatch]:
        """Unresolved units whose travel has completed, in arrival order."""
        due = [
            u for g in self.active_groups() for u in g.units
            if u.resolved is None and now_ms >= u.arrival_ms
        ]
        due.sort(key=lambda u: (u.arrival_ms, u.group_id, u.index))
        return due

    def in_flight_units(self, now_ms: float) -> List[Tuple[Dispatch, Tuple[float, float]]]:
        """Every spawned, unresolved unit with its current position."""
        units = []
        for group in self.active_groups():
            for unit in group.units:
                if unit.status_at(now_ms) != DispatchStatus.IN_FLIGHT:
                    continue
                position = self.position_of(unit, now_ms)
                if position is not None:
                    units.append((unit, position))
        return units

    def prune(self) -> None:
        """Forget groups whose units are all resolved."""
        self.groups = {gid: g for gid, g in self.groups.items() if not g.is_finished()}

    def cancel_all(self) -> None:
        for group in self.active_groups():
            group.cancel()

    def clear(self) -> None:
        self.groups = {}
        self._next_group_id = 1
        self._next_dispatch_id = 1
