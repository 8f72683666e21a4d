"""
Map module for the conquest game engine.
Defines factions, provinces, and the territory graph built from boundary geometry.
"""

import logging
from collections import defaultdict
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

import numpy as np

from conquest_game_engine.core.geometry import (
    BoundaryRegion,
    EdgeKey,
    MalformedGeometryError,
    polygons_area_and_centroid,
    ring_edge_keys,
)

logger = logging.getLogger(__name__)


class Faction(Enum):
    """The seven warring states."""
    QIN = "qin"
    CHU = "chu"
    HAN = "han"
    WEI = "wei"
    ZHAO = "zhao"
    QI = "qi"
    YAN = "yan"

    @classmethod
    def from_string(cls, value: str) -> 'Faction':
        """Look up a faction by id, case-insensitively."""
        key = str(value).strip().lower()
        for faction in cls:
            if faction.value == key or faction.name.lower() == key:
                return faction
        raise ValueError(f"Unknown faction: {value}")


class Province:
    """Static description of a single province."""

    def __init__(
        self,
        province_id: str,
        name: str,
        centroid: Tuple[float, float],
        area: float,
        polygons: Optional[List[List[np.ndarray]]] = None
    ):
        self.province_id = province_id
        self.name = name or province_id
        self.centroid = centroid
        self.area = area
        self.polygons = polygons or []

    def __repr__(self) -> str:
        return f"Province({self.province_id}, {self.name})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Province):
            return False
        return self.province_id == other.province_id

    def __hash__(self) -> int:
        return hash(self.province_id)


class TerritoryMap:
    """The province graph. Adjacency is symmetric and frozen once built."""

    def __init__(self):
        self.provinces: Dict[str, Province] = {}
        self.adjacencies: Dict[str, Set[str]] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add_province(self, province: Province) -> None:
        """Add a province to the map."""
        if self._frozen:
            raise RuntimeError("Cannot add provinces to a frozen map")
        if province.province_id in self.provinces:
            raise MalformedGeometryError(f"Duplicate province code: {province.province_id}")
        self.provinces[province.province_id] = province
        self.adjacencies[province.province_id] = set()

    def add_adjacency(self, province1: str, province2: str) -> None:
        """Add a bidirectional adjacency between two provinces."""
        if self._frozen:
            raise RuntimeError("Cannot change adjacency of a frozen map")
        if province1 == province2:
            return
        if province1 not in self.provinces or province2 not in self.provinces:
            raise KeyError(f"Unknown province in adjacency {province1}-{province2}")
        self.adjacencies[province1].add(province2)
        self.adjacencies[province2].add(province1)

    def freeze(self) -> None:
        """Make adjacency immutable."""
        self.adjacencies = {
            pid: frozenset(neighbours) for pid, neighbours in self.adjacencies.items()
        }
        self._frozen = True

    def get_province(self, province_id: str) -> Optional[Province]:
        return self.provinces.get(province_id)

    def get_all_provinces(self) -> List[Province]:
        return list(self.provinces.values())

    def get_adjacent_provinces(self, province_id: str) -> FrozenSet[str]:
        return frozenset(self.adjacencies.get(province_id, ()))

    def is_adjacent(self, province1: str, province2: str) -> bool:
        """Check if two provinces share a border."""
        return province2 in self.adjacencies.get(province1, ())

    def total_area(self) -> float:
        return sum(p.area for p in self.provinces.values())

    def is_connected(self) -> bool:
        """True if every province can be reached from every other."""
        if not self.provinces:
            return True
        start = next(iter(self.provinces))
        seen = {start}
        frontier = [start]
        while frontier:
            current = frontier.pop()
            for neighbour in self.adjacencies[current]:
                if neighbour not in seen:
                    seen.add(neighbour)
                    frontier.append(neighbour)
        return len(seen) == len(self.provinces)

    def __len__(self) -> int:
        return len(self.provinces)


def build_territory_map(regions: List[BoundaryRegion], precision: int = 3) -> TerritoryMap:
    """
    Build the frozen province graph from boundary regions.

    Two provinces are adjacent when at least one boundary edge, with its
    endpoints rounded to ``precision`` decimals, belongs to exactly those two
    provinces.

    Args:
        regions: One region per admin code
        precision: Decimal places used when matching shared edge endpoints

    Returns:
        A frozen TerritoryMap

    Raises:
        MalformedGeometryError: On duplicate codes or degenerate regions
    """
    territory_map = TerritoryMap()
    edge_owners: Dict[EdgeKey, Set[str]] = defaultdict(set)

    for region in regions:
        if not region.code:
            raise MalformedGeometryError("Region is missing an admin code")
        if not region.polygons:
            raise MalformedGeometryError(f"Region {region.code} has no polygons")

        try:
            area, centroid = polygons_area_and_centroid(region.polygons)
        except MalformedGeometryError as e:
            raise MalformedGeometryError(f"Region {region.code}: {e}")

        territory_map.add_province(
            Province(region.code, region.name, centroid, area, region.polygons)
        )

        for rings in region.polygons:
            for ring in rings:
                for key in ring_edge_keys(ring, precision):
                    edge_owners[key].add(region.code)

    for owners in edge_owners.values():
        if len(owners) == 2:
            first, second = sorted(owners)
            territory_map.add_adjacency(first, second)

    territory_map.freeze()

    isolated = [pid for pid, n in territory_map.adjacencies.items() if not n]
    if isolated:
        logger.warning(f"Provinces without neighbours: {', '.join(sorted(isolated))}")
    logger.info(
        f"Built territory map with {len(territory_map)} provinces and "
        f"{sum(len(n) for n in territory_map.adjacencies.values()) // 2} borders"
    )
    return territory_map
