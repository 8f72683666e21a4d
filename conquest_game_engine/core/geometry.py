"""
Planar geometry helpers for the territory graph builder.
Parses GeoJSON polygon rings, computes areas and centroids, and produces
rounded boundary edge keys used to detect shared borders.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np


Point = Tuple[float, float]
EdgeKey = Tuple[Point, Point]


class MalformedGeometryError(Exception):
    """Raised when boundary geometry cannot be turned into a province."""
    pass


@dataclass
class BoundaryRegion:
    """One code-bearing boundary feature: an admin code plus polygon rings."""
    code: str
    name: str
    # Each polygon is a list of rings; the first ring is the exterior,
    # any further rings are holes.
    polygons: List[List[np.ndarray]] = field(default_factory=list)


def parse_ring(raw_ring) -> np.ndarray:
    """
    Convert a GeoJSON ring into an (n, 2) float array without the closing point.

    Args:
        raw_ring: Sequence of [x, y] (extra ordinates are ignored)

    Returns:
        Array of ring vertices, open (first point not repeated)

    Raises:
        MalformedGeometryError: If the ring has non-numeric coordinates or
            fewer than three distinct points
    """
    try:
        points = np.array([[float(p[0]), float(p[1])] for p in raw_ring], dtype=float)
    except (TypeError, ValueError, IndexError) as e:
        raise MalformedGeometryError(f"Ring has invalid coordinates: {e}")

    if points.ndim != 2 or len(points) == 0:
        raise MalformedGeometryError("Ring has no coordinates")
    if not np.all(np.isfinite(points)):
        raise MalformedGeometryError("Ring has non-finite coordinates")

    if len(points) > 1 and np.array_equal(points[0], points[-1]):
        points = points[:-1]

    distinct = np.unique(points, axis=0)
    if len(distinct) < 3:
        raise MalformedGeometryError(
            f"Ring needs at least 3 distinct points, got {len(distinct)}"
        )
    return points


def parse_geometry(geometry: Dict) -> List[List[np.ndarray]]:
    """Parse a GeoJSON Polygon or MultiPolygon geometry into polygons of rings."""
    if not isinstance(geometry, dict):
        raise MalformedGeometryError("Feature has no geometry")

    geom_type = geometry.get('type')
    coordinates = geometry.get('coordinates')
    if coordinates is None:
        raise MalformedGeometryError(f"{geom_type} geometry has no coordinates")

    if geom_type == 'Polygon':
        raw_polygons = [coordinates]
    elif geom_type == 'MultiPolygon':
        raw_polygons = coordinates
    else:
        raise MalformedGeometryError(f"Unsupported geometry type: {geom_type}")

    polygons = []
    for raw_polygon in raw_polygons:
        if not raw_polygon:
            raise MalformedGeometryError("Polygon has no rings")
        polygons.append([parse_ring(ring) for ring in raw_polygon])

    if not polygons:
        raise MalformedGeometryError(f"{geom_type} geometry has no polygons")
    return polygons


def signed_ring_area(ring: np.ndarray) -> float:
    """Shoelace signed area (positive for counter-clockwise rings)."""
    x = ring[:, 0]
    y = ring[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def ring_centroid(ring: np.ndarray) -> Point:
    """Centroid of a simple ring (undefined for zero-area rings)."""
    x = ring[:, 0]
    y = ring[:, 1]
    x_next = np.roll(x, -1)
    y_next = np.roll(y, -1)
    cross = x * y_next - x_next * y
    area = 0.5 * float(cross.sum())
    cx = float(((x + x_next) * cross).sum()) / (6.0 * area)
    cy = float(((y + y_next) * cross).sum()) / (6.0 * area)
    return (cx, cy)


def polygons_area_and_centroid(polygons: List[List[np.ndarray]]) -> Tuple[float, Point]:
    """
    Area and area-weighted centroid of a set of polygons.

    Holes are subtracted from their exterior ring.

    Raises:
        MalformedGeometryError: If the total area is zero
    """
    total_area = 0.0
    weighted_x = 0.0
    weighted_y = 0.0

    for rings in polygons:
        for index, ring in enumerate(rings):
            area = abs(signed_ring_area(ring))
            if area == 0.0:
                continue
            cx, cy = ring_centroid(ring)
            sign = 1.0 if index == 0 else -1.0
            total_area += sign * area
            weighted_x += sign * area * cx
            weighted_y += sign * area * cy

    if total_area <= 0.0:
        raise MalformedGeometryError("Region has zero area")

    return total_area, (weighted_x / total_area, weighted_y / total_area)


def round_point(point, precision: int) -> Point:
    return (round(float(point[0]), precision), round(float(point[1]), precision))


def ring_edge_keys(ring: np.ndarray, precision: int = 3) -> List[EdgeKey]:
    """
    Undirected boundary edges of a ring, as pairs of rounded points.

    Edges whose endpoints round to the same point are dropped.
    """
    keys = []
    count = len(ring)
    for i in range(count):
        a = round_point(ring[i], precision)
        b = round_point(ring[(i + 1) % count], precision)
        if a == b:
            continue
        keys.append((a, b) if a < b else (b, a))
    return keys


def region_bounds(polygons: List[List[np.ndarray]]) -> Optional[Tuple[float, float, float, float]]:
    """Bounding box (min_x, min_y, max_x, max_y) of all exterior rings."""
    exteriors = [rings[0] for rings in polygons if rings]
    if not exteriors:
        return None
    stacked = np.vstack(exteriors)
    min_x, min_y = stacked.min(axis=0)
    max_x, max_y = stacked.max(axis=0)
    return (float(min_x), float(min_y), float(max_x), float(max_y))
