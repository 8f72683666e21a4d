"""
GeoJSON boundary loader for the conquest game engine.
Reads a FeatureCollection of province boundaries into boundary regions.
"""

import json
import logging
import os
from typing import Dict, List

from conquest_game_engine.core.geometry import BoundaryRegion, MalformedGeometryError, parse_geometry
from conquest_game_engine.core.map import TerritoryMap, build_territory_map

logger = logging.getLogger(__name__)


def parse_features(
    collection: Dict,
    code_property: str = 'adcode',
    name_property: str = 'name'
) -> List[BoundaryRegion]:
    """
    Convert a GeoJSON FeatureCollection into boundary regions.

    Features without a code are skipped. Any code-bearing feature whose
    geometry is malformed aborts the load.

    Raises:
        MalformedGeometryError: On a malformed collection or feature geometry
    """
    if not isinstance(collection, dict) or collection.get('type') != 'FeatureCollection':
        raise MalformedGeometryError("Expected a GeoJSON FeatureCollection")

    regions = []
    for index, feature in enumerate(collection.get('features') or []):
        properties = feature.get('properties') or {}
        code = properties.get(code_property)
        if code is None or str(code).strip() == '':
            logger.debug(f"Skipping feature {index}: no {code_property}")
            continue

        code = str(code).strip()
        try:
            polygons = parse_geometry(feature.get('geometry'))
        except MalformedGeometryError as e:
            raise MalformedGeometryError(f"Feature {code}: {e}")

        regions.append(BoundaryRegion(code, str(properties.get(name_property) or code), polygons))

    if not regions:
        raise MalformedGeometryError(f"No feature carries a {code_property} property")
    return regions


def load_regions(filepath: str, code_property: str = 'adcode', name_property: str = 'name') -> List[BoundaryRegion]:
    """Load boundary regions from a GeoJSON file."""
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Geometry file not found: {filepath}")

    with open(filepath, 'r', encoding='utf-8') as f:
        try:
            collection = json.load(f)
        except json.JSONDecodeError as e:
            raise MalformedGeometryError(f"{filepath} is not valid JSON: {e}")

    return parse_features(collection, code_property, name_property)


def load_territory_map(filepath: str, precision: int = 3, code_property: str = 'adcode') -> TerritoryMap:
    """Load a GeoJSON file and build the frozen province graph from it."""
    return build_territory_map(load_regions(filepath, code_property), precision)
