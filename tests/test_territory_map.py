"""
Tests for the territory graph builder: shared-edge adjacency, geometry
measurements and fail-fast handling of malformed boundaries.
"""

import numpy as np
import pytest

from conquest_game_engine.core.geometry import (
    BoundaryRegion, MalformedGeometryError, parse_geometry, polygons_area_and_centroid
)
from conquest_game_engine.core.map import build_territory_map
from conquest_game_engine.io.geojson_loader import load_territory_map, parse_features
from conquest_game_engine.io.yaml_scenario import load_scenario

from helpers import cell, grid_map


def test_shared_edge_makes_neighbours():
    """Side-sharing cells are adjacent, diagonal ones are not."""
    print("=" * 60)
    print("TESTING SHARED-EDGE ADJACENCY")
    print("=" * 60)

    territory_map = grid_map({'A': (0, 0), 'B': (1, 0), 'C': (0, 1), 'D': (1, 1)})

    assert territory_map.is_adjacent('A', 'B')
    assert territory_map.is_adjacent('A', 'C')
    assert territory_map.is_adjacent('B', 'D')
    assert not territory_map.is_adjacent('A', 'D')
    assert not territory_map.is_adjacent('B', 'C')
    print("✓ 2x2 grid has four borders and no diagonal adjacency")


def test_adjacency_is_symmetric_on_bundled_map():
    scenario = load_scenario()
    territory_map = load_territory_map(scenario.geometry_path)

    assert len(territory_map) == 31
    for pid, neighbours in territory_map.adjacencies.items():
        assert pid not in neighbours
        for other in neighbours:
            assert territory_map.is_adjacent(other, pid), f"{pid}-{other} is one-way"
    assert territory_map.is_connected()
    print(f"✓ {len(territory_map)} provinces, all borders symmetric, graph connected")


def test_bundled_map_borders():
    scenario = load_scenario()
    territory_map = load_territory_map(scenario.geometry_path)

    assert territory_map.get_adjacent_provinces('610000') == {'640000', '620000', '410000', '500000'}
    assert territory_map.get_adjacent_provinces('460000') == {'440000'}
    assert territory_map.get_adjacent_provinces('510000') == {
        '630000', '620000', '540000', '500000', '530000', '520000'
    }
    print("✓ Shaanxi, Hainan and Sichuan have the expected neighbours")


def test_feature_without_code_is_skipped():
    collection = {
        'type': 'FeatureCollection',
        'features': [
            {'type': 'Feature', 'properties': {'adcode': 1, 'name': 'One'},
             'geometry': {'type': 'Polygon', 'coordinates': [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]]}},
            {'type': 'Feature', 'properties': {'name': 'Islands'},
             'geometry': {'type': 'Polygon', 'coordinates': [[[5, 5], [6, 5], [6, 6], [5, 5]]]}},
        ],
    }
    regions = parse_features(collection)
    assert [r.code for r in regions] == ['1']
    assert regions[0].name == 'One'


def test_frozen_map_rejects_changes():
    territory_map = grid_map({'A': (0, 0), 'B': (1, 0), 'C': (3, 0)})
    assert territory_map.frozen
    with pytest.raises(RuntimeError):
        territory_map.add_adjacency('A', 'C')
    assert not territory_map.is_adjacent('A', 'C')


def test_edge_rounding_tolerates_tiny_mismatches():
    left = np.array([[0, 0], [1.00001, 0], [1.00001, 1], [0, 1]], dtype=float)
    right = np.array([[0.99999, 0], [2, 0], [2, 1], [0.99999, 1]], dtype=float)
    regions = [BoundaryRegion('L', 'L', [[left]]), BoundaryRegion('R', 'R', [[right]])]

    assert build_territory_map(regions, precision=3).is_adjacent('L', 'R')
    assert not build_territory_map(regions, precision=6).is_adjacent('L', 'R')
    print("✓ Rounding precision decides whether near-identical edges match")


def test_multipolygon_parts_do_not_make_self_adjacency():
    geometry = {
        'type': 'MultiPolygon',
        'coordinates': [
            [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]],
            [[[1, 0], [2, 0], [2, 1], [1, 1], [1, 0]]],
        ],
    }
    regions = [
        BoundaryRegion('M', 'Multi', parse_geometry(geometry)),
        BoundaryRegion('N', 'North', [[cell(0, 1, size=1.0)]]),
    ]
    territory_map = build_territory_map(regions)

    assert territory_map.get_adjacent_provinces('M') == {'N'}
    assert territory_map.get_province('M').area == pytest.approx(2.0)


def test_area_and_centroid_subtract_holes():
    outer = np.array([[0, 0], [4, 0], [4, 4], [0, 4]], dtype=float)
    hole = np.array([[0, 0], [0, 2], [2, 2], [2, 0]], dtype=float)

    area, centroid = polygons_area_and_centroid([[outer]])
    assert area == pytest.approx(16.0)
    assert centroid == pytest.approx((2.0, 2.0))

    area, centroid = polygons_area_and_centroid([[outer, hole]])
    assert area == pytest.approx(12.0)
    # Remaining L-shape is heavier toward the top right
    assert centroid[0] == pytest.approx(14.0 / 6.0)
    assert centroid[1] == pytest.approx(14.0 / 6.0)


@pytest.mark.parametrize('geometry', [
    {'type': 'Polygon', 'coordinates': [[[0, 0], [1, 1], [0, 0]]]},
    {'type': 'Polygon', 'coordinates': [[[0, 0], ['x', 1], [1, 1], [0, 0]]]},
    {'type': 'Polygon', 'coordinates': [[[0, 0], [1, 1], [2, 2], [0, 0]]]},
    {'type': 'Point', 'coordinates': [0, 0]},
    {'type': 'Polygon', 'coordinates': []},
    None,
])
def test_malformed_geometry_fails_fast(geometry):
    collection = {
        'type': 'FeatureCollection',
        'features': [{'type': 'Feature', 'properties': {'adcode': 7}, 'geometry': geometry}],
    }
    with pytest.raises(MalformedGeometryError):
        build_territory_map(parse_features(collection))


def test_duplicate_codes_are_rejected():
    regions = [
        BoundaryRegion('A', 'A', [[cell(0, 0)]]),
        BoundaryRegion('A', 'A again', [[cell(1, 0)]]),
    ]
    with pytest.raises(MalformedGeometryError):
        build_territory_map(regions)


if __name__ == "__main__":
    test_shared_edge_makes_neighbours()
    test_adjacency_is_symmetric_on_bundled_map()
    test_bundled_map_borders()
    test_frozen_map_rejects_changes()
    test_edge_rounding_tolerates_tiny_mismatches()
    print("\n✓ All territory map tests passed")
