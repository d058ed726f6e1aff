from __future__ import annotations

import numpy as np
import pytest

from battlemap.context import Context
from battlemap.converter import TERRAIN_TYPES, TerrainType, convert_to_tiles, height_multiplier
from battlemap.pipeline import TacticalMapResult, generate_tactical_map
from battlemap.structures import StructureType
from battlemap.vegetation import VegetationType


def test_height_multiplier_curve() -> None:
    values = height_multiplier(np.array([-10.0, 0.0, 50.0, 100.0, 200.0]))

    assert values.tolist() == pytest.approx([0.5, 0.5, 1.25, 2.0, 3.0])


def test_tile_priority(scenario_map: TacticalMapResult) -> None:
    layers = scenario_map.layers
    tiles = convert_to_tiles(layers)
    terrain = tiles.terrain

    buildings = np.isin(
        layers.structures.structure_type,
        [s.code for s in (StructureType.HOUSE, StructureType.BARN, StructureType.TOWER, StructureType.RUIN)],
    )
    roads = np.isin(layers.structures.structure_type, [StructureType.ROAD.code, StructureType.BRIDGE.code])
    water = layers.hydrology.is_water & ~layers.structures.has_structure
    trees = np.isin(
        layers.vegetation.vegetation_type, [int(VegetationType.DENSE_TREES), int(VegetationType.SPARSE_TREES)]
    )

    assert np.all(terrain[buildings] == TerrainType.BUILDING.code)
    assert np.all(terrain[roads] == TerrainType.ROAD.code)
    assert np.all(terrain[water] == TerrainType.WATER.code)
    assert np.all(terrain[trees & ~water & ~layers.structures.has_structure] == TerrainType.FOREST.code)
    assert set(np.unique(terrain).tolist()) <= set(range(len(TERRAIN_TYPES)))


def test_blocked_rule(scenario_map: TacticalMapResult) -> None:
    layers = scenario_map.layers
    tiles = scenario_map.tiles
    expected = (layers.structures.has_structure & ~layers.structures.is_road) | ~layers.vegetation.is_passable

    assert np.array_equal(tiles.blocked, expected)
    tile = tiles.tile(3, 4)
    assert tile.x == 3 and tile.y == 4
    assert tile.blocked == bool(expected[4, 3])
    assert len(tiles.tiles()) == 40 * 40
    assert sum(tiles.counts().values()) == 40 * 40


def test_context_refines_open_ground() -> None:
    desert = generate_tactical_map(30, 30, Context("desert", "lowland", "arid", "wilderness", "summer"), 12)
    assert TerrainType.GRASS.value not in desert.tiles.counts()

    snowy = generate_tactical_map(30, 30, Context("mountain", "alpine", "stream", "wilderness", "winter"), 12)
    assert TerrainType.GRASS.value not in snowy.tiles.counts()

    plain = convert_to_tiles(desert.layers)
    assert TerrainType.DESERT.value not in plain.counts()


def test_conversion_is_pure(scenario_map: TacticalMapResult, scenario_context: Context) -> None:
    a = convert_to_tiles(scenario_map.layers, scenario_context)
    b = convert_to_tiles(scenario_map.layers, scenario_context)

    assert np.array_equal(a.terrain, scenario_map.tiles.terrain)
    assert np.array_equal(a.terrain, b.terrain)
    assert np.array_equal(a.height_multiplier, b.height_multiplier)
