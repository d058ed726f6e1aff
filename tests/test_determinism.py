from __future__ import annotations

import hashlib

import numpy as np

from battlemap.context import Context
from battlemap.pipeline import generate_tactical_map
from battlemap.render import hillshade


def _hash(arr: np.ndarray) -> str:
    return hashlib.sha256(arr.tobytes()).hexdigest()


def test_full_pipeline_is_deterministic() -> None:
    ctx = Context("forest", "highland", "river", "settled", "autumn")

    a = generate_tactical_map(40, 40, ctx, "deterministic-test")
    b = generate_tactical_map(40, 40, ctx, "deterministic-test")

    assert a.layers.topography.max_elevation == b.layers.topography.max_elevation
    assert len(a.layers.hydrology.streams) == len(b.layers.hydrology.streams)
    assert a.layers.vegetation.total_trees == b.layers.vegetation.total_trees
    assert len(a.layers.structures.buildings) == len(b.layers.structures.buildings)

    assert np.array_equal(a.layers.topography.elevation, b.layers.topography.elevation)
    assert np.array_equal(a.layers.hydrology.water_depth, b.layers.hydrology.water_depth)
    assert np.array_equal(a.layers.vegetation.vegetation_type, b.layers.vegetation.vegetation_type)
    assert _hash(a.tiles.terrain) == _hash(b.tiles.terrain)
    assert _hash(hillshade(a.layers.topography.elevation)) == _hash(hillshade(b.layers.topography.elevation))
    assert a.validation == b.validation


def test_every_grid_matches_map_dimensions() -> None:
    ctx = Context("swamp", "lowland", "wetland", "frontier", "spring")
    result = generate_tactical_map(33, 21, ctx, 2718)

    layers = result.layers
    for layer in (layers.geology, layers.topography, layers.hydrology, layers.vegetation, layers.structures, layers.features):
        for value in vars(layer).values():
            if isinstance(value, np.ndarray):
                assert value.shape == (21, 33)
                assert not value.flags.writeable
    assert result.tiles.terrain.shape == (21, 33)


def test_different_seeds_give_different_maps() -> None:
    ctx = Context("mountain", "foothills", "stream", "rural", "summer")

    a = generate_tactical_map(30, 30, ctx, 1)
    b = generate_tactical_map(30, 30, ctx, 2)

    assert not np.array_equal(a.layers.topography.elevation, b.layers.topography.elevation)
