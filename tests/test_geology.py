from __future__ import annotations

import numpy as np
import pytest

from battlemap.context import Biome, Context
from battlemap.errors import ValidationError
from battlemap.formations import (
    BIOME_FORMATIONS,
    FORMATIONS,
    GRANITE_DOME,
    LIMESTONE_KARST,
    ErosionPattern,
    TerrainFeature,
    features_from_mask,
    formations_for_biome,
)
from battlemap.geology import generate_geology


def test_geology_grids_share_dimensions() -> None:
    ctx = Context("mountain", "highland", "stream", "wilderness", "summer")
    geo = generate_geology(30, 20, ctx, 1234)

    for grid in (geo.formation_index, geo.hardness, geo.permeability, geo.soil_depth, geo.features, geo.transition):
        assert grid.shape == (20, 30)
        assert not grid.flags.writeable
    assert geo.primary in formations_for_biome(Biome.MOUNTAIN)


def test_geology_is_deterministic() -> None:
    ctx = Context("plains", "lowland", "seasonal", "rural", "spring")
    a = generate_geology(40, 40, ctx, "quarry")
    b = generate_geology(40, 40, ctx, "quarry")

    assert a.formations == b.formations
    assert np.array_equal(a.features, b.features)
    assert np.array_equal(a.soil_depth, b.soil_depth)
    assert a.transition_zones == b.transition_zones


def test_soil_and_fracture_ranges() -> None:
    ctx = Context("forest", "foothills", "stream", "frontier", "autumn")
    for seed in (1, 2, 3, 4, 5):
        geo = generate_geology(25, 25, ctx, seed)
        assert float(geo.soil_depth.min()) >= 0.0
        assert float(geo.fracture.min()) >= 0.0
        assert float(geo.fracture.max()) <= 1.0
        assert set(np.unique(geo.formation_index).tolist()) <= set(range(len(geo.formations)))


def test_transition_tiles_touch_another_formation() -> None:
    ctx = Context("mountain", "alpine", "stream", "wilderness", "summer")
    for seed in range(1, 30):
        geo = generate_geology(40, 40, ctx, seed)
        if geo.secondary is None:
            assert not geo.transition.any()
            continue
        for x, y in geo.transition_zones:
            here = geo.formation_index[y, x]
            around = [
                geo.formation_index[y + dy, x + dx]
                for dy, dx in ((-1, 0), (1, 0), (0, -1), (0, 1))
                if 0 <= y + dy < 40 and 0 <= x + dx < 40
            ]
            assert any(other != here for other in around)
        return
    pytest.fail("no seed produced a two-formation map")


def test_invalid_dimensions_are_rejected() -> None:
    ctx = Context("forest", "lowland", "stream", "wilderness", "summer")

    with pytest.raises(ValidationError) as exc:
        generate_geology(5, 40, ctx, 1)
    assert exc.value.code == "MAP_INVALID_DIMENSIONS"


def test_formation_catalog() -> None:
    assert LIMESTONE_KARST.allows_caves
    assert LIMESTONE_KARST.can_have_springs
    assert GRANITE_DOME.erosion_resistance() > LIMESTONE_KARST.erosion_resistance()
    assert all(0.0 <= f.fracture_intensity <= 1.0 for f in FORMATIONS.values())
    for biome in Biome:
        assert formations_for_biome(biome)
        assert set(BIOME_FORMATIONS[biome]) <= set(FORMATIONS.values())

    mask = TerrainFeature.CAVE.bit | TerrainFeature.TALUS.bit
    assert set(features_from_mask(mask)) == {TerrainFeature.CAVE, TerrainFeature.TALUS}


def test_formation_derived_properties() -> None:
    assert LIMESTONE_KARST.erosion_pattern is ErosionPattern.KARST
    assert GRANITE_DOME.erosion_pattern is ErosionPattern.EXFOLIATION
    assert GRANITE_DOME.joint_spacing_tiles == 7
    assert LIMESTONE_KARST.joint_spacing_tiles == 3
    assert not GRANITE_DOME.creates_vertical_features
    assert GRANITE_DOME.mean_mineral_hardness == pytest.approx(16.0 / 3.0)
    assert GRANITE_DOME.soil_depth_range() == pytest.approx((1.0, 3.0))

    possible = GRANITE_DOME.possible_features()
    assert TerrainFeature.DOME in possible
    assert TerrainFeature.TALUS in possible
    assert TerrainFeature.CLIFF not in possible
