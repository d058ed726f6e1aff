from __future__ import annotations

import hashlib

import numpy as np

from battlemap.config import VegetationConfig
from battlemap.context import Context
from battlemap.geology import generate_geology
from battlemap.hydrology import generate_hydrology
from battlemap.topography import generate_topography
from battlemap.vegetation import (
    PlantCategory,
    Species,
    VegetationType,
    basal_area_survey,
    canopy_closure,
    find_clearings,
    forest_mask,
    generate_vegetation,
)


def _hash(arr: np.ndarray) -> str:
    return hashlib.sha256(arr.tobytes()).hexdigest()


def _vegetation(seed: int | str, ctx: Context, density: float = 1.0):
    geo = generate_geology(40, 40, ctx, seed)
    topo = generate_topography(geo, ctx, seed)
    hydro = generate_hydrology(topo, geo, ctx, seed)
    return hydro, generate_vegetation(hydro, topo, geo, ctx, seed, config=VegetationConfig(density=density))


FOREST = Context("forest", "lowland", "stream", "wilderness", "summer")


def test_zero_density_grows_no_trees() -> None:
    _, veg = _vegetation(42, FOREST, density=0.0)

    assert veg.total_trees == 0
    assert not np.any(veg.vegetation_type == VegetationType.DENSE_TREES)
    assert not np.any(veg.vegetation_type == VegetationType.SPARSE_TREES)


def test_tree_count_is_monotonic_in_density() -> None:
    counts = [_vegetation(42, FOREST, density=d)[1].total_trees for d in (0.0, 0.5, 1.0, 1.5, 2.0)]

    assert counts == sorted(counts)
    assert counts[-1] > 0


def test_vegetation_is_deterministic() -> None:
    ctx = Context("forest", "highland", "river", "settled", "autumn")
    _, a = _vegetation("deterministic-test", ctx)
    _, b = _vegetation("deterministic-test", ctx)

    assert a.total_trees == b.total_trees
    assert _hash(a.vegetation_type) == _hash(b.vegetation_type)
    assert _hash(a.canopy_height) == _hash(b.canopy_height)
    assert a.forest_patches == b.forest_patches
    assert a.clearings == b.clearings


def test_deep_water_stays_bare() -> None:
    ctx = Context("forest", "lowland", "river", "wilderness", "spring")
    hydro, veg = _vegetation(77, ctx, density=2.0)

    deep = hydro.water_depth > 1.0
    assert np.all(veg.vegetation_type[deep] == VegetationType.NONE)
    assert np.all(veg.tree_count[deep] == 0)


def test_tactical_flags_follow_vegetation_type() -> None:
    _, veg = _vegetation(9, FOREST, density=2.0)

    dense = veg.vegetation_type == VegetationType.DENSE_TREES
    assert not np.any(veg.is_passable & dense)
    assert np.all(veg.provides_cover[dense])
    assert float(veg.canopy_height.max()) <= 200.0
    assert float(veg.canopy_density.min()) >= 0.0
    assert float(veg.canopy_density.max()) <= 1.0


def test_winter_thins_deciduous_canopy() -> None:
    summer = Context("forest", "lowland", "stream", "wilderness", "summer")
    winter = Context("forest", "lowland", "stream", "wilderness", "winter")
    _, leafy = _vegetation(42, summer, density=2.0)
    _, bare = _vegetation(42, winter, density=2.0)

    assert leafy.total_trees == bare.total_trees
    assert float(bare.canopy_density.sum()) < float(leafy.canopy_density.sum())


def test_plants_per_tile_match_counts() -> None:
    _, veg = _vegetation(5, FOREST, density=1.5)

    for y in range(0, 40, 7):
        for x in range(0, 40, 7):
            trees = [p for p in veg.plants_at(x, y) if p.category is PlantCategory.TREE]
            assert len(trees) == veg.tree_count[y, x]
            assert all(isinstance(p.species, Species) for p in trees)


def test_forest_mask_needs_potential() -> None:
    potential = np.zeros((20, 20), dtype=np.float32)
    noise = np.ones((20, 20))

    assert not forest_mask(potential, noise).any()
    assert forest_mask(np.ones((20, 20), dtype=np.float32), noise).all()


def test_clearings_are_open_pockets() -> None:
    trees = np.ones((21, 21), dtype=bool)
    trees[8:13, 8:13] = False

    clearings = find_clearings(trees)
    assert len(clearings) == 1
    clearing = clearings[0]
    assert clearing.contains(10, 10)
    assert clearing.radius >= 1
    assert not trees[clearing.y, clearing.x]


def test_basal_area_survey_is_zero_without_trees() -> None:
    plants = tuple(() for _ in range(100))

    assert not basal_area_survey(plants, 10, 10, 3).any()


def test_canopy_closure_rises_with_basal_area_class() -> None:
    assert canopy_closure(10.0) == canopy_closure(60.0) == 0.2
    assert canopy_closure(60.0) < canopy_closure(120.0) < canopy_closure(180.0)
    assert canopy_closure(180.0) == 0.8


def test_denser_stands_close_the_canopy() -> None:
    _, thin = _vegetation(42, FOREST, density=0.5)
    _, thick = _vegetation(42, FOREST, density=2.0)

    shared = (thin.tree_count > 0) & (thick.tree_count > 0)
    assert shared.any()
    assert np.all(thick.basal_area[shared] >= thin.basal_area[shared])
    assert np.all(thick.canopy_density[shared] >= thin.canopy_density[shared])
    assert float(thick.canopy_density[thick.tree_count > 0].max()) > 0.2


def test_clearings_are_found_near_the_map_edge() -> None:
    trees = np.ones((12, 12), dtype=bool)
    trees[0:5, 0:5] = False

    clearings = find_clearings(trees)
    assert [(c.x, c.y, c.radius) for c in clearings] == [(2, 2, 2)]
