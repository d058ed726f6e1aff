"""Vegetation layer: forests, understory, ground cover and their tactical effects."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum, IntEnum
import logging
import math

import numpy as np
from scipy.ndimage import convolve

from battlemap.config import BASAL_AREA_MODERATE, SQ_FT_PER_ACRE, TILE_SIZE_FT, VegetationConfig, classify_density
from battlemap.context import Biome, Context, ElevationZone, Season
from battlemap.geology import GeologyLayerData
from battlemap.grid import connected_components, count_neighbors, freeze
from battlemap.hydrology import HydrologyLayerData, Moisture
from battlemap.noise import NoiseGenerator
from battlemap.rng import IDS, TREES, CoordinatedRandom
from battlemap.seed import Layer, LayeredSeed, Seed, SubLayer, layered
from battlemap.topography import TopographyLayerData

logger = logging.getLogger(__name__)

FOREST_AUTOMATON_PASSES = 3
ALPINE_TREE_LINE = 0.6
CLEARING_MAX_RADIUS = 5
CLEARING_MIN_RADIUS = 2
MIN_PATCH_TILES = 3
NO_SPECIES = -1

# Canopy closure by the density class of the surveyed basal area.
CANOPY_BY_DENSITY_CLASS = {"dense": 0.8, "moderate": 0.5, "sparse": 0.2, "none": 0.2}


class VegetationType(IntEnum):
    NONE = 0
    GRASS = 1
    TALL_GRASS = 2
    SHRUBS = 3
    UNDERGROWTH = 4
    SPARSE_TREES = 5
    DENSE_TREES = 6


class PlantCategory(str, Enum):
    TREE = "tree"
    SHRUB = "shrub"
    HERB = "herb"
    GROUND_COVER = "ground_cover"


class PlantSize(str, Enum):
    TINY = "tiny"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    HUGE = "huge"
    MASSIVE = "massive"


class Species(str, Enum):
    OAK = "oak"
    PINE = "pine"
    BIRCH = "birch"
    MAPLE = "maple"
    CEDAR = "cedar"
    WILLOW = "willow"
    HAZEL = "hazel"
    ELDERBERRY = "elderberry"
    BLACKTHORN = "blackthorn"
    MEADOW_GRASS = "meadow_grass"
    BRACKEN_FERN = "bracken_fern"
    MOSS = "moss"

    @property
    def coniferous(self) -> bool:
        return self in (Species.PINE, Species.CEDAR)

    @property
    def deciduous(self) -> bool:
        return self in (Species.OAK, Species.BIRCH, Species.MAPLE, Species.WILLOW, Species.HAZEL, Species.ELDERBERRY)


SPECIES_CODES: tuple[Species, ...] = tuple(Species)
_SPECIES_INDEX = {species: idx for idx, species in enumerate(SPECIES_CODES)}

BIOME_POTENTIAL: dict[Biome, float] = {
    Biome.FOREST: 1.0,
    Biome.SWAMP: 0.8,
    Biome.COASTAL: 0.6,
    Biome.MOUNTAIN: 0.5,
    Biome.PLAINS: 0.4,
    Biome.UNDERGROUND: 0.2,
    Biome.DESERT: 0.1,
}

MOISTURE_FACTOR: dict[Moisture, float] = {
    Moisture.SATURATED: 0.7,
    Moisture.WET: 1.0,
    Moisture.MOIST: 0.9,
    Moisture.MODERATE: 0.7,
    Moisture.DRY: 0.3,
    Moisture.ARID: 0.1,
}

ZONE_FACTOR: dict[ElevationZone, float] = {
    ElevationZone.LOWLAND: 1.0,
    ElevationZone.FOOTHILLS: 0.95,
    ElevationZone.HIGHLAND: 0.9,
    ElevationZone.ALPINE: 0.75,
}

BASE_HEIGHT_FT: dict[PlantCategory, float] = {
    PlantCategory.TREE: 20.0,
    PlantCategory.SHRUB: 5.0,
    PlantCategory.HERB: 2.0,
    PlantCategory.GROUND_COVER: 0.5,
}

SIZE_HEIGHT_MULTIPLIER: dict[PlantSize, float] = {
    PlantSize.TINY: 0.3,
    PlantSize.SMALL: 0.5,
    PlantSize.MEDIUM: 1.0,
    PlantSize.LARGE: 1.5,
    PlantSize.HUGE: 2.0,
    PlantSize.MASSIVE: 3.0,
}

TRUNK_DIAMETER_FT: dict[PlantSize, float] = {
    PlantSize.TINY: 0.1,
    PlantSize.SMALL: 0.2,
    PlantSize.MEDIUM: 0.5,
    PlantSize.LARGE: 1.0,
    PlantSize.HUGE: 2.0,
    PlantSize.MASSIVE: 3.0,
}

_PATCH_ADJECTIVES = ("Whispering", "Old", "Shadow", "Mossy", "Tangled", "Silent", "Hollow", "Thornback")
_PATCH_NOUNS = ("Wood", "Grove", "Stand", "Thicket", "Copse", "Holt")

# per-tile random channels, drawn for every tile so draws never depend on density
_CH_STOCK, _CH_COUNT = 0, 1
_CH_TREE_SPECIES = (2, 3, 4)
_CH_TREE_SIZE = (5, 6, 7)
_CH_UNDER, _CH_UNDER_SPECIES, _CH_HERB, _CH_HERB_SPECIES, _CH_GROUND = 8, 9, 10, 11, 12
_CHANNELS = 13


@dataclass(frozen=True)
class Plant:
    species: Species
    category: PlantCategory
    size: PlantSize
    height_ft: float
    trunk_diameter_ft: float = 0.0


@dataclass(frozen=True)
class Clearing:
    x: int
    y: int
    radius: int

    def contains(self, x: int, y: int) -> bool:
        return (x - self.x) ** 2 + (y - self.y) ** 2 <= self.radius**2


@dataclass(frozen=True)
class ForestPatch:
    name: str
    forest_type: str
    tiles: tuple[tuple[int, int], ...]
    density: float

    @property
    def area(self) -> int:
        return len(self.tiles)


@dataclass(frozen=True)
class VegetationLayerData:
    width: int
    height: int
    plants: tuple[tuple[Plant, ...], ...]
    potential: np.ndarray
    forest_mask: np.ndarray
    tree_count: np.ndarray
    canopy_height: np.ndarray
    canopy_density: np.ndarray
    vegetation_type: np.ndarray
    dominant_species: np.ndarray
    ground_cover: np.ndarray
    is_passable: np.ndarray
    provides_concealment: np.ndarray
    provides_cover: np.ndarray
    basal_area: np.ndarray
    forest_patches: tuple[ForestPatch, ...]
    clearings: tuple[Clearing, ...]

    def plants_at(self, x: int, y: int) -> tuple[Plant, ...]:
        return self.plants[y * self.width + x]

    @property
    def total_trees(self) -> int:
        return int(np.sum(self.tree_count))

    def in_clearing(self) -> np.ndarray:
        mask = np.zeros((self.height, self.width), dtype=bool)
        ys, xs = np.mgrid[0 : self.height, 0 : self.width]
        for clearing in self.clearings:
            mask |= (xs - clearing.x) ** 2 + (ys - clearing.y) ** 2 <= clearing.radius**2
        return mask


def generate_vegetation(
    hydrology: HydrologyLayerData,
    topography: TopographyLayerData,
    geology: GeologyLayerData,
    context: Context,
    seed: LayeredSeed | Seed | int | str,
    *,
    config: VegetationConfig | None = None,
) -> VegetationLayerData:
    """Grow plants over the terrain according to climate, soil and forestry density."""

    cfg = config or VegetationConfig()
    lseed = layered(seed)
    w, h = topography.width, topography.height

    potential = growth_potential(hydrology, topography, geology, context)
    forest_noise = NoiseGenerator(lseed.layer_seed(Layer.VEGETATION).value)
    forest = forest_mask(potential, forest_noise.grid(w, h, scale=0.1))

    rng = CoordinatedRandom(lseed.sub_layer_seed(Layer.VEGETATION, SubLayer.TREES).value)
    draws = rng.generator(TREES).random((h, w, _CHANNELS))

    plants = _grow_plants(draws, potential, forest, hydrology, topography, context, cfg)
    tree_count = np.array([sum(p.category is PlantCategory.TREE for p in tile) for tile in plants], dtype=np.uint8)
    tree_count = tree_count.reshape((h, w))

    basal = basal_area_survey(plants, w, h, cfg.survey_radius)
    canopy_height, canopy_density, veg_type, dominant, ground = _tactical_grids(plants, basal, hydrology, context, w, h)
    depth = hydrology.water_depth
    passable = (veg_type != VegetationType.DENSE_TREES) & (depth < 2.0)
    concealment = (canopy_density > 0.3) | (veg_type == VegetationType.SHRUBS) | (veg_type == VegetationType.UNDERGROWTH)
    cover = (
        (veg_type == VegetationType.DENSE_TREES)
        | ((tree_count > 0) & (basal >= BASAL_AREA_MODERATE))
        | ((veg_type == VegetationType.SPARSE_TREES) & (canopy_height > 15.0))
    )

    clearings = find_clearings(tree_count > 0)
    patches = _forest_patches(tree_count > 0, plants, canopy_density, rng.generator(IDS))

    freeze(potential, forest, tree_count, canopy_height, canopy_density, veg_type, dominant, ground)
    freeze(passable, concealment, cover, basal)
    data = VegetationLayerData(
        width=w,
        height=h,
        plants=plants,
        potential=potential,
        forest_mask=forest,
        tree_count=tree_count,
        canopy_height=canopy_height,
        canopy_density=canopy_density,
        vegetation_type=veg_type,
        dominant_species=dominant,
        ground_cover=ground,
        is_passable=passable,
        provides_concealment=concealment,
        provides_cover=cover,
        basal_area=basal,
        forest_patches=patches,
        clearings=clearings,
    )
    logger.debug(
        "vegetation: trees=%d tree_p=%.3f forest_tiles=%d patches=%d clearings=%d",
        data.total_trees,
        cfg.tree_probability,
        int(np.count_nonzero(forest)),
        len(patches),
        len(clearings),
    )
    return data


def growth_potential(
    hydrology: HydrologyLayerData,
    topography: TopographyLayerData,
    geology: GeologyLayerData,
    context: Context,
) -> np.ndarray:
    moisture_lut = np.array([MOISTURE_FACTOR[Moisture(i)] for i in range(len(Moisture))])
    potential = BIOME_POTENTIAL.get(context.biome, 0.5) * moisture_lut[hydrology.moisture]

    slope = topography.slope
    potential = potential * np.select([slope > 60.0, slope > 40.0, slope > 20.0], [0.1, 0.3, 0.7], default=1.0)
    soil = geology.soil_depth
    potential = potential * np.select([soil < 0.5, soil < 2.0], [0.2, 0.6], default=1.0)

    potential = potential * ZONE_FACTOR[context.elevation]
    if context.elevation is ElevationZone.ALPINE:
        above_line = topography.elevation > ALPINE_TREE_LINE * max(topography.max_elevation, 1e-6)
        potential = np.where(above_line, potential * 0.3, potential)
    return np.clip(potential, 0.0, 1.0).astype(np.float32)


def forest_mask(potential: np.ndarray, noise: np.ndarray) -> np.ndarray:
    """Noise-seeded forest cells relaxed by a synchronous birth/death automaton."""

    mask = (noise > 0.5 - 0.3 * potential) & (potential > 0.3)
    for _ in range(FOREST_AUTOMATON_PASSES):
        counts = count_neighbors(mask)
        mask = np.where(counts >= 5, True, np.where(counts <= 2, False, mask))
    return mask.astype(bool)


def _size_for(value: float) -> PlantSize:
    if value > 0.8:
        return PlantSize.HUGE
    if value > 0.6:
        return PlantSize.LARGE
    if value > 0.4:
        return PlantSize.MEDIUM
    if value > 0.2:
        return PlantSize.SMALL
    return PlantSize.TINY


def _make_plant(species: Species, category: PlantCategory, size: PlantSize) -> Plant:
    height = BASE_HEIGHT_FT[category] * SIZE_HEIGHT_MULTIPLIER[size]
    trunk = TRUNK_DIAMETER_FT[size] if category is PlantCategory.TREE else 0.0
    return Plant(species, category, size, round(height, 2), trunk)


def tree_species(biome: Biome, moisture: Moisture, r: float) -> Species:
    wet = moisture >= Moisture.WET
    if biome is Biome.FOREST:
        if wet:
            return Species.WILLOW if r < 0.5 else Species.OAK
        if r < 0.4:
            return Species.OAK
        if r < 0.7:
            return Species.PINE
        return Species.BIRCH if r < 0.85 else Species.MAPLE
    if biome is Biome.MOUNTAIN:
        if r < 0.7:
            return Species.PINE
        return Species.CEDAR if r < 0.85 else Species.OAK
    if biome is Biome.SWAMP:
        return Species.WILLOW
    if biome is Biome.COASTAL:
        return Species.PINE if r < 0.6 else Species.OAK
    return Species.OAK


def shrub_species(moisture: Moisture, r: float) -> Species:
    if moisture <= Moisture.DRY:
        return Species.HAZEL
    return Species.ELDERBERRY if r < 0.5 else Species.BLACKTHORN


def _grow_plants(
    draws: np.ndarray,
    potential: np.ndarray,
    forest: np.ndarray,
    hydrology: HydrologyLayerData,
    topography: TopographyLayerData,
    context: Context,
    cfg: VegetationConfig,
) -> tuple[tuple[Plant, ...], ...]:
    h, w = potential.shape
    tree_p = cfg.tree_probability
    under_p = cfg.understory_probability
    ground_p = cfg.ground_cover_density
    depth = hydrology.water_depth
    tiles: list[tuple[Plant, ...]] = []

    for y in range(h):
        for x in range(w):
            d = draws[y, x]
            pot = float(potential[y, x])
            water = float(depth[y, x])
            if water > 1.0:
                tiles.append(())
                continue
            moisture = Moisture(int(hydrology.moisture[y, x]))
            slope = float(topography.slope[y, x])
            tile: list[Plant] = []

            if forest[y, x]:
                if d[_CH_STOCK] < tree_p:
                    count = 1 + min(2, int(d[_CH_COUNT] * 3.0))
                    for k in range(count):
                        species = tree_species(context.biome, moisture, float(d[_CH_TREE_SPECIES[k]]))
                        size = _size_for(float(d[_CH_TREE_SIZE[k]]) * pot)
                        tile.append(_make_plant(species, PlantCategory.TREE, size))
                if d[_CH_UNDER] < under_p:
                    size = _size_for(float(d[_CH_UNDER_SPECIES]) * pot)
                    tile.append(_make_plant(shrub_species(moisture, float(d[_CH_UNDER_SPECIES])), PlantCategory.SHRUB, size))
            elif pot > 0.2 and moisture is not Moisture.ARID:
                r = float(d[_CH_HERB])
                if slope > 40.0:
                    shrub = r > 0.7
                elif context.biome is Biome.PLAINS:
                    shrub = r > 0.8
                else:
                    shrub = r > 0.5
                size = _size_for(float(d[_CH_HERB_SPECIES]) * pot * 1.25)
                if shrub:
                    tile.append(_make_plant(shrub_species(moisture, float(d[_CH_HERB_SPECIES])), PlantCategory.SHRUB, size))
                else:
                    herb = Species.BRACKEN_FERN if moisture >= Moisture.MOIST and context.biome is Biome.FOREST else Species.MEADOW_GRASS
                    tile.append(_make_plant(herb, PlantCategory.HERB, size))

            if pot > 0.1 and water == 0.0 and d[_CH_GROUND] < ground_p:
                tile.append(_make_plant(Species.MOSS, PlantCategory.GROUND_COVER, PlantSize.SMALL))

            tiles.append(tuple(tile))

    return tuple(tiles)


def _tactical_grids(
    plants: tuple[tuple[Plant, ...], ...],
    basal_area: np.ndarray,
    hydrology: HydrologyLayerData,
    context: Context,
    w: int,
    h: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    canopy_height = np.zeros(h * w, dtype=np.float32)
    canopy_density = np.zeros(h * w, dtype=np.float32)
    veg_type = np.zeros(h * w, dtype=np.uint8)
    dominant = np.full(h * w, NO_SPECIES, dtype=np.int8)
    ground = np.full(h * w, 0.2, dtype=np.float32)
    moisture = hydrology.moisture.ravel()
    basal_flat = basal_area.ravel()
    winter = context.season is Season.WINTER

    for idx, tile in enumerate(plants):
        if not tile:
            continue
        trees = [p for p in tile if p.category is PlantCategory.TREE]
        shrubs = [p for p in tile if p.category is PlantCategory.SHRUB]
        herbs = [p for p in tile if p.category is PlantCategory.HERB]

        canopy_height[idx] = max(p.height_ft for p in tile)
        if trees:
            density = canopy_closure(float(basal_flat[idx]))
            if winter and any(p.species.deciduous for p in trees):
                density *= 0.6
        elif shrubs:
            density = min(1.0, 0.3 * len(shrubs))
        else:
            density = 0.1
        canopy_density[idx] = density

        if len(trees) >= 2:
            veg_type[idx] = VegetationType.DENSE_TREES
        elif trees:
            veg_type[idx] = VegetationType.SPARSE_TREES
        elif shrubs:
            wet = moisture[idx] >= Moisture.WET
            veg_type[idx] = VegetationType.UNDERGROWTH if wet else VegetationType.SHRUBS
        elif herbs and max(p.height_ft for p in herbs) >= 2.0:
            veg_type[idx] = VegetationType.TALL_GRASS
        else:
            veg_type[idx] = VegetationType.GRASS

        counts = Counter(p.species for p in tile)
        dominant[idx] = _SPECIES_INDEX[counts.most_common(1)[0][0]]
        if any(p.category is PlantCategory.GROUND_COVER for p in tile):
            ground[idx] = 0.8

    shape = (h, w)
    return (
        canopy_height.reshape(shape),
        canopy_density.reshape(shape),
        veg_type.reshape(shape),
        dominant.reshape(shape),
        ground.reshape(shape),
    )


def canopy_closure(basal_area: float) -> float:
    return CANOPY_BY_DENSITY_CLASS[classify_density(basal_area)]


def basal_area_survey(plants: tuple[tuple[Plant, ...], ...], w: int, h: int, radius: int) -> np.ndarray:
    """Trunk cross-section per acre (ft²/acre) over a circular plot around each tile."""

    trunk_area = np.array(
        [sum(math.pi * (p.trunk_diameter_ft / 2.0) ** 2 for p in tile if p.category is PlantCategory.TREE) for tile in plants],
        dtype=np.float64,
    ).reshape((h, w))
    span = np.arange(-radius, radius + 1)
    kernel = ((span[:, None] ** 2 + span[None, :] ** 2) <= radius**2).astype(np.float64)
    plot_ft2 = math.pi * (radius * TILE_SIZE_FT) ** 2
    summed = convolve(trunk_area, kernel, mode="constant", cval=0.0)
    return (summed / plot_ft2 * SQ_FT_PER_ACRE).astype(np.float32)


def find_clearings(trees: np.ndarray) -> tuple[Clearing, ...]:
    """Open, tree-free pockets ringed by forest."""

    h, w = trees.shape
    tree_i = trees.astype(np.int32)
    near = convolve(tree_i, np.ones((7, 7), dtype=np.int32), mode="constant", cval=0)
    core = convolve(tree_i, np.ones((3, 3), dtype=np.int32), mode="constant", cval=0)
    ring = near - core

    angles = [2.0 * math.pi * k / 16.0 for k in range(16)]
    visited = np.zeros((h, w), dtype=bool)
    clearings: list[Clearing] = []
    for y in range(2, h - 2):
        for x in range(2, w - 2):
            if visited[y, x] or trees[y, x] or ring[y, x] < 5:
                continue
            radius = CLEARING_MAX_RADIUS
            for r in range(1, CLEARING_MAX_RADIUS + 1):
                blocked = False
                for a in angles:
                    px = int(round(x + r * math.cos(a)))
                    py = int(round(y + r * math.sin(a)))
                    if px < 0 or px >= w or py < 0 or py >= h or trees[py, px]:
                        blocked = True
                        break
                if blocked:
                    radius = r - 1
                    break
            if radius < CLEARING_MIN_RADIUS:
                continue
            clearings.append(Clearing(x, y, radius))
            visited[max(0, y - radius) : y + radius + 1, max(0, x - radius) : x + radius + 1] = True
    return tuple(clearings)


def _forest_patches(
    trees: np.ndarray,
    plants: tuple[tuple[Plant, ...], ...],
    canopy_density: np.ndarray,
    gen: np.random.Generator,
) -> tuple[ForestPatch, ...]:
    h, w = trees.shape
    density_flat = canopy_density.ravel()
    patches: list[ForestPatch] = []
    for comp in connected_components(trees):
        if comp.size < MIN_PATCH_TILES:
            continue
        conifers = 0
        broadleaf = 0
        for idx in comp:
            for plant in plants[int(idx)]:
                if plant.category is not PlantCategory.TREE:
                    continue
                if plant.species.coniferous:
                    conifers += 1
                else:
                    broadleaf += 1
        if conifers > 2 * broadleaf:
            kind = "coniferous"
        elif broadleaf > 2 * conifers:
            kind = "deciduous"
        else:
            kind = "mixed"
        name = f"{_PATCH_ADJECTIVES[int(gen.integers(len(_PATCH_ADJECTIVES)))]} {_PATCH_NOUNS[int(gen.integers(len(_PATCH_NOUNS)))]}"
        tiles = tuple((int(i) % w, int(i) // w) for i in comp)
        patches.append(ForestPatch(name, kind, tiles, float(np.mean(density_flat[comp]))))
    return tuple(patches)
