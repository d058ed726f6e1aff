"""Flatten the generated layers into one tactical terrain grid."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import TYPE_CHECKING

import numpy as np

from battlemap.context import Biome, Context
from battlemap.formations import TerrainFeature
from battlemap.grid import freeze
from battlemap.hydrology import Moisture
from battlemap.structures import StructureType
from battlemap.vegetation import VegetationType

if TYPE_CHECKING:
    from battlemap.pipeline import TacticalMapLayers

logger = logging.getLogger(__name__)

MOUNTAIN_ELEVATION_FT = 40.0
BARE_ROCK_SOIL_FT = 0.5


class TerrainType(str, Enum):
    GRASS = "grass"
    FOREST = "forest"
    MOUNTAIN = "mountain"
    WATER = "water"
    DESERT = "desert"
    SNOW = "snow"
    SWAMP = "swamp"
    ROCK = "rock"
    CAVE = "cave"
    ROAD = "road"
    BUILDING = "building"
    WALL = "wall"

    @property
    def code(self) -> int:
        return _TERRAIN_CODES[self]


TERRAIN_TYPES: tuple[TerrainType, ...] = tuple(TerrainType)
_TERRAIN_CODES = {t: i for i, t in enumerate(TERRAIN_TYPES)}

_BUILDING_STRUCTURES = (
    StructureType.HOUSE,
    StructureType.BARN,
    StructureType.TOWER,
    StructureType.WELL,
    StructureType.SHRINE,
    StructureType.RUIN,
)
_ROAD_STRUCTURES = (StructureType.ROAD, StructureType.BRIDGE)


@dataclass(frozen=True)
class MapTile:
    x: int
    y: int
    terrain: TerrainType
    height_multiplier: float
    blocked: bool


@dataclass(frozen=True)
class ConvertedMap:
    width: int
    height: int
    terrain: np.ndarray
    height_multiplier: np.ndarray
    blocked: np.ndarray

    def tile(self, x: int, y: int) -> MapTile:
        return MapTile(
            x=x,
            y=y,
            terrain=TERRAIN_TYPES[int(self.terrain[y, x])],
            height_multiplier=float(self.height_multiplier[y, x]),
            blocked=bool(self.blocked[y, x]),
        )

    def tiles(self) -> list[MapTile]:
        return [self.tile(x, y) for y in range(self.height) for x in range(self.width)]

    def counts(self) -> dict[str, int]:
        values, counts = np.unique(self.terrain, return_counts=True)
        return {TERRAIN_TYPES[int(v)].value: int(c) for v, c in zip(values, counts)}


def height_multiplier(elevation: np.ndarray) -> np.ndarray:
    """0.5 at sea level, 2.0 at 100 ft, then +1 per further 100 ft."""

    e = np.asarray(elevation, dtype=np.float64)
    low = 0.5 + 1.5 * np.clip(e, 0.0, 100.0) / 100.0
    high = 2.0 + (e - 100.0) / 100.0
    return np.where(e <= 0.0, 0.5, np.where(e <= 100.0, low, high)).astype(np.float32)


def convert_to_tiles(layers: TacticalMapLayers, context: Context | None = None) -> ConvertedMap:
    topo, hydro, veg, struct = layers.topography, layers.hydrology, layers.vegetation, layers.structures
    h, w = topo.elevation.shape

    terrain = np.full((h, w), TerrainType.GRASS.code, dtype=np.int8)
    if context is not None:
        fallback = _refine_fallback(layers, context)
        terrain = np.where(fallback >= 0, fallback, terrain).astype(np.int8)

    # lowest priority first
    mountain = (topo.elevation > MOUNTAIN_ELEVATION_FT) | topo.is_ridge
    forest = np.isin(veg.vegetation_type, [int(VegetationType.DENSE_TREES), int(VegetationType.SPARSE_TREES)])
    building = np.isin(struct.structure_type, [s.code for s in _BUILDING_STRUCTURES])
    road = np.isin(struct.structure_type, [s.code for s in _ROAD_STRUCTURES])
    for mask, ttype in (
        (mountain, TerrainType.MOUNTAIN),
        (forest, TerrainType.FOREST),
        (hydro.is_water, TerrainType.WATER),
        (road, TerrainType.ROAD),
        (building, TerrainType.BUILDING),
        (struct.is_type(StructureType.WALL), TerrainType.WALL),
    ):
        terrain[mask] = ttype.code

    blocked = (struct.has_structure & ~struct.is_road) | ~veg.is_passable
    multiplier = height_multiplier(topo.elevation)
    freeze(terrain, multiplier, blocked)
    logger.debug("converted %dx%d map: blocked=%d", w, h, int(blocked.sum()))
    return ConvertedMap(width=w, height=h, terrain=terrain, height_multiplier=multiplier, blocked=blocked)


def _refine_fallback(layers: TacticalMapLayers, context: Context) -> np.ndarray:
    geology, hydro = layers.geology, layers.hydrology
    h, w = geology.soil_depth.shape
    out = np.full((h, w), -1, dtype=np.int8)

    if context.should_have_snow:
        out[:] = TerrainType.SNOW.code
        return out
    if context.biome is Biome.DESERT:
        out[:] = TerrainType.DESERT.code
        return out
    out[geology.soil_depth < BARE_ROCK_SOIL_FT] = TerrainType.ROCK.code
    if context.biome is Biome.SWAMP:
        out[hydro.moisture >= Moisture.SATURATED] = TerrainType.SWAMP.code
    if context.biome is Biome.UNDERGROUND:
        out[geology.has_feature(TerrainFeature.CAVE)] = TerrainType.CAVE.code
    return out
