"""Topography layer: elevation, slope, aspect and landform classification."""

from __future__ import annotations

from dataclasses import dataclass
import logging

import numpy as np
from scipy.ndimage import convolve

from battlemap.config import TILE_SIZE_FT, TopographyConfig
from battlemap.context import Context, ElevationZone, HydrologyType
from battlemap.formations import RockType, TerrainFeature
from battlemap.geology import GeologyLayerData
from battlemap.grid import D8_NAMES, D8_OFFSETS, freeze, interior_mask, neighbor, normalize01
from battlemap.noise import NoiseGenerator, centered
from battlemap.seed import Layer, LayeredSeed, Seed, SubLayer, layered

logger = logging.getLogger(__name__)

FLAT = -1
ASPECT_NAMES = D8_NAMES

ZONE_RELIEF: dict[ElevationZone, float] = {
    ElevationZone.LOWLAND: 0.3,
    ElevationZone.FOOTHILLS: 0.6,
    ElevationZone.HIGHLAND: 0.8,
    ElevationZone.ALPINE: 1.0,
}

CLIMATE_WETNESS: dict[HydrologyType, float] = {
    HydrologyType.ARID: 0.3,
    HydrologyType.SEASONAL: 0.6,
    HydrologyType.STREAM: 0.7,
    HydrologyType.RIVER: 0.8,
    HydrologyType.LAKE: 0.75,
    HydrologyType.COASTAL: 0.9,
    HydrologyType.WETLAND: 1.0,
}

TEXTURE_INTENSITY: dict[RockType, float] = {
    RockType.CARBONATE: 0.8,
    RockType.VOLCANIC: 0.7,
    RockType.GRANITIC: 0.6,
    RockType.METAMORPHIC: 0.5,
    RockType.CLASTIC: 0.3,
    RockType.EVAPORITE: 0.2,
}

# feature relief offsets as a fraction of max relief, applied on very rugged maps
_RELIEF_FEATURES: dict[TerrainFeature, float] = {
    TerrainFeature.SINKHOLE: -0.08,
    TerrainFeature.DOME: 0.06,
    TerrainFeature.TOR: 0.05,
    TerrainFeature.CORESTONE: 0.03,
    TerrainFeature.FIN: 0.07,
    TerrainFeature.HOODOO: 0.05,
    TerrainFeature.TOWER: 0.08,
    TerrainFeature.COLUMN: 0.05,
}

_SMOOTH_KERNEL = np.array([[0.0, 1.0, 0.0], [1.0, 4.0, 1.0], [0.0, 1.0, 0.0]])
_RING4 = np.array([[0.0, 1.0, 0.0], [1.0, 0.0, 1.0], [0.0, 1.0, 0.0]])
_FLAT_GRADIENT = 0.01


@dataclass(frozen=True)
class TopographyLayerData:
    width: int
    height: int
    elevation: np.ndarray
    slope: np.ndarray
    aspect: np.ndarray
    relative_elevation: np.ndarray
    erosion: np.ndarray
    is_ridge: np.ndarray
    is_valley: np.ndarray
    is_drainage: np.ndarray
    max_relief: float
    min_elevation: float
    max_elevation: float
    average_slope: float

    def aspect_name(self, x: int, y: int) -> str:
        value = int(self.aspect[y, x])
        return "FLAT" if value == FLAT else ASPECT_NAMES[value]


def generate_topography(
    geology: GeologyLayerData,
    context: Context,
    seed: LayeredSeed | Seed | int | str,
    *,
    config: TopographyConfig | None = None,
) -> TopographyLayerData:
    """Build the elevation surface over the geology and classify landforms."""

    cfg = config or TopographyConfig()
    lseed = layered(seed)
    w, h = geology.width, geology.height
    rug = cfg.ruggedness

    max_relief = (
        min(w, h) * TILE_SIZE_FT * cfg.relief * ZONE_RELIEF[context.elevation] * cfg.variance * (0.4 + 0.6 * rug)
    )

    base_seed = lseed.layer_seed(Layer.TOPOGRAPHY).value
    macro_noise = NoiseGenerator(base_seed)
    tactical_noise = NoiseGenerator(lseed.sub_layer_seed(Layer.TOPOGRAPHY, "tactical").value)
    texture_noise = NoiseGenerator(lseed.sub_layer_seed(Layer.TOPOGRAPHY, "texture").value)
    erosion_noise = NoiseGenerator(lseed.sub_layer_seed(Layer.TOPOGRAPHY, SubLayer.EROSION).value)

    macro = normalize01(macro_noise.octave_grid(w, h, scale=0.01, octaves=2, persistence=0.6))
    tactical = centered(
        tactical_noise.octave_grid(w, h, scale=0.05 * (0.7 + 0.6 * rug), octaves=cfg.octaves, persistence=cfg.persistence)
    )
    texture = centered(texture_noise.octave_grid(w, h, scale=0.15 * (0.5 + 0.75 * rug), octaves=2))

    rock_intensity = geology.per_formation([TEXTURE_INTENSITY[f.rock_type] for f in geology.formations]) * rug
    elevation = max_relief * (
        macro * (0.7 - (rug - 0.5) * 0.2)
        + tactical * (0.15 + (rug - 0.5) * 0.267)
        + texture * rock_intensity * (0.02 + (rug - 0.5) * 0.053)
    )

    slope0 = _slope_degrees(elevation)
    erosion = _erosion_susceptibility(geology, slope0, CLIMATE_WETNESS[context.hydrology], rug)
    depth = erosion * (0.7 + 0.6 * erosion_noise.grid(w, h, scale=0.1)) * (max_relief / 50.0) * 8.0
    elevation = elevation - depth

    if rug >= 1.5:
        elevation = elevation + _relief_features(geology) * max_relief

    elevation = _smooth(elevation, erosion, rug)
    elevation = (elevation - float(np.min(elevation))).astype(np.float32)

    slope = _slope_degrees(elevation).astype(np.float32)
    aspect = _aspect(elevation)
    relative = _relative_elevation(elevation)
    ridge, valley = _ridges_and_valleys(elevation)
    drainage = (valley | ((slope > 30.0) & (relative < -0.3))) & ~ridge
    erosion = erosion.astype(np.float32)

    freeze(elevation, slope, aspect, relative, erosion, ridge, valley, drainage)
    data = TopographyLayerData(
        width=w,
        height=h,
        elevation=elevation,
        slope=slope,
        aspect=aspect,
        relative_elevation=relative,
        erosion=erosion,
        is_ridge=ridge,
        is_valley=valley,
        is_drainage=drainage,
        max_relief=float(max_relief),
        min_elevation=float(np.min(elevation)),
        max_elevation=float(np.max(elevation)),
        average_slope=float(np.mean(slope)),
    )
    logger.debug(
        "topography: relief=%.1fft max=%.1fft avg_slope=%.1f ridges=%d valleys=%d",
        max_relief,
        data.max_elevation,
        data.average_slope,
        int(np.count_nonzero(ridge)),
        int(np.count_nonzero(valley)),
    )
    return data


def _slope_degrees(elevation: np.ndarray) -> np.ndarray:
    dz_dy, dz_dx = np.gradient(elevation.astype(np.float64), TILE_SIZE_FT, TILE_SIZE_FT)
    return np.clip(np.degrees(np.arctan(np.hypot(dz_dx, dz_dy))), 0.0, 90.0)


def _aspect(elevation: np.ndarray) -> np.ndarray:
    """Compass sector of steepest descent, or FLAT."""

    dz_dy, dz_dx = np.gradient(elevation.astype(np.float64), TILE_SIZE_FT, TILE_SIZE_FT)
    # y grows southwards, so descent points north when dz_dy is positive
    bearing = np.degrees(np.arctan2(-dz_dx, dz_dy)) % 360.0
    sector = (np.round(bearing / 45.0).astype(np.int16) % 8).astype(np.int8)
    flat = np.hypot(dz_dx, dz_dy) < _FLAT_GRADIENT
    return np.where(flat, np.int8(FLAT), sector).astype(np.int8)


def _erosion_susceptibility(
    geology: GeologyLayerData,
    slope: np.ndarray,
    wetness: float,
    ruggedness: float,
) -> np.ndarray:
    resistance = geology.per_formation([f.erosion_resistance() for f in geology.formations])
    slope_factor = np.minimum(1.5, 1.0 + slope / 60.0)
    fracture_factor = 1.0 + geology.fracture * 0.5
    age_factor = 2.0 - ruggedness
    susceptibility = (
        0.3 * (1.0 - resistance)
        + 0.2 * (slope_factor - 1.0)
        + 0.2 * (fracture_factor - 1.0)
        + 0.15 * (wetness - 0.5)
        + 0.15 * (age_factor - 1.0)
    )
    return np.clip(susceptibility, 0.0, 1.0)


def _relief_features(geology: GeologyLayerData) -> np.ndarray:
    offset = np.zeros((geology.height, geology.width), dtype=np.float64)
    for feature, amount in _RELIEF_FEATURES.items():
        offset += np.where(geology.has_feature(feature), amount, 0.0)
    # saw-tooth foliation on metamorphic rock
    foliated = geology.has_feature(TerrainFeature.FOLIATION_PLANE)
    xs = np.arange(geology.width)[None, :]
    offset += np.where(foliated, 0.02 * ((xs % 3) - 1), 0.0)
    return offset


def _landform_position(elevation: np.ndarray) -> np.ndarray:
    """+1 valley, -1 ridge, 0 neutral using a 60% neighbour majority."""

    lower = np.zeros(elevation.shape, dtype=np.int32)
    higher = np.zeros(elevation.shape, dtype=np.int32)
    present = np.zeros(elevation.shape, dtype=np.int32)
    for dy, dx in D8_OFFSETS:
        other = neighbor(elevation, dy, dx, fill=np.nan)
        valid = ~np.isnan(other)
        present += valid
        lower += valid & (other < elevation)
        higher += valid & (other > elevation)
    position = np.zeros(elevation.shape, dtype=np.int8)
    position[higher >= present * 0.6] = 1
    position[(position == 0) & (lower >= present * 0.6)] = -1
    return position


def _smooth(elevation: np.ndarray, erosion: np.ndarray, ruggedness: float) -> np.ndarray:
    max_passes = max(0, int(round(6.0 - 3.0 * ruggedness)))
    if max_passes == 0:
        return elevation

    position = _landform_position(elevation)
    passes = np.floor(erosion * max_passes).astype(np.int32)
    passes = np.where(position == 1, passes + 1, passes)
    passes = np.where(position == -1, np.maximum(0, passes - 1), passes)

    counts = convolve(np.ones(elevation.shape), _SMOOTH_KERNEL, mode="constant", cval=0.0)
    out = elevation.astype(np.float64)
    for current in range(1, int(passes.max(initial=0)) + 1):
        averaged = convolve(out, _SMOOTH_KERNEL, mode="constant", cval=0.0) / counts
        out = np.where(passes >= current, averaged, out)
    return out


def _relative_elevation(elevation: np.ndarray) -> np.ndarray:
    values = elevation.astype(np.float64)
    sums = convolve(values, _RING4, mode="constant", cval=0.0)
    counts = convolve(np.ones(values.shape), _RING4, mode="constant", cval=0.0)
    relative = (values - sums / counts) / 10.0
    return np.clip(relative, -1.0, 1.0).astype(np.float32)


def _ridges_and_valleys(elevation: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    h, w = elevation.shape
    lower = np.zeros((h, w), dtype=np.int32)
    higher = np.zeros((h, w), dtype=np.int32)
    for dy, dx in D8_OFFSETS:
        other = neighbor(elevation, dy, dx, fill=np.nan)
        lower += other < elevation
        higher += other > elevation
    interior = interior_mask(h, w)
    return interior & (lower >= 6), interior & (higher >= 6)
