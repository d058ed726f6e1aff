"""Raster previews of a generated tactical map."""

from __future__ import annotations

import numpy as np
from matplotlib.colors import ListedColormap

from battlemap.config import TILE_SIZE_FT
from battlemap.converter import TERRAIN_TYPES, TerrainType

TERRAIN_PALETTE: dict[TerrainType, str] = {
    TerrainType.GRASS: "#8fb35a",
    TerrainType.FOREST: "#2f6b34",
    TerrainType.MOUNTAIN: "#8a7f70",
    TerrainType.WATER: "#2c6fa8",
    TerrainType.DESERT: "#d9c07a",
    TerrainType.SNOW: "#f2f4f7",
    TerrainType.SWAMP: "#556b45",
    TerrainType.ROCK: "#a19d94",
    TerrainType.CAVE: "#3b3431",
    TerrainType.ROAD: "#b58d5c",
    TerrainType.BUILDING: "#8c3b2a",
    TerrainType.WALL: "#4a4a4a",
}


def terrain_colormap_rgb(terrain: np.ndarray, *, pixels_per_tile: int = 1) -> np.ndarray:
    """Map terrain codes to a discrete RGB palette via ListedColormap."""

    if pixels_per_tile < 1:
        raise ValueError("pixels_per_tile must be positive")
    cmap = ListedColormap([TERRAIN_PALETTE[t] for t in TERRAIN_TYPES], name="battlemap_terrain")
    idx = np.clip(terrain.astype(np.int32), 0, len(TERRAIN_TYPES) - 1)
    rgb = np.round(cmap(idx)[..., :3] * 255.0).astype(np.uint8)
    if pixels_per_tile > 1:
        rgb = np.repeat(np.repeat(rgb, pixels_per_tile, axis=0), pixels_per_tile, axis=1)
    return rgb


def hillshade(
    elevation_ft: np.ndarray,
    *,
    tile_size_ft: float = TILE_SIZE_FT,
    azimuth_deg: float = 315.0,
    altitude_deg: float = 45.0,
    z_factor: float = 1.0,
) -> np.ndarray:
    """Compute an 8-bit grayscale hillshade from an elevation grid in feet."""

    if elevation_ft.ndim != 2:
        raise ValueError("elevation_ft must be a 2D array")
    if tile_size_ft <= 0:
        raise ValueError("tile_size_ft must be positive")

    dz_dy, dz_dx = np.gradient(elevation_ft.astype(np.float32), tile_size_ft, tile_size_ft)
    dz_dx = dz_dx * float(z_factor)
    dz_dy = dz_dy * float(z_factor)

    slope = np.pi / 2.0 - np.arctan(np.hypot(dz_dx, dz_dy))
    aspect = np.arctan2(-dz_dx, dz_dy)
    azimuth = np.deg2rad(azimuth_deg)
    altitude = np.deg2rad(altitude_deg)

    shaded = np.sin(altitude) * np.sin(slope) + np.cos(altitude) * np.cos(slope) * np.cos(azimuth - aspect)
    return np.round(np.clip(shaded, 0.0, 1.0) * 255.0).astype(np.uint8)


def shaded_terrain_rgb(terrain: np.ndarray, shade: np.ndarray, *, strength: float = 0.35) -> np.ndarray:
    """Darken the terrain palette by the hillshade so relief stays readable."""

    base = terrain_colormap_rgb(terrain).astype(np.float32)
    factor = 1.0 - strength + strength * (shade.astype(np.float32) / 255.0)
    return np.round(np.clip(base * factor[..., None], 0.0, 255.0)).astype(np.uint8)
