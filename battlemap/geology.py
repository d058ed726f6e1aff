"""Geology layer: bedrock formations, weathering features and soil."""

from __future__ import annotations

from dataclasses import dataclass
import logging

import numpy as np

from battlemap.config import GeneratorConfig
from battlemap.context import Context
from battlemap.formations import Bedding, Formation, TerrainFeature, formations_for_biome
from battlemap.grid import D4_OFFSETS, freeze, neighbor
from battlemap.noise import NoiseGenerator, centered
from battlemap.rng import TERRAIN, CoordinatedRandom
from battlemap.seed import Layer, LayeredSeed, Seed, SubLayer, layered

logger = logging.getLogger(__name__)

SECONDARY_FORMATION_CHANCE = 0.3

_HIGH_BAND = (TerrainFeature.TOWER, TerrainFeature.DOME, TerrainFeature.COLUMN, TerrainFeature.FIN)
_MEDIUM_BAND = (TerrainFeature.CORESTONE, TerrainFeature.HOODOO, TerrainFeature.LEDGE)
_NEGATIVE_BAND = (TerrainFeature.SINKHOLE, TerrainFeature.CAVE, TerrainFeature.RAVINE)

_SOIL_BONUS_FT = {
    TerrainFeature.GRUS: 3.0,
    TerrainFeature.TALUS: 2.0,
    TerrainFeature.SINKHOLE: 5.0,
}


@dataclass(frozen=True)
class GeologyLayerData:
    width: int
    height: int
    formations: tuple[Formation, ...]
    formation_index: np.ndarray
    hardness: np.ndarray
    permeability: np.ndarray
    soil_depth: np.ndarray
    weathering: np.ndarray
    features: np.ndarray
    fracture: np.ndarray
    transition: np.ndarray
    transition_zones: tuple[tuple[int, int], ...]

    @property
    def primary(self) -> Formation:
        return self.formations[0]

    @property
    def secondary(self) -> Formation | None:
        return self.formations[1] if len(self.formations) > 1 else None

    def has_feature(self, feature: TerrainFeature) -> np.ndarray:
        return (self.features & np.uint32(feature.bit)) != 0

    def any_features(self) -> np.ndarray:
        return self.features != 0

    def per_formation(self, values: list[float] | list[bool]) -> np.ndarray:
        """Broadcast one value per formation onto the tile grid."""

        return np.asarray(values)[self.formation_index]


def generate_geology(
    width: int,
    height: int,
    context: Context,
    seed: LayeredSeed | Seed | int | str,
    *,
    config: GeneratorConfig | None = None,
) -> GeologyLayerData:
    """Lay out bedrock formations and their weathering products for a map."""

    cfg = config or GeneratorConfig()
    cfg.check_dimensions(width, height)
    lseed = layered(seed)

    formation_seed = lseed.sub_layer_seed(Layer.GEOLOGY, SubLayer.FORMATIONS).value
    weathering_seed = lseed.sub_layer_seed(Layer.GEOLOGY, SubLayer.WEATHERING).value
    rng = CoordinatedRandom(lseed.layer_seed(Layer.GEOLOGY).value)

    formations = _select_formations(context, rng.generator(TERRAIN))
    index = _bedrock_pattern(width, height, formations, NoiseGenerator(formation_seed))
    transition = _transition_mask(index)

    hardness = np.asarray([f.hardness for f in formations], dtype=np.float32)[index]
    permeability = np.asarray([f.permeability_rank for f in formations], dtype=np.uint8)[index]
    fracture = np.asarray([f.fracture_intensity for f in formations], dtype=np.float32)[index]

    weathering_noise = NoiseGenerator(weathering_seed)
    intensity = centered(weathering_noise.grid(width, height, scale=0.1)).astype(np.float32)
    features = _weathering_features(index, formations, intensity, hardness)

    soil_noise = NoiseGenerator(lseed.sub_layer_seed(Layer.GEOLOGY, "soil").value)
    soil = _soil_depth(soil_noise.grid(width, height, scale=0.2), intensity, hardness, features)

    ys, xs = np.nonzero(transition)
    zones = tuple((int(x), int(y)) for y, x in zip(ys, xs))

    freeze(index, hardness, permeability, soil, intensity, features, fracture, transition)
    logger.debug(
        "geology: formations=%s transition_tiles=%d featured_tiles=%d mean_soil=%.2fft",
        [f.name for f in formations],
        len(zones),
        int(np.count_nonzero(features)),
        float(np.mean(soil)),
    )
    return GeologyLayerData(
        width=width,
        height=height,
        formations=formations,
        formation_index=index,
        hardness=hardness,
        permeability=permeability,
        soil_depth=soil,
        weathering=intensity,
        features=features,
        fracture=fracture,
        transition=transition,
        transition_zones=zones,
    )


def _select_formations(context: Context, gen: np.random.Generator) -> tuple[Formation, ...]:
    candidates = formations_for_biome(context.biome)
    primary_idx = int(gen.integers(len(candidates)))
    primary = candidates[primary_idx]
    if len(candidates) > 1 and gen.random() < SECONDARY_FORMATION_CHANCE:
        return primary, candidates[(primary_idx + 1) % len(candidates)]
    return (primary,)


def _bedrock_pattern(
    width: int,
    height: int,
    formations: tuple[Formation, ...],
    noise: NoiseGenerator,
) -> np.ndarray:
    if len(formations) == 1:
        return np.zeros((height, width), dtype=np.uint8)

    pattern = centered(noise.grid(width, height, scale=0.05))
    xs = np.arange(width, dtype=np.float64)[None, :]
    ys = np.arange(height, dtype=np.float64)[:, None]
    bedding = formations[0].bedding
    if bedding is Bedding.VERTICAL:
        threshold = np.broadcast_to(np.sin(xs * 0.1) * 0.3, (height, width))
    elif bedding is Bedding.FOLDED:
        threshold = np.sin(xs * 0.1) * np.cos(ys * 0.1) * 0.3
    else:
        threshold = np.zeros((height, width))
    return np.where(pattern > threshold, 0, 1).astype(np.uint8)


def _transition_mask(index: np.ndarray) -> np.ndarray:
    signed = index.astype(np.int16)
    out = np.zeros(index.shape, dtype=bool)
    for dy, dx in D4_OFFSETS:
        other = neighbor(signed, dy, dx, fill=-1)
        out |= (other >= 0) & (other != signed)
    return out


def _first_product(formation: Formation, band: tuple[TerrainFeature, ...]) -> TerrainFeature | None:
    for feature in band:
        if feature not in formation.products:
            continue
        if feature is TerrainFeature.CAVE and not formation.allows_caves:
            continue
        return feature
    return None


def _weathering_features(
    index: np.ndarray,
    formations: tuple[Formation, ...],
    intensity: np.ndarray,
    hardness: np.ndarray,
) -> np.ndarray:
    features = np.zeros(index.shape, dtype=np.uint32)
    # hard rock resists the large and rapid weathering forms
    bias = np.maximum(0.0, hardness - 4.0) * 0.05

    for k, formation in enumerate(formations):
        tiles = index == k
        high = tiles & (intensity > 0.7 + bias)
        medium = tiles & ~high & (intensity > 0.4 + bias)
        negative = tiles & (intensity < -0.5 - bias)

        for band, mask in ((_HIGH_BAND, high), (_MEDIUM_BAND, medium), (_NEGATIVE_BAND, negative)):
            feature = _first_product(formation, band)
            if feature is not None:
                features[mask] |= np.uint32(feature.bit)

        if TerrainFeature.TALUS in formation.products:
            features[tiles & (intensity > 0.2)] |= np.uint32(TerrainFeature.TALUS.bit)

    return features


def _soil_depth(
    noise: np.ndarray,
    intensity: np.ndarray,
    hardness: np.ndarray,
    features: np.ndarray,
) -> np.ndarray:
    hardness_factor = np.clip((10.0 - hardness) / 6.0, 0.5, 1.5)
    soil = (1.0 + 2.0 * noise) * (1.0 + 0.5 * intensity) * hardness_factor

    for feature, bonus in _SOIL_BONUS_FT.items():
        soil = np.where((features & np.uint32(feature.bit)) != 0, soil + bonus, soil)
    bare = (features & np.uint32(TerrainFeature.DOME.bit | TerrainFeature.TOWER.bit)) != 0
    soil = np.where(bare, 0.5, soil)
    return np.maximum(soil, 0.0).astype(np.float32)
