"""Run the six generation layers in order and assemble the tactical map."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
import logging
import time
from typing import Any, Callable

from battlemap.config import GeneratorConfig
from battlemap.context import Context
from battlemap.converter import ConvertedMap, convert_to_tiles
from battlemap.errors import LayerGenerationFailed, ValidationError
from battlemap.features import FeaturesLayerData, generate_features
from battlemap.geology import GeologyLayerData, generate_geology
from battlemap.hydrology import HydrologyLayerData, generate_hydrology
from battlemap.seed import DEFAULT_SEED, LayeredSeed, Seed, layered
from battlemap.structures import StructuresLayerData, generate_structures
from battlemap.topography import TopographyLayerData, generate_topography
from battlemap.validator import NaturalLawValidator, ValidationResult
from battlemap.vegetation import VegetationLayerData, generate_vegetation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TacticalMapLayers:
    geology: GeologyLayerData
    topography: TopographyLayerData
    hydrology: HydrologyLayerData
    vegetation: VegetationLayerData
    structures: StructuresLayerData
    features: FeaturesLayerData | None = None


@dataclass(frozen=True)
class TacticalMapResult:
    width: int
    height: int
    seed: Seed
    context: Context
    layers: TacticalMapLayers
    tiles: ConvertedMap
    validation: ValidationResult
    generation_time: float

    def summary(self) -> dict[str, Any]:
        layers = self.layers
        return {
            "width": self.width,
            "height": self.height,
            "seed": self.seed.value,
            "context": self.context.to_dict(),
            "max_elevation_ft": round(layers.topography.max_elevation, 3),
            "streams": len(layers.hydrology.streams),
            "springs": len(layers.hydrology.springs),
            "trees": layers.vegetation.total_trees,
            "buildings": len(layers.structures.buildings),
            "road_length": layers.structures.roads.total_length,
            "bridges": len(layers.structures.bridges),
            "features": 0 if layers.features is None else len(layers.features.descriptions),
            "terrain": self.tiles.counts(),
            "valid": self.validation.is_valid,
            "validation": self.validation.summary,
            "generation_time_s": round(self.generation_time, 4),
        }


async def _run_layer(name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    await asyncio.sleep(0)
    started = time.perf_counter()
    try:
        result = fn(*args, **kwargs)
    except ValidationError:
        raise
    except Exception as exc:
        logger.error("%s layer failed: %s", name, exc)
        raise LayerGenerationFailed(name, exc) from exc
    logger.debug("%s layer done in %.3fs", name, time.perf_counter() - started)
    return result


async def generate_tactical_map_async(
    width: int,
    height: int,
    context: Context,
    seed: LayeredSeed | Seed | int | str,
    *,
    config: GeneratorConfig | None = None,
) -> TacticalMapResult:
    """Generate every layer for one map; inputs are validated before any layer runs."""

    cfg = config or GeneratorConfig()
    cfg.check_dimensions(width, height)
    if not isinstance(context, Context):
        raise ValidationError(f"context must be a Context, got {type(context).__name__}", code="CONTEXT_INVALID_VALUE")
    lseed = layered(seed)

    logger.info("generating %dx%d map seed=%d context=%s", width, height, lseed.base.value, context.describe())
    started = time.perf_counter()

    geology = await _run_layer("geology", generate_geology, width, height, context, lseed, config=cfg)
    topography = await _run_layer("topography", generate_topography, geology, context, lseed, config=cfg.topography)
    hydrology = await _run_layer(
        "hydrology", generate_hydrology, topography, geology, context, lseed, config=cfg.hydrology
    )
    vegetation = await _run_layer(
        "vegetation", generate_vegetation, hydrology, topography, geology, context, lseed, config=cfg.vegetation
    )
    structures = await _run_layer("structures", generate_structures, vegetation, hydrology, topography, context, lseed)
    layers = TacticalMapLayers(geology, topography, hydrology, vegetation, structures)
    features = await _run_layer("features", generate_features, layers, context, lseed)
    layers = replace(layers, features=features)

    tiles = await _run_layer("converter", convert_to_tiles, layers, context)
    validation = NaturalLawValidator(cfg.validation).validate(layers)
    elapsed = time.perf_counter() - started
    if not validation.is_valid:
        logger.warning("map seed=%d: %s", lseed.base.value, validation.summary)
    logger.info("generated %dx%d map seed=%d in %.3fs", width, height, lseed.base.value, elapsed)

    return TacticalMapResult(
        width=width,
        height=height,
        seed=lseed.base,
        context=context,
        layers=layers,
        tiles=tiles,
        validation=validation,
        generation_time=elapsed,
    )


def generate_tactical_map(
    width: int,
    height: int,
    context: Context,
    seed: LayeredSeed | Seed | int | str,
    *,
    config: GeneratorConfig | None = None,
) -> TacticalMapResult:
    return asyncio.run(generate_tactical_map_async(width, height, context, seed, config=config))


def generate_with_defaults(width: int, height: int, seed: Seed | int | str | None = None) -> TacticalMapResult:
    """Generate a map whose context is derived from the seed itself."""

    base = layered(DEFAULT_SEED if seed is None else seed).base
    return generate_tactical_map(width, height, Context.from_seed(base), base)
