"""Tactical battlemap generation package."""

from .config import DEFAULT_HEIGHT, DEFAULT_WIDTH, GeneratorConfig
from .context import Context
from .errors import BattlemapError, LayerGenerationFailed, UnknownLayerError, ValidationError
from .pipeline import (
    TacticalMapLayers,
    TacticalMapResult,
    generate_tactical_map,
    generate_tactical_map_async,
    generate_with_defaults,
)
from .seed import LayeredSeed, Seed

__all__ = [
    "DEFAULT_WIDTH",
    "DEFAULT_HEIGHT",
    "GeneratorConfig",
    "Context",
    "Seed",
    "LayeredSeed",
    "BattlemapError",
    "ValidationError",
    "UnknownLayerError",
    "LayerGenerationFailed",
    "TacticalMapLayers",
    "TacticalMapResult",
    "generate_tactical_map",
    "generate_tactical_map_async",
    "generate_with_defaults",
]
