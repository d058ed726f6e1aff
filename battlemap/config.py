"""Configuration models for battlemap generation."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import math
from typing import Any

from battlemap.errors import ValidationError
from battlemap.grid import piecewise

MIN_DIMENSION = 10
MAX_DIMENSION = 200
DEFAULT_WIDTH = 40
DEFAULT_HEIGHT = 40
TILE_SIZE_FT = 5.0

_KNOTS = (0.5, 1.0, 2.0)

# Forestry reference values
BASAL_AREA_SPARSE = 50.0
BASAL_AREA_MODERATE = 100.0
BASAL_AREA_DENSE = 150.0
BASAL_AREA_MAXIMUM = 200.0
TILE_AREA_FT2 = TILE_SIZE_FT * TILE_SIZE_FT
SQ_FT_PER_ACRE = 43_560.0
TILES_PER_ACRE = SQ_FT_PER_ACRE / TILE_AREA_FT2


def _check_range(name: str, value: float, low: float, high: float) -> None:
    if not low <= value <= high:
        raise ValidationError(f"{name} must be in [{low}, {high}], got {value}", code="CONFIG_OUT_OF_RANGE")


@dataclass(frozen=True)
class TopographyConfig:
    """Terrain roughness controls; both knobs are in ``[0.5, 2.0]``."""

    ruggedness: float = 1.0
    variance: float = 1.0

    def __post_init__(self) -> None:
        _check_range("ruggedness", self.ruggedness, 0.5, 2.0)
        _check_range("variance", self.variance, 0.5, 2.0)

    @property
    def octaves(self) -> int:
        return int(round(piecewise(self.ruggedness, _KNOTS, (2.0, 4.0, 6.0))))

    @property
    def persistence(self) -> float:
        return piecewise(self.ruggedness, _KNOTS, (0.4, 0.6, 0.8))

    @property
    def relief(self) -> float:
        return piecewise(self.ruggedness, _KNOTS, (0.2, 0.4, 0.8))


@dataclass(frozen=True)
class HydrologyConfig:
    """Water abundance in ``[0.5, 2.0]``; 1.0 is typical for the context."""

    abundance: float = 1.0

    def __post_init__(self) -> None:
        _check_range("abundance", self.abundance, 0.5, 2.0)

    @property
    def stream_threshold_multiplier(self) -> float:
        return max(0.5, 2.0 - self.abundance)

    @property
    def spring_threshold(self) -> float:
        return piecewise(self.abundance, _KNOTS, (0.95, 0.80, 0.65))

    @property
    def pool_threshold(self) -> float:
        return piecewise(self.abundance, _KNOTS, (0.85, 0.70, 0.55))

    @property
    def spring_slope_bonus(self) -> float:
        return 0.3 * self.abundance


@dataclass(frozen=True)
class VegetationConfig:
    """Forest density in ``[0, 2]`` plus the forestry survey parameters.

    Density maps onto a target basal area (trunk cross-section per acre) between the
    sparse and maximum reference values; the per-tile tree probability follows from the
    average trunk diameter.
    """

    density: float = 1.0
    target_basal_area: float | None = None
    avg_tree_diameter: float = 1.0
    survey_radius: int = 3

    def __post_init__(self) -> None:
        _check_range("density", self.density, 0.0, 2.0)
        if self.target_basal_area is not None and self.target_basal_area < 0:
            raise ValidationError("target_basal_area must be >= 0", code="CONFIG_OUT_OF_RANGE")
        if self.avg_tree_diameter <= 0:
            raise ValidationError("avg_tree_diameter must be > 0", code="CONFIG_OUT_OF_RANGE")
        if self.survey_radius < 1:
            raise ValidationError("survey_radius must be >= 1", code="CONFIG_OUT_OF_RANGE")

    @property
    def basal_area(self) -> float:
        if self.target_basal_area is not None:
            return float(self.target_basal_area)
        return BASAL_AREA_SPARSE + (BASAL_AREA_MAXIMUM - BASAL_AREA_SPARSE) * min(self.density / 2.0, 1.0)

    @property
    def tree_probability(self) -> float:
        if self.density <= 0.0:
            return 0.0
        trunk_area = math.pi * (self.avg_tree_diameter / 2.0) ** 2
        trees_per_acre = self.basal_area / trunk_area
        return min(1.0, trees_per_acre / TILES_PER_ACRE)

    @property
    def understory_probability(self) -> float:
        return 0.4 * min(self.density, 2.0)

    @property
    def ground_cover_density(self) -> float:
        return 0.8 * min(self.density, 1.5)


def classify_density(basal_area: float) -> str:
    if basal_area >= BASAL_AREA_DENSE:
        return "dense"
    if basal_area >= BASAL_AREA_MODERATE:
        return "moderate"
    if basal_area >= BASAL_AREA_SPARSE:
        return "sparse"
    return "none"


@dataclass(frozen=True)
class ValidationThresholds:
    """Limits used by the natural-law validator."""

    hard_rock_hardness: float = 6.0
    hard_rock_max_soil_ft: float = 3.0
    max_slope_deg: float = 90.0
    soft_ridge_hardness: float = 3.0
    uphill_tolerance_ft: float = 0.1
    spring_min_elevation_ft: float = 10.0
    max_stream_order: int = 10
    min_stream_accumulation: float = 5.0
    dense_forest_max_slope_deg: float = 60.0
    max_canopy_height_ft: float = 200.0
    deep_water_vegetation_ft: float = 2.0
    building_max_slope_deg: float = 30.0


@dataclass(frozen=True)
class GeneratorConfig:
    """Primary generation configuration."""

    min_dimension: int = MIN_DIMENSION
    max_dimension: int = MAX_DIMENSION
    topography: TopographyConfig = field(default_factory=TopographyConfig)
    hydrology: HydrologyConfig = field(default_factory=HydrologyConfig)
    vegetation: VegetationConfig = field(default_factory=VegetationConfig)
    validation: ValidationThresholds = field(default_factory=ValidationThresholds)

    def check_dimensions(self, width: int, height: int) -> None:
        for name, value in (("width", width), ("height", height)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{name} must be an integer, got {value!r}", code="MAP_INVALID_DIMENSIONS")
            if not self.min_dimension <= value <= self.max_dimension:
                raise ValidationError(
                    f"{name} must be between {self.min_dimension} and {self.max_dimension}, got {value}",
                    code="MAP_INVALID_DIMENSIONS",
                )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
