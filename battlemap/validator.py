"""Cross-layer checks that generated terrain obeys basic natural laws."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
import logging
from typing import TYPE_CHECKING, Callable

import numpy as np

from battlemap.config import ValidationThresholds
from battlemap.grid import D8_OFFSETS, box_any, neighbor_index
from battlemap.hydrology import Moisture
from battlemap.structures import StructureType
from battlemap.vegetation import SPECIES_CODES, Species, VegetationType

if TYPE_CHECKING:
    from battlemap.pipeline import TacticalMapLayers

logger = logging.getLogger(__name__)


class ViolationType(str, Enum):
    GEOLOGICAL = "geological"
    TOPOGRAPHICAL = "topographical"
    HYDROLOGICAL = "hydrological"
    ECOLOGICAL = "ecological"
    STRUCTURAL = "structural"
    CONSISTENCY = "consistency"


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Violation:
    violation_type: ViolationType
    severity: Severity
    message: str
    locations: tuple[tuple[int, int], ...] = ()

    @property
    def count(self) -> int:
        return len(self.locations)


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    violations: tuple[Violation, ...]
    summary: str

    def by_severity(self, severity: Severity) -> tuple[Violation, ...]:
        return tuple(v for v in self.violations if v.severity is severity)


def _locations(mask: np.ndarray) -> tuple[tuple[int, int], ...]:
    ys, xs = np.nonzero(mask)
    return tuple((int(x), int(y)) for y, x in zip(ys, xs))


class NaturalLawValidator:
    """Runs every check and collects violations; never raises for bad terrain."""

    def __init__(self, thresholds: ValidationThresholds | None = None) -> None:
        self.thresholds = thresholds or ValidationThresholds()

    def validate(self, layers: TacticalMapLayers) -> ValidationResult:
        violations: list[Violation] = []
        mismatch = self._check_dimensions(layers)
        if mismatch is not None:
            violations.append(mismatch)
        else:
            checks: tuple[Callable[[TacticalMapLayers], list[Violation]], ...] = (
                self._check_geology,
                self._check_topography,
                self._check_hydrology,
                self._check_vegetation,
                self._check_structures,
            )
            for check in checks:
                violations.extend(check(layers))

        critical = sum(1 for v in violations if v.severity is Severity.CRITICAL)
        errors = sum(1 for v in violations if v.severity is Severity.ERROR)
        warnings = sum(1 for v in violations if v.severity is Severity.WARNING)
        if violations:
            summary = f"Validation found {critical} critical, {errors} errors, {warnings} warnings"
        else:
            summary = "All natural laws validated successfully"
        logger.debug(summary)
        return ValidationResult(is_valid=critical == 0 and errors == 0, violations=tuple(violations), summary=summary)

    def _check_dimensions(self, layers: TacticalMapLayers) -> Violation | None:
        expected = layers.geology.hardness.shape
        bad: list[str] = []
        for layer_name in ("geology", "topography", "hydrology", "vegetation", "structures", "features"):
            layer = getattr(layers, layer_name, None)
            if layer is None:
                continue
            for f in fields(layer):
                value = getattr(layer, f.name)
                if isinstance(value, np.ndarray) and value.shape != expected:
                    bad.append(f"{layer_name}.{f.name}{value.shape}")
        if not bad:
            return None
        return Violation(
            ViolationType.CONSISTENCY,
            Severity.CRITICAL,
            f"Layer grids do not match {expected}: {', '.join(bad)}",
        )

    def _check_geology(self, layers: TacticalMapLayers) -> list[Violation]:
        t = self.thresholds
        geo, topo = layers.geology, layers.topography
        found: list[Violation] = []
        deep = (geo.hardness >= t.hard_rock_hardness) & (geo.soil_depth > t.hard_rock_max_soil_ft)
        if deep.any():
            found.append(
                Violation(ViolationType.GEOLOGICAL, Severity.WARNING, "Hard rock carries unusually deep soil", _locations(deep))
            )
        bad_fracture = (geo.fracture < 0.0) | (geo.fracture > 1.0)
        if bad_fracture.any():
            found.append(
                Violation(ViolationType.GEOLOGICAL, Severity.ERROR, "Fracture intensity outside [0, 1]", _locations(bad_fracture))
            )
        soft_ridge = topo.is_ridge & (geo.hardness < t.soft_ridge_hardness)
        if soft_ridge.any():
            found.append(
                Violation(ViolationType.GEOLOGICAL, Severity.WARNING, "Ridge formed in soft rock", _locations(soft_ridge))
            )
        return found

    def _check_topography(self, layers: TacticalMapLayers) -> list[Violation]:
        t = self.thresholds
        topo = layers.topography
        found: list[Violation] = []
        bad_slope = (topo.slope < 0.0) | (topo.slope > t.max_slope_deg) | ~np.isfinite(topo.slope)
        if bad_slope.any():
            found.append(
                Violation(ViolationType.TOPOGRAPHICAL, Severity.ERROR, "Slope outside valid range", _locations(bad_slope))
            )
        both = topo.is_ridge & topo.is_drainage
        if both.any():
            found.append(
                Violation(ViolationType.TOPOGRAPHICAL, Severity.ERROR, "Tile is both ridge and drainage", _locations(both))
            )
        if topo.min_elevation > topo.max_elevation:
            found.append(
                Violation(
                    ViolationType.TOPOGRAPHICAL,
                    Severity.CRITICAL,
                    f"Minimum elevation {topo.min_elevation} exceeds maximum {topo.max_elevation}",
                )
            )
        return found

    def _check_hydrology(self, layers: TacticalMapLayers) -> list[Violation]:
        t = self.thresholds
        topo, hydro = layers.topography, layers.hydrology
        h, w = topo.elevation.shape
        found: list[Violation] = []

        elevation = topo.elevation.astype(np.float64).ravel()
        direction = hydro.flow_direction.ravel()
        uphill = np.zeros(h * w, dtype=bool)
        for d, (dy, dx) in enumerate(D8_OFFSETS):
            sel = direction == d
            if not sel.any():
                continue
            dest = neighbor_index(h, w, dy, dx).ravel()
            valid = sel & (dest >= 0)
            src = np.nonzero(valid)[0]
            uphill[src] = elevation[dest[src]] > elevation[src] + t.uphill_tolerance_ft
        if uphill.any():
            found.append(
                Violation(
                    ViolationType.HYDROLOGICAL,
                    Severity.ERROR,
                    "Water flows uphill",
                    _locations(uphill.reshape(h, w)),
                )
            )

        low_spring = hydro.is_spring & (topo.elevation < t.spring_min_elevation_ft) & (topo.slope < 5.0)
        if low_spring.any():
            found.append(
                Violation(ViolationType.HYDROLOGICAL, Severity.WARNING, "Spring on low flat ground", _locations(low_spring))
            )
        bad_order = hydro.stream_order.astype(np.int64) > t.max_stream_order
        if bad_order.any():
            found.append(
                Violation(ViolationType.HYDROLOGICAL, Severity.ERROR, "Stream order out of range", _locations(bad_order))
            )
        weak = hydro.is_stream & (hydro.flow_accumulation < t.min_stream_accumulation)
        if weak.any():
            found.append(
                Violation(ViolationType.HYDROLOGICAL, Severity.WARNING, "Stream with little upstream flow", _locations(weak))
            )
        return found

    def _check_vegetation(self, layers: TacticalMapLayers) -> list[Violation]:
        t = self.thresholds
        topo, hydro, veg = layers.topography, layers.hydrology, layers.vegetation
        found: list[Violation] = []
        steep_forest = (veg.vegetation_type == VegetationType.DENSE_TREES) & (topo.slope > t.dense_forest_max_slope_deg)
        if steep_forest.any():
            found.append(
                Violation(ViolationType.ECOLOGICAL, Severity.WARNING, "Dense forest on very steep slope", _locations(steep_forest))
            )
        bad_canopy = (veg.canopy_height < 0.0) | (veg.canopy_height > t.max_canopy_height_ft)
        if bad_canopy.any():
            found.append(
                Violation(ViolationType.ECOLOGICAL, Severity.ERROR, "Canopy height out of bounds", _locations(bad_canopy))
            )
        willow = veg.dominant_species == SPECIES_CODES.index(Species.WILLOW)
        dry_willow = willow & ~box_any(hydro.is_water, 2) & (hydro.moisture < Moisture.WET)
        if dry_willow.any():
            found.append(
                Violation(ViolationType.ECOLOGICAL, Severity.WARNING, "Wetland vegetation far from water", _locations(dry_willow))
            )
        drowned = (hydro.water_depth > t.deep_water_vegetation_ft) & (veg.vegetation_type != VegetationType.NONE)
        if drowned.any():
            found.append(
                Violation(ViolationType.ECOLOGICAL, Severity.WARNING, "Vegetation growing in deep water", _locations(drowned))
            )
        return found

    def _check_structures(self, layers: TacticalMapLayers) -> list[Violation]:
        t = self.thresholds
        topo, hydro, struct = layers.topography, layers.hydrology, layers.structures
        found: list[Violation] = []
        steep = np.zeros(topo.slope.shape, dtype=bool)
        for building in struct.buildings:
            x, y = building.center
            if topo.slope[y, x] > t.building_max_slope_deg:
                steep[y, x] = True
        if steep.any():
            found.append(
                Violation(ViolationType.STRUCTURAL, Severity.WARNING, "Building on steep slope", _locations(steep))
            )
        water = hydro.is_water
        bridge = struct.is_type(StructureType.BRIDGE)
        flooded = struct.has_structure & water & ~bridge
        if flooded.any():
            found.append(
                Violation(ViolationType.STRUCTURAL, Severity.ERROR, "Structure placed in water", _locations(flooded))
            )
        dry_bridge = bridge & ~water
        if dry_bridge.any():
            found.append(
                Violation(ViolationType.STRUCTURAL, Severity.WARNING, "Bridge not over water", _locations(dry_bridge))
            )
        return found
