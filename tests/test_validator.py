from __future__ import annotations

from dataclasses import replace

import numpy as np

from battlemap.config import ValidationThresholds
from battlemap.pipeline import TacticalMapResult
from battlemap.validator import NaturalLawValidator, Severity, ViolationType


def test_generated_map_obeys_natural_laws(scenario_map: TacticalMapResult) -> None:
    result = NaturalLawValidator().validate(scenario_map.layers)

    assert result.is_valid
    assert not result.by_severity(Severity.ERROR)
    assert not result.by_severity(Severity.CRITICAL)
    assert result.summary == scenario_map.validation.summary


def test_bad_slope_is_an_error(scenario_map: TacticalMapResult) -> None:
    topo = scenario_map.layers.topography
    broken = replace(scenario_map.layers, topography=replace(topo, slope=np.full(topo.slope.shape, 95.0, dtype=np.float32)))

    result = NaturalLawValidator().validate(broken)
    assert not result.is_valid
    slope_errors = [v for v in result.by_severity(Severity.ERROR) if v.violation_type is ViolationType.TOPOGRAPHICAL]
    assert slope_errors
    assert slope_errors[0].count == topo.slope.size
    assert "errors" in result.summary


def test_inverted_elevation_range_is_critical(scenario_map: TacticalMapResult) -> None:
    topo = scenario_map.layers.topography
    broken = replace(scenario_map.layers, topography=replace(topo, min_elevation=10.0, max_elevation=1.0))

    result = NaturalLawValidator().validate(broken)
    assert not result.is_valid
    assert result.by_severity(Severity.CRITICAL)


def test_dimension_mismatch_is_reported_not_raised(scenario_map: TacticalMapResult) -> None:
    veg = scenario_map.layers.vegetation
    broken = replace(scenario_map.layers, vegetation=replace(veg, canopy_height=np.zeros((3, 3), dtype=np.float32)))

    result = NaturalLawValidator().validate(broken)
    assert not result.is_valid
    critical = result.by_severity(Severity.CRITICAL)
    assert len(critical) == 1
    assert critical[0].violation_type is ViolationType.CONSISTENCY
    assert "vegetation.canopy_height" in critical[0].message
    assert result.summary == "Validation found 1 critical, 0 errors, 0 warnings"


def test_thresholds_are_configurable(scenario_map: TacticalMapResult) -> None:
    strict = ValidationThresholds(max_canopy_height_ft=0.0)
    result = NaturalLawValidator(strict).validate(scenario_map.layers)

    if scenario_map.layers.vegetation.canopy_height.max() > 0.0:
        assert not result.is_valid
        assert any(v.violation_type is ViolationType.ECOLOGICAL for v in result.violations)
    else:
        assert result.is_valid

