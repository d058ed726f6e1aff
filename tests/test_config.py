from __future__ import annotations

import pytest

from battlemap.config import (
    GeneratorConfig,
    HydrologyConfig,
    TopographyConfig,
    VegetationConfig,
    classify_density,
)
from battlemap.errors import ValidationError


def test_dimension_bounds() -> None:
    cfg = GeneratorConfig()
    cfg.check_dimensions(10, 200)

    for width, height in ((9, 40), (40, 201), (0, 0)):
        with pytest.raises(ValidationError) as exc:
            cfg.check_dimensions(width, height)
        assert exc.value.code == "MAP_INVALID_DIMENSIONS"

    with pytest.raises(ValidationError):
        cfg.check_dimensions(40.0, 40)  # type: ignore[arg-type]


def test_out_of_range_knobs_are_rejected() -> None:
    for build in (
        lambda: TopographyConfig(ruggedness=0.4),
        lambda: TopographyConfig(variance=2.5),
        lambda: HydrologyConfig(abundance=3.0),
        lambda: VegetationConfig(density=-0.1),
        lambda: VegetationConfig(avg_tree_diameter=0.0),
    ):
        with pytest.raises(ValidationError) as exc:
            build()
        assert exc.value.code == "CONFIG_OUT_OF_RANGE"


def test_topography_knobs_scale_with_ruggedness() -> None:
    smooth = TopographyConfig(ruggedness=0.5)
    rough = TopographyConfig(ruggedness=2.0)

    assert smooth.octaves == 2
    assert rough.octaves == 6
    assert smooth.persistence < rough.persistence
    assert smooth.relief < rough.relief


def test_hydrology_abundance_lowers_thresholds() -> None:
    dry = HydrologyConfig(abundance=0.5)
    wet = HydrologyConfig(abundance=2.0)

    assert dry.stream_threshold_multiplier > wet.stream_threshold_multiplier
    assert dry.spring_threshold > wet.spring_threshold
    assert dry.pool_threshold > wet.pool_threshold


def test_tree_probability_is_monotonic_in_density() -> None:
    probabilities = [VegetationConfig(density=d).tree_probability for d in (0.0, 0.5, 1.0, 1.5, 2.0)]

    assert probabilities[0] == 0.0
    assert probabilities == sorted(probabilities)
    assert all(0.0 <= p <= 1.0 for p in probabilities)


@pytest.mark.parametrize("density, expected", [(0.0, 50.0), (1.0, 125.0), (2.0, 200.0)])
def test_density_spans_sparse_to_maximum_basal_area(density: float, expected: float) -> None:
    assert VegetationConfig(density=density).basal_area == pytest.approx(expected)


def test_basal_area_classes() -> None:
    assert VegetationConfig(target_basal_area=175.0).basal_area == 175.0
    assert classify_density(10.0) == "none"
    assert classify_density(60.0) == "sparse"
    assert classify_density(120.0) == "moderate"
    assert classify_density(150.0) == "dense"


def test_to_dict_nests_sub_configs() -> None:
    payload = GeneratorConfig(vegetation=VegetationConfig(density=0.5)).to_dict()

    assert payload["vegetation"]["density"] == 0.5
    assert payload["topography"]["ruggedness"] == 1.0
    assert payload["validation"]["max_slope_deg"] == 90.0
