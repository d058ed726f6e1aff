from __future__ import annotations

import numpy as np
import pytest

from battlemap.context import Context
from battlemap.features import (
    FEATURE_TYPES,
    HAZARD_LEVELS,
    FeatureType,
    HazardLevel,
    Interaction,
    generate_features,
)
from battlemap.pipeline import TacticalMapResult, generate_tactical_map


def test_feature_grids_are_consistent(scenario_map: TacticalMapResult) -> None:
    features = scenario_map.layers.features
    assert features is not None

    marked = features.feature_type >= 0
    assert marked.sum() == len(features.descriptions)
    for (x, y), text in features.descriptions.items():
        assert marked[y, x]
        assert text
    assert np.all(features.visibility[marked] >= 0)
    assert np.all(features.interaction[marked] >= 0)
    assert np.all(features.visibility[~marked] == -1)
    assert float(features.resource_value.min()) >= 0.0


def test_feature_layer_is_read_only(scenario_map: TacticalMapResult) -> None:
    features = scenario_map.layers.features

    assert not features.feature_type.flags.writeable
    with pytest.raises(TypeError):
        features.descriptions[(0, 0)] = "graffiti"


def test_hazards_stay_off_structures(scenario_map: TacticalMapResult) -> None:
    features = scenario_map.layers.features
    struct = scenario_map.layers.structures

    for hazard in features.hazards:
        assert not struct.has_structure[hazard.y, hazard.x]
        assert hazard.level is not HazardLevel.NONE
        assert hazard.radius >= 1
    for resource in features.resources:
        assert not struct.has_structure[resource.y, resource.x]
        assert resource.quantity >= 1
        assert 0.0 <= resource.quality <= 1.0


def test_landmarks_override_hazards_and_resources(scenario_map: TacticalMapResult) -> None:
    features = scenario_map.layers.features

    for landmark in features.landmarks:
        assert features.feature_at(landmark.x, landmark.y) is not None
        assert features.interaction[landmark.y, landmark.x] == Interaction.INVESTIGATE.code
    hazard_kinds = {h.feature_type for h in features.hazards}
    landmark_tiles = {(lm.x, lm.y) for lm in features.landmarks}
    for hazard in features.hazards:
        if (hazard.x, hazard.y) in landmark_tiles:
            continue
        assert features.feature_at(hazard.x, hazard.y) in hazard_kinds
        assert features.hazard_level[hazard.y, hazard.x] >= HazardLevel.MINOR.code


def test_seasonal_resources() -> None:
    winter = generate_tactical_map(40, 40, Context("forest", "lowland", "stream", "rural", "winter"), 808)
    summer = generate_tactical_map(40, 40, Context("forest", "lowland", "stream", "rural", "summer"), 808)

    winter_kinds = {r.feature_type for r in winter.layers.features.resources}
    summer_kinds = {r.feature_type for r in summer.layers.features.resources}
    assert FeatureType.BERRIES not in winter_kinds
    assert FeatureType.MUSHROOMS not in winter_kinds
    assert FeatureType.MUSHROOMS not in summer_kinds
    assert FeatureType.INSECT_NEST not in {h.feature_type for h in winter.layers.features.hazards}


def test_wilderness_has_no_battlefield_or_vantage() -> None:
    ctx = Context("mountain", "highland", "stream", "wilderness", "summer")
    result = generate_tactical_map(40, 40, ctx, 99)
    kinds = {lm.feature_type for lm in result.layers.features.landmarks}
    tactical = {t.feature_type for t in result.layers.features.tactical}

    assert FeatureType.BATTLEFIELD_REMAINS not in kinds
    assert FeatureType.VANTAGE_POINT not in tactical
    assert FeatureType.AMBUSH_SITE not in tactical


def test_features_are_deterministic(scenario_map: TacticalMapResult, scenario_context: Context) -> None:
    again = generate_features(scenario_map.layers, scenario_context, "deterministic-test")
    features = scenario_map.layers.features

    assert again.hazards == features.hazards
    assert again.resources == features.resources
    assert again.landmarks == features.landmarks
    assert again.tactical == features.tactical
    assert np.array_equal(again.feature_type, features.feature_type)


def test_codes_round_trip() -> None:
    for ftype in FeatureType:
        assert FEATURE_TYPES[ftype.code] is ftype
    assert HAZARD_LEVELS[HazardLevel.SEVERE.code] is HazardLevel.SEVERE
