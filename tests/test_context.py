from __future__ import annotations

import pytest

from battlemap.context import (
    Biome,
    Context,
    DevelopmentLevel,
    ElevationZone,
    HydrologyType,
    Season,
    context_errors,
)
from battlemap.errors import ValidationError
from battlemap.seed import Seed


def _context(biome: str, hydrology: str, elevation: str = "lowland") -> Context:
    return Context(biome, elevation, hydrology, "wilderness", "summer")


def test_incompatible_contexts_are_rejected() -> None:
    for biome, hydrology in (("desert", "river"), ("desert", "lake"), ("coastal", "arid"), ("swamp", "stream")):
        with pytest.raises(ValidationError) as exc:
            _context(biome, hydrology)
        assert exc.value.code == "CONTEXT_INCOMPATIBLE"

    with pytest.raises(ValidationError) as exc:
        _context("underground", "stream", elevation="alpine")
    assert exc.value.code == "CONTEXT_INCOMPATIBLE"


def test_unknown_enum_value_is_rejected() -> None:
    with pytest.raises(ValidationError) as exc:
        _context("jungle", "stream")
    assert exc.value.code == "CONTEXT_INVALID_VALUE"


def test_strings_are_coerced_to_enums() -> None:
    ctx = Context("forest", "highland", "river", "settled", "autumn")

    assert ctx.biome is Biome.FOREST
    assert ctx.elevation is ElevationZone.HIGHLAND
    assert ctx.hydrology is HydrologyType.RIVER
    assert ctx.development is DevelopmentLevel.SETTLED
    assert ctx.season is Season.AUTUMN
    assert context_errors(ctx.biome, ctx.elevation, ctx.hydrology) == []


def test_from_seed_is_deterministic_and_always_valid() -> None:
    for value in (1, 42, 3, 5, 4, 6, 1_234_567, 987_654_321, 2_147_483_647):
        a = Context.from_seed(Seed(value))
        b = Context.from_seed(Seed(value))
        assert a == b
        assert context_errors(a.biome, a.elevation, a.hydrology) == []


def test_from_seed_repairs_coastal_and_swamp() -> None:
    coastal = Context.from_seed(Seed(5))
    swamp = Context.from_seed(Seed(3))

    assert coastal.biome is Biome.COASTAL
    assert coastal.hydrology is HydrologyType.COASTAL
    assert swamp.biome is Biome.SWAMP
    assert swamp.hydrology is HydrologyType.WETLAND


def test_derived_predicates() -> None:
    winter_peak = Context("mountain", "alpine", "stream", "wilderness", "winter")
    summer_forest = Context("forest", "lowland", "stream", "rural", "summer")

    assert winter_peak.should_have_snow
    assert winter_peak.should_have_cliffs
    assert not summer_forest.should_have_snow
    assert summer_forest.should_have_dense_vegetation
    assert summer_forest.visibility_range == 15
    assert Context("underground", "lowland", "arid", "wilderness", "spring").visibility_range == 10
    assert Context("desert", "lowland", "arid", "wilderness", "spring").visibility_range == 50


def test_describe_and_features() -> None:
    ctx = Context("forest", "highland", "river", "settled", "autumn").with_features(has_bridge=True)

    assert ctx.required_features.has_bridge
    assert ctx.describe() == "autumn highland forest with river (settled) featuring bridge"
    assert ctx.to_dict()["required_features"] == ["bridge"]
