from __future__ import annotations

import asyncio
import logging

import pytest

from battlemap import pipeline
from battlemap.context import Context
from battlemap.errors import LayerGenerationFailed, ValidationError
from battlemap.pipeline import generate_tactical_map, generate_tactical_map_async, generate_with_defaults
from battlemap.seed import Seed


CTX = Context("plains", "lowland", "stream", "rural", "summer")


@pytest.mark.asyncio
async def test_async_entry_point_is_repeatable() -> None:
    a = await generate_tactical_map_async(20, 20, CTX, 555)
    b = await generate_tactical_map_async(20, 20, CTX, 555)

    assert a.seed == b.seed == Seed(555)
    assert (a.tiles.terrain == b.tiles.terrain).all()
    assert a.generation_time >= 0.0


def test_invalid_dimensions_fail_before_any_layer(monkeypatch) -> None:
    calls: list[str] = []
    monkeypatch.setattr(pipeline, "generate_geology", lambda *a, **k: calls.append("geology"))

    with pytest.raises(ValidationError) as exc:
        generate_tactical_map(201, 40, CTX, 1)
    assert exc.value.code == "MAP_INVALID_DIMENSIONS"
    assert calls == []


def test_seed_errors_propagate() -> None:
    with pytest.raises(ValidationError) as exc:
        generate_tactical_map(20, 20, CTX, 0)
    assert exc.value.code == "SEED_OUT_OF_RANGE"


def test_layer_failure_is_wrapped(monkeypatch, caplog) -> None:
    def boom(*args, **kwargs):
        raise ArithmeticError("negative rainfall")

    monkeypatch.setattr(pipeline, "generate_hydrology", boom)

    with caplog.at_level(logging.ERROR, logger="battlemap.pipeline"):
        with pytest.raises(LayerGenerationFailed) as exc:
            generate_tactical_map(20, 20, CTX, 7)

    assert exc.value.layer == "hydrology"
    assert exc.value.code == "LAYER_GENERATION_FAILED"
    assert isinstance(exc.value.__cause__, ArithmeticError)
    assert exc.value.cause is exc.value.__cause__
    assert "hydrology layer failed" in caplog.text


def test_defaults_derive_context_from_seed() -> None:
    result = generate_with_defaults(20, 20, 5)

    assert result.context == Context.from_seed(Seed(5))
    assert result.seed == Seed(5)
    assert generate_with_defaults(20, 20).seed == Seed(42)


def test_summary_reports_layer_totals(scenario_map) -> None:
    summary = scenario_map.summary()

    assert summary["width"] == 40
    assert summary["seed"] == Seed.from_string("deterministic-test").value
    assert summary["context"]["biome"] == "forest"
    assert summary["trees"] == scenario_map.layers.vegetation.total_trees
    assert sum(summary["terrain"].values()) == 1600


@pytest.mark.asyncio
async def test_independent_requests_run_concurrently() -> None:
    first, second = await asyncio.gather(
        generate_tactical_map_async(20, 20, CTX, 11),
        generate_tactical_map_async(20, 20, CTX, 12),
    )
    alone = await generate_tactical_map_async(20, 20, CTX, 11)

    assert (first.layers.topography.elevation == alone.layers.topography.elevation).all()
    assert first.seed != second.seed
