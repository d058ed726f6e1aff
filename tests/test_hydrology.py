from __future__ import annotations

import hashlib

import numpy as np

from battlemap.config import HydrologyConfig
from battlemap.context import Context
from battlemap.geology import generate_geology
from battlemap.grid import D8_OFFSETS
from battlemap.hydrology import (
    Moisture,
    accumulate_flow,
    compute_flow_d8,
    generate_hydrology,
    strahler_order,
)
from battlemap.topography import generate_topography


def _hash(arr: np.ndarray) -> str:
    return hashlib.sha256(arr.tobytes()).hexdigest()


def _layers(seed: int | str, ctx: Context, config: HydrologyConfig | None = None):
    geo = generate_geology(40, 40, ctx, seed)
    topo = generate_topography(geo, ctx, seed)
    return topo, generate_hydrology(topo, geo, ctx, seed, config=config)


def test_flow_d8_on_a_ramp() -> None:
    elevation = np.tile(np.arange(5, dtype=np.float32), (5, 1))
    flow_dir, dest = compute_flow_d8(elevation)

    assert np.all(flow_dir[:, 1:] == 6)
    assert np.all(flow_dir[:, 0] == -1)
    assert dest[7] == 6
    assert dest[5] == -1


def test_accumulation_and_strahler_on_a_confluence() -> None:
    elevation = np.array([[5.0, 5.0, 3.0, 2.0, 1.0]])
    dest = np.array([2, 2, 3, -1, -1])
    streams = np.array([[True, True, True, True, False]])

    accum = accumulate_flow(elevation, dest, np.ones((1, 5)))
    order = strahler_order(elevation, dest, streams)

    assert np.array_equal(accum, np.array([[1.0, 1.0, 3.0, 4.0, 1.0]]))
    assert np.array_equal(order, np.array([[1, 1, 2, 2, 0]], dtype=np.uint8))


def test_water_flows_downhill() -> None:
    ctx = Context("forest", "highland", "river", "settled", "autumn")
    topo, hydro = _layers("deterministic-test", ctx)
    h, w = topo.elevation.shape

    for y in range(h):
        for x in range(w):
            d = int(hydro.flow_direction[y, x])
            if d < 0:
                continue
            dy, dx = D8_OFFSETS[d]
            ny, nx = y + dy, x + dx
            assert 0 <= ny < h and 0 <= nx < w
            assert topo.elevation[ny, nx] <= topo.elevation[y, x] + 0.1


def test_stream_order_and_accumulation_bounds() -> None:
    ctx = Context("mountain", "foothills", "stream", "wilderness", "spring")
    for seed in (3, 17, "ford"):
        _, hydro = _layers(seed, ctx)
        assert int(hydro.stream_order.max()) <= 10
        assert float(hydro.flow_accumulation.min()) >= 1.0
        assert not np.any(hydro.stream_order[~hydro.is_stream])
        assert np.all(hydro.stream_order[hydro.is_stream] >= 1)
        assert 0.0 <= hydro.total_water_coverage <= 100.0


def test_wet_tiles_are_saturated() -> None:
    ctx = Context("plains", "lowland", "lake", "rural", "summer")
    _, hydro = _layers(2024, ctx)

    wet = hydro.water_depth > 0.0
    assert np.all(hydro.moisture[wet] == Moisture.SATURATED)
    assert not np.any(hydro.is_pool & hydro.is_stream)
    for x, y in hydro.springs:
        assert hydro.is_spring[y, x]
        assert hydro.moisture_at(x, y) >= Moisture.ARID


def test_arid_context_has_no_pools() -> None:
    ctx = Context("desert", "lowland", "arid", "wilderness", "summer")
    _, hydro = _layers(11, ctx)

    assert not hydro.is_pool.any()


def test_abundance_adds_water() -> None:
    ctx = Context("forest", "lowland", "stream", "wilderness", "spring")
    _, dry = _layers(8, ctx, HydrologyConfig(abundance=0.5))
    _, wet = _layers(8, ctx, HydrologyConfig(abundance=2.0))

    assert int(wet.is_stream.sum()) >= int(dry.is_stream.sum())


def test_hydrology_is_deterministic() -> None:
    ctx = Context("forest", "highland", "river", "settled", "autumn")
    _, a = _layers("deterministic-test", ctx)
    _, b = _layers("deterministic-test", ctx)

    assert _hash(a.flow_direction) == _hash(b.flow_direction)
    assert _hash(a.water_depth) == _hash(b.water_depth)
    assert a.streams == b.streams
    assert a.springs == b.springs
