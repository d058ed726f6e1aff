from __future__ import annotations

import numpy as np

from battlemap.config import TopographyConfig
from battlemap.context import Context
from battlemap.geology import generate_geology
from battlemap.topography import ASPECT_NAMES, FLAT, generate_topography


def _topography(seed: int | str, ctx: Context, config: TopographyConfig | None = None):
    geo = generate_geology(40, 40, ctx, seed)
    return generate_topography(geo, ctx, seed, config=config)


def test_slope_and_elevation_bounds() -> None:
    ctx = Context("mountain", "alpine", "stream", "wilderness", "summer")
    for seed in (1, 99, "crag"):
        topo = _topography(seed, ctx)
        assert topo.elevation.shape == (40, 40)
        assert float(topo.slope.min()) >= 0.0
        assert float(topo.slope.max()) <= 90.0
        assert topo.min_elevation == 0.0
        assert topo.min_elevation <= topo.max_elevation
        assert np.isfinite(topo.elevation).all()


def test_ridges_never_drain() -> None:
    ctx = Context("forest", "highland", "river", "settled", "autumn")
    topo = _topography("deterministic-test", ctx)

    assert not np.any(topo.is_ridge & topo.is_drainage)
    assert not np.any(topo.is_ridge & topo.is_valley)
    edges = np.zeros((40, 40), dtype=bool)
    edges[0, :] = edges[-1, :] = edges[:, 0] = edges[:, -1] = True
    assert not np.any(topo.is_ridge & edges)


def test_topography_is_deterministic() -> None:
    ctx = Context("plains", "foothills", "stream", "rural", "spring")
    a = _topography(321, ctx)
    b = _topography(321, ctx)

    assert np.array_equal(a.elevation, b.elevation)
    assert np.array_equal(a.aspect, b.aspect)
    assert a.max_elevation == b.max_elevation


def test_ruggedness_raises_relief() -> None:
    ctx = Context("mountain", "highland", "stream", "wilderness", "summer")
    smooth = _topography(7, ctx, TopographyConfig(ruggedness=0.5))
    rough = _topography(7, ctx, TopographyConfig(ruggedness=2.0))

    assert rough.max_relief > smooth.max_relief
    assert rough.average_slope > smooth.average_slope


def test_aspect_names() -> None:
    ctx = Context("forest", "lowland", "stream", "wilderness", "summer")
    topo = _topography(5, ctx)

    values = set(np.unique(topo.aspect).tolist())
    assert values <= set(range(-1, 8))
    for y, x in ((3, 3), (20, 20), (35, 10)):
        name = topo.aspect_name(x, y)
        if topo.aspect[y, x] == FLAT:
            assert name == "FLAT"
        else:
            assert name in ASPECT_NAMES
