from __future__ import annotations

import numpy as np
import pytest

from battlemap.noise import NoiseGenerator, centered


def test_noise_is_deterministic_and_bounded() -> None:
    a = NoiseGenerator(1234).grid(64, 48, scale=0.1)
    b = NoiseGenerator(1234).grid(64, 48, scale=0.1)

    assert a.shape == (48, 64)
    assert np.array_equal(a, b)
    assert float(a.min()) >= 0.0
    assert float(a.max()) <= 1.0


def test_point_and_grid_sampling_agree() -> None:
    gen = NoiseGenerator(77)
    grid = gen.grid(10, 10, scale=0.3)

    assert gen.generate_at(4 * 0.3, 7 * 0.3) == pytest.approx(float(grid[7, 4]))


def test_different_seeds_are_uncorrelated() -> None:
    a = NoiseGenerator(1).grid(128, 128, scale=0.37)
    b = NoiseGenerator(2).grid(128, 128, scale=0.37)

    corr = float(np.corrcoef(a.ravel(), b.ravel())[0, 1])
    assert abs(corr) < 0.2


def test_noise_is_smooth_between_lattice_points() -> None:
    gen = NoiseGenerator(5)
    xs = np.linspace(0.0, 1.0, 101)
    values = gen.sample(xs, np.zeros_like(xs))

    assert values[0] == pytest.approx(gen.generate_at(0.0, 0.0))
    assert values[-1] == pytest.approx(gen.generate_at(1.0, 0.0))
    assert float(np.max(np.abs(np.diff(values)))) < 0.05


def test_octaves_stay_normalised() -> None:
    gen = NoiseGenerator(9)
    grid = gen.octave_grid(32, 32, scale=0.05, octaves=5, persistence=0.6)

    assert float(grid.min()) >= 0.0
    assert float(grid.max()) <= 1.0
    with pytest.raises(ValueError):
        gen.generate_octaves(0.0, 0.0, 0)


def test_range_and_centering() -> None:
    gen = NoiseGenerator(3)
    value = gen.generate_in_range(2.5, 1.5, 10.0, 20.0)

    assert 10.0 <= value <= 20.0
    assert np.array_equal(centered(np.array([0.0, 0.5, 1.0])), np.array([-1.0, 0.0, 1.0]))
