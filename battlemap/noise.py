"""Seeded value noise used by every generation layer."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

_M32 = np.uint64(0xFFFFFFFF)
_PX = np.uint64(374761393)
_PY = np.uint64(668265263)
_PS = np.uint64(2246822519)
_MIX1 = np.uint64(1274126177)
_MIX2 = np.uint64(2654435761)
_INV_2_32 = 1.0 / 4294967296.0


def _smoothstep(t: np.ndarray) -> np.ndarray:
    return t * t * (3.0 - 2.0 * t)


def _seed_key(seed: int) -> np.uint64:
    # splitmix64 finaliser, truncated to 32 bits
    z = (int(seed) + 0x9E3779B97F4A7C15) & 0xFFFFFFFFFFFFFFFF
    z = ((z ^ (z >> 30)) * 0xBF58476D1CE4E5B9) & 0xFFFFFFFFFFFFFFFF
    z = ((z ^ (z >> 27)) * 0x94D049BB133111EB) & 0xFFFFFFFFFFFFFFFF
    z ^= z >> 31
    return np.uint64(z & 0xFFFFFFFF)


@dataclass(frozen=True)
class NoiseGenerator:
    """Smooth value noise in ``[0, 1]`` over an integer lattice hashed with the seed."""

    seed: int
    _key: np.uint64 = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_key", _seed_key(self.seed))

    def _lattice(self, ix: np.ndarray, iy: np.ndarray) -> np.ndarray:
        ux = (ix & 0xFFFFFFFF).astype(np.uint64)
        uy = (iy & 0xFFFFFFFF).astype(np.uint64)
        key = self._key
        with np.errstate(over="ignore"):
            h = (ux * _PX + uy * _PY + key * _PS) & _M32
            h ^= key
            h = ((h ^ (h >> np.uint64(13))) * _MIX1) & _M32
            h = ((h ^ (h >> np.uint64(16))) * _MIX2) & _M32
            h ^= h >> np.uint64(15)
        return h.astype(np.float64) * _INV_2_32

    def sample(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """Vectorised noise at continuous coordinates; inputs broadcast together."""

        x = np.asarray(xs, dtype=np.float64)
        y = np.asarray(ys, dtype=np.float64)
        x, y = np.broadcast_arrays(x, y)

        x0 = np.floor(x)
        y0 = np.floor(y)
        tx = _smoothstep(x - x0)
        ty = _smoothstep(y - y0)
        ix = x0.astype(np.int64)
        iy = y0.astype(np.int64)

        g00 = self._lattice(ix, iy)
        g10 = self._lattice(ix + 1, iy)
        g01 = self._lattice(ix, iy + 1)
        g11 = self._lattice(ix + 1, iy + 1)

        top = g00 * (1.0 - tx) + g10 * tx
        bottom = g01 * (1.0 - tx) + g11 * tx
        return top * (1.0 - ty) + bottom * ty

    def generate_at(self, x: float, y: float) -> float:
        return float(self.sample(np.array([x]), np.array([y]))[0])

    def generate_octaves(
        self,
        x: float | np.ndarray,
        y: float | np.ndarray,
        octaves: int,
        persistence: float = 0.5,
        lacunarity: float = 2.0,
    ) -> np.ndarray:
        """Fractal sum of ``octaves`` noise layers, normalised back to ``[0, 1]``."""

        if octaves < 1:
            raise ValueError("octaves must be >= 1")
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        total = np.zeros(np.broadcast(x, y).shape, dtype=np.float64)
        amplitude = 1.0
        frequency = 1.0
        norm = 0.0
        for octave in range(octaves):
            # per-octave offset keeps octaves from sharing lattice corners at the origin
            offset = 31.7 * octave
            total += amplitude * self.sample(x * frequency + offset, y * frequency - offset)
            norm += amplitude
            amplitude *= persistence
            frequency *= lacunarity
        return total / norm

    def generate_in_range(self, x: float, y: float, low: float, high: float) -> float:
        return low + (high - low) * self.generate_at(x, y)

    def grid(self, width: int, height: int, *, scale: float = 1.0) -> np.ndarray:
        """Noise sampled at ``(x * scale, y * scale)`` for every tile, shape ``(height, width)``."""

        xs, ys = _tile_coords(width, height)
        return self.sample(xs * scale, ys * scale)

    def octave_grid(
        self,
        width: int,
        height: int,
        *,
        scale: float,
        octaves: int,
        persistence: float = 0.5,
    ) -> np.ndarray:
        xs, ys = _tile_coords(width, height)
        return self.generate_octaves(xs * scale, ys * scale, octaves, persistence)


def _tile_coords(width: int, height: int) -> tuple[np.ndarray, np.ndarray]:
    if width <= 0 or height <= 0:
        raise ValueError("width and height must be positive")
    xs = np.arange(width, dtype=np.float64)[None, :]
    ys = np.arange(height, dtype=np.float64)[:, None]
    return np.broadcast_to(xs, (height, width)), np.broadcast_to(ys, (height, width))


def centered(values: np.ndarray) -> np.ndarray:
    """Map ``[0, 1]`` noise to ``[-1, 1]``."""

    return values * 2.0 - 1.0
