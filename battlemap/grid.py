"""Neighbourhood and raster helpers shared by the generation layers."""

from __future__ import annotations

import numpy as np
from scipy.ndimage import convolve

# (dy, dx) clockwise from north; the index is the stored D8 flow direction.
D8_OFFSETS: tuple[tuple[int, int], ...] = (
    (-1, 0),
    (-1, 1),
    (0, 1),
    (1, 1),
    (1, 0),
    (1, -1),
    (0, -1),
    (-1, -1),
)
D8_NAMES: tuple[str, ...] = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")
D4_OFFSETS: tuple[tuple[int, int], ...] = ((-1, 0), (0, 1), (1, 0), (0, -1))
SQRT2 = float(np.sqrt(2.0))

_RING8 = np.array([[1, 1, 1], [1, 0, 1], [1, 1, 1]], dtype=np.int32)
_RING4 = np.array([[0, 1, 0], [1, 0, 1], [0, 1, 0]], dtype=np.int32)


def step_length(dir_idx: int) -> float:
    if dir_idx < 0:
        return 0.0
    return SQRT2 if dir_idx % 2 == 1 else 1.0


def shift(field: np.ndarray, dy: int, dx: int, *, fill: float | int | bool) -> np.ndarray:
    """Return ``out`` with ``out[y + dy, x + dx] = field[y, x]`` and ``fill`` elsewhere."""

    out = np.full(field.shape, fill, dtype=field.dtype)

    y_src0 = max(0, -dy)
    y_src1 = field.shape[0] - max(0, dy)
    x_src0 = max(0, -dx)
    x_src1 = field.shape[1] - max(0, dx)

    y_dst0 = max(0, dy)
    y_dst1 = field.shape[0] - max(0, -dy)
    x_dst0 = max(0, dx)
    x_dst1 = field.shape[1] - max(0, -dx)

    if y_src1 > y_src0 and x_src1 > x_src0:
        out[y_dst0:y_dst1, x_dst0:x_dst1] = field[y_src0:y_src1, x_src0:x_src1]
    return out


def neighbor(field: np.ndarray, dy: int, dx: int, *, fill: float | int | bool) -> np.ndarray:
    """Value of the neighbour at ``(y + dy, x + dx)`` for every tile."""

    return shift(field, -dy, -dx, fill=fill)


def neighbor_index(h: int, w: int, dy: int, dx: int) -> np.ndarray:
    """Flat index of the neighbour at ``(y + dy, x + dx)``, or -1 off the grid."""

    grid = np.arange(h * w, dtype=np.int32).reshape((h, w))
    return neighbor(grid, dy, dx, fill=-1)


def count_neighbors(mask: np.ndarray, *, connectivity: int = 8) -> np.ndarray:
    """Number of set neighbours per tile; off-grid counts as unset."""

    kernel = _RING8 if connectivity == 8 else _RING4
    return convolve(mask.astype(np.int32), kernel, mode="constant", cval=0)


def interior_mask(h: int, w: int, margin: int = 1) -> np.ndarray:
    out = np.zeros((h, w), dtype=bool)
    if h > 2 * margin and w > 2 * margin:
        out[margin : h - margin, margin : w - margin] = True
    return out


def box_any(mask: np.ndarray, radius: int) -> np.ndarray:
    """True where any tile within a Chebyshev ``radius`` is set."""

    size = 2 * radius + 1
    kernel = np.ones((size, size), dtype=np.int32)
    return convolve(mask.astype(np.int32), kernel, mode="constant", cval=0) > 0


def connected_components(mask: np.ndarray) -> list[np.ndarray]:
    """8-connected components of ``mask`` as arrays of flat indices, in raster order."""

    h, w = mask.shape
    flat = mask.ravel()
    visited = np.zeros(flat.shape[0], dtype=np.uint8)
    components: list[np.ndarray] = []

    for start in np.flatnonzero(flat):
        if visited[start]:
            continue
        stack = [int(start)]
        visited[start] = 1
        comp: list[int] = []

        while stack:
            idx = stack.pop()
            comp.append(idx)
            y = idx // w
            x = idx - y * w

            for dy, dx in D8_OFFSETS:
                ny = y + dy
                nx = x + dx
                if ny < 0 or ny >= h or nx < 0 or nx >= w:
                    continue
                nidx = ny * w + nx
                if flat[nidx] and not visited[nidx]:
                    visited[nidx] = 1
                    stack.append(int(nidx))

        components.append(np.sort(np.array(comp, dtype=np.int32)))

    return components


def line_indices(y0: int, x0: int, y1: int, x1: int) -> tuple[np.ndarray, np.ndarray]:
    steps = int(max(abs(y1 - y0), abs(x1 - x0))) + 1
    ys = np.linspace(y0, y1, steps)
    xs = np.linspace(x0, x1, steps)
    return np.round(ys).astype(np.int32), np.round(xs).astype(np.int32)


def normalize01(values: np.ndarray) -> np.ndarray:
    vmin = float(np.min(values))
    vmax = float(np.max(values))
    scale = vmax - vmin
    if scale <= 1e-8:
        return np.zeros_like(values, dtype=np.float32)
    return np.clip((values - vmin) / scale, 0.0, 1.0).astype(np.float32)


def piecewise(value: float, knots: tuple[float, ...], values: tuple[float, ...]) -> float:
    """Piecewise-linear interpolation through ``(knots[i], values[i])``."""

    return float(np.interp(value, knots, values))


def freeze(*arrays: np.ndarray) -> None:
    for arr in arrays:
        arr.setflags(write=False)
