from __future__ import annotations

import numpy as np

from battlemap.grid import (
    box_any,
    connected_components,
    count_neighbors,
    freeze,
    line_indices,
    neighbor,
    neighbor_index,
    normalize01,
    step_length,
)


def test_neighbor_reads_offset_tile() -> None:
    field = np.arange(9, dtype=np.int32).reshape(3, 3)

    east = neighbor(field, 0, 1, fill=-1)
    assert east.tolist() == [[1, 2, -1], [4, 5, -1], [7, 8, -1]]
    assert neighbor_index(3, 3, -1, 0)[0].tolist() == [-1, -1, -1]
    assert step_length(0) == 1.0
    assert step_length(1) > 1.4
    assert step_length(-1) == 0.0


def test_counts_and_boxes() -> None:
    mask = np.zeros((5, 5), dtype=bool)
    mask[2, 2] = True

    counts = count_neighbors(mask)
    assert counts[2, 2] == 0
    assert counts[1, 1] == 1
    assert count_neighbors(mask, connectivity=4)[1, 1] == 0
    assert box_any(mask, 1).sum() == 9
    assert box_any(mask, 2).all()


def test_connected_components_are_eight_connected() -> None:
    mask = np.array(
        [
            [1, 0, 0, 1],
            [0, 1, 0, 1],
            [0, 0, 0, 0],
            [1, 1, 0, 0],
        ],
        dtype=bool,
    )
    comps = connected_components(mask)

    assert [c.tolist() for c in comps] == [[0, 5], [3, 7], [12, 13]]


def test_line_and_normalise() -> None:
    ys, xs = line_indices(0, 0, 3, 6)
    assert (int(ys[0]), int(xs[0])) == (0, 0)
    assert (int(ys[-1]), int(xs[-1])) == (3, 6)
    assert len(xs) == 7

    assert normalize01(np.full((2, 2), 7.0)).max() == 0.0
    values = normalize01(np.array([2.0, 4.0, 6.0]))
    assert values.tolist() == [0.0, 0.5, 1.0]


def test_freeze_marks_arrays_read_only() -> None:
    a = np.zeros(3)
    freeze(a)
    assert not a.flags.writeable
