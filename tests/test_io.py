from __future__ import annotations

import numpy as np
from PIL import Image
import pytest

from battlemap.io import map_output_dir, staged_output, write_png
from battlemap.seed import Seed


def test_staged_output_replaces_previous_files(tmp_path) -> None:
    out_root = tmp_path / "out"
    target = map_output_dir(out_root, Seed.from_number(5), 10, 12, overwrite=False)
    assert target == out_root / "5" / "10x12"

    (target / "stale.txt").write_text("old", encoding="utf-8")
    with staged_output(target, out_root=out_root) as stage:
        write_png(stage / "shade.png", np.zeros((12, 10), dtype=np.uint8))

    assert sorted(p.name for p in target.iterdir()) == ["shade.png"]
    assert [p.name for p in target.parent.iterdir()] == ["10x12"]
    with pytest.raises(FileExistsError):
        map_output_dir(out_root, Seed.from_number(5), 10, 12, overwrite=False)


def test_failed_stage_leaves_target_untouched(tmp_path) -> None:
    target = map_output_dir(tmp_path, Seed.from_number(9), 10, 10, overwrite=False)
    (target / "keep.txt").write_text("kept", encoding="utf-8")

    with pytest.raises(RuntimeError):
        with staged_output(target, out_root=tmp_path) as stage:
            (stage / "partial.npy").write_bytes(b"")
            raise RuntimeError("boom")

    assert [p.name for p in target.iterdir()] == ["keep.txt"]
    assert [p.name for p in target.parent.iterdir()] == ["10x10"]


def test_write_png_modes(tmp_path) -> None:
    write_png(tmp_path / "grey.png", np.full((4, 6), 128, dtype=np.uint8))
    write_png(tmp_path / "rgb.png", np.zeros((4, 6, 3), dtype=np.uint8))

    assert Image.open(tmp_path / "grey.png").mode == "L"
    assert Image.open(tmp_path / "rgb.png").mode == "RGB"
    with pytest.raises(ValueError):
        write_png(tmp_path / "bad.png", np.zeros((4, 6, 4), dtype=np.uint8))
