"""Artifact writers for generated battlemaps."""

from __future__ import annotations

from contextlib import contextmanager
import json
from pathlib import Path
import shutil
import tempfile
from typing import Any, Iterator

import numpy as np
from PIL import Image

from battlemap.seed import Seed


def map_output_dir(out_root: str | Path, seed: Seed, width: int, height: int, *, overwrite: bool) -> Path:
    """``<out_root>/<seed>/<width>x<height>``, created if missing.

    A non-empty directory is only reused with ``overwrite``.
    """

    target = Path(out_root) / str(seed.value) / f"{width}x{height}"
    if target.is_dir() and any(target.iterdir()) and not overwrite:
        raise FileExistsError(f"{target} already holds a battlemap; pass --overwrite to replace it")
    target.mkdir(parents=True, exist_ok=True)
    return target


@contextmanager
def staged_output(target: Path, *, out_root: str | Path) -> Iterator[Path]:
    """Yield a scratch directory whose files replace ``target``'s on clean exit."""

    root = Path(out_root).resolve()
    target_r = target.resolve()
    target_r.relative_to(root)

    stage = Path(tempfile.mkdtemp(prefix=".staging-", dir=str(target_r.parent)))
    try:
        yield stage
        for child in target_r.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
        for child in stage.iterdir():
            shutil.move(str(child), str(target_r / child.name))
    finally:
        shutil.rmtree(stage, ignore_errors=True)


def write_elevation(path: str | Path, elevation_ft: np.ndarray) -> None:
    np.save(Path(path), np.asarray(elevation_ft, dtype=np.float32), allow_pickle=False)


def write_png(path: str | Path, raster: np.ndarray) -> None:
    """Save a (h, w) grey or (h, w, 3) colour uint8 raster."""

    if raster.ndim not in (2, 3) or (raster.ndim == 3 and raster.shape[2] != 3):
        raise ValueError(f"cannot write raster of shape {raster.shape} as PNG")
    Image.fromarray(raster.astype(np.uint8)).save(Path(path))


def write_meta(path: str | Path, payload: dict[str, Any]) -> None:
    Path(path).write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
