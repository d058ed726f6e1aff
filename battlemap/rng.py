"""Deterministic splittable RNG streams."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib

import numpy as np

_NAMESPACE = "battlemap-v1"

TERRAIN = "terrain"
TREES = "trees"
ROADS = "roads"
BUILDINGS = "buildings"
IDS = "ids"


def _normalize_seed(seed: int) -> int:
    return int(seed) & ((1 << 64) - 1)


def derive_seed(parent_seed: int, key: str, *, namespace: str = _NAMESPACE) -> int:
    """Derive a deterministic child seed from a parent seed and label."""

    payload = f"{namespace}:{_normalize_seed(parent_seed)}:{key}".encode("utf-8")
    digest = hashlib.blake2b(payload, digest_size=8, person=b"rngfork00").digest()
    return int.from_bytes(digest, byteorder="big", signed=False)


@dataclass(frozen=True)
class RngStream:
    """Immutable RNG stream that can be forked by deterministic stage names."""

    seed: int
    namespace: str = _NAMESPACE

    def fork(self, key: str) -> "RngStream":
        if not key:
            raise ValueError("fork key must be non-empty")
        return RngStream(derive_seed(self.seed, key, namespace=self.namespace), self.namespace)

    def generator(self) -> np.random.Generator:
        return np.random.Generator(np.random.PCG64(np.uint64(_normalize_seed(self.seed))))


class CoordinatedRandom:
    """Named sub-generators over one master seed.

    Each context name gets its own generator the first time it is requested and keeps
    its position afterwards, so draws in one context never shift another context.
    """

    def __init__(self, master_seed: int) -> None:
        self._root = RngStream(master_seed)
        self._generators: dict[str, np.random.Generator] = {}

    @property
    def master_seed(self) -> int:
        return self._root.seed

    def generator(self, context: str) -> np.random.Generator:
        gen = self._generators.get(context)
        if gen is None:
            gen = self._root.fork(context).generator()
            self._generators[context] = gen
        return gen
