"""Seed values and per-layer seed derivation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import re

from battlemap.errors import UnknownLayerError, ValidationError

MIN_SEED = 1
MAX_SEED = 2_147_483_647
DEFAULT_SEED = 42

_MASK31 = 0x7FFFFFFF
_DIGITS_RE = re.compile(r"^\d+$")


class Layer(str, Enum):
    GEOLOGY = "geology"
    TOPOGRAPHY = "topography"
    HYDROLOGY = "hydrology"
    VEGETATION = "vegetation"
    STRUCTURES = "structures"
    FEATURES = "features"


class SubLayer(str, Enum):
    FORMATIONS = "formations"
    WEATHERING = "weathering"
    EROSION = "erosion"
    SPRINGS = "springs"
    STREAMS = "streams"
    TREES = "trees"
    UNDERGROWTH = "undergrowth"
    BUILDINGS = "buildings"
    ROADS = "roads"
    HAZARDS = "hazards"
    RESOURCES = "resources"


LAYER_PRIMES: dict[str, int] = {
    "geology": 31,
    "topography": 37,
    "hydrology": 41,
    "vegetation": 43,
    "structures": 47,
    "features": 53,
    "geology.formations": 59,
    "geology.weathering": 61,
    "topography.erosion": 67,
    "hydrology.springs": 71,
    "hydrology.streams": 73,
    "vegetation.trees": 79,
    "vegetation.undergrowth": 83,
    "structures.buildings": 89,
    "structures.roads": 97,
    "features.hazards": 101,
    "features.resources": 103,
}


@dataclass(frozen=True, order=True)
class Seed:
    """Validated generation seed in ``[MIN_SEED, MAX_SEED]``."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValidationError(
                f"Seed must be an integer, got {type(self.value).__name__}",
                code="SEED_INVALID_TYPE",
            )
        if not MIN_SEED <= self.value <= MAX_SEED:
            raise ValidationError(
                f"Seed {self.value} is out of range [{MIN_SEED}, {MAX_SEED}]",
                code="SEED_OUT_OF_RANGE",
            )

    @classmethod
    def from_number(cls, value: int | float) -> "Seed":
        if isinstance(value, float):
            if not value.is_integer():
                raise ValidationError(f"Seed must be an integer, got {value!r}", code="SEED_INVALID_TYPE")
            value = int(value)
        return cls(value)

    @classmethod
    def from_string(cls, text: str) -> "Seed":
        if text is None or not text.strip():
            raise ValidationError("Seed string cannot be empty", code="SEED_EMPTY_STRING")
        return cls(string_hash31(text.strip()))

    @classmethod
    def default(cls) -> "Seed":
        return cls(DEFAULT_SEED)

    def __str__(self) -> str:
        return str(self.value)


def utf16_units(text: str) -> list[int]:
    """UTF-16 code units of ``text``; astral characters become surrogate pairs."""

    raw = text.encode("utf-16-le", "surrogatepass")
    return [int.from_bytes(raw[i : i + 2], "little") for i in range(0, len(raw), 2)]


def string_hash31(text: str) -> int:
    """31-multiplier polynomial hash kept to signed 32 bits, folded into the seed range."""

    h = 0
    for unit in utf16_units(text):
        h = (h << 5) - h + unit
        h = ((h + 0x80000000) & 0xFFFFFFFF) - 0x80000000
    return abs(h) % MAX_SEED + 1


def parse_seed(text: str) -> Seed:
    """Decimal text is taken as a numeric seed, anything else is hashed."""

    if text is None:
        raise ValidationError("Seed is required", code="SEED_EMPTY_STRING")
    raw = text.strip()
    if _DIGITS_RE.fullmatch(raw):
        return Seed.from_number(int(raw))
    return Seed.from_string(raw)


def mix_seed(seed: int, salt: int) -> int:
    """Avalanche-mix ``seed`` with ``salt`` into ``[MIN_SEED, MAX_SEED]``."""

    mixed = abs(int(seed)) & _MASK31
    mixed = (mixed * int(salt)) & _MASK31
    mixed ^= mixed >> 16
    mixed = (mixed * 0x85EBCA6B) & _MASK31
    mixed ^= mixed >> 13
    mixed = (mixed * 0xC2B2AE35) & _MASK31
    mixed ^= mixed >> 16
    return mixed % MAX_SEED + MIN_SEED


def _djb2(text: str) -> int:
    h = 5381
    for unit in utf16_units(text):
        h = ((h << 5) + h + unit) & _MASK31
    return h


def _cantor_pair(x: int, y: int) -> int:
    return (x + y) * (x + y + 1) // 2 + y


def _layer_key(layer: Layer | str) -> str:
    try:
        return Layer(layer).value
    except ValueError:
        raise UnknownLayerError(str(layer)) from None


@dataclass(frozen=True)
class LayeredSeed:
    """Derives independent seeds for each generation layer from one base seed."""

    base: Seed
    _table: dict[str, Seed] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        table = {name: Seed(mix_seed(self.base.value, prime)) for name, prime in LAYER_PRIMES.items()}
        object.__setattr__(self, "_table", table)

    @classmethod
    def from_number(cls, value: int) -> "LayeredSeed":
        return cls(Seed.from_number(value))

    @classmethod
    def from_string(cls, text: str) -> "LayeredSeed":
        return cls(Seed.from_string(text))

    @classmethod
    def default(cls) -> "LayeredSeed":
        return cls(Seed.default())

    def layer_seed(self, layer: Layer | str) -> Seed:
        return self._table[_layer_key(layer)]

    def sub_layer_seed(self, layer: Layer | str, sub_layer: SubLayer | str) -> Seed:
        name = sub_layer.value if isinstance(sub_layer, SubLayer) else str(sub_layer)
        if not name:
            raise ValidationError("Sub-layer name cannot be empty", code="UNKNOWN_LAYER")
        key = f"{_layer_key(layer)}.{name}"
        registered = self._table.get(key)
        if registered is not None:
            return registered
        parent = self.layer_seed(layer)
        return Seed(mix_seed(parent.value, _djb2(name)))

    def tile_seed(self, layer: Layer | str, x: int, y: int) -> Seed:
        if x < 0 or y < 0:
            raise ValidationError(f"Tile coordinates must be non-negative, got ({x}, {y})", code="INVALID_COORDINATES")
        parent = self.layer_seed(layer)
        return Seed(mix_seed(parent.value, _cantor_pair(int(x), int(y)) + 1))

    def region_seed(self, layer: Layer | str, x: int, y: int, region_size: int = 16) -> Seed:
        if region_size < 1:
            raise ValidationError(f"Region size must be positive, got {region_size}", code="INVALID_REGION_SIZE")
        if x < 0 or y < 0:
            raise ValidationError(f"Region coordinates must be non-negative, got ({x}, {y})", code="INVALID_COORDINATES")
        parent = self.layer_seed(layer)
        rx = int(x) // region_size
        ry = int(y) // region_size
        return Seed(mix_seed(parent.value, _cantor_pair(rx, ry) * region_size + 1))

    def all_layer_seeds(self) -> dict[str, int]:
        return {name: seed.value for name, seed in self._table.items()}


def layered(seed: LayeredSeed | Seed | int | str) -> LayeredSeed:
    """Coerce any accepted seed form into a :class:`LayeredSeed`."""

    if isinstance(seed, LayeredSeed):
        return seed
    if isinstance(seed, Seed):
        return LayeredSeed(seed)
    if isinstance(seed, str):
        return LayeredSeed(parse_seed(seed))
    return LayeredSeed(Seed.from_number(seed))
