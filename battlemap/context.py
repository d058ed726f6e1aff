"""Map context: the environmental setting a battlemap is generated for."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from battlemap.errors import ValidationError
from battlemap.seed import Seed


class Biome(str, Enum):
    FOREST = "forest"
    MOUNTAIN = "mountain"
    PLAINS = "plains"
    SWAMP = "swamp"
    DESERT = "desert"
    COASTAL = "coastal"
    UNDERGROUND = "underground"


class ElevationZone(str, Enum):
    LOWLAND = "lowland"
    FOOTHILLS = "foothills"
    HIGHLAND = "highland"
    ALPINE = "alpine"


class HydrologyType(str, Enum):
    ARID = "arid"
    SEASONAL = "seasonal"
    STREAM = "stream"
    RIVER = "river"
    LAKE = "lake"
    COASTAL = "coastal"
    WETLAND = "wetland"


class DevelopmentLevel(str, Enum):
    WILDERNESS = "wilderness"
    FRONTIER = "frontier"
    RURAL = "rural"
    SETTLED = "settled"
    URBAN = "urban"
    RUINS = "ruins"


class Season(str, Enum):
    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"


_PERMANENT_WATER = frozenset({HydrologyType.RIVER, HydrologyType.LAKE, HydrologyType.WETLAND})


@dataclass(frozen=True)
class RequiredFeatures:
    has_road: bool = False
    has_bridge: bool = False
    has_ruins: bool = False
    has_cave: bool = False
    has_water: bool = False
    has_cliff: bool = False

    def names(self) -> list[str]:
        pairs = (
            ("road", self.has_road),
            ("bridge", self.has_bridge),
            ("ruins", self.has_ruins),
            ("cave", self.has_cave),
            ("water", self.has_water),
            ("cliff", self.has_cliff),
        )
        return [name for name, wanted in pairs if wanted]


def context_errors(
    biome: Biome,
    elevation: ElevationZone,
    hydrology: HydrologyType,
) -> list[str]:
    """Reasons a combination is physically implausible; empty when it is valid."""

    errors: list[str] = []
    if biome is Biome.UNDERGROUND and elevation is ElevationZone.ALPINE:
        errors.append("Underground biome cannot be at alpine elevation")
    if biome is Biome.DESERT and hydrology in _PERMANENT_WATER:
        errors.append("Desert biome is incompatible with permanent water features")
    if biome is Biome.COASTAL and hydrology is not HydrologyType.COASTAL:
        errors.append("Coastal biome must have coastal hydrology")
    if biome is Biome.SWAMP and hydrology is not HydrologyType.WETLAND:
        errors.append("Swamp biome must have wetland hydrology")
    return errors


@dataclass(frozen=True)
class Context:
    """Immutable environmental setting shared by every layer of one generation run."""

    biome: Biome
    elevation: ElevationZone
    hydrology: HydrologyType
    development: DevelopmentLevel
    season: Season
    required_features: RequiredFeatures = field(default_factory=RequiredFeatures)

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "biome", Biome(self.biome))
            object.__setattr__(self, "elevation", ElevationZone(self.elevation))
            object.__setattr__(self, "hydrology", HydrologyType(self.hydrology))
            object.__setattr__(self, "development", DevelopmentLevel(self.development))
            object.__setattr__(self, "season", Season(self.season))
        except ValueError as exc:
            raise ValidationError(str(exc), code="CONTEXT_INVALID_VALUE") from exc

        errors = context_errors(self.biome, self.elevation, self.hydrology)
        if errors:
            raise ValidationError("; ".join(errors), code="CONTEXT_INCOMPATIBLE")

    @classmethod
    def from_seed(cls, seed: Seed) -> "Context":
        """Derive a plausible context from the seed's digits, repairing clashes."""

        value = seed.value
        biomes = list(Biome)
        zones = list(ElevationZone)
        hydrologies = list(HydrologyType)
        levels = list(DevelopmentLevel)
        seasons = list(Season)

        biome = biomes[value % len(biomes)]
        elevation = zones[(value // 100) % len(zones)]
        hydrology = hydrologies[(value // 10_000) % len(hydrologies)]
        development = levels[(value // 1_000_000) % len(levels)]
        season = seasons[(value // 100_000_000) % len(seasons)]

        if biome is Biome.COASTAL:
            hydrology = HydrologyType.COASTAL
        elif biome is Biome.SWAMP:
            hydrology = HydrologyType.WETLAND
        elif biome is Biome.DESERT and hydrology in _PERMANENT_WATER:
            hydrology = HydrologyType.ARID
        if biome is Biome.UNDERGROUND and elevation is ElevationZone.ALPINE:
            elevation = ElevationZone.HIGHLAND

        return cls(biome, elevation, hydrology, development, season)

    def with_features(self, **features: bool) -> "Context":
        return replace(self, required_features=replace(self.required_features, **features))

    def describe(self) -> str:
        desc = f"{self.season.value} {self.elevation.value} {self.biome.value}"
        if self.hydrology is not HydrologyType.ARID:
            desc += f" with {self.hydrology.value}"
        if self.development is not DevelopmentLevel.WILDERNESS:
            desc += f" ({self.development.value})"
        wanted = self.required_features.names()
        if wanted:
            desc += f" featuring {', '.join(wanted)}"
        return desc

    @property
    def should_have_cliffs(self) -> bool:
        return self.biome is Biome.MOUNTAIN or self.elevation in (ElevationZone.HIGHLAND, ElevationZone.ALPINE)

    @property
    def should_have_dense_vegetation(self) -> bool:
        return self.biome in (Biome.FOREST, Biome.SWAMP) and self.season is not Season.WINTER

    @property
    def should_have_snow(self) -> bool:
        if self.season is not Season.WINTER:
            return False
        return self.elevation is ElevationZone.ALPINE or (
            self.elevation is ElevationZone.HIGHLAND and self.biome is Biome.MOUNTAIN
        )

    @property
    def visibility_range(self) -> int:
        """Typical sight line in tiles."""

        if self.biome is Biome.UNDERGROUND:
            return 10
        if self.biome is Biome.FOREST and self.should_have_dense_vegetation:
            return 15
        if self.biome is Biome.SWAMP:
            return 20
        if self.biome in (Biome.DESERT, Biome.PLAINS):
            return 50
        return 30

    def to_dict(self) -> dict[str, object]:
        return {
            "biome": self.biome.value,
            "elevation": self.elevation.value,
            "hydrology": self.hydrology.value,
            "development": self.development.value,
            "season": self.season.value,
            "required_features": self.required_features.names(),
        }
