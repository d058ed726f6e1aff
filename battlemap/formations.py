"""Catalog of bedrock formations and the terrain features they weather into."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from battlemap.context import Biome


class RockType(str, Enum):
    CARBONATE = "carbonate"
    GRANITIC = "granitic"
    VOLCANIC = "volcanic"
    CLASTIC = "clastic"
    METAMORPHIC = "metamorphic"
    EVAPORITE = "evaporite"


class Mineral(str, Enum):
    CALCITE = "calcite"
    DOLOMITE = "dolomite"
    QUARTZ = "quartz"
    FELDSPAR = "feldspar"
    MICA = "mica"
    HORNBLENDE = "hornblende"
    BASALT = "basalt"
    GYPSUM = "gypsum"
    HALITE = "halite"
    CLAY = "clay"


MINERAL_HARDNESS: dict[Mineral, float] = {
    Mineral.HALITE: 2,
    Mineral.GYPSUM: 2,
    Mineral.CALCITE: 3,
    Mineral.DOLOMITE: 4,
    Mineral.CLAY: 2,
    Mineral.MICA: 3,
    Mineral.HORNBLENDE: 5,
    Mineral.FELDSPAR: 6,
    Mineral.BASALT: 6,
    Mineral.QUARTZ: 7,
}


class Bedding(str, Enum):
    MASSIVE = "massive"
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    FOLDED = "folded"
    CROSS_BEDDED = "cross_bedded"


class JointOrientation(str, Enum):
    ORTHOGONAL = "orthogonal"
    HEXAGONAL = "hexagonal"
    RANDOM = "random"
    RADIAL = "radial"


class WeatheringType(str, Enum):
    MECHANICAL = "mechanical"
    CHEMICAL = "chemical"
    BOTH = "both"


class WeatheringRate(str, Enum):
    RAPID = "rapid"
    MODERATE = "moderate"
    SLOW = "slow"


class Permeability(str, Enum):
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
    IMPERMEABLE = "impermeable"


PERMEABILITY_RANK: dict[Permeability, int] = {
    Permeability.IMPERMEABLE: 0,
    Permeability.LOW: 1,
    Permeability.MODERATE: 2,
    Permeability.HIGH: 3,
}


class ChemicalStability(str, Enum):
    STABLE = "stable"
    MODERATE = "moderate"
    UNSTABLE = "unstable"


class GrainSize(str, Enum):
    CRYSTALLINE = "crystalline"
    COARSE = "coarse"
    MEDIUM = "medium"
    FINE = "fine"
    GLASSY = "glassy"


class ErosionPattern(str, Enum):
    KARST = "karst"
    EXFOLIATION = "exfoliation"
    COLUMNAR = "columnar"
    FINS = "fins"
    SPHEROIDAL = "spheroidal"
    PLATY = "platy"
    BADLANDS = "badlands"


class TerrainFeature(str, Enum):
    TOWER = "tower"
    SINKHOLE = "sinkhole"
    CAVE = "cave"
    KARREN = "karren"
    DOME = "dome"
    CORESTONE = "corestone"
    GRUS = "grus"
    TOR = "tor"
    COLUMN = "column"
    LAVA_FLOW = "lava_flow"
    VOLCANIC_NECK = "volcanic_neck"
    TUFF = "tuff"
    FIN = "fin"
    SLOT_CANYON = "slot_canyon"
    HOODOO = "hoodoo"
    ALCOVE = "alcove"
    FOLIATION_PLANE = "foliation_plane"
    CRENULATION = "crenulation"
    SCHIST_RAVINE = "schist_ravine"
    CLIFF = "cliff"
    TALUS = "talus"
    LEDGE = "ledge"
    RAVINE = "ravine"

    @property
    def bit(self) -> int:
        return 1 << _FEATURE_ORDER[self]


_FEATURE_ORDER = {feature: idx for idx, feature in enumerate(TerrainFeature)}

_PATTERN_FEATURES: dict[ErosionPattern, tuple[TerrainFeature, ...]] = {
    ErosionPattern.KARST: (TerrainFeature.TOWER, TerrainFeature.SINKHOLE, TerrainFeature.CAVE, TerrainFeature.KARREN),
    ErosionPattern.EXFOLIATION: (TerrainFeature.DOME, TerrainFeature.CORESTONE, TerrainFeature.GRUS, TerrainFeature.TOR),
    ErosionPattern.COLUMNAR: (TerrainFeature.COLUMN, TerrainFeature.LAVA_FLOW, TerrainFeature.VOLCANIC_NECK),
    ErosionPattern.FINS: (TerrainFeature.FIN, TerrainFeature.SLOT_CANYON, TerrainFeature.HOODOO, TerrainFeature.ALCOVE),
    ErosionPattern.PLATY: (TerrainFeature.FOLIATION_PLANE, TerrainFeature.CRENULATION, TerrainFeature.SCHIST_RAVINE),
}


def features_from_mask(mask: int) -> list[TerrainFeature]:
    return [feature for feature in TerrainFeature if mask & feature.bit]


@dataclass(frozen=True)
class Formation:
    """Bedrock formation with its structure, rock properties and weathering profile."""

    name: str
    rock_type: RockType
    minerals: tuple[Mineral, ...]
    bedding: Bedding
    joint_spacing_m: float
    joint_orientation: JointOrientation
    hardness: float
    permeability: Permeability
    chemical_stability: ChemicalStability
    grain_size: GrainSize
    weathering_type: WeatheringType
    weathering_rate: WeatheringRate
    products: tuple[TerrainFeature, ...]
    foliation: str | None = None

    @property
    def joint_spacing_tiles(self) -> int:
        return int(round(self.joint_spacing_m / 1.5))

    @property
    def fracture_intensity(self) -> float:
        return 1.0 / (self.joint_spacing_m + 1.0)

    @property
    def creates_vertical_features(self) -> bool:
        return self.bedding is Bedding.VERTICAL or self.joint_orientation is JointOrientation.HEXAGONAL

    @property
    def mean_mineral_hardness(self) -> float:
        return sum(MINERAL_HARDNESS[m] for m in self.minerals) / len(self.minerals)

    @property
    def permeability_rank(self) -> int:
        return PERMEABILITY_RANK[self.permeability]

    def erosion_resistance(self) -> float:
        resistance = self.hardness / 10.0
        if self.chemical_stability is ChemicalStability.UNSTABLE:
            resistance *= 0.5
        elif self.chemical_stability is ChemicalStability.MODERATE:
            resistance *= 0.75
        if self.grain_size is GrainSize.FINE:
            resistance *= 1.1
        return min(1.0, resistance)

    @property
    def allows_caves(self) -> bool:
        return (
            self.chemical_stability is ChemicalStability.UNSTABLE
            and self.permeability is not Permeability.IMPERMEABLE
        )

    @property
    def can_have_springs(self) -> bool:
        return self.permeability in (Permeability.MODERATE, Permeability.LOW)

    @property
    def erosion_pattern(self) -> ErosionPattern:
        if self.rock_type is RockType.CARBONATE and self.weathering_type is WeatheringType.CHEMICAL:
            return ErosionPattern.KARST
        if self.rock_type is RockType.GRANITIC and self.weathering_type is WeatheringType.MECHANICAL:
            return ErosionPattern.EXFOLIATION
        if self.rock_type is RockType.VOLCANIC and self.bedding is Bedding.MASSIVE:
            return ErosionPattern.COLUMNAR
        if self.rock_type is RockType.CLASTIC and self.bedding is Bedding.VERTICAL:
            return ErosionPattern.FINS
        if self.rock_type is RockType.METAMORPHIC:
            return ErosionPattern.PLATY
        if self.rock_type is RockType.EVAPORITE:
            return ErosionPattern.BADLANDS
        return ErosionPattern.SPHEROIDAL

    def possible_features(self) -> list[TerrainFeature]:
        features = list(_PATTERN_FEATURES.get(self.erosion_pattern, ()))
        if self.hardness > 6:
            features.append(TerrainFeature.CLIFF)
        if self.creates_vertical_features:
            features.append(TerrainFeature.LEDGE)
        features.append(TerrainFeature.TALUS)
        return features

    def soil_depth_range(self) -> tuple[float, float]:
        """(min, max) residual soil depth in feet."""

        base = 10.0 - self.hardness
        multiplier = {WeatheringRate.RAPID: 2.0, WeatheringRate.SLOW: 0.5}.get(self.weathering_rate, 1.0)
        return max(0.0, base * multiplier * 0.5), max(1.0, base * multiplier * 1.5)


LIMESTONE_KARST = Formation(
    "limestone_karst",
    RockType.CARBONATE,
    (Mineral.CALCITE, Mineral.DOLOMITE),
    Bedding.HORIZONTAL,
    5,
    JointOrientation.ORTHOGONAL,
    3,
    Permeability.MODERATE,
    ChemicalStability.UNSTABLE,
    GrainSize.FINE,
    WeatheringType.CHEMICAL,
    WeatheringRate.MODERATE,
    (TerrainFeature.TOWER, TerrainFeature.SINKHOLE, TerrainFeature.CAVE, TerrainFeature.KARREN),
)

DOLOMITE_TOWERS = Formation(
    "dolomite_towers",
    RockType.CARBONATE,
    (Mineral.DOLOMITE, Mineral.CALCITE),
    Bedding.HORIZONTAL,
    3,
    JointOrientation.ORTHOGONAL,
    4,
    Permeability.LOW,
    ChemicalStability.MODERATE,
    GrainSize.CRYSTALLINE,
    WeatheringType.CHEMICAL,
    WeatheringRate.SLOW,
    (TerrainFeature.TOWER, TerrainFeature.LEDGE, TerrainFeature.CLIFF),
)

GRANITE_DOME = Formation(
    "granite_dome",
    RockType.GRANITIC,
    (Mineral.QUARTZ, Mineral.FELDSPAR, Mineral.MICA),
    Bedding.MASSIVE,
    10,
    JointOrientation.ORTHOGONAL,
    6,
    Permeability.LOW,
    ChemicalStability.MODERATE,
    GrainSize.COARSE,
    WeatheringType.MECHANICAL,
    WeatheringRate.SLOW,
    (TerrainFeature.DOME, TerrainFeature.CORESTONE, TerrainFeature.GRUS, TerrainFeature.TOR),
)

WEATHERED_GRANODIORITE = Formation(
    "weathered_granodiorite",
    RockType.GRANITIC,
    (Mineral.FELDSPAR, Mineral.QUARTZ, Mineral.HORNBLENDE),
    Bedding.MASSIVE,
    7,
    JointOrientation.RANDOM,
    5,
    Permeability.MODERATE,
    ChemicalStability.MODERATE,
    GrainSize.MEDIUM,
    WeatheringType.BOTH,
    WeatheringRate.MODERATE,
    (TerrainFeature.CORESTONE, TerrainFeature.GRUS, TerrainFeature.RAVINE),
)

BASALT_COLUMNS = Formation(
    "basalt_columns",
    RockType.VOLCANIC,
    (Mineral.BASALT,),
    Bedding.MASSIVE,
    2,
    JointOrientation.HEXAGONAL,
    6,
    Permeability.LOW,
    ChemicalStability.STABLE,
    GrainSize.FINE,
    WeatheringType.MECHANICAL,
    WeatheringRate.SLOW,
    (TerrainFeature.COLUMN, TerrainFeature.TALUS, TerrainFeature.CLIFF),
)

VOLCANIC_TUFF = Formation(
    "volcanic_tuff",
    RockType.VOLCANIC,
    (Mineral.CLAY, Mineral.QUARTZ),
    Bedding.HORIZONTAL,
    4,
    JointOrientation.RANDOM,
    2,
    Permeability.HIGH,
    ChemicalStability.UNSTABLE,
    GrainSize.FINE,
    WeatheringType.BOTH,
    WeatheringRate.RAPID,
    (TerrainFeature.TUFF, TerrainFeature.ALCOVE, TerrainFeature.HOODOO),
)

SANDSTONE_FINS = Formation(
    "sandstone_fins",
    RockType.CLASTIC,
    (Mineral.QUARTZ, Mineral.CLAY),
    Bedding.VERTICAL,
    3,
    JointOrientation.ORTHOGONAL,
    5,
    Permeability.HIGH,
    ChemicalStability.STABLE,
    GrainSize.MEDIUM,
    WeatheringType.MECHANICAL,
    WeatheringRate.MODERATE,
    (TerrainFeature.FIN, TerrainFeature.SLOT_CANYON, TerrainFeature.ALCOVE),
)

CROSS_BEDDED_SANDSTONE = Formation(
    "cross_bedded_sandstone",
    RockType.CLASTIC,
    (Mineral.QUARTZ,),
    Bedding.CROSS_BEDDED,
    5,
    JointOrientation.RANDOM,
    4,
    Permeability.HIGH,
    ChemicalStability.STABLE,
    GrainSize.COARSE,
    WeatheringType.MECHANICAL,
    WeatheringRate.MODERATE,
    (TerrainFeature.HOODOO, TerrainFeature.ALCOVE, TerrainFeature.FIN),
)

FOLIATED_SCHIST = Formation(
    "foliated_schist",
    RockType.METAMORPHIC,
    (Mineral.MICA, Mineral.QUARTZ, Mineral.FELDSPAR),
    Bedding.FOLDED,
    2,
    JointOrientation.RANDOM,
    4,
    Permeability.LOW,
    ChemicalStability.MODERATE,
    GrainSize.MEDIUM,
    WeatheringType.BOTH,
    WeatheringRate.MODERATE,
    (TerrainFeature.FOLIATION_PLANE, TerrainFeature.SCHIST_RAVINE, TerrainFeature.CRENULATION),
    foliation="strong",
)

SLATE_BEDS = Formation(
    "slate_beds",
    RockType.METAMORPHIC,
    (Mineral.CLAY, Mineral.MICA),
    Bedding.HORIZONTAL,
    1,
    JointOrientation.ORTHOGONAL,
    3,
    Permeability.IMPERMEABLE,
    ChemicalStability.STABLE,
    GrainSize.FINE,
    WeatheringType.MECHANICAL,
    WeatheringRate.MODERATE,
    (TerrainFeature.FOLIATION_PLANE, TerrainFeature.TALUS, TerrainFeature.LEDGE),
    foliation="strong",
)

GYPSUM_BADLANDS = Formation(
    "gypsum_badlands",
    RockType.EVAPORITE,
    (Mineral.GYPSUM, Mineral.HALITE),
    Bedding.HORIZONTAL,
    2,
    JointOrientation.RANDOM,
    2,
    Permeability.MODERATE,
    ChemicalStability.UNSTABLE,
    GrainSize.CRYSTALLINE,
    WeatheringType.CHEMICAL,
    WeatheringRate.RAPID,
    (TerrainFeature.SINKHOLE, TerrainFeature.CAVE, TerrainFeature.RAVINE),
)

FORMATIONS: dict[str, Formation] = {
    f.name: f
    for f in (
        LIMESTONE_KARST,
        DOLOMITE_TOWERS,
        GRANITE_DOME,
        WEATHERED_GRANODIORITE,
        BASALT_COLUMNS,
        VOLCANIC_TUFF,
        SANDSTONE_FINS,
        CROSS_BEDDED_SANDSTONE,
        FOLIATED_SCHIST,
        SLATE_BEDS,
        GYPSUM_BADLANDS,
    )
}

BIOME_FORMATIONS: dict[Biome, tuple[Formation, ...]] = {
    Biome.MOUNTAIN: (LIMESTONE_KARST, DOLOMITE_TOWERS, GRANITE_DOME, BASALT_COLUMNS, FOLIATED_SCHIST, SLATE_BEDS),
    Biome.DESERT: (SANDSTONE_FINS, CROSS_BEDDED_SANDSTONE, GYPSUM_BADLANDS, VOLCANIC_TUFF),
    Biome.FOREST: (GRANITE_DOME, WEATHERED_GRANODIORITE, FOLIATED_SCHIST, LIMESTONE_KARST),
    Biome.PLAINS: (LIMESTONE_KARST, CROSS_BEDDED_SANDSTONE, SLATE_BEDS),
    Biome.COASTAL: (SANDSTONE_FINS, BASALT_COLUMNS, LIMESTONE_KARST),
    Biome.SWAMP: (LIMESTONE_KARST, GYPSUM_BADLANDS),
    Biome.UNDERGROUND: (LIMESTONE_KARST, DOLOMITE_TOWERS, GYPSUM_BADLANDS),
}


def formations_for_biome(biome: Biome) -> tuple[Formation, ...]:
    return BIOME_FORMATIONS.get(biome, (GRANITE_DOME,))
