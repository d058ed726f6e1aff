"""Features layer: hazards, resources, landmarks and tactical points of interest."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import math
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping

import numpy as np

from battlemap.context import Context, DevelopmentLevel, Season
from battlemap.formations import TerrainFeature
from battlemap.grid import D4_OFFSETS, D8_OFFSETS, box_any, freeze, neighbor
from battlemap.hydrology import Moisture
from battlemap.noise import NoiseGenerator
from battlemap.seed import Layer, LayeredSeed, Seed, SubLayer, layered
from battlemap.structures import BuildingType
from battlemap.vegetation import VegetationType

if TYPE_CHECKING:
    from battlemap.pipeline import TacticalMapLayers

logger = logging.getLogger(__name__)

NONE_CODE = -1


class FeatureType(str, Enum):
    QUICKSAND = "quicksand"
    UNSTABLE_GROUND = "unstable_ground"
    POISON_PLANTS = "poison_plants"
    INSECT_NEST = "insect_nest"
    ANIMAL_DEN = "animal_den"
    MEDICINAL_HERBS = "medicinal_herbs"
    BERRIES = "berries"
    MUSHROOMS = "mushrooms"
    FRESH_WATER = "fresh_water"
    MINERAL_DEPOSIT = "mineral_deposit"
    ANCIENT_TREE = "ancient_tree"
    STANDING_STONES = "standing_stones"
    BATTLEFIELD_REMAINS = "battlefield_remains"
    CAMPSITE = "campsite"
    CAVE_ENTRANCE = "cave_entrance"
    HIGH_GROUND = "high_ground"
    CHOKE_POINT = "choke_point"
    AMBUSH_SITE = "ambush_site"
    VANTAGE_POINT = "vantage_point"

    @property
    def code(self) -> int:
        return _FEATURE_CODES[self]


class HazardLevel(str, Enum):
    NONE = "none"
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"
    DEADLY = "deadly"

    @property
    def code(self) -> int:
        return _HAZARD_CODES[self]


class Visibility(str, Enum):
    OBVIOUS = "obvious"
    NOTICEABLE = "noticeable"
    HIDDEN = "hidden"
    CONCEALED = "concealed"
    SECRET = "secret"

    @property
    def code(self) -> int:
        return _VISIBILITY_CODES[self]


class Interaction(str, Enum):
    INVESTIGATE = "investigate"
    HARVEST = "harvest"
    AVOID = "avoid"
    TRIGGER = "trigger"

    @property
    def code(self) -> int:
        return _INTERACTION_CODES[self]


FEATURE_TYPES: tuple[FeatureType, ...] = tuple(FeatureType)
HAZARD_LEVELS: tuple[HazardLevel, ...] = tuple(HazardLevel)
VISIBILITIES: tuple[Visibility, ...] = tuple(Visibility)
INTERACTIONS: tuple[Interaction, ...] = tuple(Interaction)
_FEATURE_CODES = {f: i for i, f in enumerate(FEATURE_TYPES)}
_HAZARD_CODES = {h: i for i, h in enumerate(HAZARD_LEVELS)}
_VISIBILITY_CODES = {v: i for i, v in enumerate(VISIBILITIES)}
_INTERACTION_CODES = {a: i for i, a in enumerate(INTERACTIONS)}

HAZARD_DESCRIPTIONS: dict[FeatureType, str] = {
    FeatureType.QUICKSAND: "Treacherous quicksand that can trap the unwary",
    FeatureType.UNSTABLE_GROUND: "Loose scree that may give way underfoot",
    FeatureType.POISON_PLANTS: "Thickets of poisonous plants with irritating sap",
    FeatureType.INSECT_NEST: "A humming nest of stinging insects",
    FeatureType.ANIMAL_DEN: "The den of a territorial animal",
}

LANDMARK_LORE: dict[FeatureType, str] = {
    FeatureType.ANCIENT_TREE: "An ancient tree that has watched over this land for centuries",
    FeatureType.STANDING_STONES: "Weathered standing stones arranged by forgotten hands",
    FeatureType.CAVE_ENTRANCE: "A dark opening leading into the depths of the earth",
    FeatureType.BATTLEFIELD_REMAINS: "Rusted weapons and bones mark an old battlefield",
    FeatureType.CAMPSITE: "The cold remains of a traveller's campfire",
}

TACTICAL_DESCRIPTIONS: dict[FeatureType, str] = {
    FeatureType.HIGH_GROUND: "Elevated ground commanding the surrounding terrain",
    FeatureType.CHOKE_POINT: "A narrow passage where movement is funnelled",
    FeatureType.AMBUSH_SITE: "Concealed position overlooking the road",
    FeatureType.VANTAGE_POINT: "A tall structure with a view over the whole area",
}


@dataclass(frozen=True)
class Hazard:
    x: int
    y: int
    feature_type: FeatureType
    level: HazardLevel
    radius: int


@dataclass(frozen=True)
class Resource:
    x: int
    y: int
    feature_type: FeatureType
    quantity: int
    quality: float

    @property
    def value(self) -> float:
        return self.quantity * self.quality


@dataclass(frozen=True)
class Landmark:
    x: int
    y: int
    feature_type: FeatureType
    significance: float
    lore: str


@dataclass(frozen=True)
class TacticalFeature:
    x: int
    y: int
    feature_type: FeatureType
    radius: int


@dataclass(frozen=True)
class FeaturesLayerData:
    width: int
    height: int
    hazards: tuple[Hazard, ...]
    resources: tuple[Resource, ...]
    landmarks: tuple[Landmark, ...]
    tactical: tuple[TacticalFeature, ...]
    feature_type: np.ndarray
    hazard_level: np.ndarray
    resource_value: np.ndarray
    visibility: np.ndarray
    interaction: np.ndarray
    descriptions: Mapping[tuple[int, int], str]

    def feature_at(self, x: int, y: int) -> FeatureType | None:
        code = int(self.feature_type[y, x])
        return None if code == NONE_CODE else FEATURE_TYPES[code]


def generate_features(layers: TacticalMapLayers, context: Context, seed: LayeredSeed | Seed | int | str) -> FeaturesLayerData:
    """Scatter points of interest where the terrain makes them plausible."""

    lseed = layered(seed)
    geology, topo, hydro, veg, struct = layers.geology, layers.topography, layers.hydrology, layers.vegetation, layers.structures
    w, h = topo.width, topo.height

    hazard_noise = NoiseGenerator(lseed.sub_layer_seed(Layer.FEATURES, SubLayer.HAZARDS).value)
    resource_noise = NoiseGenerator(lseed.sub_layer_seed(Layer.FEATURES, SubLayer.RESOURCES).value)
    landmark_noise = NoiseGenerator(lseed.layer_seed(Layer.FEATURES).value)
    tactical_noise = NoiseGenerator(lseed.sub_layer_seed(Layer.FEATURES, "tactical").value)

    r_hazard = hazard_noise.grid(w, h, scale=0.15)
    r_resource = resource_noise.grid(w, h, scale=0.2)

    free = ~struct.has_structure
    veg_type = veg.vegetation_type
    dense = veg_type == VegetationType.DENSE_TREES
    sparse = veg_type == VegetationType.SPARSE_TREES
    wooded = dense | sparse
    depth = hydro.water_depth
    moisture = hydro.moisture

    hazard_rules = [
        (
            FeatureType.QUICKSAND,
            HazardLevel.SEVERE,
            1,
            (moisture >= Moisture.WET) & (topo.slope < 5.0) & (depth < 1.0) & ~hydro.is_stream & (r_hazard > 0.9),
        ),
        (
            FeatureType.UNSTABLE_GROUND,
            HazardLevel.MODERATE,
            2,
            (topo.slope > 50.0) & geology.has_feature(TerrainFeature.TALUS) & (r_hazard > 0.85),
        ),
        (FeatureType.POISON_PLANTS, HazardLevel.MINOR, 1, dense & (r_hazard > 0.95)),
        (
            FeatureType.ANIMAL_DEN,
            HazardLevel.MODERATE,
            3,
            geology.has_feature(TerrainFeature.CAVE) & (veg_type != VegetationType.NONE) & (r_hazard > 0.8),
        ),
    ]
    if context.season is Season.SUMMER:
        hazard_rules.append((FeatureType.INSECT_NEST, HazardLevel.MINOR, 1, wooded & (r_hazard > 0.93)))

    hazards: list[Hazard] = []
    for ftype, level, radius, mask in hazard_rules:
        for x, y in _points(mask & free):
            hazards.append(Hazard(x, y, ftype, level, radius))

    clearing = veg.in_clearing()
    resource_rules = [
        (FeatureType.MEDICINAL_HERBS, clearing & (r_resource > 0.8), lambda r: (math.ceil(r * 5), r)),
        (FeatureType.FRESH_WATER, hydro.is_spring & (r_resource > 0.5), lambda r: (10, 1.0)),
        (
            FeatureType.MINERAL_DEPOSIT,
            (geology.soil_depth < 0.5) & geology.any_features() & (r_resource > 0.9),
            lambda r: (math.ceil(r * 7), 0.7 * r),
        ),
    ]
    if context.season is not Season.WINTER:
        resource_rules.append((FeatureType.BERRIES, sparse & (r_resource > 0.85), lambda r: (math.ceil(r * 3), 0.8 * r)))
    if context.season is Season.AUTUMN:
        resource_rules.append(
            (FeatureType.MUSHROOMS, wooded & (moisture >= Moisture.MOIST) & (r_resource > 0.85), lambda r: (math.ceil(r * 4), 0.6 * r))
        )

    resources: list[Resource] = []
    for ftype, mask, amount in resource_rules:
        for x, y in _points(mask & free):
            quantity, quality = amount(float(r_resource[y, x]))
            resources.append(Resource(x, y, ftype, int(quantity), round(float(quality), 4)))

    landmarks = _landmarks(layers, context, landmark_noise, free)
    tactical = _tactical(layers, tactical_noise)

    grids = _paint(w, h, hazards, resources, landmarks, tactical)
    feature_type, hazard_level, resource_value, visibility, interaction, descriptions = grids
    freeze(feature_type, hazard_level, resource_value, visibility, interaction)
    logger.debug(
        "features: hazards=%d resources=%d landmarks=%d tactical=%d",
        len(hazards),
        len(resources),
        len(landmarks),
        len(tactical),
    )
    return FeaturesLayerData(
        width=w,
        height=h,
        hazards=tuple(hazards),
        resources=tuple(resources),
        landmarks=tuple(landmarks),
        tactical=tuple(tactical),
        feature_type=feature_type,
        hazard_level=hazard_level,
        resource_value=resource_value,
        visibility=visibility,
        interaction=interaction,
        descriptions=MappingProxyType(descriptions),
    )


def _points(mask: np.ndarray) -> list[tuple[int, int]]:
    ys, xs = np.nonzero(mask)
    return [(int(x), int(y)) for y, x in zip(ys, xs)]


def _landmarks(
    layers: TacticalMapLayers,
    context: Context,
    noise: NoiseGenerator,
    free: np.ndarray,
) -> list[Landmark]:
    geology, topo, hydro, veg, struct = layers.geology, layers.topography, layers.hydrology, layers.vegetation, layers.structures
    w, h = topo.width, topo.height
    dry = ~hydro.is_water

    rules = [
        (
            FeatureType.ANCIENT_TREE,
            0.7,
            (veg.vegetation_type == VegetationType.DENSE_TREES) & (veg.canopy_height > 30.0) & (noise.grid(w, h, scale=0.1) > 0.95),
        ),
        (FeatureType.STANDING_STONES, 0.8, topo.is_ridge & dry & (noise.grid(w, h, scale=0.15) > 0.9)),
        (FeatureType.CAVE_ENTRANCE, 0.6, geology.has_feature(TerrainFeature.CAVE) & dry & (noise.grid(w, h, scale=0.2) > 0.85)),
    ]
    if context.development in (DevelopmentLevel.WILDERNESS, DevelopmentLevel.FRONTIER):
        open_ground = np.isin(veg.vegetation_type, [int(VegetationType.NONE), int(VegetationType.GRASS)])
        near_water = box_any(hydro.is_water, 2) & dry
        rules.append((FeatureType.CAMPSITE, 0.3, open_ground & near_water & (noise.grid(w, h, scale=0.25) > 0.92)))

    found: list[Landmark] = []
    for ftype, significance, mask in rules:
        for x, y in _points(mask & free):
            found.append(Landmark(x, y, ftype, significance, LANDMARK_LORE[ftype]))

    for building in struct.buildings:
        if context.development is not DevelopmentLevel.RUINS:
            break
        cx, cy = building.center
        if noise.generate_at(cx * 0.3, cy * 0.3) > 0.7:
            found.append(Landmark(cx, cy, FeatureType.BATTLEFIELD_REMAINS, 0.5, LANDMARK_LORE[FeatureType.BATTLEFIELD_REMAINS]))
    return found


def _tactical(layers: TacticalMapLayers, noise: NoiseGenerator) -> list[TacticalFeature]:
    topo, hydro, veg, struct = layers.topography, layers.hydrology, layers.vegetation, layers.structures
    w, h = topo.width, topo.height
    elevation = topo.elevation
    passable = veg.is_passable & ~hydro.is_water & (~struct.has_structure | struct.is_road)
    r = noise.grid(w, h, scale=0.2)

    local_max = np.ones((h, w), dtype=bool)
    for dy, dx in D8_OFFSETS:
        local_max &= elevation >= neighbor(elevation, dy, dx, fill=-np.inf)
    high = (elevation >= 0.8 * topo.max_elevation) & local_max & passable & (r > 0.7)

    blocked_sides = np.zeros((h, w), dtype=np.int32)
    for dy, dx in D4_OFFSETS:
        blocked_sides += ~neighbor(passable, dy, dx, fill=False)
    choke = topo.is_valley & passable & (blocked_sides >= 2)

    ambush = box_any(struct.is_road, 2) & ~struct.is_road & veg.provides_concealment & (r > 0.85)

    found: list[TacticalFeature] = []
    for ftype, radius, mask in (
        (FeatureType.HIGH_GROUND, 5, high),
        (FeatureType.CHOKE_POINT, 3, choke),
        (FeatureType.AMBUSH_SITE, 2, ambush),
    ):
        for x, y in _points(mask):
            found.append(TacticalFeature(x, y, ftype, radius))
    for building in struct.buildings:
        if building.building_type is BuildingType.TOWER:
            cx, cy = building.center
            found.append(TacticalFeature(cx, cy, FeatureType.VANTAGE_POINT, 8))
    return found


def _paint(
    w: int,
    h: int,
    hazards: list[Hazard],
    resources: list[Resource],
    landmarks: list[Landmark],
    tactical: list[TacticalFeature],
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray, dict[tuple[int, int], str]]:
    feature_type = np.full((h, w), NONE_CODE, dtype=np.int8)
    hazard_level = np.full((h, w), HazardLevel.NONE.code, dtype=np.uint8)
    resource_value = np.zeros((h, w), dtype=np.float32)
    visibility = np.full((h, w), NONE_CODE, dtype=np.int8)
    interaction = np.full((h, w), NONE_CODE, dtype=np.int8)
    descriptions: dict[tuple[int, int], str] = {}

    def mark(x: int, y: int, ftype: FeatureType, vis: Visibility, act: Interaction, text: str) -> None:
        feature_type[y, x] = ftype.code
        visibility[y, x] = vis.code
        interaction[y, x] = act.code
        descriptions[(x, y)] = text

    for item in tactical:
        mark(item.x, item.y, item.feature_type, Visibility.OBVIOUS, Interaction.INVESTIGATE, TACTICAL_DESCRIPTIONS[item.feature_type])
    for res in resources:
        vis = Visibility.HIDDEN if res.feature_type is FeatureType.MEDICINAL_HERBS else Visibility.NOTICEABLE
        mark(res.x, res.y, res.feature_type, vis, Interaction.HARVEST, _resource_text(res))
        resource_value[res.y, res.x] = res.value
    for hz in hazards:
        vis = Visibility.HIDDEN if hz.feature_type is FeatureType.QUICKSAND else Visibility.NOTICEABLE
        mark(hz.x, hz.y, hz.feature_type, vis, Interaction.AVOID, HAZARD_DESCRIPTIONS[hz.feature_type])
        hazard_level[hz.y, hz.x] = hz.level.code
    for lm in landmarks:
        mark(lm.x, lm.y, lm.feature_type, Visibility.OBVIOUS, Interaction.INVESTIGATE, lm.lore)

    return feature_type, hazard_level, resource_value, visibility, interaction, descriptions


def _resource_text(res: Resource) -> str:
    if res.feature_type is FeatureType.MEDICINAL_HERBS:
        return f"{res.quantity} doses of healing herbs grow here"
    if res.feature_type is FeatureType.BERRIES:
        return f"Bushes heavy with {res.quantity} handfuls of berries"
    if res.feature_type is FeatureType.MUSHROOMS:
        return f"A ring of {res.quantity} edible mushrooms"
    if res.feature_type is FeatureType.FRESH_WATER:
        return "A clear spring of fresh drinking water"
    return f"An exposed vein worth {res.quantity} measures of ore"
