"""Structures layer: buildings, roads, bridges and small decorations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import math

import numpy as np

from battlemap.context import Context, DevelopmentLevel
from battlemap.grid import box_any, freeze, interior_mask, line_indices
from battlemap.hydrology import HydrologyLayerData
from battlemap.noise import NoiseGenerator
from battlemap.rng import BUILDINGS, ROADS, CoordinatedRandom
from battlemap.seed import Layer, LayeredSeed, Seed, SubLayer, layered
from battlemap.topography import TopographyLayerData
from battlemap.vegetation import VegetationLayerData, VegetationType

logger = logging.getLogger(__name__)

MAX_SITE_SLOPE = 20.0
MIN_BUILDING_SPACING = 5.0
WATER_SEARCH_RADIUS = 3
NONE_CODE = -1


class StructureType(str, Enum):
    HOUSE = "house"
    BARN = "barn"
    TOWER = "tower"
    WALL = "wall"
    ROAD = "road"
    BRIDGE = "bridge"
    WELL = "well"
    SHRINE = "shrine"
    RUIN = "ruin"

    @property
    def code(self) -> int:
        return _STRUCTURE_CODES[self]


class BuildingType(str, Enum):
    HUT = "hut"
    COTTAGE = "cottage"
    BARN = "barn"
    HOUSE = "house"
    FARMHOUSE = "farmhouse"
    TAVERN = "tavern"
    CHURCH = "church"
    TOWNHOUSE = "townhouse"
    MANOR = "manor"
    TOWER = "tower"


class MaterialType(str, Enum):
    WOOD = "wood"
    STONE = "stone"
    BRICK = "brick"
    DIRT = "dirt"
    GRAVEL = "gravel"
    COBBLESTONE = "cobblestone"

    @property
    def code(self) -> int:
        return _MATERIAL_CODES[self]


class StructureCondition(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    RUINED = "ruined"

    @property
    def code(self) -> int:
        return _CONDITION_CODES[self]


STRUCTURE_TYPES: tuple[StructureType, ...] = tuple(StructureType)
MATERIALS: tuple[MaterialType, ...] = tuple(MaterialType)
CONDITIONS: tuple[StructureCondition, ...] = tuple(StructureCondition)
_STRUCTURE_CODES = {s: i for i, s in enumerate(STRUCTURE_TYPES)}
_MATERIAL_CODES = {m: i for i, m in enumerate(MATERIALS)}
_CONDITION_CODES = {c: i for i, c in enumerate(CONDITIONS)}

BUILDING_COUNT: dict[DevelopmentLevel, int] = {
    DevelopmentLevel.WILDERNESS: 0,
    DevelopmentLevel.FRONTIER: 1,
    DevelopmentLevel.RURAL: 3,
    DevelopmentLevel.SETTLED: 8,
    DevelopmentLevel.URBAN: 15,
    DevelopmentLevel.RUINS: 3,
}

WEALTH: dict[DevelopmentLevel, float] = {
    DevelopmentLevel.WILDERNESS: 0.1,
    DevelopmentLevel.FRONTIER: 0.2,
    DevelopmentLevel.RURAL: 0.3,
    DevelopmentLevel.SETTLED: 0.5,
    DevelopmentLevel.URBAN: 0.7,
    DevelopmentLevel.RUINS: 0.2,
}

ROAD_MATERIAL: dict[DevelopmentLevel, MaterialType] = {
    DevelopmentLevel.FRONTIER: MaterialType.DIRT,
    DevelopmentLevel.RURAL: MaterialType.DIRT,
    DevelopmentLevel.SETTLED: MaterialType.GRAVEL,
    DevelopmentLevel.URBAN: MaterialType.COBBLESTONE,
    DevelopmentLevel.RUINS: MaterialType.DIRT,
}

FLOORS: dict[BuildingType, int] = {
    BuildingType.HUT: 1,
    BuildingType.COTTAGE: 1,
    BuildingType.BARN: 1,
    BuildingType.HOUSE: 2,
    BuildingType.FARMHOUSE: 2,
    BuildingType.TAVERN: 2,
    BuildingType.CHURCH: 2,
    BuildingType.TOWNHOUSE: 3,
    BuildingType.MANOR: 3,
    BuildingType.TOWER: 3,
}

_OPEN_GROUND = (VegetationType.NONE, VegetationType.GRASS, VegetationType.TALL_GRASS)


@dataclass(frozen=True)
class Building:
    x: int
    y: int
    building_type: BuildingType
    width_ft: int
    depth_ft: int
    floors: int
    material: MaterialType
    condition: StructureCondition
    wealth: float

    @property
    def width_tiles(self) -> int:
        return int(math.ceil(self.width_ft / 5.0))

    @property
    def depth_tiles(self) -> int:
        return int(math.ceil(self.depth_ft / 5.0))

    @property
    def center(self) -> tuple[int, int]:
        return self.x + self.width_tiles // 2, self.y + self.depth_tiles // 2

    @property
    def height_ft(self) -> float:
        return 30.0 if self.building_type is BuildingType.TOWER else self.floors * 10.0

    def tiles(self) -> list[tuple[int, int]]:
        return [(self.x + dx, self.y + dy) for dy in range(self.depth_tiles) for dx in range(self.width_tiles)]


@dataclass(frozen=True)
class RoadSegment:
    points: tuple[tuple[int, int], ...]
    material: MaterialType
    width: int = 1

    @property
    def length(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class RoadNetwork:
    segments: tuple[RoadSegment, ...] = ()
    intersections: tuple[tuple[int, int], ...] = ()

    @property
    def total_length(self) -> int:
        return sum(seg.length for seg in self.segments)


@dataclass(frozen=True)
class Bridge:
    start: tuple[int, int]
    end: tuple[int, int]
    tiles: tuple[tuple[int, int], ...]
    orientation: str
    material: MaterialType

    @property
    def length(self) -> int:
        return len(self.tiles)


@dataclass(frozen=True)
class Decoration:
    x: int
    y: int
    structure_type: StructureType


@dataclass(frozen=True)
class StructuresLayerData:
    width: int
    height: int
    buildings: tuple[Building, ...]
    roads: RoadNetwork
    bridges: tuple[Bridge, ...]
    decorations: tuple[Decoration, ...]
    has_structure: np.ndarray
    structure_type: np.ndarray
    material: np.ndarray
    structure_height: np.ndarray
    is_road: np.ndarray
    is_path: np.ndarray
    condition: np.ndarray

    def is_type(self, structure_type: StructureType) -> np.ndarray:
        return self.structure_type == structure_type.code

    def structure_at(self, x: int, y: int) -> StructureType | None:
        code = int(self.structure_type[y, x])
        return None if code == NONE_CODE else STRUCTURE_TYPES[code]


def generate_structures(
    vegetation: VegetationLayerData,
    hydrology: HydrologyLayerData,
    topography: TopographyLayerData,
    context: Context,
    seed: LayeredSeed | Seed | int | str,
) -> StructuresLayerData:
    """Place the settlement implied by the context's development level."""

    lseed = layered(seed)
    w, h = topography.width, topography.height
    water = hydrology.is_water
    noise = NoiseGenerator(lseed.layer_seed(Layer.STRUCTURES).value)

    building_rng = CoordinatedRandom(lseed.sub_layer_seed(Layer.STRUCTURES, SubLayer.BUILDINGS).value)
    road_rng = CoordinatedRandom(lseed.sub_layer_seed(Layer.STRUCTURES, SubLayer.ROADS).value)

    buildable = _buildable(vegetation, topography, water)
    sites = _rank_sites(buildable, vegetation, topography.slope, water)
    buildings = _place_buildings(sites, buildable, context, building_rng.generator(BUILDINGS))

    occupied = np.zeros((h, w), dtype=bool)
    for building in buildings:
        for x, y in building.tiles():
            occupied[y, x] = True

    roads = _build_roads(buildings, water, context, road_rng.generator(ROADS))
    bridges = _find_bridges(roads, water, noise)
    decorations = _place_decorations(buildings, roads, vegetation, water, occupied, context, noise)

    grids = _paint_tiles(w, h, buildings, roads, bridges, decorations, context)
    freeze(*grids)
    data = StructuresLayerData(w, h, buildings, roads, bridges, decorations, *grids)
    logger.debug(
        "structures: sites=%d buildings=%d road_tiles=%d bridges=%d decorations=%d",
        len(sites),
        len(buildings),
        roads.total_length,
        len(bridges),
        len(decorations),
    )
    return data


def _buildable(vegetation: VegetationLayerData, topography: TopographyLayerData, water: np.ndarray) -> np.ndarray:
    return (
        ~water
        & (topography.slope <= MAX_SITE_SLOPE)
        & (vegetation.vegetation_type != VegetationType.DENSE_TREES)
    )


def _rank_sites(
    buildable: np.ndarray,
    vegetation: VegetationLayerData,
    slope: np.ndarray,
    water: np.ndarray,
) -> list[tuple[int, int]]:
    h, w = buildable.shape
    dry = ~water
    footprint_dry = np.zeros((h, w), dtype=bool)
    footprint_dry[:-1, :-1] = dry[:-1, :-1] & dry[1:, :-1] & dry[:-1, 1:] & dry[1:, 1:]
    candidates = buildable & footprint_dry & interior_mask(h, w, margin=2)

    quality = np.ones((h, w), dtype=np.float64)
    quality += np.where(np.isin(vegetation.vegetation_type, [int(v) for v in _OPEN_GROUND]), 0.3, 0.0)
    quality += np.where(vegetation.in_clearing(), 0.3, 0.0)
    quality += np.where(slope < 5.0, 0.2, 0.0)
    quality += np.where(box_any(water, WATER_SEARCH_RADIUS), 0.2, 0.0)

    ys, xs = np.nonzero(candidates)
    ranked = sorted(zip(ys.tolist(), xs.tolist()), key=lambda p: (-quality[p[0], p[1]], p[0], p[1]))
    return [(x, y) for y, x in ranked]


def _choose_building(level: DevelopmentLevel, r: float) -> tuple[BuildingType, int, int]:
    if level is DevelopmentLevel.FRONTIER:
        return BuildingType.HUT, 10, 10
    if level is DevelopmentLevel.RURAL:
        return (BuildingType.COTTAGE, 20, 20) if r < 0.5 else (BuildingType.BARN, 25, 20)
    if level is DevelopmentLevel.SETTLED:
        if r < 0.5:
            return BuildingType.HOUSE, 20, 25
        if r < 0.8:
            return BuildingType.FARMHOUSE, 30, 25
        if r < 0.95:
            return BuildingType.TAVERN, 35, 30
        return BuildingType.CHURCH, 40, 35
    if level is DevelopmentLevel.URBAN:
        if r < 0.4:
            extra = int(r * 10)
            return BuildingType.TOWNHOUSE, 15 + extra, 20 + extra
        if r < 0.7:
            return BuildingType.HOUSE, 25, 25
        if r < 0.9:
            return BuildingType.MANOR, 45, 40
        return BuildingType.TOWER, 15, 15
    if level is DevelopmentLevel.RUINS:
        return (BuildingType.COTTAGE, 20, 20) if r < 0.7 else (BuildingType.TOWER, 15, 15)
    return BuildingType.COTTAGE, 20, 20


def _condition(level: DevelopmentLevel, wealth: float, r: float) -> StructureCondition:
    if level is DevelopmentLevel.RUINS:
        return StructureCondition.RUINED
    score = wealth + 0.5 * r
    if score > 1.0:
        return StructureCondition.EXCELLENT
    if score > 0.6:
        return StructureCondition.GOOD
    if score > 0.35:
        return StructureCondition.FAIR
    return StructureCondition.POOR


def _material(level: DevelopmentLevel, wealth: float, r: float) -> MaterialType:
    if level is DevelopmentLevel.URBAN and r < 0.3:
        return MaterialType.BRICK
    return MaterialType.STONE if r < wealth else MaterialType.WOOD


def _place_buildings(
    sites: list[tuple[int, int]],
    buildable: np.ndarray,
    context: Context,
    gen: np.random.Generator,
) -> tuple[Building, ...]:
    level = context.development
    target = BUILDING_COUNT[level]
    if target == 0:
        return ()

    h, w = buildable.shape
    wealth = WEALTH[level]
    blocked = np.zeros((h, w), dtype=bool)
    placed: list[Building] = []

    for x, y in sites:
        if len(placed) >= target:
            break
        r_type, r_material, r_condition = gen.random(3)
        if any(math.hypot(x - b.x, y - b.y) < MIN_BUILDING_SPACING for b in placed):
            continue
        kind, width_ft, depth_ft = _choose_building(level, float(r_type))
        fw = int(math.ceil(width_ft / 5.0))
        fd = int(math.ceil(depth_ft / 5.0))
        if x + fw > w or y + fd > h:
            continue
        footprint = (slice(y, y + fd), slice(x, x + fw))
        if not np.all(buildable[footprint]) or np.any(blocked[footprint]):
            continue
        building = Building(
            x=x,
            y=y,
            building_type=kind,
            width_ft=width_ft,
            depth_ft=depth_ft,
            floors=FLOORS[kind],
            material=_material(level, wealth, float(r_material)),
            condition=_condition(level, wealth, float(r_condition)),
            wealth=wealth,
        )
        placed.append(building)
        # keep a one-tile margin so footprints never touch
        blocked[max(0, y - 1) : y + fd + 1, max(0, x - 1) : x + fw + 1] = True

    return tuple(placed)


def _detour(
    point: tuple[int, int],
    step: tuple[int, int],
    water: np.ndarray,
) -> tuple[int, int]:
    """Sidestep a wet tile by one tile perpendicular to the road heading, if that tile is dry."""

    h, w = water.shape
    x, y = point
    px, py = -step[1], step[0]
    for offset in (1, -1):
        nx, ny = x + px * offset, y + py * offset
        if 0 <= nx < w and 0 <= ny < h and not water[ny, nx]:
            return nx, ny
    return point


def road_path(start: tuple[int, int], end: tuple[int, int], water: np.ndarray) -> tuple[tuple[int, int], ...]:
    ys, xs = line_indices(start[1], start[0], end[1], end[0])
    step = (int(np.sign(end[0] - start[0])), int(np.sign(end[1] - start[1])))
    points: list[tuple[int, int]] = []
    for x, y in zip(xs.tolist(), ys.tolist()):
        point = (x, y)
        if water[y, x]:
            point = _detour(point, step, water)
        if points and max(abs(point[0] - points[-1][0]), abs(point[1] - points[-1][1])) > 1:
            gy, gx = line_indices(points[-1][1], points[-1][0], point[1], point[0])
            points.extend(zip(gx[1:-1].tolist(), gy[1:-1].tolist()))
        if not points or points[-1] != point:
            points.append(point)
    return tuple(points)


def _build_roads(
    buildings: tuple[Building, ...],
    water: np.ndarray,
    context: Context,
    gen: np.random.Generator,
) -> RoadNetwork:
    if context.development is DevelopmentLevel.WILDERNESS or len(buildings) < 2:
        return RoadNetwork()

    material = ROAD_MATERIAL.get(context.development, MaterialType.DIRT)
    width = 2 if context.development is DevelopmentLevel.URBAN and gen.random() < 0.5 else 1
    centers = [b.center for b in buildings]
    connected = [0]
    remaining = list(range(1, len(buildings)))
    segments: list[RoadSegment] = []

    while remaining:
        best: tuple[float, int, int] | None = None
        for c in connected:
            for u in remaining:
                dist = math.hypot(centers[c][0] - centers[u][0], centers[c][1] - centers[u][1])
                if best is None or dist < best[0]:
                    best = (dist, c, u)
        _, c, u = best
        segments.append(RoadSegment(road_path(centers[c], centers[u], water), material, width))
        connected.append(u)
        remaining.remove(u)

    seen: dict[tuple[int, int], int] = {}
    for seg in segments:
        for point in set(seg.points):
            seen[point] = seen.get(point, 0) + 1
    intersections = tuple(sorted((p for p, n in seen.items() if n > 1), key=lambda p: (p[1], p[0])))
    return RoadNetwork(tuple(segments), intersections)


def _find_bridges(roads: RoadNetwork, water: np.ndarray, noise: NoiseGenerator) -> tuple[Bridge, ...]:
    bridges: list[Bridge] = []
    claimed: set[tuple[int, int]] = set()
    for seg in roads.segments:
        run: list[tuple[int, int]] = []
        for x, y in seg.points:
            if water[y, x]:
                run.append((x, y))
                continue
            if run:
                _close_bridge(run, bridges, claimed, noise)
                run = []
        if run:
            _close_bridge(run, bridges, claimed, noise)
    return tuple(bridges)


def _close_bridge(
    run: list[tuple[int, int]],
    bridges: list[Bridge],
    claimed: set[tuple[int, int]],
    noise: NoiseGenerator,
) -> None:
    fresh = tuple(p for p in run if p not in claimed)
    if not fresh:
        return
    start, end = fresh[0], fresh[-1]
    orientation = "horizontal" if abs(end[0] - start[0]) >= abs(end[1] - start[1]) else "vertical"
    material = MaterialType.STONE if noise.generate_at(start[0] * 0.3, start[1] * 0.3) > 0.5 else MaterialType.WOOD
    bridges.append(Bridge(start, end, fresh, orientation, material))
    claimed.update(fresh)


def _place_decorations(
    buildings: tuple[Building, ...],
    roads: RoadNetwork,
    vegetation: VegetationLayerData,
    water: np.ndarray,
    occupied: np.ndarray,
    context: Context,
    noise: NoiseGenerator,
) -> tuple[Decoration, ...]:
    if context.development is DevelopmentLevel.WILDERNESS:
        return ()

    h, w = water.shape
    taken = occupied.copy()
    for seg in roads.segments:
        for x, y in seg.points:
            taken[y, x] = True

    def free(x: int, y: int) -> bool:
        return (
            0 <= x < w
            and 0 <= y < h
            and not taken[y, x]
            and not water[y, x]
            and vegetation.vegetation_type[y, x] != VegetationType.DENSE_TREES
        )

    decorations: list[Decoration] = []
    for b in buildings:
        if noise.generate_at(b.x * 0.5, b.y * 0.5) <= 0.7:
            continue
        spots = ((b.x - 2, b.y), (b.x + b.width_tiles + 1, b.y), (b.x, b.y - 2), (b.x, b.y + b.depth_tiles + 1))
        for x, y in spots:
            if free(x, y):
                decorations.append(Decoration(x, y, StructureType.WELL))
                taken[y, x] = True
                break

    if context.development in (DevelopmentLevel.SETTLED, DevelopmentLevel.URBAN):
        for clearing in vegetation.clearings:
            if noise.generate_at(clearing.x * 0.7 + 11.0, clearing.y * 0.7) > 0.8 and free(clearing.x, clearing.y):
                decorations.append(Decoration(clearing.x, clearing.y, StructureType.SHRINE))
                taken[clearing.y, clearing.x] = True

    return tuple(decorations)


def _paint_tiles(
    w: int,
    h: int,
    buildings: tuple[Building, ...],
    roads: RoadNetwork,
    bridges: tuple[Bridge, ...],
    decorations: tuple[Decoration, ...],
    context: Context,
) -> tuple[np.ndarray, ...]:
    has = np.zeros((h, w), dtype=bool)
    kind = np.full((h, w), NONE_CODE, dtype=np.int8)
    material = np.full((h, w), NONE_CODE, dtype=np.int8)
    height = np.zeros((h, w), dtype=np.float32)
    is_road = np.zeros((h, w), dtype=bool)
    is_path = np.zeros((h, w), dtype=bool)
    condition = np.full((h, w), StructureCondition.GOOD.code, dtype=np.int8)
    track = context.development in (DevelopmentLevel.FRONTIER, DevelopmentLevel.RUINS)

    def paint(x: int, y: int, stype: StructureType, mat: MaterialType, z: float, road: bool, cond: StructureCondition) -> None:
        has[y, x] = True
        kind[y, x] = stype.code
        material[y, x] = mat.code
        height[y, x] = z
        is_road[y, x] = road
        is_path[y, x] = road and track
        condition[y, x] = cond.code

    # lowest priority first; later writes win
    for seg in roads.segments:
        for x, y in seg.points:
            paint(x, y, StructureType.ROAD, seg.material, 0.0, True, StructureCondition.GOOD)
    for bridge in bridges:
        for x, y in bridge.tiles:
            paint(x, y, StructureType.BRIDGE, bridge.material, 5.0, True, StructureCondition.GOOD)
    for deco in decorations:
        well = deco.structure_type is StructureType.WELL
        mat = MaterialType.STONE if well else MaterialType.WOOD
        paint(deco.x, deco.y, deco.structure_type, mat, 3.0 if well else 8.0, False, StructureCondition.GOOD)
    ruined = context.development is DevelopmentLevel.RUINS
    for b in buildings:
        stype = StructureType.RUIN if ruined else StructureType.HOUSE
        if b.building_type is BuildingType.TOWER and not ruined:
            stype = StructureType.TOWER
        elif b.building_type is BuildingType.BARN:
            stype = StructureType.BARN
        for x, y in b.tiles():
            paint(x, y, stype, b.material, b.height_ft, False, b.condition)

    return has, kind, material, height, is_road, is_path, condition
