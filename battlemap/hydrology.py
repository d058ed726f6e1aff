"""Hydrology layer: D8 flow routing, springs, streams, pools and soil moisture."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
import logging
import math

import numpy as np

from battlemap.config import HydrologyConfig
from battlemap.context import Context, HydrologyType
from battlemap.geology import GeologyLayerData
from battlemap.grid import D8_OFFSETS, freeze, neighbor, neighbor_index, normalize01, step_length
from battlemap.noise import NoiseGenerator
from battlemap.seed import Layer, LayeredSeed, Seed, SubLayer, layered
from battlemap.topography import TopographyLayerData

logger = logging.getLogger(__name__)

MAX_STREAM_ORDER = 10
SPRING_FLOW_WEIGHT = 5.0
POOL_MIN_ACCUMULATION = 3.0


class Moisture(IntEnum):
    ARID = 0
    DRY = 1
    MODERATE = 2
    MOIST = 3
    WET = 4
    SATURATED = 5


STREAM_THRESHOLD: dict[HydrologyType, float] = {
    HydrologyType.ARID: 25.0,
    HydrologyType.SEASONAL: 15.0,
    HydrologyType.STREAM: 8.0,
    HydrologyType.RIVER: 5.0,
    HydrologyType.WETLAND: 3.0,
}
_DEFAULT_STREAM_THRESHOLD = 10.0

STREAM_DEPTH_FACTOR: dict[HydrologyType, float] = {
    HydrologyType.RIVER: 2.0,
    HydrologyType.STREAM: 1.5,
    HydrologyType.SEASONAL: 0.5,
}


@dataclass(frozen=True)
class StreamSegment:
    points: tuple[tuple[int, int], ...]
    order: int
    width: int

    @property
    def length(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class HydrologyLayerData:
    width: int
    height: int
    flow_direction: np.ndarray
    flow_accumulation: np.ndarray
    water_depth: np.ndarray
    moisture: np.ndarray
    is_spring: np.ndarray
    is_stream: np.ndarray
    is_pool: np.ndarray
    stream_order: np.ndarray
    springs: tuple[tuple[int, int], ...]
    streams: tuple[StreamSegment, ...]
    total_water_coverage: float

    @property
    def is_water(self) -> np.ndarray:
        return (self.water_depth > 0.0) | self.is_stream | self.is_pool

    def moisture_at(self, x: int, y: int) -> Moisture:
        return Moisture(int(self.moisture[y, x]))


def generate_hydrology(
    topography: TopographyLayerData,
    geology: GeologyLayerData,
    context: Context,
    seed: LayeredSeed | Seed | int | str,
    *,
    config: HydrologyConfig | None = None,
) -> HydrologyLayerData:
    """Route surface water over the topography and derive water features."""

    cfg = config or HydrologyConfig()
    lseed = layered(seed)
    elevation = topography.elevation
    h, w = elevation.shape

    flow_dir, dest = compute_flow_d8(elevation)

    spring_noise = NoiseGenerator(lseed.sub_layer_seed(Layer.HYDROLOGY, SubLayer.SPRINGS).value)
    springs = _place_springs(topography, geology, spring_noise, cfg)

    weights = np.where(springs, 1.0 + SPRING_FLOW_WEIGHT, 1.0)
    accumulation = accumulate_flow(elevation, dest, weights)

    threshold = STREAM_THRESHOLD.get(context.hydrology, _DEFAULT_STREAM_THRESHOLD) * cfg.stream_threshold_multiplier
    streams = accumulation >= threshold
    order = strahler_order(elevation, dest, streams)

    stream_noise = NoiseGenerator(lseed.sub_layer_seed(Layer.HYDROLOGY, SubLayer.STREAMS).value)
    pool_noise = NoiseGenerator(lseed.sub_layer_seed(Layer.HYDROLOGY, "pools").value)
    depth = _water_depth(topography, context, cfg, streams, order, flow_dir, accumulation, stream_noise, pool_noise)
    pools = (depth > 0.0) & ~streams

    moisture = _moisture(context, geology, accumulation, depth > 0.0)
    segments = trace_stream_segments(elevation, dest, streams, order)

    ys, xs = np.nonzero(springs)
    spring_points = tuple((int(x), int(y)) for y, x in zip(ys, xs))
    coverage = float(np.count_nonzero((depth > 0.0) | streams)) * 100.0 / float(h * w)

    accumulation = accumulation.astype(np.float32)
    depth = depth.astype(np.float32)
    freeze(flow_dir, accumulation, depth, moisture, springs, streams, pools, order)
    logger.debug(
        "hydrology: springs=%d stream_tiles=%d segments=%d pools=%d coverage=%.1f%%",
        len(spring_points),
        int(np.count_nonzero(streams)),
        len(segments),
        int(np.count_nonzero(pools)),
        coverage,
    )
    return HydrologyLayerData(
        width=w,
        height=h,
        flow_direction=flow_dir,
        flow_accumulation=accumulation,
        water_depth=depth,
        moisture=moisture,
        is_spring=springs,
        is_stream=streams,
        is_pool=pools,
        stream_order=order,
        springs=spring_points,
        streams=segments,
        total_water_coverage=coverage,
    )


def compute_flow_d8(elevation: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Steepest-descent direction per tile (-1 for sinks) and the flat index it drains to."""

    h, w = elevation.shape
    values = elevation.astype(np.float64)
    best_drop = np.zeros((h, w), dtype=np.float64)
    flow_dir = np.full((h, w), -1, dtype=np.int8)
    dest = np.full((h, w), -1, dtype=np.int32)

    for idx, (dy, dx) in enumerate(D8_OFFSETS):
        other = neighbor(values, dy, dx, fill=np.inf)
        drop = (values - other) / step_length(idx)
        better = drop > best_drop
        best_drop[better] = drop[better]
        flow_dir[better] = idx
        dest[better] = neighbor_index(h, w, dy, dx)[better]

    return flow_dir, dest.ravel()


def accumulate_flow(elevation: np.ndarray, dest: np.ndarray, weights: np.ndarray) -> np.ndarray:
    order = np.argsort(-elevation.ravel(), kind="stable")
    accum = weights.astype(np.float64).ravel().copy()
    for src in order:
        dst = int(dest[src])
        if dst >= 0:
            accum[dst] += accum[src]
    return accum.reshape(elevation.shape)


def strahler_order(elevation: np.ndarray, dest: np.ndarray, streams: np.ndarray) -> np.ndarray:
    """Strahler order of every stream tile, 0 elsewhere, capped at MAX_STREAM_ORDER."""

    size = elevation.size
    stream_flat = streams.ravel()
    order = np.zeros(size, dtype=np.int32)
    max_in = np.zeros(size, dtype=np.int32)
    count_max = np.zeros(size, dtype=np.int32)

    for src in np.argsort(-elevation.ravel(), kind="stable"):
        if not stream_flat[src]:
            continue
        if max_in[src] == 0:
            value = 1
        elif count_max[src] >= 2:
            value = max_in[src] + 1
        else:
            value = max_in[src]
        value = min(value, MAX_STREAM_ORDER)
        order[src] = value

        dst = int(dest[src])
        if dst < 0 or not stream_flat[dst]:
            continue
        if value > max_in[dst]:
            max_in[dst] = value
            count_max[dst] = 1
        elif value == max_in[dst]:
            count_max[dst] += 1

    return order.reshape(elevation.shape).astype(np.uint8)


def trace_stream_segments(
    elevation: np.ndarray,
    dest: np.ndarray,
    streams: np.ndarray,
    order: np.ndarray,
) -> tuple[StreamSegment, ...]:
    """Follow each stream head downstream until the channel joins an earlier segment."""

    h, w = elevation.shape
    stream_flat = streams.ravel()
    order_flat = order.ravel()

    fed = np.zeros(h * w, dtype=bool)
    for src in np.flatnonzero(stream_flat):
        dst = int(dest[src])
        if dst >= 0 and stream_flat[dst]:
            fed[dst] = True
    heads = [int(i) for i in np.flatnonzero(stream_flat & ~fed)]
    heads.sort(key=lambda i: (-float(elevation.ravel()[i]), i))

    visited = np.zeros(h * w, dtype=bool)
    segments: list[StreamSegment] = []
    for head in heads:
        path: list[int] = []
        current = head
        while current >= 0 and stream_flat[current]:
            path.append(current)
            if visited[current]:
                break
            visited[current] = True
            current = int(dest[current])
        if len(path) <= 2:
            continue
        seg_order = int(max(order_flat[i] for i in path))
        points = tuple((i % w, i // w) for i in path)
        segments.append(StreamSegment(points, seg_order, int(math.ceil(seg_order / 2))))
    return tuple(segments)


def _place_springs(
    topography: TopographyLayerData,
    geology: GeologyLayerData,
    noise: NoiseGenerator,
    cfg: HydrologyConfig,
) -> np.ndarray:
    w, h = topography.width, topography.height
    can_spring = geology.per_formation([f.can_have_springs for f in geology.formations]).astype(bool)
    chance = noise.grid(w, h, scale=0.5)
    chance = chance + np.where(topography.slope > 15.0, cfg.spring_slope_bonus, 0.0)
    chance = chance + 0.1 * normalize01(topography.elevation)
    return geology.transition & can_spring & (chance > cfg.spring_threshold)


def _water_depth(
    topography: TopographyLayerData,
    context: Context,
    cfg: HydrologyConfig,
    streams: np.ndarray,
    order: np.ndarray,
    flow_dir: np.ndarray,
    accumulation: np.ndarray,
    stream_noise: NoiseGenerator,
    pool_noise: NoiseGenerator,
) -> np.ndarray:
    w, h = topography.width, topography.height
    factor = STREAM_DEPTH_FACTOR.get(context.hydrology, 1.0)
    variation = 0.8 + 0.4 * stream_noise.grid(w, h, scale=0.3)
    stream_depth = order.astype(np.float64) * 0.5 * factor * variation
    stream_depth = np.where(topography.is_valley, stream_depth * 1.5, stream_depth)
    depth = np.where(streams, stream_depth, 0.0)

    if context.hydrology is HydrologyType.ARID:
        return depth

    elevation = topography.elevation
    low_cut = topography.min_elevation + 0.3 * (topography.max_elevation - topography.min_elevation)
    sinks = (flow_dir < 0) & (accumulation >= POOL_MIN_ACCUMULATION)
    candidates = (topography.is_valley | (elevation <= low_cut) | sinks) & (topography.slope < 5.0)
    p_noise = pool_noise.grid(w, h, scale=0.2)
    pools = candidates & ~streams & (p_noise > cfg.pool_threshold)
    return np.where(pools, np.maximum(depth, 1.0 + 2.0 * p_noise), depth)


def _moisture(
    context: Context,
    geology: GeologyLayerData,
    accumulation: np.ndarray,
    wet: np.ndarray,
) -> np.ndarray:
    if context.hydrology is HydrologyType.ARID:
        base = Moisture.ARID
    elif context.hydrology is HydrologyType.WETLAND:
        base = Moisture.WET
    else:
        base = Moisture.MODERATE

    level = np.full(accumulation.shape, int(base), dtype=np.int16)
    level = np.where(accumulation > 10.0, np.maximum(level, int(Moisture.MOIST)), level)
    level = np.where(accumulation > 20.0, np.maximum(level, int(Moisture.WET)), level)
    level = np.where(geology.permeability == 0, np.minimum(level + 1, int(Moisture.WET)), level)
    level = np.where(geology.permeability == 3, np.maximum(level - 1, int(Moisture.ARID)), level)
    level = np.where(wet, int(Moisture.SATURATED), level)
    return level.astype(np.uint8)
