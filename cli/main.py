"""CLI entry point for battlemap generation."""

from __future__ import annotations

import argparse
from datetime import datetime, timezone
import logging
import platform

import numpy as np

from battlemap.config import (
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    GeneratorConfig,
    HydrologyConfig,
    TopographyConfig,
    VegetationConfig,
)
from battlemap.context import Biome, Context, DevelopmentLevel, ElevationZone, HydrologyType, Season
from battlemap.errors import ValidationError
from battlemap.io import map_output_dir, staged_output, write_elevation, write_meta, write_png
from battlemap.pipeline import TacticalMapResult, generate_tactical_map
from battlemap.render import hillshade, shaded_terrain_rgb
from battlemap.seed import parse_seed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deterministic tactical battlemap generator")
    parser.add_argument("--seed", required=True, help="Integer seed or any non-empty text (e.g. deterministic-test)")
    parser.add_argument("--out", default="out", help="Output root directory")
    parser.add_argument("--width", type=int, default=DEFAULT_WIDTH, help="Map width in 5 ft tiles")
    parser.add_argument("--height", type=int, default=DEFAULT_HEIGHT, help="Map height in 5 ft tiles")
    parser.add_argument("--biome", choices=[b.value for b in Biome], help="Biome; derived from the seed when omitted")
    parser.add_argument("--elevation", choices=[z.value for z in ElevationZone], help="Elevation zone")
    parser.add_argument("--hydrology", choices=[h.value for h in HydrologyType], help="Hydrology type")
    parser.add_argument("--development", choices=[d.value for d in DevelopmentLevel], help="Development level")
    parser.add_argument("--season", choices=[s.value for s in Season], help="Season")
    parser.add_argument("--ruggedness", type=float, default=1.0, help="Terrain ruggedness in [0.5, 2.0]")
    parser.add_argument("--variance", type=float, default=1.0, help="Elevation variance in [0.5, 2.0]")
    parser.add_argument("--abundance", type=float, default=1.0, help="Water abundance in [0.5, 2.0]")
    parser.add_argument("--density", type=float, default=1.0, help="Vegetation density in [0.0, 2.0]")
    parser.add_argument("--overwrite", action="store_true", help="Overwrite files in existing output directory")
    parser.add_argument(
        "--json",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Write metadata JSON file",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging verbosity",
    )
    return parser


def _build_context(args: argparse.Namespace, derived: Context) -> Context:
    return Context(
        biome=args.biome or derived.biome,
        elevation=args.elevation or derived.elevation,
        hydrology=args.hydrology or derived.hydrology,
        development=args.development or derived.development,
        season=args.season or derived.season,
    )


def _metadata(seed_text: str, config: GeneratorConfig, result: TacticalMapResult) -> dict[str, object]:
    violations = [
        {"type": v.violation_type.value, "severity": v.severity.value, "message": v.message, "count": v.count}
        for v in result.validation.violations
    ]
    return {
        **result.summary(),
        "seed_text": seed_text,
        "config": config.to_dict(),
        "violations": violations,
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "python_version": platform.python_version(),
        "numpy_version": np.__version__,
    }


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        seed = parse_seed(args.seed)
        context = _build_context(args, Context.from_seed(seed))
        config = GeneratorConfig(
            topography=TopographyConfig(ruggedness=args.ruggedness, variance=args.variance),
            hydrology=HydrologyConfig(abundance=args.abundance),
            vegetation=VegetationConfig(density=args.density),
        )
        config.check_dimensions(args.width, args.height)
    except ValidationError as exc:
        parser.error(f"{exc} [{exc.code}]")

    result = generate_tactical_map(args.width, args.height, context, seed, config=config)
    elevation = result.layers.topography.elevation
    shade = hillshade(elevation)
    terrain_rgb = shaded_terrain_rgb(result.tiles.terrain, shade)

    out_dir = map_output_dir(args.out, seed, args.width, args.height, overwrite=args.overwrite)
    with staged_output(out_dir, out_root=args.out) as stage:
        write_elevation(stage / "elevation.npy", elevation)
        write_png(stage / "terrain.png", terrain_rgb)
        write_png(stage / "hillshade.png", shade)
        if args.json:
            write_meta(stage / "meta.json", _metadata(args.seed, config, result))

    layers = result.layers
    print(f"Generated battlemap: {out_dir}")
    print(f"Context: {context.describe()}")
    print(
        "Terrain: "
        f"max elevation={layers.topography.max_elevation:.1f}ft, "
        f"streams={len(layers.hydrology.streams)}, "
        f"trees={layers.vegetation.total_trees}, "
        f"buildings={len(layers.structures.buildings)}"
    )
    print(f"Validation: {result.validation.summary}")
    print(f"Generation time: {result.generation_time:.3f} s ({args.width}x{args.height})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
