# main.py
"""Console demo of the geometry engine.

Builds a small walled room with a few pillars, then prints the field of view
and a flood-fill distance field from a viewpoint, and the resting cell of an
object thrown from it.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

import numpy as np
import structlog

from dungeon.config import CONFIG_FILE, GeometryConfig, load_config, set_config
from dungeon.errors import GeometryError
from dungeon.world import line_calc
from dungeon.world.flood import FloodFillEngine
from dungeon.world.fov import FovEngine, FovResult
from dungeon.world.grid import Grid
from dungeon.world.positions import Point
from dungeon.world.projectile import trace_projectile
from utils.logging_utils import setup_logging

log = structlog.get_logger()

# --- Default Configuration ---
DEFAULT_MAP_WIDTH = 40
DEFAULT_MAP_HEIGHT = 20
DEFAULT_VIEWPOINT = (12, 10)
DEFAULT_THROW_TARGET = (30, 4)


def build_demo_mask(width: int = DEFAULT_MAP_WIDTH, height: int = DEFAULT_MAP_HEIGHT) -> Grid:
    """A walled rectangle with a pillar row and a short interior wall."""
    mask = Grid(width, height, fill=False, dtype=bool)
    data = mask.data
    data[0, :] = data[-1, :] = True
    data[:, 0] = data[:, -1] = True
    for x in range(6, width - 6, 6):
        if height > 6:
            data[5, x] = True
    wall_x = width * 2 // 3
    data[height // 3 : height - 2, wall_x] = True
    return mask


def render_fov(mask: Grid, fov: FovResult) -> str:
    """``@`` viewpoint, ``#``/``.`` for visible wall/floor, blank when unseen."""
    vx, vy = fov.viewpoint
    rows = []
    for y in range(mask.height):
        row = []
        for x in range(mask.width):
            if (x, y) == (vx, vy):
                row.append("@")
            elif fov.blocked_hard.data[y, x]:
                row.append(" ")
            else:
                row.append("#" if mask.data[y, x] else ".")
        rows.append("".join(row))
    return "\n".join(rows)


def render_flood(mask: Grid, field: Grid, source: Point) -> str:
    """Distances modulo 10; ``#`` for walls, ``S`` for the source."""
    rows = []
    for y in range(mask.height):
        row = []
        for x in range(mask.width):
            if (x, y) == source:
                row.append("S")
            elif mask.data[y, x]:
                row.append("#")
            else:
                value = int(field.data[y, x])
                row.append(str(value % 10) if value > 0 else " ")
        rows.append("".join(row))
    return "\n".join(rows)


def _parse_point(text: str) -> Point:
    try:
        x_str, y_str = text.split(",")
        return (int(x_str), int(y_str))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected 'x,y', got {text!r}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Dungeon geometry engine demo.")
    parser.add_argument(
        "--config", type=Path, default=None, help=f"Geometry YAML (default: {CONFIG_FILE})"
    )
    parser.add_argument("--radius", type=int, default=None, help="FOV radius override.")
    parser.add_argument(
        "--viewpoint", type=_parse_point, default=DEFAULT_VIEWPOINT, help="Viewpoint as x,y."
    )
    parser.add_argument(
        "--throw-at", type=_parse_point, default=DEFAULT_THROW_TARGET, help="Throw target as x,y."
    )
    parser.add_argument(
        "--max-distance", type=int, default=None, help="Flood fill distance limit."
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: from config)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config: GeometryConfig = load_config(args.config)
    except GeometryError as e:
        setup_logging(logging.INFO)
        log.critical("Failed to load geometry config", error=str(e))
        return 2

    setup_logging(args.log_level or config.log_level)
    set_config(config)

    radius = config.fov_radius if args.radius is None else args.radius
    line_calc.init(max(config.line_cache_radius, radius))

    mask = build_demo_mask()
    try:
        fov = FovEngine().run(args.viewpoint, mask, radius, see_blockers=True)
        field = FloodFillEngine().run(args.viewpoint, mask, max_distance=args.max_distance)
        throw = trace_projectile(args.viewpoint, args.throw_at, mask)
    except GeometryError as e:
        log.error("Geometry query failed", error=str(e))
        return 1

    print(f"--- Field of view from {args.viewpoint} (radius {radius}) ---")
    print(render_fov(mask, fov))
    print(f"\n--- Flood fill from {args.viewpoint} ---")
    print(render_flood(mask, field, args.viewpoint))
    print(f"\n--- Throw towards {args.throw_at} ---")
    print(f"Path: {throw.cells}")
    print(f"Lands at {throw.landing}" + (f", stopped by {throw.obstruction}" if throw.obstruction else ""))

    log.info(
        "Demo finished",
        visible_cells=int(np.count_nonzero(fov.visible_mask())),
        max_flood_distance=int(field.data.max()),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
