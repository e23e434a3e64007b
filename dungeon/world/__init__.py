"""Grid container and the line, FOV and flood-fill algorithms built on it."""

from dungeon.world.flood import FloodFillEngine, floodfill, reached_mask
from dungeon.world.fov import FovEngine, FovResult, LosResult
from dungeon.world.grid import Grid
from dungeon.world.line_calc import LineCache, trace
from dungeon.world.positions import Point, Rect, king_dist
from dungeon.world.projectile import landing_cell, projectile_path, trace_projectile

__all__ = [
    "FloodFillEngine",
    "FovEngine",
    "FovResult",
    "Grid",
    "LineCache",
    "LosResult",
    "Point",
    "Rect",
    "floodfill",
    "king_dist",
    "landing_cell",
    "projectile_path",
    "reached_mask",
    "trace",
    "trace_projectile",
]
