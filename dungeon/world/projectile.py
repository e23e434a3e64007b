# dungeon/world/projectile.py
"""Projectile and throw paths clipped against a blocking mask."""

from __future__ import annotations

from typing import NamedTuple

import numpy as np

from dungeon.world import line_calc
from dungeon.world.grid import Grid, as_mask_array
from dungeon.world.positions import Point


class ProjectilePath(NamedTuple):
    cells: list[Point]
    # First hard-blocking cell the projectile ran into, if any.
    obstruction: Point | None

    @property
    def landing(self) -> Point:
        return self.cells[-1]


def trace_projectile(
    origin: Point,
    aim: Point,
    blocking_mask: Grid | np.ndarray,
    max_range: int | None = None,
    stop_at_target: bool = False,
) -> ProjectilePath:
    """Trace a projectile from ``origin`` towards ``aim``.

    The path never leaves the map and is cut just before the first blocking
    cell after the origin. By default the projectile flies past ``aim`` until
    ``max_range``, an obstruction or the map edge stops it.
    """
    blocked = as_mask_array(blocking_mask)
    height, width = blocked.shape
    cells = line_calc.trace(
        origin,
        aim,
        stop_at_target=stop_at_target,
        travel_limit=max_range,
        allow_outside_map=False,
        map_dims=(width, height),
    )
    for i in range(1, len(cells)):
        x, y = cells[i]
        if blocked[y, x]:
            return ProjectilePath(cells[:i], (x, y))
    return ProjectilePath(cells, None)


def projectile_path(
    origin: Point,
    aim: Point,
    blocking_mask: Grid | np.ndarray,
    max_range: int | None = None,
    stop_at_target: bool = False,
) -> list[Point]:
    return trace_projectile(origin, aim, blocking_mask, max_range, stop_at_target).cells


def landing_cell(
    origin: Point,
    aim: Point,
    blocking_mask: Grid | np.ndarray,
    max_range: int | None = None,
    stop_at_target: bool = False,
) -> Point:
    """Where a thrown object comes to rest: the last free cell of its path."""
    return trace_projectile(origin, aim, blocking_mask, max_range, stop_at_target).landing
