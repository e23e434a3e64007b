# dungeon/world/fov.py
"""
Field of View (FOV) calculations.
Walks the precomputed delta lines from ``line_calc`` outwards from a
viewpoint; a Numba kernel does the per-cell work. Optional caller-owned light
and dark overlays add a "blocked by darkness" flag next to the hard-blocked
one.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import NamedTuple

import numba
import numpy as np
import structlog

from dungeon.config import get_config, is_checked
from dungeon.errors import OutOfBoundsError
from dungeon.world import line_calc
from dungeon.world.grid import Grid, as_mask_array
from dungeon.world.line_calc import LineCache
from dungeon.world.positions import Point, Rect, king_dist

# --- Logging Setup ---
log = structlog.get_logger(__name__)

# Placeholder overlay handed to the kernel when no light/dark maps are given.
_NO_OVERLAY = np.zeros((1, 1), dtype=np.bool_)


class LosResult(NamedTuple):
    is_blocked_hard: bool
    is_blocked_by_dark: bool = False


@dataclass
class FovResult:
    """Per-cell visibility from one viewpoint.

    ``blocked_hard`` is ``True`` for every cell that cannot be seen because of
    walls or distance. ``blocked_by_dark`` is only ever set when light and dark
    overlays were supplied.
    """

    viewpoint: Point
    radius: int
    blocked_hard: Grid
    blocked_by_dark: Grid

    def at(self, x: int, y: int) -> LosResult:
        return LosResult(
            bool(self.blocked_hard.at(x, y)), bool(self.blocked_by_dark.at(x, y))
        )

    def dims(self) -> tuple[int, int]:
        return self.blocked_hard.dims()

    def is_visible(self, x: int, y: int) -> bool:
        return not self.blocked_hard.at(x, y)

    def visible_mask(self) -> np.ndarray:
        """Boolean ``(height, width)`` array of cells not hard-blocked."""
        return ~self.blocked_hard.data

    def visible_positions(self) -> list[Point]:
        return self.blocked_hard.positions_where(False)


# --- Geometry helpers ---
def fov_rect(p: Point, map_dims: tuple[int, int], radius: int) -> Rect:
    """The square of cells within ``radius`` of ``p``, clipped to the map."""
    width, height = map_dims
    p0 = (max(0, p[0] - radius), max(0, p[1] - radius))
    p1 = (min(width - 1, p[0] + radius), min(height - 1, p[1] + radius))
    return Rect(p0, p1)


def is_in_fov_range(p0: Point, p1: Point, radius: int) -> bool:
    return king_dist(p0, p1) <= radius


# --- Numba Core ---
@numba.njit(cache=True)
def _compute_fov_numba_core(
    vx, vy, blocked, light, dark, use_overlays,
    offsets, lines, lengths, dist_sq, radius,
    see_blockers, out_hard, out_dark,
):
    """Fill ``out_hard``/``out_dark`` for every offset inside ``radius``."""
    height, width = blocked.shape
    radius_sq = radius * radius

    for n in range(offsets.shape[0]):
        if dist_sq[n] > radius_sq:
            continue
        tx = vx + offsets[n, 0]
        ty = vy + offsets[n, 1]
        if tx < 0 or ty < 0 or tx >= width or ty >= height:
            continue

        length = lengths[n]
        is_blocked_hard = False
        is_blocked_by_dark = False
        tgt_is_lit = False
        if use_overlays:
            tgt_is_lit = light[ty, tx]

        for i in range(1, length):
            cx = vx + lines[n, i, 0]
            cy = vy + lines[n, i, 1]

            if use_overlays and i > 1 and not tgt_is_lit:
                px = vx + lines[n, i - 1, 0]
                py = vy + lines[n, i - 1, 1]
                if not light[cy, cx] and (dark[cy, cx] or dark[py, px]):
                    is_blocked_by_dark = True

            if see_blockers and i == length - 1:
                break

            if blocked[cy, cx]:
                is_blocked_hard = True
                break

        out_hard[ty, tx] = is_blocked_hard
        out_dark[ty, tx] = is_blocked_by_dark


def _walk_delta_line(
    p0: Point,
    delta_line: line_calc.DeltaLine,
    blocked: np.ndarray,
    light: np.ndarray | None,
    dark: np.ndarray | None,
    see_blockers: bool,
) -> LosResult:
    """Python counterpart of the kernel's inner loop, for single-cell checks."""
    x0, y0 = p0
    tx, ty = x0 + delta_line[-1][0], y0 + delta_line[-1][1]
    use_overlays = light is not None and dark is not None
    tgt_is_lit = bool(light[ty, tx]) if use_overlays else False
    is_blocked_by_dark = False
    last = len(delta_line) - 1

    for i in range(1, len(delta_line)):
        cx, cy = x0 + delta_line[i][0], y0 + delta_line[i][1]

        if use_overlays and i > 1 and not tgt_is_lit:
            px, py = x0 + delta_line[i - 1][0], y0 + delta_line[i - 1][1]
            if not light[cy, cx] and (dark[cy, cx] or dark[py, px]):
                is_blocked_by_dark = True

        if see_blockers and i == last:
            break

        if blocked[cy, cx]:
            return LosResult(True, is_blocked_by_dark)

    return LosResult(False, is_blocked_by_dark)


class FovEngine:
    """Computes visibility from a viewpoint over a blocking mask.

    The engine holds nothing but the line cache it reads; every call is a pure
    function of its arguments. Without an explicit ``cache`` the shared one
    from :func:`line_calc.init` is used.
    """

    def __init__(self, cache: LineCache | None = None, checked: bool | None = None) -> None:
        self._cache = cache
        self._checked = checked

    @property
    def cache(self) -> LineCache | None:
        if self._cache is not None:
            return self._cache
        return line_calc.get_cache(self._checked)

    def _overlay_arrays(
        self,
        shape: tuple[int, int],
        light: Grid | np.ndarray | None,
        dark: Grid | np.ndarray | None,
    ) -> tuple[np.ndarray | None, np.ndarray | None]:
        if light is None or dark is None:
            if (light is None) != (dark is None):
                log.debug("Only one of light/dark given; darkness is ignored")
            return None, None
        light_arr = as_mask_array(light, "light")
        dark_arr = as_mask_array(dark, "dark")
        if light_arr.shape != shape or dark_arr.shape != shape:
            raise ValueError("light and dark overlays must match the blocking mask shape")
        return light_arr, dark_arr

    def _check_viewpoint(self, viewpoint: Point, dims: tuple[int, int]) -> bool:
        x, y = viewpoint
        if 0 <= x < dims[0] and 0 <= y < dims[1]:
            return True
        if is_checked(self._checked):
            raise OutOfBoundsError(x, y, dims)
        log.warning("FOV viewpoint out of bounds", viewpoint=viewpoint, dims=dims)
        return False

    def run(
        self,
        viewpoint: Point,
        blocking_mask: Grid | np.ndarray,
        radius: int | None = None,
        light: Grid | np.ndarray | None = None,
        dark: Grid | np.ndarray | None = None,
        see_blockers: bool = False,
    ) -> FovResult:
        """Compute the FOV from ``viewpoint``.

        A cell is hard-blocked when it lies beyond ``radius`` (Euclidean), has
        no cached delta line, or when any cell on its delta line after the
        viewpoint is blocking. The cell itself counts too, unless
        ``see_blockers`` is set, in which case a wall ending an unobstructed
        line is reported as visible. The viewpoint is always visible.
        """
        if radius is None:
            radius = get_config().fov_radius
        blocked = as_mask_array(blocking_mask)
        height, width = blocked.shape
        dims = (width, height)

        func_log = log.bind(viewpoint=viewpoint, radius=radius, dims=dims)
        start_time = time.perf_counter()

        out_hard = np.ones((height, width), dtype=np.bool_)
        out_dark = np.zeros((height, width), dtype=np.bool_)

        if self._check_viewpoint(viewpoint, dims):
            vx, vy = viewpoint
            light_arr, dark_arr = self._overlay_arrays(blocked.shape, light, dark)
            cache = self.cache

            if cache is not None and radius >= 0:
                use_overlays = light_arr is not None
                _compute_fov_numba_core(
                    vx, vy, blocked,
                    light_arr if use_overlays else _NO_OVERLAY,
                    dark_arr if use_overlays else _NO_OVERLAY,
                    use_overlays,
                    cache.offsets, cache.lines, cache.lengths, cache.dist_sq,
                    int(radius), bool(see_blockers), out_hard, out_dark,
                )
                if radius > cache.max_radius:
                    func_log.debug(
                        "FOV radius exceeds line cache; far cells stay blocked",
                        cache_radius=cache.max_radius,
                    )

            out_hard[vy, vx] = False
            out_dark[vy, vx] = False

        checked = is_checked(self._checked)
        result = FovResult(
            viewpoint=viewpoint,
            radius=radius,
            blocked_hard=Grid.from_array(out_hard, checked=checked),
            blocked_by_dark=Grid.from_array(out_dark, checked=checked),
        )

        duration_ms = (time.perf_counter() - start_time) * 1000
        func_log.debug(
            "FOV computation finished",
            duration_ms=f"{duration_ms:.2f}",
            visible_count=int(np.count_nonzero(~out_hard)),
        )
        return result

    def check_cell(
        self,
        p0: Point,
        p1: Point,
        blocking_mask: Grid | np.ndarray,
        radius: int | None = None,
        light: Grid | np.ndarray | None = None,
        dark: Grid | np.ndarray | None = None,
        see_blockers: bool = False,
    ) -> LosResult:
        """Line of sight from ``p0`` to a single cell ``p1``.

        Gives the same answer as ``run(p0, ...).at(*p1)`` without computing
        the whole field.
        """
        if radius is None:
            radius = get_config().fov_radius
        blocked = as_mask_array(blocking_mask)
        height, width = blocked.shape
        if not self._check_viewpoint(p0, (width, height)):
            return LosResult(True)
        if p0 == p1:
            return LosResult(False)
        if not (0 <= p1[0] < width and 0 <= p1[1] < height):
            return LosResult(True)
        if not is_in_fov_range(p0, p1, radius):
            return LosResult(True)

        cache = self.cache
        if cache is None:
            return LosResult(True)
        delta_line = cache.lookup((p1[0] - p0[0], p1[1] - p0[1]), radius)
        if delta_line is None:
            return LosResult(True)

        light_arr, dark_arr = self._overlay_arrays(blocked.shape, light, dark)
        return _walk_delta_line(p0, delta_line, blocked, light_arr, dark_arr, see_blockers)

    def cast_light(
        self,
        origin: Point,
        blocking_mask: Grid | np.ndarray,
        light: Grid | np.ndarray,
        radius: int | None = None,
    ) -> int:
        """Mark every cell a light source at ``origin`` reaches as lit.

        Walls bordering the lit area are lit as well. Only ``light`` is
        written; returns the number of cells newly lit.
        """
        result = self.run(origin, blocking_mask, radius, see_blockers=True)
        light_arr = light.data if isinstance(light, Grid) else light
        if light_arr.shape != result.blocked_hard.data.shape:
            raise ValueError("light overlay must match the blocking mask shape")
        reached = result.visible_mask()
        newly_lit = int(np.count_nonzero(reached & ~light_arr.astype(np.bool_)))
        light_arr[reached] = True
        log.debug("Light cast", origin=origin, radius=radius, newly_lit=newly_lit)
        return newly_lit


# --- Module-level conveniences using the shared line cache ---
def run(
    viewpoint: Point,
    blocking_mask: Grid | np.ndarray,
    radius: int | None = None,
    light: Grid | np.ndarray | None = None,
    dark: Grid | np.ndarray | None = None,
    see_blockers: bool = False,
) -> FovResult:
    return FovEngine().run(viewpoint, blocking_mask, radius, light, dark, see_blockers)


def check_cell(
    p0: Point,
    p1: Point,
    blocking_mask: Grid | np.ndarray,
    radius: int | None = None,
    light: Grid | np.ndarray | None = None,
    dark: Grid | np.ndarray | None = None,
    see_blockers: bool = False,
) -> LosResult:
    return FovEngine().check_cell(p0, p1, blocking_mask, radius, light, dark, see_blockers)


__all__ = [
    "FovEngine",
    "FovResult",
    "LosResult",
    "check_cell",
    "fov_rect",
    "is_in_fov_range",
    "run",
]
