# dungeon/world/line_calc.py
"""
Line calculations: an on-demand tracer for projectile and throw paths, and a
cache of precomputed "delta lines" (relative offsets from the origin) used by
the FOV engine.

Rasterization rule
------------------
Lines are drawn with a symmetric digital (Bresenham-family) DDA. The axis with
the larger absolute delta is dominant and advances one cell per step. At step
``i`` the minor axis sits at ``round(i * |d_minor| / |d_major|)``, rounding
halves away from zero, computed exactly in integers as
``(2 * i * |d_minor| + |d_major|) // (2 * |d_major|)``. The rule only ever sees
magnitudes, so mirroring or rotating a target by 90 degrees mirrors or rotates
its line. Equal deltas give exact diagonals.
"""

from __future__ import annotations

import time
from types import MappingProxyType
from typing import Final, Mapping, Sequence, TypeAlias

import numpy as np
import structlog

from dungeon.config import get_config, is_checked
from dungeon.errors import LineCacheNotInitializedError
from dungeon.world.grid import Grid
from dungeon.world.positions import Offset, Point

# --- Type Aliases ---
DeltaLine: TypeAlias = tuple[Offset, ...]

# --- Logging Setup ---
log = structlog.get_logger(__name__)

# Reflections mapping the octant 0 <= dy <= dx onto all eight octants.
_OCTANT_TRANSFORMS: Final[tuple[tuple[int, int, int, int], ...]] = (
    # (xx, xy, yx, yy): x' = x * xx + y * xy, y' = x * yx + y * yy
    (1, 0, 0, 1),
    (0, 1, 1, 0),
    (-1, 0, 0, 1),
    (0, -1, 1, 0),
    (1, 0, 0, -1),
    (0, 1, -1, 0),
    (-1, 0, 0, -1),
    (0, -1, -1, 0),
)


# --- On-demand tracer ---
def _minor_offset(step: int, major: int, minor: int) -> int:
    """Minor-axis offset at ``step``, rounded half away from zero."""
    return (2 * step * minor + major) // (2 * major)


def _resolve_dims(map_dims: Grid | tuple[int, int] | None) -> tuple[int, int]:
    if map_dims is None:
        raise ValueError("map_dims is required when allow_outside_map is False")
    if isinstance(map_dims, Grid):
        return map_dims.dims()
    width, height = map_dims
    return int(width), int(height)


def trace(
    origin: Point,
    target: Point,
    stop_at_target: bool = True,
    travel_limit: int | None = None,
    allow_outside_map: bool = True,
    map_dims: Grid | tuple[int, int] | None = None,
) -> list[Point]:
    """Trace a line of cells from ``origin`` towards ``target``.

    The origin is always the first element and consecutive cells are king-move
    adjacent. ``travel_limit`` caps the king distance travelled, so at most
    ``travel_limit + 1`` cells are returned (``None`` is unlimited). With
    ``stop_at_target=False`` the line continues past ``target`` along the same
    slope. With ``allow_outside_map=False`` the line ends just before its first
    cell outside ``map_dims``.
    """
    if travel_limit is not None and travel_limit < 0:
        raise ValueError("travel_limit must be non-negative")

    width = height = 0
    if not allow_outside_map:
        width, height = _resolve_dims(map_dims)

    ox, oy = origin
    line: list[Point] = [(ox, oy)]

    dx = target[0] - ox
    dy = target[1] - oy
    if dx == 0 and dy == 0:
        return line

    adx, ady = abs(dx), abs(dy)
    sx = (dx > 0) - (dx < 0)
    sy = (dy > 0) - (dy < 0)
    x_major = adx >= ady
    major, minor = (adx, ady) if x_major else (ady, adx)

    if stop_at_target:
        steps = major if travel_limit is None else min(major, travel_limit)
    elif travel_limit is None:
        # Nothing else bounds the trace.
        steps = get_config().max_travel_limit
    else:
        steps = travel_limit

    for i in range(1, steps + 1):
        m = _minor_offset(i, major, minor)
        if x_major:
            px, py = ox + sx * i, oy + sy * m
        else:
            px, py = ox + sx * m, oy + sy * i

        if not allow_outside_map and not (0 <= px < width and 0 <= py < height):
            break

        line.append((px, py))

    return line


# --- Delta line cache ---
class LineCache:
    """Immutable table of delta lines for every offset within ``max_radius``.

    Offsets are covered out to Chebyshev distance ``max_radius`` (a full
    square). :meth:`lookup` further restricts hits to the circle of the
    requested radius. Only one octant is rasterized; the other seven are its
    reflections, which keeps visibility symmetric under rotation and mirroring.
    """

    def __init__(self, max_radius: int, lines: Mapping[Offset, DeltaLine]) -> None:
        self.max_radius = max_radius
        self._lines: Mapping[Offset, DeltaLine] = MappingProxyType(dict(lines))
        self._build_arrays()

    @classmethod
    def build(cls, max_radius: int) -> "LineCache":
        if max_radius < 0:
            raise ValueError("max_radius must be non-negative")
        func_log = log.bind(max_radius=max_radius)
        start_time = time.perf_counter()

        lines: dict[Offset, DeltaLine] = {}
        for dx in range(max_radius + 1):
            for dy in range(dx + 1):
                base = trace((0, 0), (dx, dy), stop_at_target=True)
                for xx, xy, yx, yy in _OCTANT_TRANSFORMS:
                    key = (dx * xx + dy * xy, dx * yx + dy * yy)
                    if key in lines:
                        continue
                    lines[key] = tuple(
                        (px * xx + py * xy, px * yx + py * yy) for px, py in base
                    )

        cache = cls(max_radius, lines)
        duration_ms = (time.perf_counter() - start_time) * 1000
        func_log.info(
            "Line cache built",
            line_count=len(lines),
            duration_ms=f"{duration_ms:.2f}",
        )
        return cache

    def _build_arrays(self) -> None:
        # Row-major offset order keeps the arrays deterministic.
        offsets = sorted(self._lines, key=lambda p: (p[1], p[0]))
        count = len(offsets)
        width = self.max_radius + 1

        self.offsets = np.zeros((count, 2), dtype=np.int64)
        self.lines = np.zeros((count, width, 2), dtype=np.int64)
        self.lengths = np.zeros(count, dtype=np.int64)
        self.dist_sq = np.zeros(count, dtype=np.int64)

        for n, offset in enumerate(offsets):
            line = self._lines[offset]
            self.offsets[n] = offset
            self.lines[n, : len(line)] = line
            self.lengths[n] = len(line)
            self.dist_sq[n] = offset[0] * offset[0] + offset[1] * offset[1]

        for array in (self.offsets, self.lines, self.lengths, self.dist_sq):
            array.flags.writeable = False

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, offset: object) -> bool:
        return offset in self._lines

    def covers(self, offset: Offset) -> bool:
        return max(abs(offset[0]), abs(offset[1])) <= self.max_radius

    def lookup(self, offset: Offset, required_radius: float) -> DeltaLine | None:
        """Return the delta line to ``offset`` or ``None``.

        ``None`` means the offset lies outside the precomputed square, or its
        Euclidean length exceeds ``required_radius``.
        """
        if required_radius < 0 or not self.covers(offset):
            return None
        dx, dy = offset
        if dx * dx + dy * dy > required_radius * required_radius:
            return None
        return self._lines.get((dx, dy))


# --- Process-wide cache ---
_shared_cache: LineCache | None = None


def init(max_radius: int | None = None) -> LineCache:
    """Build the shared line cache once.

    Calling again with a radius the current cache already covers is a no-op; a
    larger radius replaces it.
    """
    global _shared_cache
    if max_radius is None:
        max_radius = get_config().line_cache_radius
    if _shared_cache is not None and _shared_cache.max_radius >= max_radius:
        return _shared_cache
    _shared_cache = LineCache.build(max_radius)
    return _shared_cache


def is_initialized() -> bool:
    return _shared_cache is not None


def clear() -> None:
    """Drop the shared cache so the next :func:`init` rebuilds it."""
    global _shared_cache
    _shared_cache = None


def get_cache(checked: bool | None = None) -> LineCache | None:
    """Return the shared cache.

    Before :func:`init` this raises in checked mode and returns ``None`` (with a
    warning) in unchecked mode.
    """
    if _shared_cache is not None:
        return _shared_cache
    if is_checked(checked):
        raise LineCacheNotInitializedError(
            "line_calc.init() must run before the line cache is used"
        )
    log.warning("Line cache used before init; treating every lookup as a miss")
    return None


def lookup(
    offset: Offset, required_radius: float, checked: bool | None = None
) -> DeltaLine | None:
    cache = get_cache(checked)
    if cache is None:
        return None
    return cache.lookup(offset, required_radius)


def is_king_line(points: Sequence[Point]) -> bool:
    """True if every consecutive pair of ``points`` is king-move adjacent."""
    return all(
        max(abs(b[0] - a[0]), abs(b[1] - a[1])) == 1
        for a, b in zip(points, points[1:])
    )
