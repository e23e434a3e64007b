# dungeon/world/flood.py
"""Multi-source flood fill producing integer step-distance fields.

Output convention: ``0`` marks a source *and* any cell that is blocked,
unreached or beyond ``max_distance``. Reachable non-source cells hold their
minimum step count to the nearest source. Callers tell sources apart from
unreached cells through the source list or :func:`reached_mask`; the shared
``0`` is kept because existing callers compare against it.
"""

from __future__ import annotations

import time
from typing import Iterable, Sequence

import numba
import numpy as np
import structlog

from dungeon.config import get_config, is_checked
from dungeon.errors import OutOfBoundsError
from dungeon.world.grid import Grid, as_mask_array
from dungeon.world.positions import DIRECTIONS_8, Point

log = structlog.get_logger(__name__)


@numba.njit(cache=True)
def _floodfill_numba_core(blocked, sources, max_distance, n_dirs, stop_x, stop_y, out):
    """Layered BFS over ``blocked``; writes distances into ``out``.

    Returns the number of cells reached, sources included.
    """
    height, width = blocked.shape
    visited = np.zeros((height, width), dtype=np.bool_)
    queue = np.empty((height * width, 2), dtype=np.int64)
    head = 0
    tail = 0

    for s in range(sources.shape[0]):
        x = sources[s, 0]
        y = sources[s, 1]
        if blocked[y, x] or visited[y, x]:
            continue
        visited[y, x] = True
        queue[tail, 0] = x
        queue[tail, 1] = y
        tail += 1

    while head < tail:
        x = queue[head, 0]
        y = queue[head, 1]
        head += 1

        dist = out[y, x]
        if max_distance >= 0 and dist >= max_distance:
            continue

        for k in range(n_dirs):
            nx = x + DIRECTIONS_8[k, 0]
            ny = y + DIRECTIONS_8[k, 1]
            if nx < 0 or ny < 0 or nx >= width or ny >= height:
                continue
            if visited[ny, nx] or blocked[ny, nx]:
                continue
            visited[ny, nx] = True
            out[ny, nx] = dist + 1
            queue[tail, 0] = nx
            queue[tail, 1] = ny
            tail += 1
            if nx == stop_x and ny == stop_y:
                return tail

    return tail


def _is_single_point(sources: Point | Iterable[Point]) -> bool:
    return (
        isinstance(sources, (tuple, list))
        and len(sources) == 2
        and all(isinstance(v, (int, np.integer)) for v in sources)
    )


class FloodFillEngine:
    """Breadth-first distance fields over a blocking mask."""

    def __init__(self, checked: bool | None = None) -> None:
        self._checked = checked

    def _valid_sources(
        self, sources: Sequence[Point], dims: tuple[int, int]
    ) -> np.ndarray:
        width, height = dims
        valid: list[Point] = []
        for x, y in sources:
            if 0 <= x < width and 0 <= y < height:
                valid.append((int(x), int(y)))
            elif is_checked(self._checked):
                raise OutOfBoundsError(x, y, dims)
            else:
                log.warning("Skipping flood source outside the map", source=(x, y))
        return np.array(valid, dtype=np.int64).reshape(-1, 2)

    def run(
        self,
        sources: Point | Iterable[Point],
        blocking_mask: Grid | np.ndarray,
        max_distance: int | None = None,
        allow_diagonal: bool | None = None,
        stop_at: Point | None = None,
    ) -> Grid:
        """Flood from one source position or a collection of them.

        ``max_distance`` of ``None`` is unlimited; cells exactly
        ``max_distance`` steps away are still assigned. ``stop_at`` ends the
        fill as soon as that cell receives a distance. ``allow_diagonal``
        defaults to the configured adjacency.
        """
        if max_distance is not None and max_distance < 0:
            raise ValueError("max_distance must be non-negative or None")
        if allow_diagonal is None:
            allow_diagonal = get_config().flood_allow_diagonal

        source_list = [tuple(sources)] if _is_single_point(sources) else [tuple(p) for p in sources]
        blocked = as_mask_array(blocking_mask)
        height, width = blocked.shape
        dims = (width, height)

        func_log = log.bind(
            source_count=len(source_list),
            dims=dims,
            max_distance=max_distance,
            allow_diagonal=allow_diagonal,
        )
        start_time = time.perf_counter()

        out = np.zeros((height, width), dtype=np.int32)
        source_arr = self._valid_sources(source_list, dims)

        if source_arr.shape[0] == 0:
            func_log.debug("Flood fill has no valid sources")
            return Grid.from_array(out, checked=is_checked(self._checked))

        stop_x, stop_y = stop_at if stop_at is not None else (-1, -1)
        if stop_at is not None and [stop_x, stop_y] in source_arr.tolist():
            # The stop cell is a source: nothing to expand.
            reached = source_arr.shape[0]
        else:
            reached = _floodfill_numba_core(
                blocked,
                source_arr,
                -1 if max_distance is None else int(max_distance),
                8 if allow_diagonal else 4,
                int(stop_x),
                int(stop_y),
                out,
            )

        duration_ms = (time.perf_counter() - start_time) * 1000
        func_log.debug(
            "Flood fill finished",
            reached=int(reached),
            duration_ms=f"{duration_ms:.2f}",
        )
        return Grid.from_array(out, checked=is_checked(self._checked))


def floodfill(
    source: Point | Iterable[Point],
    blocking_mask: Grid | np.ndarray,
    max_distance: int | None = None,
    allow_diagonal: bool | None = None,
    stop_at: Point | None = None,
) -> Grid:
    return FloodFillEngine().run(source, blocking_mask, max_distance, allow_diagonal, stop_at)


def reached_mask(
    field: Grid,
    sources: Point | Iterable[Point],
    blocking_mask: Grid | np.ndarray,
) -> np.ndarray:
    """Boolean array of cells the fill reached, sources included.

    Resolves the shared ``0`` sentinel: positive cells were reached, and a
    zero cell was reached only if it is an unblocked source.
    """
    blocked = as_mask_array(blocking_mask)
    mask = field.data > 0
    source_list = [tuple(sources)] if _is_single_point(sources) else [tuple(p) for p in sources]
    for x, y in source_list:
        if field.in_bounds(x, y) and not blocked[y, x]:
            mask[y, x] = True
    return mask


__all__ = ["FloodFillEngine", "floodfill", "reached_mask"]
