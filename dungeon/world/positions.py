# dungeon/world/positions.py
"""Positions, offsets and rectangles shared by the geometry modules."""

from __future__ import annotations

from typing import Final, Iterator, NamedTuple, TypeAlias

import numpy as np

# --- Type Aliases ---
Point: TypeAlias = tuple[int, int]  # (x, y)
Offset: TypeAlias = tuple[int, int]  # (dx, dy) relative to some origin

# --- Direction Lists ---
# Cardinals come first so that slicing [:4] gives 4-directional adjacency.
CARDINAL_DIRS: Final[tuple[Offset, ...]] = ((1, 0), (-1, 0), (0, 1), (0, -1))
DIAGONAL_DIRS: Final[tuple[Offset, ...]] = ((1, 1), (-1, 1), (1, -1), (-1, -1))
KING_DIRS: Final[tuple[Offset, ...]] = CARDINAL_DIRS + DIAGONAL_DIRS
KING_DIRS_W_CENTER: Final[tuple[Offset, ...]] = ((0, 0),) + KING_DIRS

# Same order as KING_DIRS, as an array for the numba kernels (columns: dx, dy).
DIRECTIONS_8: Final[np.ndarray] = np.array(KING_DIRS, dtype=np.int64)


def king_dist(p0: Point, p1: Point) -> int:
    """Chebyshev distance: the number of king moves between two cells."""
    return max(abs(p1[0] - p0[0]), abs(p1[1] - p0[1]))


def is_adjacent(p0: Point, p1: Point) -> bool:
    """True when the cells differ by at most one step on each axis."""
    return king_dist(p0, p1) <= 1


def add(p: Point, offset: Offset) -> Point:
    return (p[0] + offset[0], p[1] + offset[1])


def sub(p0: Point, p1: Point) -> Offset:
    return (p0[0] - p1[0], p0[1] - p1[1])


class Rect(NamedTuple):
    """Inclusive rectangle from ``p0`` (top left) to ``p1`` (bottom right)."""

    p0: Point
    p1: Point

    @property
    def w(self) -> int:
        return self.p1[0] - self.p0[0] + 1

    @property
    def h(self) -> int:
        return self.p1[1] - self.p0[1] + 1

    def is_pos_inside(self, p: Point) -> bool:
        return self.p0[0] <= p[0] <= self.p1[0] and self.p0[1] <= p[1] <= self.p1[1]

    def positions(self) -> Iterator[Point]:
        """Yield every cell in the rectangle, row by row."""
        for y in range(self.p0[1], self.p1[1] + 1):
            for x in range(self.p0[0], self.p1[0] + 1):
                yield (x, y)
