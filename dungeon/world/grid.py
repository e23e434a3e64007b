# dungeon/world/grid.py
"""Bounded, dense 2D container used for blocking masks and engine results.

Storage is a C-ordered NumPy array of shape ``(height, width)``, indexed
``[y, x]`` like the rest of the map arrays, while the public API speaks
``(x, y)``. Every coordinate access is bounds-checked. In checked mode a bad
coordinate raises :class:`OutOfBoundsError`; in unchecked mode it is clamped to
the nearest valid cell. The mode is fixed when the grid is created.
"""

from __future__ import annotations

from typing import Any, Iterator

import numpy as np
import structlog

from dungeon.config import is_checked
from dungeon.errors import OutOfBoundsError
from dungeon.world.positions import Point, Rect

log = structlog.get_logger(__name__)


class Grid:
    def __init__(
        self,
        width: int,
        height: int,
        fill: Any = 0,
        dtype: Any = None,
        checked: bool | None = None,
    ) -> None:
        self._checked = is_checked(checked)
        self._dtype = dtype
        self._data: np.ndarray = self._allocate(width, height, fill)

    # --- Construction helpers ---
    def _allocate(self, width: int, height: int, fill: Any) -> np.ndarray:
        if width <= 0 or height <= 0:
            log.error("Invalid grid dimensions", width=width, height=height)
            raise ValueError("Grid width and height must be positive integers.")
        return np.full((height, width), fill_value=fill, dtype=self._dtype, order="C")

    @classmethod
    def from_array(cls, array: np.ndarray, checked: bool | None = None) -> "Grid":
        """Wrap a copy of a ``(height, width)`` array."""
        array = np.asarray(array)
        if array.ndim != 2:
            raise ValueError("Grid arrays must be two dimensional")
        grid = cls.__new__(cls)
        grid._checked = is_checked(checked)
        grid._dtype = array.dtype
        if array.shape[0] <= 0 or array.shape[1] <= 0:
            raise ValueError("Grid width and height must be positive integers.")
        grid._data = np.array(array, order="C", copy=True)
        return grid

    def reset(self, width: int, height: int, fill: Any = None) -> None:
        """Discard the current content and reallocate with new dimensions."""
        if fill is None:
            fill = np.zeros((), dtype=self._data.dtype).item()
        self._dtype = self._data.dtype
        self._data = self._allocate(width, height, fill)

    def copy(self) -> "Grid":
        return Grid.from_array(self._data, checked=self._checked)

    # --- Dimensions ---
    @property
    def width(self) -> int:
        return self._data.shape[1]

    @property
    def height(self) -> int:
        return self._data.shape[0]

    @property
    def checked(self) -> bool:
        return self._checked

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def data(self) -> np.ndarray:
        """The backing array, shape ``(height, width)``."""
        return self._data

    def dims(self) -> tuple[int, int]:
        return (self.width, self.height)

    def rect(self) -> Rect:
        return Rect((0, 0), (self.width - 1, self.height - 1))

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    # --- Element access ---
    def _index(self, x: int, y: int) -> tuple[int, int]:
        if self.in_bounds(x, y):
            return y, x
        if self._checked:
            raise OutOfBoundsError(x, y, self.dims())
        log.warning("Clamping out of bounds grid access", x=x, y=y, dims=self.dims())
        return min(max(y, 0), self.height - 1), min(max(x, 0), self.width - 1)

    def at(self, x: int, y: int) -> Any:
        return self._data[self._index(x, y)].item()

    def set(self, x: int, y: int, value: Any) -> None:
        self._data[self._index(x, y)] = value

    def __getitem__(self, pos: Point) -> Any:
        x, y = pos
        return self.at(x, y)

    def __setitem__(self, pos: Point, value: Any) -> None:
        x, y = pos
        self.set(x, y, value)

    def fill(self, value: Any) -> None:
        self._data.fill(value)

    def cells(self) -> Iterator[tuple[int, int, Any]]:
        """Yield ``(x, y, value)`` for every cell, row by row."""
        for y in range(self.height):
            for x in range(self.width):
                yield x, y, self._data[y, x].item()

    def positions_where(self, value: Any = True) -> list[Point]:
        ys, xs = np.nonzero(self._data == value)
        return [(int(x), int(y)) for y, x in zip(ys, xs)]

    # --- Transforms ---
    def rotate_cw(self) -> None:
        """Rotate clockwise; a ``w x h`` grid becomes ``h x w``."""
        self._data = np.ascontiguousarray(np.rot90(self._data, k=-1))

    def rotate_ccw(self) -> None:
        self._data = np.ascontiguousarray(np.rot90(self._data, k=1))

    def flip_hor(self) -> None:
        """Mirror along the vertical axis (x becomes ``w - 1 - x``)."""
        self._data = np.ascontiguousarray(self._data[:, ::-1])

    def flip_ver(self) -> None:
        """Mirror along the horizontal axis (y becomes ``h - 1 - y``)."""
        self._data = np.ascontiguousarray(self._data[::-1, :])

    # --- Comparison ---
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self._data.shape == other._data.shape and bool(
            np.array_equal(self._data, other._data)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Grid(width={self.width}, height={self.height}, dtype={self.dtype})"


def as_mask_array(mask: Grid | np.ndarray, name: str = "blocking_mask") -> np.ndarray:
    """Return a read-only boolean ``(height, width)`` view of ``mask``.

    Accepts a :class:`Grid` or a 2D array. Non-boolean arrays are converted
    with ``astype(bool)``; the caller's storage is never written.
    """
    array = mask.data if isinstance(mask, Grid) else mask
    if not isinstance(array, np.ndarray) or array.ndim != 2:
        raise TypeError(f"{name} must be a Grid or a 2D NumPy array")
    if array.shape[0] == 0 or array.shape[1] == 0:
        raise ValueError(f"{name} must not be empty")
    if not np.issubdtype(array.dtype, np.bool_):
        array = array.astype(np.bool_)
    view = np.ascontiguousarray(array).view()
    view.flags.writeable = False
    return view


def mask_dims(mask: Grid | np.ndarray) -> tuple[int, int]:
    """``(width, height)`` of a Grid or ``(height, width)`` array."""
    if isinstance(mask, Grid):
        return mask.dims()
    return (int(mask.shape[1]), int(mask.shape[0]))
