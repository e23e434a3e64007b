# dungeon/errors.py
"""Exception types raised by the geometry engine.

Only programming errors are raised. Recoverable misses (a delta line that was
never precomputed, a flood fill without reachable sources) resolve to sentinel
values instead.
"""

from __future__ import annotations


class GeometryError(Exception):
    """Base class for all geometry engine errors."""


class OutOfBoundsError(GeometryError, IndexError):
    """A position lies outside the dimensions of the grid it was used with."""

    def __init__(self, x: int, y: int, dims: tuple[int, int]) -> None:
        self.x = x
        self.y = y
        self.dims = dims
        super().__init__(f"Position ({x}, {y}) is outside grid of size {dims[0]}x{dims[1]}")


class LineCacheNotInitializedError(GeometryError, RuntimeError):
    """The shared line cache was queried before ``line_calc.init`` ran."""


class ConfigError(GeometryError, ValueError):
    """The geometry configuration file is unreadable or holds invalid values."""
