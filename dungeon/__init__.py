"""Spatial geometry engine for a turn-based dungeon crawler.

The engine is made of a bounded grid container plus three algorithms built on
top of it: line tracing, field of view and flood-fill distance fields.
"""

from dungeon.errors import (
    ConfigError,
    GeometryError,
    LineCacheNotInitializedError,
    OutOfBoundsError,
)

__all__ = [
    "ConfigError",
    "GeometryError",
    "LineCacheNotInitializedError",
    "OutOfBoundsError",
]
