# dungeon/config.py
"""Geometry engine configuration.

Settings live in ``config/geometry.yaml`` next to the project root and are
loaded once with :func:`load_config`. The active configuration is kept at
module level so the engines can pick up defaults (FOV radius, checked mode,
flood adjacency) without threading a settings object through every call.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

import structlog
import yaml

from dungeon.errors import ConfigError

log = structlog.get_logger(__name__)

# --- Paths relative to the project root ---
PROJECT_DIR = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_DIR / "config"
CONFIG_FILE = CONFIG_DIR / "geometry.yaml"
CONFIG_ENV_VAR = "GEOMETRY_CONFIG_FILE"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class GeometryConfig:
    """Tunable values shared by the grid, line, FOV and flood modules."""

    fov_radius: int = 6
    line_cache_radius: int = 6
    max_travel_limit: int = 999
    flood_allow_diagonal: bool = True
    # Checked mode raises on programming errors; unchecked mode clamps or
    # returns "not found" and logs a warning instead.
    checked: bool = True
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        for name in ("fov_radius", "line_cache_radius", "max_travel_limit"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ConfigError(f"{name} must be non-negative, got {value}")
        for name in ("flood_allow_diagonal", "checked"):
            if not isinstance(getattr(self, name), bool):
                raise ConfigError(f"{name} must be a boolean")
        if self.fov_radius > self.line_cache_radius:
            log.warning(
                "FOV radius exceeds line cache radius; far cells will read as blocked",
                fov_radius=self.fov_radius,
                line_cache_radius=self.line_cache_radius,
            )
        if str(self.log_level).upper() not in _LOG_LEVELS:
            raise ConfigError(f"Unknown log level: {self.log_level!r}")

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "GeometryConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown geometry config keys: {sorted(unknown)}")
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_active_config = GeometryConfig()


def load_config(config_path: Path | str | None = None) -> GeometryConfig:
    """Load geometry settings from YAML.

    The path resolves from the argument, then ``$GEOMETRY_CONFIG_FILE``, then
    ``config/geometry.yaml``. A missing file yields the defaults; a file that
    cannot be parsed raises :class:`ConfigError`.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR) or CONFIG_FILE
    path = Path(config_path)

    if not path.is_file():
        log.warning("Geometry config file not found, using defaults", path=str(path))
        return GeometryConfig()

    try:
        with path.open("r") as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        log.error("Error parsing geometry YAML", path=str(path), error=str(e))
        raise ConfigError(f"Could not parse {path}: {e}") from e

    if config_data is None:
        log.warning("Geometry config file is empty.", path=str(path))
        return GeometryConfig()
    if not isinstance(config_data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")

    # Allow the settings to sit under a ``geometry:`` section.
    section = config_data.get("geometry", config_data)
    if not isinstance(section, dict):
        raise ConfigError(f"'geometry' section in {path} must be a mapping")

    config = GeometryConfig.from_mapping(section)
    log.info("Geometry config loaded", path=str(path), **config.to_dict())
    return config


def get_config() -> GeometryConfig:
    return _active_config


def set_config(config: GeometryConfig | None = None, **overrides: Any) -> GeometryConfig:
    """Install ``config`` (or the defaults) with ``overrides`` applied."""
    global _active_config
    base = config if config is not None else GeometryConfig()
    _active_config = replace(base, **overrides) if overrides else base
    return _active_config


def is_checked(checked: bool | None = None) -> bool:
    """Resolve an explicit ``checked`` flag against the active config."""
    return _active_config.checked if checked is None else checked
