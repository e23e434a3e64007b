import pytest

from dungeon.config import set_config
from dungeon.world.line_calc import LineCache


@pytest.fixture(autouse=True)
def default_geometry_config():
    """Every test starts from the default (checked) configuration."""
    set_config()
    yield
    set_config()


@pytest.fixture(scope="session")
def big_cache() -> LineCache:
    return LineCache.build(10)
