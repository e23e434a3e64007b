import numpy as np
import pytest

from dungeon.errors import LineCacheNotInitializedError, OutOfBoundsError
from dungeon.world import fov as fov_module
from dungeon.world import line_calc
from dungeon.world.fov import FovEngine, LosResult, fov_rect, is_in_fov_range
from dungeon.world.grid import Grid
from dungeon.world.line_calc import LineCache

R = 6


@pytest.fixture(scope="module")
def engine() -> FovEngine:
    return FovEngine(cache=LineCache.build(R))


def _open_mask(width: int = 80, height: int = 80) -> Grid:
    return Grid(width, height, fill=False, dtype=bool)


def _random_mask(seed: int, width: int = 21, height: int = 21, density: float = 0.2) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.random((height, width)) < density


def test_fov_open_map(engine):
    x, y = 40, 40
    fov = engine.run((x, y), _open_mask(), R)

    # Not blocked
    assert not fov.at(x, y).is_blocked_hard
    assert not fov.at(x + 1, y).is_blocked_hard
    assert not fov.at(x - 1, y).is_blocked_hard
    assert not fov.at(x, y + 1).is_blocked_hard
    assert not fov.at(x, y - 1).is_blocked_hard
    assert not fov.at(x + 2, y + 2).is_blocked_hard
    assert not fov.at(x - 2, y + 2).is_blocked_hard
    assert not fov.at(x + 2, y - 2).is_blocked_hard
    assert not fov.at(x - 2, y - 2).is_blocked_hard
    assert not fov.at(x + R, y).is_blocked_hard
    assert not fov.at(x - R, y).is_blocked_hard
    assert not fov.at(x, y + R).is_blocked_hard
    assert not fov.at(x, y - R).is_blocked_hard

    # Blocked due to outside FOV radius
    assert fov.at(x + R + 1, y).is_blocked_hard
    assert fov.at(x - R - 1, y).is_blocked_hard
    assert fov.at(x, y + R + 1).is_blocked_hard
    assert fov.at(x, y - R - 1).is_blocked_hard

    # Blocked in corners of FOV
    assert fov.at(x + R, y - R).is_blocked_hard
    assert fov.at(x - R, y - R).is_blocked_hard
    assert fov.at(x + R, y + R).is_blocked_hard
    assert fov.at(x - R, y + R).is_blocked_hard

    assert fov.at(x + R - 1, y - R + 1).is_blocked_hard
    assert fov.at(x - R + 1, y - R + 1).is_blocked_hard
    assert fov.at(x + R - 1, y + R - 1).is_blocked_hard
    assert fov.at(x - R + 1, y + R - 1).is_blocked_hard

    # Far away cells are never looked at
    assert fov.at(0, 0).is_blocked_hard
    assert fov.at(79, 79).is_blocked_hard


@pytest.mark.parametrize("radius", [4, 5, 6, 7, 8, 9, 10])
def test_fov_radius_and_corner_policy(big_cache, radius):
    engine = FovEngine(cache=big_cache)
    x, y = 30, 30
    fov = engine.run((x, y), _open_mask(61, 61), radius)

    for dx, dy in ((radius, 0), (-radius, 0), (0, radius), (0, -radius)):
        assert fov.is_visible(x + dx, y + dy)
    for dx, dy in ((radius + 1, 0), (-radius - 1, 0), (0, radius + 1), (0, -radius - 1)):
        assert not fov.is_visible(x + dx, y + dy)
    for sx in (-1, 1):
        for sy in (-1, 1):
            assert not fov.is_visible(x + sx * radius, y + sy * radius)
            assert not fov.is_visible(x + sx * (radius - 1), y + sy * (radius - 1))


def test_fov_default_radius_uses_shared_cache():
    line_calc.init()
    fov = fov_module.run((10, 10), _open_mask(21, 21))
    assert fov.radius == 6
    assert fov.is_visible(16, 10)
    assert not fov.is_visible(17, 10)


def test_fov_shared_cache_required(monkeypatch):
    monkeypatch.setattr(line_calc, "_shared_cache", None)
    with pytest.raises(LineCacheNotInitializedError):
        FovEngine().run((5, 5), _open_mask(10, 10), 3)


def test_fov_without_cache_unchecked(monkeypatch):
    monkeypatch.setattr(line_calc, "_shared_cache", None)
    fov = FovEngine(checked=False).run((5, 5), _open_mask(10, 10), 3)
    assert fov.visible_positions() == [(5, 5)]


def test_wall_blocks_the_ray_behind_it(engine):
    mask = _open_mask(20, 20)
    x, y = 5, 10
    mask[x + 2, y] = True
    fov = engine.run((x, y), mask, R)

    assert fov.is_visible(x + 1, y)
    # The wall itself and every cell behind it on the ray
    for step in range(2, R + 1):
        assert not fov.is_visible(x + step, y)
    # Other directions are unaffected
    assert fov.is_visible(x - 3, y)
    assert fov.is_visible(x, y + 3)


def test_see_blockers_reveals_the_wall_only(engine):
    mask = _open_mask(20, 20)
    x, y = 5, 10
    mask[x + 2, y] = True
    fov = engine.run((x, y), mask, R, see_blockers=True)

    assert fov.is_visible(x + 1, y)
    assert fov.is_visible(x + 2, y)
    for step in range(3, R + 1):
        assert not fov.is_visible(x + step, y)


def test_diagonal_wall_blocks_diagonal_ray(engine):
    mask = _open_mask(20, 20)
    x, y = 5, 5
    mask[x + 2, y + 2] = True
    fov = engine.run((x, y), mask, R)

    assert fov.is_visible(x + 1, y + 1)
    assert not fov.is_visible(x + 2, y + 2)
    assert not fov.is_visible(x + 3, y + 3)
    assert not fov.is_visible(x + 4, y + 4)


def test_no_reacquisition_along_straight_rays(engine):
    blocked = _random_mask(seed=7)
    cx = cy = 10
    fov = engine.run((cx, cy), blocked, R)

    directions = [(1, 0), (-1, 0), (0, 1), (0, -1), (1, 1), (-1, 1), (1, -1), (-1, -1)]
    for dx, dy in directions:
        seen_blocked = False
        for step in range(1, R + 1):
            x, y = cx + dx * step, cy + dy * step
            if seen_blocked:
                assert not fov.is_visible(x, y)
            if not fov.is_visible(x, y):
                seen_blocked = True


def test_fov_matches_delta_line_walk(engine):
    blocked = _random_mask(seed=3)
    cx = cy = 10
    fov = engine.run((cx, cy), blocked, R)
    cache = engine.cache

    for y in range(21):
        for x in range(21):
            if (x, y) == (cx, cy):
                assert fov.is_visible(x, y)
                continue
            line = cache.lookup((x - cx, y - cy), R)
            if line is None:
                expected_blocked = True
            else:
                expected_blocked = any(blocked[cy + py, cx + px] for px, py in line[1:])
            assert fov.at(x, y).is_blocked_hard == expected_blocked


def test_viewpoint_always_visible(engine):
    mask = _open_mask(9, 9)
    mask.fill(True)
    fov = engine.run((4, 4), mask, R)
    assert fov.visible_positions() == [(4, 4)]


def test_negative_radius_only_viewpoint_visible(engine):
    fov = engine.run((2, 2), _open_mask(5, 5), -5)
    assert fov.visible_positions() == [(2, 2)]


def test_zero_radius_only_viewpoint_visible(engine):
    fov = engine.run((2, 2), _open_mask(5, 5), 0)
    assert fov.visible_positions() == [(2, 2)]


def test_radius_beyond_cache_is_blocked():
    engine = FovEngine(cache=LineCache.build(3))
    fov = engine.run((10, 10), _open_mask(21, 21), 6)
    assert fov.is_visible(13, 10)
    assert not fov.is_visible(14, 10)
    assert not fov.is_visible(16, 10)


def test_viewpoint_near_map_edge(engine):
    fov = engine.run((0, 0), _open_mask(10, 10), R)
    assert fov.is_visible(6, 0)
    assert fov.is_visible(0, 6)
    assert not fov.is_visible(7, 0)
    assert fov.dims() == (10, 10)


def test_viewpoint_out_of_bounds(engine):
    with pytest.raises(OutOfBoundsError):
        engine.run((-1, -1), _open_mask(5, 5), R)

    unchecked = FovEngine(cache=engine.cache, checked=False)
    fov = unchecked.run((7, 2), _open_mask(5, 5), R)
    assert fov.visible_positions() == []


def test_mask_is_not_mutated_and_runs_are_idempotent(engine):
    blocked = _random_mask(seed=11)
    before = blocked.copy()
    first = engine.run((10, 10), blocked, R)
    second = engine.run((10, 10), blocked, R)
    assert np.array_equal(blocked, before)
    assert first.blocked_hard == second.blocked_hard
    assert first.blocked_by_dark == second.blocked_by_dark


def test_fov_is_rotation_and_mirror_symmetric(engine):
    blocked = _random_mask(seed=5)
    centre = (10, 10)
    base = engine.run(centre, blocked, R).blocked_hard.data

    rotated = engine.run(centre, np.rot90(blocked), R).blocked_hard.data
    assert np.array_equal(rotated, np.rot90(base))

    mirrored = engine.run(centre, np.fliplr(blocked), R).blocked_hard.data
    assert np.array_equal(mirrored, np.fliplr(base))

    flipped = engine.run(centre, np.flipud(blocked), R).blocked_hard.data
    assert np.array_equal(flipped, np.flipud(base))


def test_darkness_blocks_unlit_targets(engine):
    mask = _open_mask(20, 20)
    light = np.zeros((20, 20), dtype=bool)
    dark = np.ones((20, 20), dtype=bool)
    fov = engine.run((10, 10), mask, R, light=light, dark=dark)

    # Adjacent cells are never blocked by darkness
    assert fov.at(11, 10) == LosResult(False, False)
    assert fov.at(13, 10) == LosResult(False, True)
    assert fov.at(10, 10) == LosResult(False, False)


def test_lit_target_is_not_blocked_by_darkness(engine):
    mask = _open_mask(20, 20)
    light = np.zeros((20, 20), dtype=bool)
    dark = np.ones((20, 20), dtype=bool)
    light[10, 13] = True
    fov = engine.run((10, 10), mask, R, light=light, dark=dark)
    assert fov.at(13, 10) == LosResult(False, False)
    assert fov.at(14, 10).is_blocked_by_dark


def test_darkness_ignored_without_both_overlays(engine):
    mask = _open_mask(20, 20)
    dark = np.ones((20, 20), dtype=bool)
    fov = engine.run((10, 10), mask, R, dark=dark)
    assert not fov.blocked_by_dark.data.any()


def test_overlay_shape_mismatch_raises(engine):
    mask = _open_mask(20, 20)
    with pytest.raises(ValueError):
        engine.run((10, 10), mask, R, light=np.zeros((5, 5), bool), dark=np.zeros((5, 5), bool))


def test_check_cell_agrees_with_run(engine):
    blocked = _random_mask(seed=9)
    light = _random_mask(seed=10, density=0.3)
    dark = _random_mask(seed=12, density=0.5)
    p0 = (10, 10)
    full = engine.run(p0, blocked, R, light=light, dark=dark)
    for y in range(21):
        for x in range(21):
            single = engine.check_cell(p0, (x, y), blocked, R, light=light, dark=dark)
            assert single == full.at(x, y)


def test_check_cell_out_of_range(engine):
    mask = _open_mask(30, 30)
    assert engine.check_cell((5, 5), (5, 12), mask, R) == LosResult(True)
    assert engine.check_cell((5, 5), (5, 11), mask, R) == LosResult(False)
    assert engine.check_cell((5, 5), (40, 5), mask, R) == LosResult(True)
    assert engine.check_cell((5, 5), (5, 5), mask, R) == LosResult(False)


def test_cast_light_marks_reachable_cells():
    engine = FovEngine(cache=LineCache.build(R))
    mask = _open_mask(15, 15)
    mask.data[0, :] = mask.data[-1, :] = True
    mask.data[:, 0] = mask.data[:, -1] = True
    mask.data[7, 9] = True
    light = Grid(15, 15, fill=False, dtype=bool)

    lit = engine.cast_light((7, 7), mask, light, 4)

    assert lit == int(light.data.sum())
    assert light[7, 7]
    assert light[9, 7]  # the pillar itself is lit
    assert not light[10, 7]  # but not the cell behind it
    assert not light[0, 0]
    assert engine.cast_light((7, 7), mask, light, 4) == 0


def test_fov_rect_and_range():
    assert fov_rect((2, 3), (10, 10), 6) == ((0, 0), (8, 9))
    assert fov_rect((5, 5), (80, 80), 2) == ((3, 3), (7, 7))
    assert is_in_fov_range((0, 0), (6, 6), 6)
    assert not is_in_fov_range((0, 0), (7, 0), 6)
