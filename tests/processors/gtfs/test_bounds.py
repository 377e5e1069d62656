import math

from processors.gtfs.bounds import EMPTY_BOUNDS, Bounds, bounds_center, extend_bounds


def test_center_of_two_points_is_midpoint():
    bounds = extend_bounds(extend_bounds(EMPTY_BOUNDS, [-122.6, 45.5]), [-122.4, 45.7])

    assert bounds.sw == (-122.6, 45.5)
    assert bounds.ne == (-122.4, 45.7)
    center = bounds_center(bounds)
    assert math.isclose(center[0], -122.5)
    assert math.isclose(center[1], 45.6)


def test_points_in_any_order():
    bounds = EMPTY_BOUNDS
    for point in ([1.0, 9.0], [5.0, 2.0], [3.0, 4.0]):
        bounds = extend_bounds(bounds, point)

    assert bounds == Bounds(sw=(1.0, 2.0), ne=(5.0, 9.0))
    assert bounds_center(bounds) == [3.0, 5.5]


def test_single_point_seeds_both_corners():
    bounds = extend_bounds(EMPTY_BOUNDS, [2.0, 3.0])

    assert bounds.sw == bounds.ne == (2.0, 3.0)
    assert bounds_center(bounds) == [2.0, 3.0]


def test_no_points_has_no_center():
    assert EMPTY_BOUNDS.is_empty
    assert bounds_center(EMPTY_BOUNDS) is None
    assert EMPTY_BOUNDS.as_dict() == {"sw": [], "ne": []}


def test_nan_point_is_ignored():
    bounds = extend_bounds(EMPTY_BOUNDS, [1.0, 1.0])

    assert extend_bounds(bounds, [math.nan, 50.0]) == bounds
    assert extend_bounds(EMPTY_BOUNDS, [2.0, math.nan]).is_empty


def test_extend_does_not_mutate():
    bounds = extend_bounds(EMPTY_BOUNDS, [1.0, 1.0])

    extend_bounds(bounds, [5.0, 5.0])

    assert bounds.as_dict() == {"sw": [1.0, 1.0], "ne": [1.0, 1.0]}
