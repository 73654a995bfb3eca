from __future__ import annotations

import itertools

import pytest

from docnorm.normalization.geometry import Contour, Point2D, QuadCorners, order_corners, polygon_area

RECTANGLE = [Point2D(10, 20), Point2D(110, 20), Point2D(110, 220), Point2D(10, 220)]


@pytest.mark.parametrize("points", list(itertools.permutations(RECTANGLE)))
def test_order_corners_is_independent_of_tracing_order(points):
    corners = order_corners(Contour(tuple(points)))

    assert corners == QuadCorners(
        top_left=Point2D(10, 20),
        top_right=Point2D(110, 20),
        bottom_left=Point2D(10, 220),
        bottom_right=Point2D(110, 220),
    )
    assert corners.top_left.y <= corners.bottom_left.y
    assert corners.top_left.x <= corners.top_right.x


def test_order_corners_on_tilted_quad():
    contour = Contour((Point2D(420, 90), Point2D(80, 180), Point2D(500, 900), Point2D(150, 980)))

    corners = order_corners(contour)

    assert corners.top_left == Point2D(80, 180)
    assert corners.top_right == Point2D(420, 90)
    assert corners.bottom_left == Point2D(150, 980)
    assert corners.bottom_right == Point2D(500, 900)


@pytest.mark.parametrize(
    "points",
    [
        (),
        (Point2D(0, 0), Point2D(10, 0), Point2D(10, 10)),
        (Point2D(0, 0), Point2D(5, 5), Point2D(10, 10), Point2D(20, 20)),
        (Point2D(0, 0), Point2D(1, 0), Point2D(2, 0), Point2D(3, 0), Point2D(4, 4)),
    ],
)
def test_order_corners_rejects_degenerate_contours(points):
    assert order_corners(Contour(points)) is None


def test_order_corners_accepts_none():
    assert order_corners(None) is None


def test_contour_from_opencv_layout():
    import numpy as np

    contour = Contour.from_array(np.array([[[0, 0]], [[4, 0]], [[4, 3]], [[0, 3]]], dtype=np.int32))

    assert len(contour) == 4
    assert contour.area == pytest.approx(12.0)
    assert contour.as_array().shape == (4, 2)


def test_clockwise_order_matches_transform_source_order():
    corners = order_corners(Contour(tuple(RECTANGLE)))

    assert [tuple(p) for p in corners.as_array().tolist()] == [
        (10.0, 20.0),
        (110.0, 20.0),
        (110.0, 220.0),
        (10.0, 220.0),
    ]
    assert polygon_area(corners.clockwise()) == pytest.approx(100 * 200)
