"""Points, contours and quadrilateral corners."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import logging

import numpy as np

LOGGER = logging.getLogger(__name__)

MIN_QUAD_AREA = 1.0


@dataclass(frozen=True, slots=True)
class Point2D:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class Contour:
    """Closed polygon, vertices in tracing order."""

    points: Tuple[Point2D, ...]

    @classmethod
    def from_array(cls, array: np.ndarray) -> "Contour":
        # OpenCV contours come as (N, 1, 2)
        flat = np.asarray(array).reshape(-1, 2)
        return cls(tuple(Point2D(float(x), float(y)) for x, y in flat))

    def as_array(self) -> np.ndarray:
        return np.array([(p.x, p.y) for p in self.points], dtype=np.float32).reshape(-1, 2)

    @property
    def area(self) -> float:
        return polygon_area(self.points)

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True, slots=True)
class QuadCorners:
    top_left: Point2D
    top_right: Point2D
    bottom_left: Point2D
    bottom_right: Point2D

    def clockwise(self) -> Tuple[Point2D, Point2D, Point2D, Point2D]:
        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    def as_array(self) -> np.ndarray:
        """Corners as float32 (4, 2) in clockwise order starting top-left."""
        return np.array([(p.x, p.y) for p in self.clockwise()], dtype=np.float32)

    def as_dict(self) -> dict:
        return {
            "top_left": (self.top_left.x, self.top_left.y),
            "top_right": (self.top_right.x, self.top_right.y),
            "bottom_left": (self.bottom_left.x, self.bottom_left.y),
            "bottom_right": (self.bottom_right.x, self.bottom_right.y),
        }


def polygon_area(points) -> float:
    if len(points) < 3:
        return 0.0
    xs = np.array([p.x for p in points], dtype=np.float64)
    ys = np.array([p.y for p in points], dtype=np.float64)
    return float(abs(np.dot(xs, np.roll(ys, -1)) - np.dot(ys, np.roll(xs, -1))) / 2.0)


def _cross(o: Point2D, a: Point2D, b: Point2D) -> float:
    return (a.x - o.x) * (b.y - o.y) - (a.y - o.y) * (b.x - o.x)


def _segments_cross(p1: Point2D, p2: Point2D, q1: Point2D, q2: Point2D) -> bool:
    d1 = _cross(q1, q2, p1)
    d2 = _cross(q1, q2, p2)
    d3 = _cross(p1, p2, q1)
    d4 = _cross(p1, p2, q2)
    return d1 * d2 < 0 and d3 * d4 < 0


def is_simple_quad(corners: QuadCorners) -> bool:
    tl, tr, br, bl = corners.clockwise()
    # Opposite edges of a simple quadrilateral never cross
    return not (_segments_cross(tl, tr, br, bl) or _segments_cross(tr, br, bl, tl))


def order_corners(contour: Optional[Contour]) -> Optional[QuadCorners]:
    """Assign top/bottom by y and left/right by x within each pair.

    Returns None for anything that is not a usable quadrilateral: a vertex
    count other than 4, collinear points, or a self-intersecting outline.
    """
    if contour is None or len(contour) != 4:
        return None

    by_y = sorted(contour.points, key=lambda p: (p.y, p.x))
    top = sorted(by_y[:2], key=lambda p: (p.x, p.y))
    bottom = sorted(by_y[2:], key=lambda p: (p.x, p.y))
    corners = QuadCorners(
        top_left=top[0],
        top_right=top[1],
        bottom_left=bottom[0],
        bottom_right=bottom[1],
    )

    if polygon_area(corners.clockwise()) < MIN_QUAD_AREA:
        LOGGER.debug("Rejecting degenerate quadrilateral %s", corners.as_dict())
        return None
    if not is_simple_quad(corners):
        LOGGER.debug("Rejecting self-intersecting quadrilateral %s", corners.as_dict())
        return None
    return corners
