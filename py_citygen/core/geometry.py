"""
Shared 2D geometry helpers for the block/strip/lot pipeline.

All polygons are open rings (the last point is not a repeat of the first)
expressed in the ground plane, so coordinates are named ``x`` and ``z``.
"""

import math
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
from shapely.geometry import LinearRing, Point, Polygon


class Point2D(NamedTuple):
    """A point on the ground plane."""

    x: float
    z: float


Segment = Tuple[Point2D, Point2D]


def signed_area(polygon: Sequence[Point2D]) -> float:
    """
    Shoelace signed area of an open ring.

    Returns:
        Positive for counter-clockwise winding, negative for clockwise,
        0 for fewer than 3 points.
    """
    if len(polygon) < 3:
        return 0.0

    pts = np.asarray(polygon, dtype=float)
    x, z = pts[:, 0], pts[:, 1]
    return 0.5 * float(np.dot(x, np.roll(z, -1)) - np.dot(np.roll(x, -1), z))


def polygon_area(polygon: Sequence[Point2D]) -> float:
    """Absolute area of an open ring."""
    return abs(signed_area(polygon))


def polygon_centroid(polygon: Sequence[Point2D]) -> Point2D:
    """Vertex average of a polygon (not the area centroid)."""
    if not polygon:
        return Point2D(0.0, 0.0)
    pts = np.asarray(polygon, dtype=float)
    cx, cz = pts.mean(axis=0)
    return Point2D(float(cx), float(cz))


def distance(a: Point2D, b: Point2D) -> float:
    return math.hypot(b.x - a.x, b.z - a.z)


def midpoint(a: Point2D, b: Point2D) -> Point2D:
    return Point2D((a.x + b.x) / 2, (a.z + b.z) / 2)


def normalize(dx: float, dz: float) -> Tuple[float, float]:
    length = math.hypot(dx, dz)
    if length == 0:
        return 0.0, 0.0
    return dx / length, dz / length


def segment_length(segment: Segment) -> float:
    return distance(segment[0], segment[1])


def point_to_segment_distance(
    point: Point2D, seg_start: Point2D, seg_end: Point2D
) -> float:
    """Distance from a point to the closest point of a finite segment."""
    dx = seg_end.x - seg_start.x
    dz = seg_end.z - seg_start.z
    length_sq = dx * dx + dz * dz

    if length_sq == 0:
        return distance(point, seg_start)

    t = ((point.x - seg_start.x) * dx + (point.z - seg_start.z) * dz) / length_sq
    t = max(0.0, min(1.0, t))
    projection = Point2D(seg_start.x + t * dx, seg_start.z + t * dz)
    return distance(point, projection)


def line_segment_intersection(
    line_start: Point2D,
    line_end: Point2D,
    seg_start: Point2D,
    seg_end: Point2D,
    infinite_line: bool = True,
) -> Optional[Tuple[Point2D, float, float]]:
    """
    Intersect a line (or segment) with a finite segment.

    Args:
        line_start: First point defining the line
        line_end: Second point defining the line
        seg_start: Segment start
        seg_end: Segment end
        infinite_line: When False the first argument pair is also treated
            as a bounded segment

    Returns:
        (point, t, u) where t parameterises the line and u the segment,
        or None for parallel lines or a miss.
    """
    d1x = line_end.x - line_start.x
    d1z = line_end.z - line_start.z
    d2x = seg_end.x - seg_start.x
    d2z = seg_end.z - seg_start.z

    cross = d1x * d2z - d1z * d2x
    if abs(cross) < 1e-10:
        return None

    dx = seg_start.x - line_start.x
    dz = seg_start.z - line_start.z

    t = (dx * d2z - dz * d2x) / cross
    u = (dx * d1z - dz * d1x) / cross

    if u < 0 or u > 1:
        return None
    if not infinite_line and (t < 0 or t > 1):
        return None

    point = Point2D(line_start.x + t * d1x, line_start.z + t * d1z)
    return point, t, u


def ray_polygon_intersection(
    origin: Point2D, direction: Tuple[float, float], polygon: Sequence[Point2D]
) -> Optional[Point2D]:
    """Nearest boundary hit of a ray leaving ``origin`` along ``direction``."""
    dx, dz = normalize(*direction)
    if dx == 0 and dz == 0:
        return None

    far = Point2D(origin.x + dx, origin.z + dz)
    best: Optional[Point2D] = None
    best_t = math.inf

    n = len(polygon)
    for i in range(n):
        hit = line_segment_intersection(origin, far, polygon[i], polygon[(i + 1) % n])
        if hit is None:
            continue
        point, t, _ = hit
        if 1e-6 < t < best_t:
            best_t = t
            best = point

    return best


def point_in_polygon(point: Point2D, polygon: Sequence[Point2D]) -> bool:
    """Strict containment test backed by shapely."""
    if len(polygon) < 3:
        return False
    return Polygon(polygon).contains(Point(point.x, point.z))


def is_simple_polygon(polygon: Sequence[Point2D]) -> bool:
    """True when the ring has no self-intersections."""
    if len(polygon) < 3:
        return False
    return bool(LinearRing(polygon).is_simple)


def dedupe_consecutive(
    polygon: Sequence[Point2D], tolerance: float
) -> List[Point2D]:
    """Drop points closer than ``tolerance`` to their predecessor, wrapping."""
    result: List[Point2D] = []
    for point in polygon:
        if result and distance(result[-1], point) <= tolerance:
            continue
        result.append(point)

    while len(result) > 1 and distance(result[0], result[-1]) <= tolerance:
        result.pop()

    return result
