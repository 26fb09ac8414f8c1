"""
Polygon slicing, shared-edge detection and shared-edge union.

These operate on open rings and absorb the floating point noise produced
by the offset and skeleton stages. The tolerances below are tuned against
that noise; changing them changes which slices and merges succeed.
"""

from typing import List, Optional, Sequence, Tuple

import structlog

from .geometry import (
    Point2D,
    Segment,
    dedupe_consecutive,
    distance,
    line_segment_intersection,
    normalize,
    point_to_segment_distance,
    polygon_area,
)

logger = structlog.get_logger()

# Intersections closer than this are the same hit (line through a vertex)
SLICE_DEDUPE_TOLERANCE = 0.01
# Slice pieces at or below this area are dropped
SLICE_MIN_AREA = 0.1
# Perpendicular distance for two edges to count as collinear
SHARED_EDGE_TOLERANCE = 0.5
# Edges shorter than this are ignored when looking for shared edges
SHARED_EDGE_MIN_LENGTH = 0.5
# Distance for a vertex to count as lying on the shared edge during a merge
MERGE_TOLERANCE = 1.0
# Merged outlines drop consecutive vertices closer than this
MERGE_DEDUPE_TOLERANCE = 0.1


def slice_polygon(
    polygon: Sequence[Point2D], line_start: Point2D, line_end: Point2D
) -> List[List[Point2D]]:
    """
    Cut a polygon with the infinite line through two points.

    Args:
        polygon: Open ring to cut
        line_start: First point on the cutting line
        line_end: Second point on the cutting line

    Returns:
        The two pieces on success. Anything other than two results (the
        unsliced polygon, or a single surviving piece) means the slice failed.
    """
    polygon = list(polygon)
    n = len(polygon)
    if n < 3:
        return [polygon]

    hits: List[Tuple[Point2D, int, float]] = []
    for i in range(n):
        p1 = polygon[i]
        p2 = polygon[(i + 1) % n]
        intersection = line_segment_intersection(line_start, line_end, p1, p2)
        if intersection is None:
            continue

        point, _, u = intersection
        if any(distance(point, existing) < SLICE_DEDUPE_TOLERANCE for existing, _, _ in hits):
            continue
        hits.append((point, i, u))

    if len(hits) != 2:
        return [polygon]

    hits.sort(key=lambda hit: (hit[1], hit[2]))
    (point1, edge1, _), (point2, edge2, _) = hits

    piece1 = [point1] + polygon[edge1 + 1 : edge2 + 1] + [point2]
    piece2 = [point2] + polygon[edge2 + 1 :] + polygon[: edge1 + 1] + [point1]

    result = []
    for piece in (piece1, piece2):
        piece = dedupe_consecutive(piece, SLICE_DEDUPE_TOLERANCE)
        if len(piece) >= 3 and polygon_area(piece) > SLICE_MIN_AREA:
            result.append(piece)

    return result if result else [polygon]


def find_shared_edge(
    poly1: Sequence[Point2D], poly2: Sequence[Point2D]
) -> Optional[Segment]:
    """
    Longest collinear overlap between an edge of ``poly1`` and one of ``poly2``.

    The returned segment runs in the direction of the ``poly1`` edge it lies on.
    """
    best: Optional[Segment] = None
    best_length = 0.0

    for a1, a2 in _edges(poly1):
        if distance(a1, a2) < SHARED_EDGE_MIN_LENGTH:
            continue

        for b1, b2 in _edges(poly2):
            if distance(b1, b2) < SHARED_EDGE_MIN_LENGTH:
                continue

            overlap = edge_overlap(a1, a2, b1, b2, SHARED_EDGE_TOLERANCE)
            if overlap is None:
                continue

            length = distance(*overlap)
            if length > best_length:
                best = overlap
                best_length = length

    return best


def polygons_share_edge(poly1: Sequence[Point2D], poly2: Sequence[Point2D]) -> bool:
    return find_shared_edge(poly1, poly2) is not None


def edge_overlap(
    a1: Point2D, a2: Point2D, b1: Point2D, b2: Point2D, tolerance: float
) -> Optional[Segment]:
    """Overlapping sub-segment of two collinear edges, on the line of a1 -> a2."""
    if point_to_segment_distance(b1, a1, a2) > tolerance:
        return None
    if point_to_segment_distance(b2, a1, a2) > tolerance:
        return None

    length = distance(a1, a2)
    if length < 1e-3:
        return None
    dx, dz = normalize(a2.x - a1.x, a2.z - a1.z)

    proj_b1 = dx * (b1.x - a1.x) + dz * (b1.z - a1.z)
    proj_b2 = dx * (b2.x - a1.x) + dz * (b2.z - a1.z)

    start = max(0.0, min(proj_b1, proj_b2))
    end = min(length, max(proj_b1, proj_b2))

    if end - start <= tolerance:
        return None

    return (
        Point2D(a1.x + dx * start, a1.z + dz * start),
        Point2D(a1.x + dx * end, a1.z + dz * end),
    )


def shared_edge_length(
    poly1: Sequence[Point2D], poly2: Sequence[Point2D], tolerance: float = SHARED_EDGE_TOLERANCE
) -> float:
    """Total collinear overlap between the boundaries of two polygons."""
    total = 0.0

    for a1, a2 in _edges(poly1):
        length = distance(a1, a2)
        if length < 0.01:
            continue
        dx, dz = normalize(a2.x - a1.x, a2.z - a1.z)

        for b1, b2 in _edges(poly2):
            if point_to_segment_distance(b1, a1, a2) > tolerance:
                continue
            if point_to_segment_distance(b2, a1, a2) > tolerance:
                continue

            proj_b1 = dx * (b1.x - a1.x) + dz * (b1.z - a1.z)
            proj_b2 = dx * (b2.x - a1.x) + dz * (b2.z - a1.z)
            start = max(0.0, min(proj_b1, proj_b2))
            end = min(length, max(proj_b1, proj_b2))
            total += max(0.0, end - start)

    return total


def union_polygons(
    poly1: Sequence[Point2D], poly2: Sequence[Point2D]
) -> Optional[List[Point2D]]:
    """
    Merge two polygons that touch along a collinear edge.

    Only handles polygons sharing a full or partial edge, which is what the
    pipeline's own slicing produces. Overlapping polygons are not supported.

    Returns:
        The merged outline, or None when no shared edge exists or the merge
        walk does not close into a polygon of at least 3 vertices.
    """
    if len(poly1) < 3:
        return list(poly2) if len(poly2) >= 3 else None
    if len(poly2) < 3:
        return list(poly1)

    shared = find_shared_edge(poly1, poly2)
    if shared is None:
        logger.debug("Union failed, no shared edge", poly1=len(poly1), poly2=len(poly2))
        return None

    merged = _merge_along_shared_edge(list(poly1), list(poly2), shared)
    if merged is None:
        logger.debug("Union failed, merge walk did not close", poly1=len(poly1), poly2=len(poly2))
    return merged


def _merge_along_shared_edge(
    poly1: List[Point2D], poly2: List[Point2D], shared: Segment
) -> Optional[List[Point2D]]:
    on_edge1 = [
        i for i, p in enumerate(poly1)
        if point_to_segment_distance(p, shared[0], shared[1]) < MERGE_TOLERANCE
    ]
    on_edge2 = [
        i for i, p in enumerate(poly2)
        if point_to_segment_distance(p, shared[0], shared[1]) < MERGE_TOLERANCE
    ]
    if not on_edge1 or not on_edge2:
        return None

    def closest(poly: List[Point2D], target: Point2D, candidates: List[int]) -> int:
        return min(candidates, key=lambda i: distance(poly[i], target))

    p1_start = closest(poly1, shared[0], on_edge1)
    p1_end = closest(poly1, shared[1], on_edge1)
    p2_start = closest(poly2, shared[0], on_edge2)
    p2_end = closest(poly2, shared[1], on_edge2)

    result: List[Point2D] = []

    # Non-shared part of poly1, from the end of the shared edge round to its start
    index = p1_end
    for _ in range(len(poly1)):
        result.append(poly1[index])
        if index == p1_start:
            break
        index = (index + 1) % len(poly1)

    # Non-shared part of poly2, walking away from the shared edge
    m = len(poly2)
    dist_next = point_to_segment_distance(poly2[(p2_start + 1) % m], shared[0], shared[1])
    dist_prev = point_to_segment_distance(poly2[(p2_start - 1) % m], shared[0], shared[1])
    step = 1 if dist_next > dist_prev else -1

    index = (p2_start + step) % m
    for _ in range(m):
        if index == p2_end:
            break
        result.append(poly2[index])
        index = (index + step) % m

    result = dedupe_consecutive(result, MERGE_DEDUPE_TOLERANCE)
    return result if len(result) >= 3 else None


def _edges(polygon: Sequence[Point2D]):
    n = len(polygon)
    for i in range(n):
        yield polygon[i], polygon[(i + 1) % n]
