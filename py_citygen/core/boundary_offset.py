"""
Inset a block boundary by half the width of each bounding street.

The detected block polygon runs along street centrelines. The buildable
land is what remains after pulling every edge inward by half its street's
width. Each corner of the inset polygon is the miter point of the two
offset edges meeting there, clamped for acute corners.
"""

import math
from typing import List, Mapping, Optional

import structlog

from .block_detection import DetectedBlock
from .geometry import Point2D, signed_area

logger = structlog.get_logger()

# Corners whose offset edges are closer than this to parallel use the midpoint
PARALLEL_CROSS_EPSILON = 1e-4
# Boundary edges shorter than this make the block degenerate
MIN_EDGE_LENGTH = 1e-3
# Miter points are kept within this multiple of the larger half width
MITER_LIMIT = 3.0
# Inset polygons smaller than this are treated as collapsed
MIN_OFFSET_AREA = 1.0


def offset_block_boundary(
    block: DetectedBlock,
    edge_widths: Mapping[str, float],
    default_width: float = 10.0,
) -> Optional[List[Point2D]]:
    """
    Compute the buildable area polygon of a block.

    Args:
        block: Detected block (centreline polygon)
        edge_widths: Street width per edge id
        default_width: Width used for edges missing from ``edge_widths``

    Returns:
        Inset polygon with one vertex per block vertex, or None when the
        result is degenerate (winding flipped or area below 1).
    """
    polygon = block.polygon
    n = len(polygon)
    if n < 3:
        return None

    original_area = signed_area(polygon)
    if original_area == 0:
        return None
    is_ccw = original_area > 0

    widths = [edge_widths.get(edge_id) or default_width for edge_id in block.edge_ids]
    if len(widths) < n:
        widths.extend([default_width] * (n - len(widths)))

    offset_polygon: List[Point2D] = []
    for i in range(n):
        prev_index = (i - 1) % n
        corner = compute_inset_corner(
            polygon[prev_index],
            polygon[i],
            polygon[(i + 1) % n],
            widths[prev_index] / 2,
            widths[i] / 2,
            is_ccw,
        )
        if corner is None:
            logger.debug("Degenerate block edge", block_id=block.id, vertex=i)
            return None
        offset_polygon.append(corner)

    offset_area = signed_area(offset_polygon)
    if (offset_area > 0) != is_ccw or abs(offset_area) < MIN_OFFSET_AREA:
        logger.debug(
            "Offset polygon collapsed",
            block_id=block.id,
            original_area=round(original_area, 2),
            offset_area=round(offset_area, 2),
        )
        return None

    return offset_polygon


def compute_inset_corner(
    prev: Point2D,
    curr: Point2D,
    next_: Point2D,
    offset_before: float,
    offset_after: float,
    is_ccw: bool,
) -> Optional[Point2D]:
    """
    Miter point of the two offset edges meeting at ``curr``.

    Args:
        prev: Previous vertex
        curr: Corner vertex
        next_: Next vertex
        offset_before: Inset distance of edge prev -> curr
        offset_after: Inset distance of edge curr -> next
        is_ccw: Winding of the polygon

    Returns:
        The (possibly clamped) miter point, or None for a zero-length edge
    """
    d1x, d1z = curr.x - prev.x, curr.z - prev.z
    d2x, d2z = next_.x - curr.x, next_.z - curr.z
    len1 = math.hypot(d1x, d1z)
    len2 = math.hypot(d2x, d2z)

    if len1 < MIN_EDGE_LENGTH or len2 < MIN_EDGE_LENGTH:
        return None

    u1x, u1z = d1x / len1, d1z / len1
    u2x, u2z = d2x / len2, d2z / len2

    # Interior lies left of the edge direction for CCW rings, right for CW
    sign = -1 if is_ccw else 1
    n1x, n1z = u1z * sign, -u1x * sign
    n2x, n2z = u2z * sign, -u2x * sign

    p1x, p1z = curr.x + n1x * offset_before, curr.z + n1z * offset_before
    p2x, p2z = curr.x + n2x * offset_after, curr.z + n2z * offset_after

    cross = u1x * u2z - u1z * u2x
    if abs(cross) < PARALLEL_CROSS_EPSILON:
        return Point2D((p1x + p2x) / 2, (p1z + p2z) / 2)

    t = ((p2x - p1x) * u2z - (p2z - p1z) * u2x) / cross
    miter_x = p1x + t * u1x
    miter_z = p1z + t * u1z

    miter_distance = math.hypot(miter_x - curr.x, miter_z - curr.z)
    max_distance = max(offset_before, offset_after) * MITER_LIMIT

    if miter_distance > max_distance:
        scale = max_distance / miter_distance
        return Point2D(
            curr.x + (miter_x - curr.x) * scale,
            curr.z + (miter_z - curr.z) * scale,
        )

    return Point2D(miter_x, miter_z)
