"""
Strip generation for city blocks.

A block's buildable area is split into strips, each facing one street.
The straight skeleton of the offset polygon gives one face per boundary
edge ("alpha strips"). For typical blocks we go further and cut the polygon
in two along its main axis, so every block ends up with two deep strips,
one per side:

1. Build the skeleton and keep the faces as alpha strips
2. Collect the skeleton's internal segments and build a weighted graph
3. Take the longest path through that graph (double BFS)
4. Re-anchor the path ends on the midpoints of the two shortest
   non-adjacent polygon edges, so the axis runs end to end rather than
   corner to corner
5. Slice the polygon along the axis and give each piece the street identity
   of the alpha strip it most resembles

Any step that cannot produce a clean result falls back to the alpha strips.
Skeleton failures yield no strips at all.
"""

from collections import deque
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel, ConfigDict, Field

from .block_detection import DetectedBlock
from .geometry import (
    Point2D,
    Segment,
    distance,
    midpoint,
    point_to_segment_distance,
    polygon_area,
    polygon_centroid,
    ray_polygon_intersection,
)
from .polygon_ops import SHARED_EDGE_TOLERANCE, edge_overlap, slice_polygon
from .straight_skeleton import SkeletonError, SkeletonFace, build_straight_skeleton

logger = structlog.get_logger()

# Skeleton face edges are matched to offset polygon edges within this distance
EDGE_MATCH_TOLERANCE = 0.1
# Decimal places used when comparing segments by key
SEGMENT_KEY_PRECISION = 4
# Axes shorter than this are not worth slicing along
MIN_AXIS_LENGTH = 1.0
# An alpha strip's frontage midpoint must lie this close to a piece boundary
FRONTAGE_MATCH_TOLERANCE = 1.0


class Strip(BaseModel):
    """A piece of a block facing a single street."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Strip identifier")
    polygon: List[Point2D] = Field(description="Strip outline, not closed")
    block_id: str = Field(description="Owning block")
    street_edge_id: str = Field(description="Street edge the strip fronts, '' if unknown")
    street_edge_segment: Tuple[Point2D, Point2D] = Field(
        description="Frontage segment on the offset boundary"
    )
    area: float = Field(ge=0, description="Absolute area")


def generate_strips(
    block: DetectedBlock,
    offset_polygon: Optional[Sequence[Point2D]],
    edge_widths: Optional[Mapping[str, float]] = None,
) -> List[Strip]:
    """
    Split a block's buildable area into street-facing strips.

    Args:
        block: The detected block
        offset_polygon: Buildable area of the block (inset boundary)
        edge_widths: Known street edges; when given, street ids missing from
            it are reported as ''

    Returns:
        Two strips in the normal case, the alpha strips when the axis split
        does not work out, or an empty list when the skeleton fails.
    """
    if not offset_polygon or len(offset_polygon) < 3:
        return []
    offset_polygon = [Point2D(*p) for p in offset_polygon]

    try:
        skeleton = build_straight_skeleton(offset_polygon)
    except SkeletonError as e:
        logger.warning("Skeleton computation failed", block_id=block.id, error=str(e))
        return []

    alpha_strips = build_alpha_strips(block, offset_polygon, skeleton.faces, edge_widths)
    if not alpha_strips:
        return []

    segments = extract_skeleton_segments(skeleton.faces, offset_polygon)
    path = find_longest_path(segments)
    axis = compute_main_axis(path, offset_polygon)

    if axis is None or distance(axis[0], axis[-1]) < MIN_AXIS_LENGTH:
        logger.debug("Main axis too short, using alpha strips", block_id=block.id)
        return alpha_strips

    pieces = slice_polygon(offset_polygon, axis[0], axis[-1])
    if len(pieces) != 2:
        logger.debug(
            "Axis slice failed, using alpha strips", block_id=block.id, pieces=len(pieces)
        )
        return alpha_strips

    strips = []
    for j, piece in enumerate(pieces):
        street_edge_id, segment = match_piece_to_street(
            piece, alpha_strips, block, offset_polygon, edge_widths
        )
        strips.append(
            Strip(
                id=f"{block.id}_strip_{j}",
                polygon=piece,
                block_id=block.id,
                street_edge_id=street_edge_id,
                street_edge_segment=segment,
                area=polygon_area(piece),
            )
        )

    logger.debug(
        "Strips generated",
        block_id=block.id,
        faces=len(skeleton.faces),
        segments=len(segments),
        strips=len(strips),
    )
    return strips


def build_alpha_strips(
    block: DetectedBlock,
    offset_polygon: List[Point2D],
    faces: List[SkeletonFace],
    edge_widths: Optional[Mapping[str, float]] = None,
) -> List[Strip]:
    """One strip per skeleton face, carrying the street id of its boundary edge."""
    strips = []
    for face in faces:
        if len(face.polygon) < 3:
            continue

        edge_index = find_matching_edge_index(offset_polygon, face.edge_start, face.edge_end)
        strips.append(
            Strip(
                id=f"{block.id}_strip_{len(strips)}",
                polygon=face.polygon,
                block_id=block.id,
                street_edge_id=_street_edge_id(block, edge_index, edge_widths),
                street_edge_segment=(face.edge_start, face.edge_end),
                area=polygon_area(face.polygon),
            )
        )
    return strips


def find_matching_edge_index(
    polygon: Sequence[Point2D], start: Point2D, end: Point2D
) -> int:
    """Index of the polygon edge joining ``start`` and ``end`` in either direction, or -1."""
    n = len(polygon)
    for i in range(n):
        p1, p2 = polygon[i], polygon[(i + 1) % n]
        forward = distance(p1, start) < EDGE_MATCH_TOLERANCE and distance(p2, end) < EDGE_MATCH_TOLERANCE
        backward = distance(p1, end) < EDGE_MATCH_TOLERANCE and distance(p2, start) < EDGE_MATCH_TOLERANCE
        if forward or backward:
            return i
    return -1


def _street_edge_id(
    block: DetectedBlock, edge_index: int, edge_widths: Optional[Mapping[str, float]]
) -> str:
    if edge_index < 0 or edge_index >= len(block.edge_ids):
        return ""
    edge_id = block.edge_ids[edge_index]
    if edge_widths is not None and edge_id not in edge_widths:
        return ""
    return edge_id


def _point_key(p: Point2D) -> Tuple[float, float]:
    return round(p.x, SEGMENT_KEY_PRECISION), round(p.z, SEGMENT_KEY_PRECISION)


def _segment_key(a: Point2D, b: Point2D) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    ka, kb = _point_key(a), _point_key(b)
    return (ka, kb) if ka <= kb else (kb, ka)


def extract_skeleton_segments(
    faces: List[SkeletonFace], polygon: Sequence[Point2D]
) -> List[Segment]:
    """
    Internal skeleton edges, each listed once.

    Face edges that coincide with a polygon edge are boundary, not skeleton.
    """
    n = len(polygon)
    boundary = {_segment_key(polygon[i], polygon[(i + 1) % n]) for i in range(n)}

    seen = set()
    segments: List[Segment] = []
    for face in faces:
        ring = face.polygon
        for i in range(len(ring)):
            a, b = ring[i], ring[(i + 1) % len(ring)]
            key = _segment_key(a, b)
            if key[0] == key[1] or key in boundary or key in seen:
                continue
            seen.add(key)
            segments.append((a, b))

    return segments


def find_longest_path(segments: List[Segment]) -> List[Point2D]:
    """
    Longest path through the segment graph by double BFS.

    Distances accumulate edge lengths, so on a tree (the skeleton) the
    result is the weighted diameter.
    """
    if not segments:
        return []

    graph: Dict[Tuple[float, float], List[Tuple[Tuple[float, float], float]]] = {}
    points: Dict[Tuple[float, float], Point2D] = {}
    for a, b in segments:
        ka, kb = _point_key(a), _point_key(b)
        points.setdefault(ka, a)
        points.setdefault(kb, b)
        weight = distance(a, b)
        graph.setdefault(ka, []).append((kb, weight))
        graph.setdefault(kb, []).append((ka, weight))

    start = next(iter(graph))
    far_a, _ = _farthest(graph, start)
    far_b, parents = _farthest(graph, far_a)

    path = []
    node: Optional[Tuple[float, float]] = far_b
    for _ in range(len(graph) + 1):
        if node is None:
            break
        path.append(points[node])
        node = parents.get(node)
    path.reverse()
    return path


def _farthest(graph, start):
    dist = {start: 0.0}
    parents = {start: None}
    queue = deque([start])

    # Each node is enqueued at most once
    while queue:
        node = queue.popleft()
        for neighbour, weight in graph[node]:
            if neighbour in dist:
                continue
            dist[neighbour] = dist[node] + weight
            parents[neighbour] = node
            queue.append(neighbour)

    farthest = max(dist, key=dist.get)
    return farthest, parents


def find_terminal_edges(polygon: Sequence[Point2D]) -> Optional[Tuple[Segment, Segment]]:
    """
    The shortest polygon edge and the next shortest one not touching it.

    Returns:
        The two edges, or None for polygons with fewer than 4 vertices or
        when no non-adjacent pair exists.
    """
    n = len(polygon)
    if n < 4:
        return None

    order = sorted(range(n), key=lambda i: distance(polygon[i], polygon[(i + 1) % n]))
    shortest = order[0]
    for candidate in order[1:]:
        if candidate in ((shortest - 1) % n, (shortest + 1) % n):
            continue
        return (
            (polygon[shortest], polygon[(shortest + 1) % n]),
            (polygon[candidate], polygon[(candidate + 1) % n]),
        )
    return None


def compute_main_axis(
    path: List[Point2D], polygon: Sequence[Point2D]
) -> Optional[List[Point2D]]:
    """
    Turn the skeleton's longest path into an end-to-end axis.

    The path endpoints are replaced with the midpoints of the terminal edges.
    Without terminal edges the raw path is extended along its end segments
    until it meets the boundary.
    """
    if len(path) < 2:
        return None

    terminals = find_terminal_edges(polygon)
    if terminals is not None:
        mid_a = midpoint(*terminals[0])
        mid_b = midpoint(*terminals[1])
        # Keep each midpoint at the path end it is closer to
        if distance(path[0], mid_a) + distance(path[-1], mid_b) > distance(
            path[0], mid_b
        ) + distance(path[-1], mid_a):
            mid_a, mid_b = mid_b, mid_a
        return [mid_a] + path[1:-1] + [mid_b]

    start = _extend_to_boundary(path[1], path[0], polygon)
    end = _extend_to_boundary(path[-2], path[-1], polygon)
    return [start] + path[1:-1] + [end]


def _extend_to_boundary(inner: Point2D, tip: Point2D, polygon: Sequence[Point2D]) -> Point2D:
    direction = (tip.x - inner.x, tip.z - inner.z)
    hit = ray_polygon_intersection(tip, direction, polygon)
    return hit if hit is not None else tip


def match_piece_to_street(
    piece: List[Point2D],
    alpha_strips: List[Strip],
    block: DetectedBlock,
    offset_polygon: List[Point2D],
    edge_widths: Optional[Mapping[str, float]] = None,
) -> Tuple[str, Segment]:
    """
    Street identity for a sliced piece.

    Prefers the alpha strip with the nearest centroid among those whose
    frontage touches the piece; otherwise uses the piece's longest edge lying
    on the offset boundary.
    """
    centroid = polygon_centroid(piece)
    candidates = [
        strip
        for strip in alpha_strips
        if _distance_to_boundary(midpoint(*strip.street_edge_segment), piece)
        <= FRONTAGE_MATCH_TOLERANCE
    ]

    if candidates:
        best = min(candidates, key=lambda strip: distance(polygon_centroid(strip.polygon), centroid))
        return best.street_edge_id, best.street_edge_segment

    best_segment: Optional[Segment] = None
    best_index = -1
    best_length = 0.0
    n = len(offset_polygon)
    for a, b in _ring_edges(piece):
        for i in range(n):
            overlap = edge_overlap(
                offset_polygon[i], offset_polygon[(i + 1) % n], a, b, SHARED_EDGE_TOLERANCE
            )
            if overlap is not None and distance(*overlap) > best_length:
                best_length = distance(*overlap)
                best_segment = (a, b)
                best_index = i

    if best_segment is None:
        longest = max(_ring_edges(piece), key=lambda edge: distance(*edge))
        return "", longest

    return _street_edge_id(block, best_index, edge_widths), best_segment


def _distance_to_boundary(point: Point2D, polygon: Sequence[Point2D]) -> float:
    return min(point_to_segment_distance(point, a, b) for a, b in _ring_edges(polygon))


def _ring_edges(polygon: Sequence[Point2D]) -> List[Segment]:
    n = len(polygon)
    return [(polygon[i], polygon[(i + 1) % n]) for i in range(n)]
