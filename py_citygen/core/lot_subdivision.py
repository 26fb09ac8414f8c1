"""
Lot subdivision of street-facing strips.

A strip is cut into lots by rays perpendicular to its street frontage:

1. Choose the lot count from the frontage length and target lot width
2. Cast one ray per lot boundary, jittered along the frontage
3. Slice the strip with every ray in turn
4. Link pieces that share an edge
5. Merge pieces that are too small or lack frontage into their best neighbour

Jitter is drawn from an Alea PRNG seeded with the strip id, so the same
strip always yields the same lots.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

import structlog
from pydantic import BaseModel, ConfigDict, Field

from .geometry import (
    Point2D,
    Segment,
    distance,
    midpoint,
    normalize,
    point_in_polygon,
    point_to_segment_distance,
    polygon_area,
)
from .polygon_ops import shared_edge_length, slice_polygon, union_polygons
from .strip_generation import Strip
from ..utils.random import prng_for

logger = structlog.get_logger()

# Pieces sharing more than this length of boundary are neighbours
ADJACENCY_MIN_SHARED = 0.5
# Edge endpoints within this distance of the frontage count as frontage
FRONTAGE_TOLERANCE = 1.0
MAX_MERGE_PASSES = 10
# Lots below this area are dropped from the output
MIN_OUTPUT_AREA = 1.0
JITTER_FRACTION = 0.2


class SubdivisionRules(BaseModel):
    """Lot subdivision parameters."""

    model_config = ConfigDict(frozen=True)

    min_lot_frontage: float = Field(
        default=10.0, gt=0, description="Minimum street frontage per lot"
    )
    max_lot_frontage: float = Field(
        default=50.0, gt=0, description="Frontage above which a lot is split further"
    )
    min_lot_area: float = Field(default=200.0, gt=0, description="Minimum lot area")
    max_lot_depth: float = Field(
        default=40.0,
        gt=0,
        description="Nominal lot depth; not enforced yet, rays and lots are not capped by it",
    )
    target_lot_width: float = Field(default=25.0, gt=0, description="Preferred lot width")
    jitter_seed: str = Field(default="lots", description="Seed prefix for boundary jitter")


class GeneratedLot(BaseModel):
    """A buildable parcel produced from a strip."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Lot identifier")
    polygon: List[Point2D] = Field(description="Lot outline, not closed")
    area: float = Field(ge=0, description="Absolute area")
    street_edge_id: str = Field(description="Street edge inherited from the strip")
    frontage_length: float = Field(ge=0, description="Boundary length along the street")


@dataclass
class _Piece:
    polygon: List[Point2D]
    neighbours: Set[int] = field(default_factory=set)
    valid: bool = False


def subdivide_strip(strip: Strip, rules: SubdivisionRules) -> List[GeneratedLot]:
    """
    Split a strip into lots along its street frontage.

    Args:
        strip: Strip to subdivide
        rules: Subdivision parameters

    Returns:
        Lots in slicing order. Strips that are too small or too narrow
        come back as a single lot.
    """
    if strip.area < rules.min_lot_area or len(strip.polygon) < 3:
        return [_single_lot(strip)]

    rays = generate_splitting_rays(strip, rules)
    if not rays:
        return [_single_lot(strip)]

    pieces = split_with_rays(strip.polygon, rays)
    for piece in pieces.values():
        piece.valid = validate_lot(piece.polygon, strip.street_edge_segment, rules)

    merges = merge_invalid_pieces(pieces, strip.street_edge_segment, rules)

    lots = []
    for piece in pieces.values():
        if len(piece.polygon) < 3:
            continue
        area = polygon_area(piece.polygon)
        if area < MIN_OUTPUT_AREA:
            continue
        lots.append(
            GeneratedLot(
                id=f"{strip.id}_lot_{len(lots)}",
                polygon=piece.polygon,
                area=area,
                street_edge_id=strip.street_edge_id,
                frontage_length=frontage_length(piece.polygon, strip.street_edge_segment),
            )
        )

    logger.debug(
        "Strip subdivided", strip_id=strip.id, rays=len(rays), merges=merges, lots=len(lots)
    )
    return lots


def _single_lot(strip: Strip) -> GeneratedLot:
    return GeneratedLot(
        id=f"{strip.id}_lot_0",
        polygon=strip.polygon,
        area=strip.area,
        street_edge_id=strip.street_edge_id,
        frontage_length=distance(*strip.street_edge_segment),
    )


def lot_count(frontage: float, rules: SubdivisionRules) -> int:
    """Number of lots along a frontage, capped so no lot exceeds the maximum frontage."""
    # Half-up rounding, ties go to the larger count
    return max(
        math.floor(frontage / rules.target_lot_width + 0.5),
        math.ceil(frontage / rules.max_lot_frontage),
        1,
    )


def generate_splitting_rays(strip: Strip, rules: SubdivisionRules) -> List[Segment]:
    """
    Perpendicular cutting rays at the lot boundaries along the frontage.

    Returns:
        One (start, end) pair per interior lot boundary; empty when the strip
        should stay a single lot.
    """
    front_start, front_end = strip.street_edge_segment
    frontage = distance(front_start, front_end)
    if frontage == 0:
        return []

    num_lots = lot_count(frontage, rules)
    lot_width = frontage / num_lots
    if num_lots <= 1 or lot_width < rules.min_lot_frontage:
        return []

    dx, dz = normalize(front_end.x - front_start.x, front_end.z - front_start.z)
    px, pz = inward_perpendicular((dx, dz), strip.polygon, front_start, front_end)
    reach = max_ray_length(strip.polygon)
    prng = prng_for(rules.jitter_seed, strip.id)

    rays = []
    for i in range(1, num_lots):
        jitter = (prng.random() - 0.5) * JITTER_FRACTION * lot_width
        t = min(0.95, max(0.05, i / num_lots + jitter / frontage))

        origin = Point2D(front_start.x + dx * frontage * t, front_start.z + dz * frontage * t)
        start = Point2D(origin.x - px, origin.z - pz)
        end = Point2D(origin.x + px * reach, origin.z + pz * reach)
        rays.append((start, end))

    return rays


def inward_perpendicular(
    direction: Tuple[float, float],
    polygon: List[Point2D],
    front_start: Point2D,
    front_end: Point2D,
) -> Tuple[float, float]:
    """Unit normal of the frontage that points into ``polygon``."""
    dx, dz = direction
    mid = midpoint(front_start, front_end)
    probe = Point2D(mid.x - dz * 0.1, mid.z + dx * 0.1)
    if point_in_polygon(probe, polygon):
        return -dz, dx
    return dz, -dx


def max_ray_length(polygon: List[Point2D]) -> float:
    xs = [p.x for p in polygon]
    zs = [p.z for p in polygon]
    return math.hypot(max(xs) - min(xs), max(zs) - min(zs)) * 1.5


def split_with_rays(polygon: List[Point2D], rays: List[Segment]) -> Dict[int, _Piece]:
    """Slice ``polygon`` by every ray in turn and link pieces sharing an edge."""
    current = [list(polygon)]
    for start, end in rays:
        sliced = []
        for poly in current:
            sliced.extend(slice_polygon(poly, start, end))
        current = sliced

    pieces = {i: _Piece(poly) for i, poly in enumerate(p for p in current if len(p) >= 3)}

    keys = list(pieces)
    for a_index, a in enumerate(keys):
        for b in keys[a_index + 1 :]:
            if shared_edge_length(pieces[a].polygon, pieces[b].polygon) > ADJACENCY_MIN_SHARED:
                pieces[a].neighbours.add(b)
                pieces[b].neighbours.add(a)

    return pieces


def frontage_length(polygon: List[Point2D], street_edge: Segment) -> float:
    """Total length of polygon edges lying along the street edge."""
    total = 0.0
    n = len(polygon)
    for i in range(n):
        p1, p2 = polygon[i], polygon[(i + 1) % n]
        if (
            point_to_segment_distance(p1, *street_edge) < FRONTAGE_TOLERANCE
            and point_to_segment_distance(p2, *street_edge) < FRONTAGE_TOLERANCE
        ):
            total += distance(p1, p2)
    return total


def validate_lot(polygon: List[Point2D], street_edge: Segment, rules: SubdivisionRules) -> bool:
    if polygon_area(polygon) < rules.min_lot_area:
        return False
    return frontage_length(polygon, street_edge) >= rules.min_lot_frontage


def merge_invalid_pieces(
    pieces: Dict[int, _Piece],
    street_edge: Segment,
    rules: SubdivisionRules,
    max_passes: int = MAX_MERGE_PASSES,
) -> int:
    """
    Fold invalid pieces into the neighbour they share the most boundary with.

    One merge happens per pass; ``pieces`` is modified in place.

    Returns:
        Number of merges performed
    """
    merges = 0
    for _ in range(max_passes):
        merged = False

        for piece_id, piece in list(pieces.items()):
            if piece.valid:
                continue

            best_id = None
            best_shared = 0.0
            for neighbour_id in piece.neighbours:
                neighbour = pieces.get(neighbour_id)
                if neighbour is None:
                    continue
                shared = shared_edge_length(piece.polygon, neighbour.polygon)
                if shared > best_shared:
                    best_shared = shared
                    best_id = neighbour_id

            if best_id is None:
                continue

            neighbour = pieces[best_id]
            union = union_polygons(piece.polygon, neighbour.polygon)
            if union is None or len(union) < 3:
                continue

            neighbour.polygon = union
            neighbour.valid = validate_lot(union, street_edge, rules)

            for other_id in piece.neighbours:
                if other_id == best_id:
                    continue
                neighbour.neighbours.add(other_id)
                other = pieces.get(other_id)
                if other is not None:
                    other.neighbours.discard(piece_id)
                    other.neighbours.add(best_id)
            neighbour.neighbours.discard(piece_id)

            del pieces[piece_id]
            merges += 1
            merged = True
            break

        if not merged:
            break

    return merges
