"""
Block detection on a planar street graph.

Blocks are the faces of the street graph. Faces are traced with half-edges:
every undirected street contributes two directed half-edges, each of which
borders exactly one face. Starting from an unvisited half-edge we repeatedly
take, at the node we arrive at, the outgoing half-edge that follows the
reverse of the incoming one in counter-clockwise order. That is the rightmost
turn, which walks the smallest face on that side of the street.

The unbounded exterior face is identified as the face with the largest
absolute area. This can misclassify when an interior face is larger than the
exterior boundary (e.g. a very concave outline); it is kept as is because the
downstream fixtures depend on it.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Set, Tuple

import structlog
from pydantic import BaseModel, ConfigDict, Field

from .geometry import Point2D, polygon_centroid, signed_area
from .street_graph import GraphEdge, GraphNode

logger = structlog.get_logger()


class DetectedBlock(BaseModel):
    """An enclosed face of the street graph."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Block identifier")
    node_ids: List[str] = Field(description="Boundary nodes in walk order")
    edge_ids: List[str] = Field(
        description="Boundary edges; edge_ids[i] joins node_ids[i] and node_ids[i + 1]"
    )
    polygon: List[Point2D] = Field(description="Boundary polygon, not closed")
    area: float = Field(description="Signed area, positive = counter-clockwise")
    is_exterior: bool = Field(default=False, description="Unbounded outer face")


@dataclass(frozen=True)
class HalfEdge:
    """Directed traversal of a street edge."""

    edge_id: str
    from_node_id: str
    to_node_id: str


def detect_blocks(
    nodes: Mapping[str, GraphNode], edges: Mapping[str, GraphEdge]
) -> List[DetectedBlock]:
    """
    Detect all faces of a planar street graph.

    Args:
        nodes: Node id -> node
        edges: Edge id -> edge (width is not used here)

    Returns:
        One block per traced face, exactly one of which is flagged exterior
        when any face was found.
    """
    if not nodes or not edges:
        return []

    adjacency = build_sorted_adjacency(nodes, edges)
    cycles = find_all_cycles(adjacency)

    blocks: List[DetectedBlock] = []
    exterior_index = 0
    max_abs_area = 0.0

    for i, (node_ids, edge_ids) in enumerate(cycles):
        polygon = [nodes[node_id].point for node_id in node_ids]
        area = signed_area(polygon)

        if abs(area) > max_abs_area:
            max_abs_area = abs(area)
            exterior_index = i

        blocks.append(
            DetectedBlock(
                id=f"block_{i}",
                node_ids=node_ids,
                edge_ids=edge_ids,
                polygon=polygon,
                area=area,
            )
        )

    if blocks:
        blocks[exterior_index] = blocks[exterior_index].model_copy(
            update={"is_exterior": True}
        )

    logger.debug("Blocks detected", faces=len(blocks), nodes=len(nodes), edges=len(edges))
    return blocks


def build_sorted_adjacency(
    nodes: Mapping[str, GraphNode], edges: Mapping[str, GraphEdge]
) -> Dict[str, List[HalfEdge]]:
    """Outgoing half-edges per node, sorted counter-clockwise by angle."""
    adjacency: Dict[str, List[HalfEdge]] = {node_id: [] for node_id in nodes}

    for edge_id, edge in edges.items():
        if edge.start_node_id not in nodes or edge.end_node_id not in nodes:
            continue
        if edge.start_node_id == edge.end_node_id:
            continue

        adjacency[edge.start_node_id].append(
            HalfEdge(edge_id, edge.start_node_id, edge.end_node_id)
        )
        adjacency[edge.end_node_id].append(
            HalfEdge(edge_id, edge.end_node_id, edge.start_node_id)
        )

    for node_id, half_edges in adjacency.items():
        origin = nodes[node_id]

        def angle(half_edge: HalfEdge) -> float:
            target = nodes[half_edge.to_node_id]
            return math.atan2(target.z - origin.z, target.x - origin.x)

        half_edges.sort(key=angle)

    return adjacency


def find_all_cycles(
    adjacency: Dict[str, List[HalfEdge]]
) -> List[Tuple[List[str], List[str]]]:
    """Trace every face, consuming each half-edge exactly once."""
    cycles = []
    visited: Set[Tuple[str, str]] = set()

    for half_edges in adjacency.values():
        for start in half_edges:
            if (start.from_node_id, start.to_node_id) in visited:
                continue

            cycle = trace_cycle(adjacency, start, visited)
            if cycle is not None:
                cycles.append(cycle)

    return cycles


def trace_cycle(
    adjacency: Dict[str, List[HalfEdge]],
    start: HalfEdge,
    visited: Set[Tuple[str, str]],
) -> Optional[Tuple[List[str], List[str]]]:
    """
    Walk one face starting from ``start``.

    Returns:
        (node_ids, edge_ids) of the closed walk, or None when the walk hits a
        dead end, exceeds ``2 * len(adjacency)`` steps, or encloses fewer than
        3 distinct nodes.
    """
    node_ids = [start.from_node_id]
    edge_ids: List[str] = []
    current = start
    max_iterations = len(adjacency) * 2

    for _ in range(max_iterations):
        visited.add((current.from_node_id, current.to_node_id))
        edge_ids.append(current.edge_id)

        if current.to_node_id == start.from_node_id and len(node_ids) > 2:
            if len(set(node_ids)) < 3:
                return None
            return node_ids, edge_ids

        node_ids.append(current.to_node_id)

        next_half_edge = find_next_half_edge(
            adjacency, current.from_node_id, current.to_node_id
        )
        if next_half_edge is None:
            return None

        current = next_half_edge

    return None


def find_next_half_edge(
    adjacency: Dict[str, List[HalfEdge]], from_node_id: str, to_node_id: str
) -> Optional[HalfEdge]:
    """Half-edge following the reverse of (from -> to) in CCW order at ``to``."""
    outgoing = adjacency.get(to_node_id, [])
    if len(outgoing) < 2:
        return None

    for index, half_edge in enumerate(outgoing):
        if half_edge.to_node_id == from_node_id:
            return outgoing[(index + 1) % len(outgoing)]

    return None


def get_interior_blocks(blocks: List[DetectedBlock]) -> List[DetectedBlock]:
    return [block for block in blocks if not block.is_exterior]


def get_exterior_block(blocks: List[DetectedBlock]) -> Optional[DetectedBlock]:
    return next((block for block in blocks if block.is_exterior), None)


def get_block_centroid(block: DetectedBlock) -> Point2D:
    return polygon_centroid(block.polygon)
