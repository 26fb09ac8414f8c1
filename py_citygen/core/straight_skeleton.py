"""
Straight skeleton of a simple polygon.

The skeleton is traced by shrinking every edge inward at unit speed. Each
polygon vertex becomes a wavefront vertex that moves along the bisector of
its two edges; when wavefront vertices meet, the trace they leave behind
becomes a skeleton arc. Two kinds of events change the wavefront:

- edge event: two neighbouring wavefront vertices meet and the edge between
  them disappears
- split event: a reflex vertex runs into a non-adjacent edge and cuts the
  wavefront into two loops

The simulation always processes the earliest pending event and recomputes
candidates afterwards. This is quadratic per step, which is fine for city
blocks (tens of vertices) and keeps degenerate cases (simultaneous events,
parallel edges) easy to reason about.

Every arc records the two polygon edges whose faces it separates, so the
face belonging to each input edge can be walked from the edge's end vertex
back to its start vertex.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from .geometry import Point2D, is_simple_polygon, signed_area

logger = structlog.get_logger()

EPSILON = 1e-9
# Points closer than this are the same skeleton node
SNAP_TOLERANCE = 1e-6
# Slack when checking that a split point lies on the shrunken edge
SPLIT_SLACK = 1e-6


class SkeletonError(Exception):
    """Raised when the skeleton of a polygon cannot be built."""


@dataclass
class SkeletonFace:
    """Region of the polygon swept by one input edge."""

    edge_index: int
    edge_start: Point2D
    edge_end: Point2D
    polygon: List[Point2D]


@dataclass
class SkeletonArc:
    """Skeleton edge separating the faces of two input edges."""

    start: Point2D
    end: Point2D
    left_edge: int
    right_edge: int


@dataclass
class StraightSkeleton:
    """Skeleton arcs and per-edge faces of a counter-clockwise polygon."""

    polygon: List[Point2D]
    arcs: List[SkeletonArc] = field(default_factory=list)
    faces: List[SkeletonFace] = field(default_factory=list)


@dataclass
class _Edge:
    start: Point2D
    end: Point2D
    direction: Tuple[float, float]
    normal: Tuple[float, float]


@dataclass(eq=False)
class _WavefrontVertex:
    point: Point2D
    time: float
    left_edge: int
    right_edge: int
    velocity: Optional[Tuple[float, float]]
    reflex: bool

    @property
    def stalled(self) -> bool:
        return self.velocity is None

    def position(self, time: float) -> Point2D:
        if self.velocity is None:
            return self.point
        dt = time - self.time
        return Point2D(self.point.x + self.velocity[0] * dt, self.point.z + self.velocity[1] * dt)


@dataclass
class _Event:
    time: float
    point: Point2D
    kind: str  # "edge" or "split"
    lav: int
    vertex_a: _WavefrontVertex
    vertex_b: Optional[_WavefrontVertex] = None
    edge_vertex: Optional[_WavefrontVertex] = None  # split: vertex whose right edge is hit


def build_straight_skeleton(polygon: Sequence[Point2D]) -> StraightSkeleton:
    """
    Build the straight skeleton of a simple polygon.

    Args:
        polygon: Open ring in either winding

    Returns:
        Skeleton of the polygon normalised to counter-clockwise order. Face
        edge indices refer to that normalised polygon; use the face's
        ``edge_start``/``edge_end`` to match edges of the caller's polygon.

    Raises:
        SkeletonError: For fewer than 3 vertices, zero-length edges,
            self-intersection, zero area, or a wavefront that cannot finish.
    """
    points = [Point2D(float(p[0]), float(p[1])) for p in polygon]
    if len(points) < 3:
        raise SkeletonError("polygon needs at least 3 vertices")

    area = signed_area(points)
    if abs(area) < EPSILON:
        raise SkeletonError("polygon has zero area")
    if area < 0:
        points.reverse()

    if not is_simple_polygon(points):
        raise SkeletonError("polygon is self-intersecting")

    edges = _build_edges(points)
    builder = _WavefrontBuilder(points, edges)
    arcs = builder.run()

    skeleton = StraightSkeleton(polygon=points, arcs=arcs)
    skeleton.faces = _build_faces(points, arcs)
    logger.debug(
        "Straight skeleton built",
        vertices=len(points),
        arcs=len(arcs),
        faces=len(skeleton.faces),
    )
    return skeleton


def _build_edges(points: List[Point2D]) -> List[_Edge]:
    edges = []
    n = len(points)
    for i in range(n):
        start, end = points[i], points[(i + 1) % n]
        dx, dz = end.x - start.x, end.z - start.z
        length = math.hypot(dx, dz)
        if length < EPSILON:
            raise SkeletonError(f"edge {i} has zero length")
        ux, uz = dx / length, dz / length
        edges.append(_Edge(start, end, (ux, uz), (-uz, ux)))
    return edges


class _WavefrontBuilder:
    """Event loop over lists of active vertices (one list per wavefront loop)."""

    def __init__(self, points: List[Point2D], edges: List[_Edge]):
        self.edges = edges
        self.arcs: List[SkeletonArc] = []
        self.time = 0.0

        n = len(points)
        first = [self._make_vertex(points[i], 0.0, (i - 1) % n, i) for i in range(n)]
        self.lavs: List[List[_WavefrontVertex]] = [first]
        self.max_events = 10 * n + 10

    def run(self) -> List[SkeletonArc]:
        for _ in range(self.max_events):
            self.lavs = [lav for lav in self.lavs if lav]
            if not self.lavs:
                return self.arcs

            event = self._next_event()
            if event is None:
                raise SkeletonError("wavefront stalled before collapsing")

            self.time = max(self.time, event.time)
            if event.kind == "edge":
                self._handle_edge_event(event)
            else:
                self._handle_split_event(event)

        raise SkeletonError("event limit exceeded")

    # Vertex construction

    def _make_vertex(
        self, point: Point2D, time: float, left_edge: int, right_edge: int
    ) -> _WavefrontVertex:
        left = self.edges[left_edge]
        right = self.edges[right_edge]
        velocity = _bisector_velocity(left.normal, right.normal)
        cross = left.direction[0] * right.direction[1] - left.direction[1] * right.direction[0]
        return _WavefrontVertex(
            point=point,
            time=time,
            left_edge=left_edge,
            right_edge=right_edge,
            velocity=velocity,
            reflex=cross < -EPSILON,
        )

    # Event discovery

    def _next_event(self) -> Optional[_Event]:
        best: Optional[_Event] = None

        for lav_index, lav in enumerate(self.lavs):
            if len(lav) < 3:
                # Two-vertex loops are closed immediately when created
                continue

            for i, vertex in enumerate(lav):
                candidate = self._edge_event(lav_index, vertex, lav[(i + 1) % len(lav)])
                best = _earlier(best, candidate)

                if vertex.reflex and not vertex.stalled:
                    for j, other in enumerate(lav):
                        candidate = self._split_event(
                            lav_index, vertex, other, lav[(j + 1) % len(lav)]
                        )
                        best = _earlier(best, candidate)

        return best

    def _edge_event(
        self, lav_index: int, a: _WavefrontVertex, b: _WavefrontVertex
    ) -> Optional[_Event]:
        edge = self.edges[a.right_edge]

        if a.stalled and b.stalled:
            if _close(a.point, b.point):
                return _Event(self.time, a.point, "edge", lav_index, a, b)
            return None

        if a.stalled or b.stalled:
            fixed, moving = (a, b) if a.stalled else (b, a)
            point = _ray_passes_through(moving, fixed.point)
            if point is None:
                return None
        else:
            point = _ray_intersection(a, b)
            if point is None:
                return None

        time = _edge_time(edge, point)
        if time < self.time - SPLIT_SLACK or time < max(a.time, b.time) - SPLIT_SLACK:
            return None
        return _Event(time, point, "edge", lav_index, a, b)

    def _split_event(
        self,
        lav_index: int,
        vertex: _WavefrontVertex,
        left: _WavefrontVertex,
        right: _WavefrontVertex,
    ) -> Optional[_Event]:
        edge_index = left.right_edge
        if edge_index in (vertex.left_edge, vertex.right_edge):
            return None
        if left is vertex or right is vertex:
            return None

        edge = self.edges[edge_index]
        nx, nz = edge.normal
        approach = nx * vertex.velocity[0] + nz * vertex.velocity[1]
        denominator = 1.0 - approach
        if denominator <= EPSILON:
            return None

        offset = nx * (vertex.point.x - edge.start.x) + nz * (vertex.point.z - edge.start.z)
        time = (offset - approach * vertex.time) / denominator
        if time <= vertex.time + EPSILON or time < self.time - SPLIT_SLACK:
            return None

        point = vertex.position(time)

        # The hit must land on the part of the edge still present at that time
        left_pos = left.position(time)
        right_pos = right.position(time)
        ux, uz = edge.direction
        span = ux * (right_pos.x - left_pos.x) + uz * (right_pos.z - left_pos.z)
        along = ux * (point.x - left_pos.x) + uz * (point.z - left_pos.z)
        if span < -SPLIT_SLACK or along < -SPLIT_SLACK or along > span + SPLIT_SLACK:
            return None

        return _Event(time, point, "split", lav_index, vertex, edge_vertex=left)

    # Event handling

    def _handle_edge_event(self, event: _Event) -> None:
        lav = self.lavs[event.lav]
        a, b = event.vertex_a, event.vertex_b
        self._add_arc(a.point, event.point, a.left_edge, a.right_edge)
        self._add_arc(b.point, event.point, b.left_edge, b.right_edge)

        index = lav.index(a)
        merged = self._make_vertex(event.point, event.time, a.left_edge, b.right_edge)
        lav[index] = merged
        lav.remove(b)

        if len(lav) <= 2:
            self._close_lav(event.lav, event.time)

    def _handle_split_event(self, event: _Event) -> None:
        lav = self.lavs[event.lav]
        vertex = event.vertex_a
        left = event.edge_vertex
        hit_edge = left.right_edge

        self._add_arc(vertex.point, event.point, vertex.left_edge, vertex.right_edge)

        start = lav.index(vertex)
        ordered = lav[start:] + lav[:start]
        k = ordered.index(left)

        first = self._make_vertex(event.point, event.time, hit_edge, vertex.right_edge)
        second = self._make_vertex(event.point, event.time, vertex.left_edge, hit_edge)

        loop_a = [first] + ordered[1 : k + 1]
        loop_b = [second] + ordered[k + 1 :]

        self.lavs[event.lav] = loop_a
        self.lavs.append(loop_b)

        for index in (event.lav, len(self.lavs) - 1):
            if len(self.lavs[index]) <= 2:
                self._close_lav(index, event.time)

    def _close_lav(self, lav_index: int, time: float) -> None:
        """Finish a loop that has collapsed to one or two vertices."""
        lav = self.lavs[lav_index]
        if len(lav) == 2:
            a, b = lav
            end_a = a.position(time)
            end_b = b.position(time)
            self._add_arc(a.point, end_a, a.left_edge, a.right_edge)
            self._add_arc(b.point, end_b, b.left_edge, b.right_edge)
            self._add_arc(end_a, end_b, a.left_edge, a.right_edge)
        self.lavs[lav_index] = []

    def _add_arc(self, start: Point2D, end: Point2D, left_edge: int, right_edge: int) -> None:
        if _close(start, end) or left_edge == right_edge:
            return
        self.arcs.append(SkeletonArc(start, end, left_edge, right_edge))


def _bisector_velocity(
    normal_a: Tuple[float, float], normal_b: Tuple[float, float]
) -> Optional[Tuple[float, float]]:
    """Velocity v with v.na == v.nb == 1, or None for anti-parallel edges."""
    det = normal_a[0] * normal_b[1] - normal_a[1] * normal_b[0]
    if abs(det) < EPSILON:
        if normal_a[0] * normal_b[0] + normal_a[1] * normal_b[1] > 0:
            return normal_a
        return None
    vx = (normal_b[1] - normal_a[1]) / det
    vz = (normal_a[0] - normal_b[0]) / det
    return vx, vz


def _ray_intersection(a: _WavefrontVertex, b: _WavefrontVertex) -> Optional[Point2D]:
    (avx, avz), (bvx, bvz) = a.velocity, b.velocity
    cross = avx * bvz - avz * bvx
    if abs(cross) < EPSILON:
        return None

    dx = b.point.x - a.point.x
    dz = b.point.z - a.point.z
    s = (dx * bvz - dz * bvx) / cross
    r = (dx * avz - dz * avx) / cross
    if s < -EPSILON or r < -EPSILON:
        return None
    return Point2D(a.point.x + s * avx, a.point.z + s * avz)


def _ray_passes_through(moving: _WavefrontVertex, target: Point2D) -> Optional[Point2D]:
    vx, vz = moving.velocity
    speed_sq = vx * vx + vz * vz
    if speed_sq < EPSILON:
        return None
    dx = target.x - moving.point.x
    dz = target.z - moving.point.z
    s = (dx * vx + dz * vz) / speed_sq
    if s < -EPSILON:
        return None
    closest = Point2D(moving.point.x + s * vx, moving.point.z + s * vz)
    if not _close(closest, target, tolerance=1e-5):
        return None
    return target


def _edge_time(edge: _Edge, point: Point2D) -> float:
    """Offset distance at which ``point`` lies on the shrunken edge line."""
    nx, nz = edge.normal
    return nx * (point.x - edge.start.x) + nz * (point.z - edge.start.z)


def _earlier(best: Optional[_Event], candidate: Optional[_Event]) -> Optional[_Event]:
    if candidate is None:
        return best
    if best is None:
        return candidate
    if candidate.time < best.time - EPSILON:
        return candidate
    # Simultaneous: edge events first so loops shrink before they split
    if abs(candidate.time - best.time) <= EPSILON and candidate.kind == "edge" and best.kind == "split":
        return candidate
    return best


def _close(a: Point2D, b: Point2D, tolerance: float = SNAP_TOLERANCE) -> bool:
    return abs(a.x - b.x) <= tolerance and abs(a.z - b.z) <= tolerance


class _NodeRegistry:
    """Snaps nearly identical points onto one canonical node."""

    def __init__(self, tolerance: float = SNAP_TOLERANCE):
        self.tolerance = tolerance
        self.nodes: List[Point2D] = []

    def snap(self, point: Point2D) -> int:
        for index, node in enumerate(self.nodes):
            if _close(node, point, self.tolerance):
                return index
        self.nodes.append(point)
        return len(self.nodes) - 1


def _build_faces(points: List[Point2D], arcs: List[SkeletonArc]) -> List[SkeletonFace]:
    registry = _NodeRegistry()
    vertex_ids = [registry.snap(p) for p in points]

    face_adjacency: Dict[int, Dict[int, List[int]]] = {}
    for arc in arcs:
        a = registry.snap(arc.start)
        b = registry.snap(arc.end)
        if a == b:
            continue
        for edge_index in (arc.left_edge, arc.right_edge):
            graph = face_adjacency.setdefault(edge_index, {})
            graph.setdefault(a, []).append(b)
            graph.setdefault(b, []).append(a)

    n = len(points)
    faces = []
    for i in range(n):
        start_id = vertex_ids[i]
        end_id = vertex_ids[(i + 1) % n]
        chain = _walk_face(face_adjacency.get(i, {}), end_id, start_id)
        if chain is None:
            logger.debug("Skeleton face could not be closed", edge_index=i)
            continue

        polygon = [points[i], points[(i + 1) % n]]
        polygon.extend(registry.nodes[node_id] for node_id in chain)
        faces.append(
            SkeletonFace(
                edge_index=i,
                edge_start=points[i],
                edge_end=points[(i + 1) % n],
                polygon=polygon,
            )
        )

    return faces


def _walk_face(graph: Dict[int, List[int]], start: int, goal: int) -> Optional[List[int]]:
    """Interior nodes on the arc path from ``start`` to ``goal`` (both excluded)."""
    if start not in graph:
        return None

    chain: List[int] = []
    visited = {start}
    current = start

    for _ in range(len(graph) + 1):
        candidates = [node for node in graph.get(current, []) if node not in visited or node == goal]
        if goal in candidates:
            return chain
        if not candidates:
            return None
        current = candidates[0]
        visited.add(current)
        chain.append(current)

    return None
