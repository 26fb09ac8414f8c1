"""
Street network store.

The block pipeline reads street nodes and edges from a store and listens for
changes to it. ``StreetStore`` is the interface the pipeline depends on;
``InMemoryStreetStore`` is a plain dictionary-backed implementation used by
scripts and tests. Listeners are called synchronously, without arguments,
after every mutation, so they should only schedule work.
"""

import threading
from typing import Callable, Dict, List, Optional, Protocol

from ..core.street_graph import GraphEdge, GraphNode

Listener = Callable[[], None]


class StreetStore(Protocol):
    """Source of street nodes and edges with change notification."""

    def get_nodes(self) -> Dict[str, GraphNode]:
        ...

    def get_edges(self) -> Dict[str, GraphEdge]:
        ...

    def add_listener(self, listener: Listener) -> None:
        ...

    def remove_listener(self, listener: Listener) -> None:
        ...


class InMemoryStreetStore:
    """Dictionary-backed street store. Last write wins."""

    def __init__(self):
        self._nodes: Dict[str, GraphNode] = {}
        self._edges: Dict[str, GraphEdge] = {}
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()

    # Readers return copies so a rebuild sees a consistent snapshot

    def get_nodes(self) -> Dict[str, GraphNode]:
        with self._lock:
            return dict(self._nodes)

    def get_edges(self) -> Dict[str, GraphEdge]:
        with self._lock:
            return dict(self._edges)

    # Node mutations

    def add_node(self, node_id: str, x: float, z: float) -> GraphNode:
        node = GraphNode(id=node_id, x=x, z=z)
        with self._lock:
            self._nodes[node_id] = node
        self._notify()
        return node

    def move_node(self, node_id: str, x: float, z: float) -> GraphNode:
        with self._lock:
            if node_id not in self._nodes:
                raise KeyError(f"Unknown node: {node_id}")
            node = self._nodes[node_id].model_copy(update={"x": x, "z": z})
            self._nodes[node_id] = node
        self._notify()
        return node

    def remove_node(self, node_id: str) -> None:
        """Remove a node and every edge attached to it."""
        with self._lock:
            if self._nodes.pop(node_id, None) is None:
                return
            incident = [
                edge_id
                for edge_id, edge in self._edges.items()
                if node_id in (edge.start_node_id, edge.end_node_id)
            ]
            for edge_id in incident:
                del self._edges[edge_id]
        self._notify()

    # Edge mutations

    def add_edge(
        self,
        edge_id: str,
        start_node_id: str,
        end_node_id: str,
        width: Optional[float] = None,
    ) -> GraphEdge:
        edge = GraphEdge(
            id=edge_id, start_node_id=start_node_id, end_node_id=end_node_id, width=width
        )
        with self._lock:
            self._edges[edge_id] = edge
        self._notify()
        return edge

    def set_edge_width(self, edge_id: str, width: Optional[float]) -> GraphEdge:
        with self._lock:
            if edge_id not in self._edges:
                raise KeyError(f"Unknown edge: {edge_id}")
            edge = GraphEdge(**{**self._edges[edge_id].model_dump(), "width": width})
            self._edges[edge_id] = edge
        self._notify()
        return edge

    def remove_edge(self, edge_id: str) -> None:
        with self._lock:
            if self._edges.pop(edge_id, None) is None:
                return
        self._notify()

    # Listeners

    def add_listener(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener()
