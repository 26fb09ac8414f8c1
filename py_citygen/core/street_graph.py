"""Street graph records consumed by the block pipeline."""

from dataclasses import dataclass, field
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .geometry import Point2D


class GraphNode(BaseModel):
    """A street intersection or bend."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Node identifier")
    x: float = Field(description="X coordinate")
    z: float = Field(description="Z coordinate")

    @property
    def point(self) -> Point2D:
        return Point2D(self.x, self.z)


class GraphEdge(BaseModel):
    """An undirected street segment between two nodes."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Edge identifier")
    start_node_id: str = Field(description="First endpoint")
    end_node_id: str = Field(description="Second endpoint")
    width: Optional[float] = Field(
        default=None, gt=0, description="Street width, None for the default"
    )


@dataclass
class StreetGraph:
    """Snapshot of the street network with widths resolved."""

    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    edges: Dict[str, GraphEdge] = field(default_factory=dict)
    default_width: float = 10.0

    @classmethod
    def from_mappings(
        cls,
        nodes: Dict[str, GraphNode],
        edges: Dict[str, GraphEdge],
        default_width: float = 10.0,
    ) -> "StreetGraph":
        """Copy the store mappings, applying the default width to bare edges."""
        resolved = {
            edge_id: edge
            if edge.width
            else edge.model_copy(update={"width": default_width})
            for edge_id, edge in edges.items()
        }
        return cls(nodes=dict(nodes), edges=resolved, default_width=default_width)

    @property
    def edge_widths(self) -> Dict[str, float]:
        return {
            edge_id: edge.width if edge.width else self.default_width
            for edge_id, edge in self.edges.items()
        }
