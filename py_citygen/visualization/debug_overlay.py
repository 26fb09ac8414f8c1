"""
Matplotlib debug overlay for a block generation.

Draws the street centrelines, block outlines, buildable (offset) areas,
strips and lots of one ``Generation`` in the ground plane, each layer
with its own colour so the stages can be compared.
"""

from pathlib import Path
from typing import Optional, Sequence, Union

import matplotlib.pyplot as plt
import structlog
from pydantic import BaseModel, Field

from ..core.geometry import Point2D
from ..engine.block_manager import Generation

logger = structlog.get_logger()


class OverlayOptions(BaseModel):
    """Layer toggles and colours for the debug overlay."""

    show_streets: bool = Field(default=True, description="Draw street centrelines")
    show_blocks: bool = Field(default=True, description="Draw block centreline outlines")
    show_offset_blocks: bool = Field(default=True, description="Draw buildable areas")
    show_strips: bool = Field(default=False, description="Draw strips")
    show_lots: bool = Field(default=True, description="Draw lots")

    street_color: str = Field(default="#555555", description="Street colour")
    block_color: str = Field(default="#ff00ff", description="Block outline colour")
    offset_block_color: str = Field(default="#00cccc", description="Buildable area colour")
    strip_color: str = Field(default="#3366cc", description="Strip colour")
    lot_color: str = Field(default="#ccaa00", description="Lot colour")


def _ring_xy(polygon: Sequence[Point2D]):
    xs = [p[0] for p in polygon]
    zs = [p[1] for p in polygon]
    # Close the ring for plotting
    return xs + xs[:1], zs + zs[:1]


def draw_generation(generation: Generation, ax, options: Optional[OverlayOptions] = None):
    """
    Draw a generation onto a matplotlib axes.

    Args:
        generation: Rebuild result to draw
        ax: Target axes
        options: Layer toggles and colours

    Returns:
        The axes, for chaining
    """
    options = options or OverlayOptions()

    if options.show_streets and generation.edges:
        # Node positions come from the block outlines; streets outside any
        # block have no known geometry here and are skipped
        positions = {}
        for block in generation.blocks:
            for node_id, point in zip(block.node_ids, block.polygon):
                positions[node_id] = point
        for edge in generation.edges.values():
            start = positions.get(edge.start_node_id)
            end = positions.get(edge.end_node_id)
            if start is None or end is None:
                continue
            ax.plot(
                [start.x, end.x],
                [start.z, end.z],
                color=options.street_color,
                linewidth=max(0.5, (edge.width or 1.0) / 4),
                alpha=0.4,
                solid_capstyle="round",
            )

    if options.show_blocks:
        for block in generation.blocks:
            xs, zs = _ring_xy(block.polygon)
            ax.plot(xs, zs, color=options.block_color, linewidth=1.0, linestyle="--")

    if options.show_offset_blocks:
        for polygon in generation.offset_polygons:
            if polygon is None:
                continue
            xs, zs = _ring_xy(polygon)
            ax.plot(xs, zs, color=options.offset_block_color, linewidth=1.2)

    if options.show_strips:
        for strip in generation.strips:
            xs, zs = _ring_xy(strip.polygon)
            ax.fill(xs, zs, color=options.strip_color, alpha=0.15)
            ax.plot(xs, zs, color=options.strip_color, linewidth=0.8)

    if options.show_lots:
        for lot in generation.lots:
            xs, zs = _ring_xy(lot.polygon)
            ax.fill(xs, zs, color=options.lot_color, alpha=0.25)
            ax.plot(xs, zs, color=options.lot_color, linewidth=0.6)

    ax.set_aspect("equal")
    ax.set_xlabel("x")
    ax.set_ylabel("z")
    ax.set_title(
        f"Generation {generation.number}: {len(generation.blocks)} blocks, "
        f"{len(generation.strips)} strips, {len(generation.lots)} lots"
    )
    return ax


def save_debug_overlay(
    generation: Generation,
    path: Union[str, Path],
    options: Optional[OverlayOptions] = None,
    dpi: int = 150,
) -> Path:
    """Render a generation to an image file and return its path."""
    path = Path(path)
    fig, ax = plt.subplots(figsize=(12, 10))
    try:
        draw_generation(generation, ax, options)
        plt.tight_layout()
        fig.savefig(path, dpi=dpi, bbox_inches="tight")
    finally:
        plt.close(fig)

    logger.info("Debug overlay saved", path=str(path), generation=generation.number)
    return path
