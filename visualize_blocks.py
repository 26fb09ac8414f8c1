#!/usr/bin/env python3
"""Generate blocks, strips and lots for a sample street grid and save a debug overlay."""

import os
from datetime import datetime

os.environ.setdefault("MPLBACKEND", "Agg")

import structlog

from py_citygen.config import settings
from py_citygen.core.alea_prng import AleaPRNG
from py_citygen.engine import BlockManager, BlockManagerOptions, InMemoryStreetStore
from py_citygen.utils.logging import configure_logging
from py_citygen.visualization import OverlayOptions, save_debug_overlay

logger = structlog.get_logger()


def build_grid_store(columns, rows, spacing, jitter, seed, arterial_width):
    """
    Street grid with jittered intersections.

    Every fourth street in each direction is an arterial with a wider
    carriageway; the others use the default width.
    """
    prng = AleaPRNG(seed)
    store = InMemoryStreetStore()

    for i in range(columns + 1):
        for j in range(rows + 1):
            on_border = i in (0, columns) or j in (0, rows)
            dx = 0.0 if on_border else (prng.random() - 0.5) * 2 * jitter
            dz = 0.0 if on_border else (prng.random() - 0.5) * 2 * jitter
            store.add_node(f"n_{i}_{j}", i * spacing + dx, j * spacing + dz)

    for i in range(columns + 1):
        for j in range(rows + 1):
            if i < columns:
                width = arterial_width if j % 4 == 0 else None
                store.add_edge(f"h_{i}_{j}", f"n_{i}_{j}", f"n_{i + 1}_{j}", width)
            if j < rows:
                width = arterial_width if i % 4 == 0 else None
                store.add_edge(f"v_{i}_{j}", f"n_{i}_{j}", f"n_{i}_{j + 1}", width)

    return store


def main():
    """Main function."""
    import argparse

    parser = argparse.ArgumentParser(description="Render a sample city block layout")
    parser.add_argument("--columns", type=int, default=6, help="Blocks along x")
    parser.add_argument("--rows", type=int, default=4, help="Blocks along z")
    parser.add_argument("--spacing", type=float, default=120.0, help="Street spacing")
    parser.add_argument("--jitter", type=float, default=12.0, help="Intersection jitter")
    parser.add_argument("--arterial-width", type=float, default=18.0, help="Arterial street width")
    parser.add_argument("--seed", default="citygen", help="Seed for the grid jitter")
    parser.add_argument("--show-strips", action="store_true", help="Draw strips")
    parser.add_argument("--output", help="Output PNG (timestamped name if omitted)")

    args = parser.parse_args()

    configure_logging(settings.log_level, settings.log_format)

    store = build_grid_store(
        args.columns, args.rows, args.spacing, args.jitter, args.seed, args.arterial_width
    )
    manager = BlockManager(store, BlockManagerOptions.from_settings(settings))
    try:
        generation = manager.force_rebuild()
    finally:
        manager.dispose()

    output = args.output
    if not output:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output = f"blocks_{args.seed}_{timestamp}.png"

    path = save_debug_overlay(generation, output, OverlayOptions(show_strips=args.show_strips))
    print(f"Block visualization saved as: {path}")


if __name__ == "__main__":
    main()
