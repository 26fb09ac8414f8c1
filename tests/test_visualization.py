"""Tests for the debug overlay."""

import matplotlib.pyplot as plt

from py_citygen.engine import BlockManager
from py_citygen.engine.block_manager import Generation
from py_citygen.visualization import OverlayOptions, draw_generation, save_debug_overlay


class TestDebugOverlay:
    """Test overlay rendering."""

    def test_save_overlay(self, grid_store, options, clock, tmp_path):
        manager = BlockManager(grid_store, options, timer_factory=clock.timer)
        generation = manager.force_rebuild()
        manager.dispose()

        path = save_debug_overlay(
            generation, tmp_path / "blocks.png", OverlayOptions(show_strips=True)
        )
        assert path.exists()
        assert path.stat().st_size > 0

    def test_draw_empty_generation(self):
        fig, ax = plt.subplots()
        try:
            assert draw_generation(Generation(number=0), ax) is ax
            assert ax.get_title().startswith("Generation 0")
        finally:
            plt.close(fig)

    def test_layers_can_be_hidden(self, rectangle_store, options, clock):
        manager = BlockManager(rectangle_store, options, timer_factory=clock.timer)
        generation = manager.force_rebuild()
        manager.dispose()

        hidden = OverlayOptions(
            show_streets=False, show_blocks=False, show_offset_blocks=False, show_lots=False
        )
        fig, ax = plt.subplots()
        try:
            draw_generation(generation, ax, hidden)
            assert len(ax.lines) == 0
        finally:
            plt.close(fig)
