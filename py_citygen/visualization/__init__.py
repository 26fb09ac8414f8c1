"""
Debug rendering of generated blocks, strips and lots.
"""

from .debug_overlay import OverlayOptions, draw_generation, save_debug_overlay

__all__ = ['OverlayOptions', 'draw_generation', 'save_debug_overlay']
