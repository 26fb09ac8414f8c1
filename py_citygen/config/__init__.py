"""
Configuration for block generation.
"""

from .settings import Settings, settings

__all__ = ['Settings', 'settings']
