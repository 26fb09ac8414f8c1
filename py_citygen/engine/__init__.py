"""
Rebuild orchestration around the block pipeline.
"""

from .street_store import StreetStore, InMemoryStreetStore
from .debounce import Debouncer
from .block_manager import BlockManager, BlockManagerOptions, Generation, RebuildState

__all__ = ['StreetStore', 'InMemoryStreetStore', 'Debouncer',
           'BlockManager', 'BlockManagerOptions', 'Generation', 'RebuildState']
