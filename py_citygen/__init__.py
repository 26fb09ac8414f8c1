"""
Procedural city blocks: street graph to blocks, strips and lots.
"""

__version__ = "0.1.0"
