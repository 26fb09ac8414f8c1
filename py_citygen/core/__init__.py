"""
Core block generation functionality.
"""

from .alea_prng import AleaPRNG
from .geometry import Point2D, signed_area, polygon_area, polygon_centroid
from .street_graph import GraphNode, GraphEdge, StreetGraph
from .block_detection import DetectedBlock, detect_blocks, get_interior_blocks, get_exterior_block
from .boundary_offset import offset_block_boundary
from .polygon_ops import slice_polygon, find_shared_edge, union_polygons, shared_edge_length
from .straight_skeleton import SkeletonError, StraightSkeleton, build_straight_skeleton
from .strip_generation import Strip, generate_strips
from .lot_subdivision import GeneratedLot, SubdivisionRules, subdivide_strip

__all__ = ['AleaPRNG', 'Point2D', 'signed_area', 'polygon_area', 'polygon_centroid',
           'GraphNode', 'GraphEdge', 'StreetGraph',
           'DetectedBlock', 'detect_blocks', 'get_interior_blocks', 'get_exterior_block',
           'offset_block_boundary',
           'slice_polygon', 'find_shared_edge', 'union_polygons', 'shared_edge_length',
           'SkeletonError', 'StraightSkeleton', 'build_straight_skeleton',
           'Strip', 'generate_strips',
           'GeneratedLot', 'SubdivisionRules', 'subdivide_strip']
