"""Analyzers for scene traversal, material grouping, bounds and stats."""

from scene_squash.analyzers.bounds import bounding_box_center, compute_bounding_box
from scene_squash.analyzers.collector import (
    collect_mesh_instances,
    count_source_meshes,
    count_source_vertices,
)
from scene_squash.analyzers.grouping import group_by_material
from scene_squash.analyzers.stats import (
    CompressionStats,
    calculate_stats,
    count_texture_pixels,
    vertex_reduction_percent,
)

__all__ = [
    "CompressionStats",
    "bounding_box_center",
    "calculate_stats",
    "collect_mesh_instances",
    "compute_bounding_box",
    "count_source_meshes",
    "count_source_vertices",
    "count_texture_pixels",
    "group_by_material",
    "vertex_reduction_percent",
]
