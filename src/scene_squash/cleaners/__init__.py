"""Cleaners for geometry attributes, merging, textures and placement."""

from scene_squash.cleaners.geometry import compute_vertex_normals, normalize_geometry
from scene_squash.cleaners.merge import (
    bake_world_transform,
    concatenate_geometries,
    merge_group,
    weld_vertices,
)
from scene_squash.cleaners.placement import grounding_offset, reposition_meshes
from scene_squash.cleaners.textures import (
    TextureSettings,
    compress_material_textures,
    compress_texture,
    has_transparency,
    target_texture_size,
    to_pil_image,
)

__all__ = [
    "TextureSettings",
    "bake_world_transform",
    "compress_material_textures",
    "compress_texture",
    "compute_vertex_normals",
    "concatenate_geometries",
    "grounding_offset",
    "has_transparency",
    "merge_group",
    "normalize_geometry",
    "reposition_meshes",
    "target_texture_size",
    "to_pil_image",
    "weld_vertices",
]
