"""
Scene Squash
============
Shrinks an in-memory 3D scene into fewer draw calls and lighter textures.

Pipeline:
- Flattens the node tree into mesh instances with world transforms
- Ensures every geometry has positions, normals and UVs (drops morph targets)
- Groups geometry by material identity
- Bakes world transforms, concatenates each group and welds duplicate vertices
- Resizes textures to max 1024px (min 128px) and re-encodes them
  (JPEG when opaque, PNG when transparent, optional WebP)
- Reports vertex/mesh/texture stats and grounds the result at y=0

Usage:
    from scene_squash import SceneTree, Geometry, Material, compress_scene

    tree = SceneTree()
    tree.add_node("crate", geometry=Geometry(positions), material=Material("wood"))
    result = compress_scene(tree)
    print(result.stats.vertex_reduction_percent)
"""

from importlib.metadata import PackageNotFoundError, version

from scene_squash.analyzers import CompressionStats
from scene_squash.compressor import CompressedScene, CompressionConfig, compress_scene
from scene_squash.scene import (
    DEFAULT_MATERIAL,
    ColorSpace,
    Geometry,
    Material,
    MergedMesh,
    SceneTree,
    Texture,
    TextureState,
)

try:
    __version__ = version("scene-squash")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = [
    "DEFAULT_MATERIAL",
    "ColorSpace",
    "CompressedScene",
    "CompressionConfig",
    "CompressionStats",
    "Geometry",
    "Material",
    "MergedMesh",
    "SceneTree",
    "Texture",
    "TextureState",
    "compress_scene",
]
