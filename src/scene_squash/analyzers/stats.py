"""Before/after statistics for a compression pass."""

from collections.abc import Iterable
from dataclasses import asdict, dataclass

from scene_squash.analyzers.collector import count_source_meshes, count_source_vertices
from scene_squash.scene import Material, MergedMesh, MeshInstance
from scene_squash.utils import round_half_up
from scene_squash.utils.constants import PRIMARY_TEXTURE_SLOT


@dataclass(frozen=True)
class CompressionStats:
    """Vertex, mesh and texture totals for one compression pass."""

    original_vertex_count: int = 0
    merged_vertex_count: int = 0
    original_mesh_count: int = 0
    merged_mesh_count: int = 0
    total_texture_pixels: int = 0
    vertex_reduction_percent: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def vertex_reduction_percent(original: int, merged: int) -> int:
    """
    Percentage of vertices removed, rounded half up.

    An empty source reports 0 instead of dividing by zero.
    """
    if original <= 0:
        return 0
    return round_half_up(100 * (1 - merged / original))


def count_texture_pixels(
    materials: Iterable[Material], include_all_slots: bool = True
) -> int:
    """
    Sum width x height over material textures.

    Args:
        materials: Materials of the merged meshes
        include_all_slots: Count every populated slot, or only the primary
            color slot ("map")
    """
    total = 0
    for material in materials:
        for slot, texture in material.populated_slots():
            if not include_all_slots and slot != PRIMARY_TEXTURE_SLOT:
                continue
            size = texture.size
            if size is None:
                continue
            total += size[0] * size[1]
    return total


def calculate_stats(
    instances: list[MeshInstance],
    meshes: list[MergedMesh],
    include_all_texture_slots: bool = True,
) -> CompressionStats:
    """Compare the collected source instances with the merged output."""
    original_verts = count_source_vertices(instances)
    merged_verts = sum(m.geometry.vertex_count for m in meshes)

    return CompressionStats(
        original_vertex_count=original_verts,
        merged_vertex_count=merged_verts,
        original_mesh_count=count_source_meshes(instances),
        merged_mesh_count=len(meshes),
        total_texture_pixels=count_texture_pixels(
            (m.material for m in meshes), include_all_texture_slots
        ),
        vertex_reduction_percent=vertex_reduction_percent(
            original_verts, merged_verts
        ),
    )
