"""Attribute normalization so every geometry can be concatenated."""

import numpy as np
from numpy.typing import NDArray

from scene_squash.scene import Geometry
from scene_squash.utils import normalize_vectors


def _triangles(
    indices: NDArray[np.uint32] | None, vertex_count: int
) -> NDArray[np.int64]:
    """(t, 3) triangle corner indices; trailing partial triangles are ignored."""
    if indices is None:
        flat = np.arange(vertex_count - vertex_count % 3, dtype=np.int64)
    else:
        flat = np.asarray(indices, dtype=np.int64)
        flat = flat[: flat.size - flat.size % 3]
    return flat.reshape(-1, 3)


def compute_vertex_normals(
    positions: NDArray[np.float32], indices: NDArray[np.uint32] | None = None
) -> NDArray[np.float32]:
    """
    Smooth per-vertex normals from triangle winding.

    Face normals (unnormalized, so larger faces weigh more) are accumulated
    onto their corners and normalized. Triangles pointing outside the vertex
    range are skipped; vertices in no triangle get the fallback up vector.
    """
    verts = np.asarray(positions, dtype=np.float64)
    count = verts.shape[0]
    normals = np.zeros((count, 3), dtype=np.float64)

    tris = _triangles(indices, count)
    if tris.size:
        tris = tris[np.all(tris < count, axis=1)]
    if tris.size:
        v0 = verts[tris[:, 0]]
        v1 = verts[tris[:, 1]]
        v2 = verts[tris[:, 2]]
        face = np.cross(v1 - v0, v2 - v0)
        for corner in range(3):
            np.add.at(normals, tris[:, corner], face)

    return normalize_vectors(normals)


def _has_rows(buf: NDArray[np.float32] | None, count: int, width: int) -> bool:
    return buf is not None and buf.ndim == 2 and buf.shape == (count, width)


def normalize_geometry(geometry: Geometry) -> Geometry | None:
    """
    Return a copy guaranteed to carry positions, normals and UVs.

    - No positions: returns None, the geometry contributes nothing
    - No normals: derived from face winding
    - No UVs: zero-filled, so concatenation never sees a shape mismatch
    - Morph targets: always dropped (merged static meshes can't blend)
    """
    positions = geometry.positions
    if positions is None or positions.ndim != 2 or positions.shape[1] != 3:
        return None

    geom = geometry.copy()
    count = geom.vertex_count

    if not _has_rows(geom.normals, count, 3):
        geom.normals = compute_vertex_normals(positions, geom.indices)

    if not _has_rows(geom.uvs, count, 2):
        geom.uvs = np.zeros((count, 2), dtype=np.float32)

    geom.morph_targets = {}
    return geom
