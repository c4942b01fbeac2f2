"""World-space baking, concatenation and vertex welding for material groups."""

import numpy as np
from numpy.typing import NDArray

from scene_squash.errors import GeometryMergeError
from scene_squash.scene import Geometry, MergeGroup
from scene_squash.utils import transform_normals, transform_points

# Largest vertex count a uint32 index buffer can address
MAX_INDEXED_VERTICES = np.iinfo(np.uint32).max


def _sequential_indices(count: int) -> NDArray[np.uint32]:
    return np.arange(count, dtype=np.uint32)


def bake_world_transform(geometry: Geometry, matrix: NDArray[np.float64]) -> Geometry:
    """
    Apply a world transform directly to a copy of the vertex data.

    Positions get the full affine transform, normals the inverse-transpose
    of the upper 3x3 followed by renormalization. Mirroring transforms
    (negative determinant) flip triangle winding so faces keep their
    orientation. The result is always indexed.
    """
    geom = geometry.copy()
    if geom.positions is None:
        raise GeometryMergeError("Cannot bake a geometry without positions")

    if geom.indices is None:
        geom.indices = _sequential_indices(geom.vertex_count)

    geom.positions = transform_points(geom.positions, matrix)
    if geom.normals is not None and geom.normals.ndim == 2:
        geom.normals = transform_normals(geom.normals, matrix)

    if np.linalg.det(matrix[:3, :3]) < 0 and geom.indices.size % 3 == 0:
        tris = geom.indices.reshape(-1, 3)
        geom.indices = np.ascontiguousarray(tris[:, [0, 2, 1]]).ravel()

    return geom


def _check_attribute(
    geom: Geometry, name: str, buf: NDArray[np.float32] | None, width: int, pos: int
) -> NDArray[np.float32]:
    count = geom.vertex_count
    if buf is None or buf.ndim != 2 or buf.shape != (count, width):
        shape = None if buf is None else buf.shape
        raise GeometryMergeError(
            f"Geometry #{pos}: {name} shape {shape} does not match {count} vertices"
        )
    return buf


def concatenate_geometries(geometries: list[Geometry]) -> Geometry:
    """
    Append all buffers in order, offsetting each index buffer.

    Every input must carry positions, normals and UVs sized to its vertex
    count (i.e. be normalized). Raises GeometryMergeError otherwise, or when
    an index points past its own geometry.
    """
    if not geometries:
        raise GeometryMergeError("No geometries to merge")

    positions: list[NDArray[np.float32]] = []
    normals: list[NDArray[np.float32]] = []
    uvs: list[NDArray[np.float32]] = []
    indices: list[NDArray[np.int64]] = []
    offset = 0

    for pos, geom in enumerate(geometries):
        count = geom.vertex_count
        positions.append(_check_attribute(geom, "positions", geom.positions, 3, pos))
        normals.append(_check_attribute(geom, "normals", geom.normals, 3, pos))
        uvs.append(_check_attribute(geom, "uvs", geom.uvs, 2, pos))

        idx = (
            _sequential_indices(count)
            if geom.indices is None
            else np.asarray(geom.indices)
        ).astype(np.int64)
        if idx.size and int(idx.max()) >= count:
            raise GeometryMergeError(
                f"Geometry #{pos}: index {int(idx.max())} out of range "
                f"for {count} vertices"
            )
        indices.append(idx + offset)
        offset += count

    if offset > MAX_INDEXED_VERTICES:
        raise GeometryMergeError(f"{offset:,} vertices exceed uint32 index range")

    return Geometry(
        positions=np.concatenate(positions),
        normals=np.concatenate(normals),
        uvs=np.concatenate(uvs),
        indices=np.concatenate(indices).astype(np.uint32),
    )


def _quantize(buf: NDArray[np.float32], tolerance: float) -> NDArray[np.int64]:
    values = np.nan_to_num(np.asarray(buf, dtype=np.float64))
    return np.round(values / tolerance).astype(np.int64)


def weld_vertices(geometry: Geometry, tolerance: float = 1e-5) -> Geometry:
    """
    Merge vertices whose position, normal and UV quantize to the same key.

    Each attribute component is snapped to a multiple of ``tolerance``;
    vertices with identical keys collapse onto the first one seen, so the
    output order follows the input. UVs are part of the key, which keeps
    texture seams split. Running it again on its own output removes nothing.
    """
    if tolerance <= 0:
        raise ValueError(f"Weld tolerance must be positive, got {tolerance}")

    geom = geometry.copy()
    count = geom.vertex_count
    if count == 0 or geom.positions is None:
        return geom

    attributes = [
        buf
        for buf in (geom.positions, geom.normals, geom.uvs)
        if buf is not None and buf.ndim == 2 and buf.shape[0] == count
    ]
    keys = np.hstack([_quantize(buf, tolerance) for buf in attributes])

    _, first_index, inverse = np.unique(
        keys, axis=0, return_index=True, return_inverse=True
    )
    inverse = inverse.reshape(-1)

    # np.unique sorts keys; renumber them by first occurrence instead
    order = np.argsort(first_index, kind="stable")
    rank = np.empty_like(order)
    rank[order] = np.arange(order.size)
    remap = rank[inverse].astype(np.uint32)
    kept = first_index[order]

    old_indices = (
        _sequential_indices(count) if geom.indices is None else geom.indices
    )

    return Geometry(
        positions=geom.positions[kept],
        normals=None if geom.normals is None else geom.normals[kept],
        uvs=None if geom.uvs is None else geom.uvs[kept],
        indices=remap[old_indices.astype(np.int64)],
    )


def merge_group(group: MergeGroup, tolerance: float = 1e-5) -> Geometry:
    """Bake, concatenate and weld every instance of one material group."""
    try:
        baked = [
            bake_world_transform(inst.geometry, inst.world_transform)
            for inst in group.instances
        ]
        combined = concatenate_geometries(baked)
        return weld_vertices(combined, tolerance)
    except GeometryMergeError:
        raise
    except (ValueError, IndexError, np.linalg.LinAlgError) as e:
        raise GeometryMergeError(f"Merging material {group.key!r} failed: {e}") from e
