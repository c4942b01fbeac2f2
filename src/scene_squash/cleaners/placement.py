"""Recenter merged output on the horizontal plane and ground it."""

import numpy as np
from numpy.typing import NDArray

from scene_squash.analyzers.bounds import bounding_box_center, compute_bounding_box
from scene_squash.scene import MergedMesh
from scene_squash.utils.constants import DEFAULT_GROUND_Y


def grounding_offset(
    meshes: list[MergedMesh], ground_y: float = DEFAULT_GROUND_Y
) -> NDArray[np.float64]:
    """Translation that centers X/Z on the origin and puts min Y at ground_y."""
    box = compute_bounding_box(m.geometry for m in meshes)
    if box is None:
        return np.zeros(3)
    center = bounding_box_center(box)
    lo, _ = box
    return np.array([-center[0], ground_y - lo[1], -center[2]])


def reposition_meshes(
    meshes: list[MergedMesh], ground_y: float = DEFAULT_GROUND_Y
) -> tuple[list[MergedMesh], NDArray[np.float64]]:
    """
    Translate every merged geometry by the grounding offset.

    Returns new meshes (inputs untouched) and the applied translation.
    Empty input is a no-op with a zero translation.
    """
    offset = grounding_offset(meshes, ground_y)
    if not np.any(offset):
        return list(meshes), offset

    moved: list[MergedMesh] = []
    for mesh in meshes:
        geom = mesh.geometry.copy()
        if geom.positions is not None:
            geom.positions = (geom.positions.astype(np.float64) + offset).astype(
                np.float32
            )
        moved.append(
            MergedMesh(
                geometry=geom, material=mesh.material, source_count=mesh.source_count
            )
        )
    return moved, offset
