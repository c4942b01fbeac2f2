"""Flatten a scene tree into mesh instances with baked-in world transforms."""

import numpy as np
from numpy.typing import NDArray

from scene_squash.scene import MeshInstance, SceneTree
from scene_squash.utils import identity_matrix


def collect_mesh_instances(tree: SceneTree) -> list[MeshInstance]:
    """
    Walk the tree and emit one MeshInstance per (mesh node, material).

    Uses an explicit stack so arbitrarily deep hierarchies never hit the
    recursion limit. World transforms compose top-down as parent @ local.
    Nodes without geometry only contribute their transform.
    """
    instances: list[MeshInstance] = []

    stack: list[tuple[int, NDArray[np.float64]]] = [
        (root, identity_matrix()) for root in reversed(tree.roots)
    ]
    while stack:
        index, parent_world = stack.pop()
        node = tree[index]
        world = parent_world @ node.matrix

        if node.geometry is not None:
            for material in node.materials:
                instances.append(
                    MeshInstance(
                        geometry=node.geometry,
                        world_transform=world,
                        material=material,
                        node_index=index,
                        name=node.name,
                    )
                )

        # Reverse so children pop in insertion order
        for child in reversed(node.children):
            stack.append((child, world))

    return instances


def _unique_nodes(instances: list[MeshInstance]) -> list[MeshInstance]:
    """First instance per source node (multi-material nodes appear once)."""
    seen: set[int] = set()
    unique: list[MeshInstance] = []
    for inst in instances:
        if inst.node_index in seen:
            continue
        seen.add(inst.node_index)
        unique.append(inst)
    return unique


def count_source_meshes(instances: list[MeshInstance]) -> int:
    """Number of mesh nodes the instances came from."""
    return len(_unique_nodes(instances))


def count_source_vertices(instances: list[MeshInstance]) -> int:
    """Vertex count of the source meshes, each node counted once."""
    return sum(inst.geometry.vertex_count for inst in _unique_nodes(instances))
