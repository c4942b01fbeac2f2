"""Group mesh instances by material identity."""

from collections.abc import Hashable

from scene_squash.scene import MergeGroup, MeshInstance


def group_by_material(instances: list[MeshInstance]) -> list[MergeGroup]:
    """
    Partition instances into groups keyed by ``material.identity``.

    Groups come back in order of first occurrence, and the first Material
    seen for a key becomes the group's representative. Keys are identities,
    not material contents: two look-alike materials stay apart.
    """
    groups: dict[Hashable, MergeGroup] = {}

    for inst in instances:
        key = inst.material.identity
        group = groups.get(key)
        if group is None:
            group = MergeGroup(key=key, material=inst.material)
            groups[key] = group
        group.instances.append(inst)

    return list(groups.values())
