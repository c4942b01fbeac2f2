"""In-memory scene model: geometry buffers, materials, textures and the node tree.

The scene loader builds a ``SceneTree``; every pipeline stage reads it and
produces new values. Nothing in here is mutated by the pipeline.
"""

from __future__ import annotations

import uuid
from collections.abc import Hashable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any

import numpy as np
from numpy.typing import ArrayLike, NDArray
from PIL import Image

from scene_squash.utils import as_matrix
from scene_squash.utils.constants import DEFAULT_MATERIAL_KEY


class ColorSpace(str, Enum):
    LINEAR = "linear"
    SRGB = "srgb"


class TextureState(str, Enum):
    """Whether a texture still needs resampling and re-encoding."""

    RAW = "raw"
    COMPRESSED = "compressed"


@dataclass(frozen=True, eq=False)
class Texture:
    """An image bound to a material slot.

    ``image`` is the raster source (a Pillow image or a numpy pixel array for
    the kinds we can process, anything else passes through untouched).
    ``data``/``mime_type``/``quality`` describe the encoded payload once the
    texture has been compressed.
    """

    image: Any
    color_space: ColorSpace = ColorSpace.SRGB
    state: TextureState = TextureState.RAW
    mime_type: str | None = None
    quality: float | None = None
    data: bytes | None = None

    @property
    def size(self) -> tuple[int, int] | None:
        """(width, height) of the raster source, None for unknown kinds."""
        if isinstance(self.image, Image.Image):
            return self.image.size
        if isinstance(self.image, np.ndarray) and self.image.ndim >= 2:
            return int(self.image.shape[1]), int(self.image.shape[0])
        return None

    @property
    def width(self) -> int | None:
        size = self.size
        return size[0] if size else None

    @property
    def height(self) -> int | None:
        size = self.size
        return size[1] if size else None

    @property
    def is_compressed(self) -> bool:
        return self.state is TextureState.COMPRESSED


def _new_identity() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, eq=False)
class Material:
    """A material definition with its texture slots.

    Materials compare by object and group by ``identity``: two materials
    with identical slots but different identities are never merged.
    """

    name: str = ""
    identity: Hashable = field(default_factory=_new_identity)
    texture_slots: Mapping[str, Texture | None] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "texture_slots", MappingProxyType(dict(self.texture_slots))
        )

    def populated_slots(self) -> Iterator[tuple[str, Texture]]:
        """Yield (slot, texture) pairs for slots that hold a texture."""
        for slot, texture in self.texture_slots.items():
            if texture is not None:
                yield slot, texture

    def with_texture_slots(self, slots: Mapping[str, Texture | None]) -> Material:
        """Return a clone with some slots replaced, keeping name and identity."""
        merged = dict(self.texture_slots)
        merged.update(slots)
        return replace(self, texture_slots=merged)


DEFAULT_MATERIAL = Material(name="default", identity=DEFAULT_MATERIAL_KEY)


def _as_rows(value: ArrayLike | None, width: int) -> NDArray[np.float32] | None:
    """Coerce a flat or (n, width) buffer to float32 rows, leaving odd sizes flat."""
    if value is None:
        return None
    arr = np.array(value, dtype=np.float32)
    if arr.ndim == 1 and arr.size % width == 0:
        return arr.reshape(-1, width)
    return arr


@dataclass(eq=False)
class Geometry:
    """Vertex buffers for one mesh.

    ``positions``/``normals`` are (n, 3), ``uvs`` is (n, 2), ``indices`` a
    flat triangle list or None for sequential triangles. Flat buffers are
    accepted and reshaped.
    """

    positions: NDArray[np.float32] | None
    normals: NDArray[np.float32] | None = None
    uvs: NDArray[np.float32] | None = None
    indices: NDArray[np.uint32] | None = None
    morph_targets: dict[str, list[NDArray[np.float32]]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.positions = _as_rows(self.positions, 3)
        self.normals = _as_rows(self.normals, 3)
        self.uvs = _as_rows(self.uvs, 2)
        if self.indices is not None:
            self.indices = np.array(self.indices, dtype=np.int64).ravel().astype(
                np.uint32
            )

    @property
    def vertex_count(self) -> int:
        if self.positions is None:
            return 0
        return int(self.positions.shape[0])

    @property
    def is_indexed(self) -> bool:
        return self.indices is not None

    def copy(self) -> Geometry:
        """Deep copy of every buffer."""
        return Geometry(
            positions=None if self.positions is None else self.positions.copy(),
            normals=None if self.normals is None else self.normals.copy(),
            uvs=None if self.uvs is None else self.uvs.copy(),
            indices=None if self.indices is None else self.indices.copy(),
            morph_targets={
                name: [np.array(buf, copy=True) for buf in bufs]
                for name, bufs in self.morph_targets.items()
            },
        )


MaterialRef = Material | Sequence[Material] | None


@dataclass(eq=False)
class SceneNode:
    """A node in the scene arena. ``children`` holds arena indices."""

    name: str
    matrix: NDArray[np.float64]
    geometry: Geometry | None = None
    material: MaterialRef = None
    parent: int | None = None
    children: list[int] = field(default_factory=list)

    @property
    def materials(self) -> list[Material]:
        """Materials this node renders with (DEFAULT_MATERIAL when unset)."""
        if self.material is None:
            return [DEFAULT_MATERIAL]
        if isinstance(self.material, Material):
            return [self.material]
        materials = [m for m in self.material if m is not None]
        return materials or [DEFAULT_MATERIAL]


class SceneTree:
    """Arena of scene nodes with index-based parent/child links."""

    def __init__(self) -> None:
        self._nodes: list[SceneNode] = []
        self.roots: list[int] = []

    def add_node(
        self,
        name: str = "",
        matrix: ArrayLike | None = None,
        geometry: Geometry | None = None,
        material: MaterialRef = None,
        parent: int | None = None,
    ) -> int:
        """Append a node and return its index. ``parent=None`` adds a root."""
        if parent is not None and not 0 <= parent < len(self._nodes):
            raise IndexError(f"Parent index {parent} out of range")
        index = len(self._nodes)
        node = SceneNode(
            name=name or f"node_{index}",
            matrix=as_matrix(matrix),
            geometry=geometry,
            material=material,
            parent=parent,
        )
        self._nodes.append(node)
        if parent is None:
            self.roots.append(index)
        else:
            self._nodes[parent].children.append(index)
        return index

    def __len__(self) -> int:
        return len(self._nodes)

    def __getitem__(self, index: int) -> SceneNode:
        return self._nodes[index]

    def __iter__(self) -> Iterator[SceneNode]:
        return iter(self._nodes)


@dataclass(frozen=True, eq=False)
class MeshInstance:
    """One (geometry, world transform, material) triple from the tree."""

    geometry: Geometry
    world_transform: NDArray[np.float64]
    material: Material
    node_index: int
    name: str = ""


@dataclass(eq=False)
class MergeGroup:
    """Mesh instances sharing one material identity."""

    key: Hashable
    material: Material
    instances: list[MeshInstance] = field(default_factory=list)


@dataclass(eq=False)
class MergedMesh:
    """One draw unit of the compressed output."""

    geometry: Geometry
    material: Material
    source_count: int = 1
