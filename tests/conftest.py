"""
Pytest fixtures for scene-squash tests.

Scenes are built in memory from numpy buffers and Pillow images.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
import pytest
from PIL import Image

from scene_squash.scene import Geometry, Material, Texture


def grid_buffers(cols: int, rows: int, spacing: float = 1.0):
    """Positions and indices for a flat grid in the XZ plane, facing +Y."""
    xs, zs = np.meshgrid(np.arange(cols), np.arange(rows))
    positions = np.zeros((rows * cols, 3), dtype=np.float32)
    positions[:, 0] = xs.ravel() * spacing
    positions[:, 2] = zs.ravel() * spacing

    indices = []
    for j in range(rows - 1):
        for i in range(cols - 1):
            v00 = j * cols + i
            v10 = v00 + 1
            v01 = v00 + cols
            v11 = v01 + 1
            indices.extend([v00, v01, v10, v10, v01, v11])
    return positions, np.array(indices, dtype=np.uint32)


@pytest.fixture
def make_grid() -> Callable[..., Geometry]:
    """Factory for grid geometries without normals or UVs."""

    def _make(cols: int = 10, rows: int = 10, spacing: float = 1.0) -> Geometry:
        positions, indices = grid_buffers(cols, rows, spacing)
        return Geometry(positions=positions, indices=indices)

    return _make


@pytest.fixture
def quad_geometry() -> Geometry:
    """Unit quad in the XZ plane with normals and UVs."""
    return Geometry(
        positions=[0, 0, 0, 1, 0, 0, 0, 0, 1, 1, 0, 1],
        normals=[0, 1, 0] * 4,
        uvs=[0, 0, 1, 0, 0, 1, 1, 1],
        indices=[0, 2, 1, 1, 2, 3],
    )


@pytest.fixture
def make_image() -> Callable[..., Image.Image]:
    """Factory for solid-color Pillow images."""

    def _make(
        width: int = 256,
        height: int = 256,
        mode: str = "RGB",
        color: tuple[int, ...] | int = (200, 120, 40),
    ) -> Image.Image:
        return Image.new(mode, (width, height), color)

    return _make


@pytest.fixture
def opaque_texture(make_image: Callable[..., Image.Image]) -> Texture:
    """2048x1024 opaque texture."""
    return Texture(image=make_image(2048, 1024))


@pytest.fixture
def transparent_texture(make_image: Callable[..., Image.Image]) -> Texture:
    """512x512 texture with a semi-transparent region."""
    img = make_image(512, 512, mode="RGBA", color=(255, 255, 255, 255))
    img.paste((255, 0, 0, 128), (0, 0, 256, 256))
    return Texture(image=img)


@pytest.fixture
def textured_material(opaque_texture: Texture) -> Material:
    """Material with a single color map."""
    return Material(name="painted", texture_slots={"map": opaque_texture})
