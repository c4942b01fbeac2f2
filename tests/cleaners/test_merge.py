"""Tests for baking, concatenation and welding."""

import numpy as np
import pytest

from scene_squash.errors import GeometryMergeError
from scene_squash.scene import Geometry, Material, MergeGroup, MeshInstance
from scene_squash.utils import scale_matrix, translation_matrix


def _normalized(geom: Geometry) -> Geometry:
    from scene_squash.cleaners import normalize_geometry

    result = normalize_geometry(geom)
    assert result is not None
    return result


class TestBakeWorldTransform:
    """Tests for bake_world_transform function."""

    def test_translates_positions(self, quad_geometry: Geometry) -> None:
        """Positions get the translation, normals don't."""
        from scene_squash.cleaners import bake_world_transform

        baked = bake_world_transform(quad_geometry, translation_matrix(1, 2, 3))
        np.testing.assert_allclose(baked.positions[0], [1, 2, 3])
        np.testing.assert_allclose(baked.normals, quad_geometry.normals)

    def test_non_uniform_scale_normals(self) -> None:
        """Normals use the inverse-transpose and stay unit length."""
        from scene_squash.cleaners import bake_world_transform

        diag = np.array([1, 1, 0], dtype=np.float32) / np.sqrt(2)
        geom = Geometry(positions=[[0, 0, 0]], normals=[diag], uvs=[[0, 0]])

        baked = bake_world_transform(geom, scale_matrix(2, 1, 1))

        expected = np.array([0.5, 1.0, 0.0]) / np.linalg.norm([0.5, 1.0, 0.0])
        np.testing.assert_allclose(baked.normals[0], expected, atol=1e-6)

    def test_mirror_flips_winding(self, quad_geometry: Geometry) -> None:
        """Negative determinant reverses triangle order."""
        from scene_squash.cleaners import bake_world_transform

        baked = bake_world_transform(quad_geometry, scale_matrix(-1, 1, 1))
        np.testing.assert_array_equal(baked.indices, [0, 1, 2, 1, 3, 2])

    def test_non_indexed_becomes_indexed(self) -> None:
        """Sequential geometry gets an explicit index buffer."""
        from scene_squash.cleaners import bake_world_transform

        geom = Geometry(positions=np.zeros((3, 3)))
        baked = bake_world_transform(geom, np.eye(4))
        np.testing.assert_array_equal(baked.indices, [0, 1, 2])

    def test_input_not_mutated(self, quad_geometry: Geometry) -> None:
        """Baking works on a copy."""
        from scene_squash.cleaners import bake_world_transform

        bake_world_transform(quad_geometry, translation_matrix(9, 9, 9))
        assert quad_geometry.positions is not None
        assert quad_geometry.positions[0, 0] == 0.0


class TestConcatenateGeometries:
    """Tests for concatenate_geometries function."""

    def test_offsets_indices(self, quad_geometry: Geometry) -> None:
        """Second geometry's indices are shifted by the first's vertex count."""
        from scene_squash.cleaners import concatenate_geometries

        merged = concatenate_geometries([quad_geometry, quad_geometry.copy()])
        assert merged.vertex_count == 8
        np.testing.assert_array_equal(
            merged.indices, [0, 2, 1, 1, 2, 3, 4, 6, 5, 5, 6, 7]
        )

    def test_empty_list_fails(self) -> None:
        """Nothing to merge is a merge failure."""
        from scene_squash.cleaners import concatenate_geometries

        with pytest.raises(GeometryMergeError):
            concatenate_geometries([])

    def test_missing_attribute_fails(self, quad_geometry: Geometry) -> None:
        """Un-normalized input is rejected instead of silently misaligned."""
        from scene_squash.cleaners import concatenate_geometries

        bare = Geometry(positions=np.zeros((3, 3)))
        with pytest.raises(GeometryMergeError, match="normals"):
            concatenate_geometries([quad_geometry, bare])

    def test_out_of_range_index_fails(self, quad_geometry: Geometry) -> None:
        """Indices past the geometry's own vertices are rejected."""
        from scene_squash.cleaners import concatenate_geometries

        quad_geometry.indices = np.array([0, 1, 7], dtype=np.uint32)
        with pytest.raises(GeometryMergeError, match="out of range"):
            concatenate_geometries([quad_geometry])


class TestWeldVertices:
    """Tests for weld_vertices function."""

    def test_merges_duplicates(self) -> None:
        """Identical vertices collapse and indices are rewritten."""
        from scene_squash.cleaners import weld_vertices

        geom = Geometry(
            positions=[[0, 0, 0], [1, 0, 0], [0, 0, 1], [1, 0, 0], [0, 0, 1], [1, 0, 1]],
            normals=[[0, 1, 0]] * 6,
            uvs=[[0, 0]] * 6,
            indices=[0, 2, 1, 3, 4, 5],
        )

        welded = weld_vertices(geom)
        assert welded.vertex_count == 4
        np.testing.assert_array_equal(welded.indices, [0, 2, 1, 1, 2, 3])

    def test_within_tolerance(self) -> None:
        """Vertices closer than the tolerance weld together."""
        from scene_squash.cleaners import weld_vertices

        geom = Geometry(
            positions=[[0, 0, 0], [1e-7, 0, 0]],
            normals=[[0, 1, 0]] * 2,
            uvs=[[0, 0]] * 2,
        )
        assert weld_vertices(geom, 1e-5).vertex_count == 1

    def test_keeps_uv_seams(self) -> None:
        """Same position with different UVs must stay split."""
        from scene_squash.cleaners import weld_vertices

        geom = Geometry(
            positions=[[0, 0, 0], [0, 0, 0]],
            normals=[[0, 1, 0]] * 2,
            uvs=[[0, 0], [1, 0]],
        )
        assert weld_vertices(geom).vertex_count == 2

    def test_keeps_hard_edges(self) -> None:
        """Same position with different normals stays split."""
        from scene_squash.cleaners import weld_vertices

        geom = Geometry(
            positions=[[0, 0, 0], [0, 0, 0]],
            normals=[[0, 1, 0], [1, 0, 0]],
            uvs=[[0, 0]] * 2,
        )
        assert weld_vertices(geom).vertex_count == 2

    def test_idempotent(self, make_grid) -> None:
        """Welding an already-welded buffer removes nothing more."""
        from scene_squash.cleaners import concatenate_geometries, weld_vertices

        grid = _normalized(make_grid(6, 6))
        doubled = concatenate_geometries([grid, grid.copy()])

        once = weld_vertices(doubled)
        twice = weld_vertices(once)

        assert once.vertex_count == 36
        assert twice.vertex_count == once.vertex_count
        np.testing.assert_array_equal(twice.indices, once.indices)

    def test_stable_first_occurrence_order(self) -> None:
        """Surviving vertices keep their original relative order."""
        from scene_squash.cleaners import weld_vertices

        geom = Geometry(
            positions=[[5, 0, 0], [1, 0, 0], [5, 0, 0], [3, 0, 0]],
            normals=[[0, 1, 0]] * 4,
            uvs=[[0, 0]] * 4,
        )
        welded = weld_vertices(geom)
        np.testing.assert_allclose(welded.positions[:, 0], [5, 1, 3])
        np.testing.assert_array_equal(welded.indices, [0, 1, 0, 2])

    def test_rejects_bad_tolerance(self, quad_geometry: Geometry) -> None:
        """Tolerance must be positive."""
        from scene_squash.cleaners import weld_vertices

        with pytest.raises(ValueError):
            weld_vertices(quad_geometry, 0.0)


class TestMergeGroup:
    """Tests for merge_group function."""

    def test_merges_translated_instances(self, make_grid) -> None:
        """Adjacent grids weld along their shared edge."""
        from scene_squash.cleaners import merge_group

        grid = _normalized(make_grid(4, 4))
        material = Material("m")
        group = MergeGroup(key=material.identity, material=material)
        for i in range(2):
            group.instances.append(
                MeshInstance(grid, translation_matrix(3 * i, 0, 0), material, i)
            )

        merged = merge_group(group)
        assert merged.vertex_count == 16 * 2 - 4
        assert merged.positions[:, 0].max() == pytest.approx(6.0)

    def test_failure_wrapped(self, quad_geometry: Geometry) -> None:
        """Low-level errors surface as GeometryMergeError."""
        from scene_squash.cleaners import merge_group

        material = Material("m")
        bad = quad_geometry.copy()
        bad.uvs = None
        group = MergeGroup(
            key=material.identity,
            material=material,
            instances=[MeshInstance(bad, np.eye(4), material, 0)],
        )
        with pytest.raises(GeometryMergeError):
            merge_group(group)
