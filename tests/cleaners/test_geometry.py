"""Tests for geometry normalization."""

import numpy as np

from scene_squash.scene import Geometry


class TestNormalizeGeometry:
    """Tests for normalize_geometry function."""

    def test_missing_positions_dropped(self) -> None:
        """Geometry without positions normalizes to None."""
        from scene_squash.cleaners import normalize_geometry

        assert normalize_geometry(Geometry(positions=None)) is None

    def test_adds_normals_and_uvs(self, make_grid) -> None:
        """Missing attributes are filled and sized to the vertex count."""
        from scene_squash.cleaners import normalize_geometry

        geom = normalize_geometry(make_grid(4, 3))
        assert geom is not None
        n = geom.vertex_count
        assert geom.normals is not None and geom.normals.shape == (n, 3)
        assert geom.uvs is not None and geom.uvs.shape == (n, 2)
        assert not np.any(geom.uvs)

    def test_derived_normals_follow_winding(self, make_grid) -> None:
        """Grid wound counter-clockwise from above gets +Y normals."""
        from scene_squash.cleaners import normalize_geometry

        geom = normalize_geometry(make_grid(5, 5))
        assert geom is not None
        np.testing.assert_allclose(geom.normals, np.tile([0, 1, 0], (25, 1)), atol=1e-6)

    def test_keeps_existing_attributes(self, quad_geometry: Geometry) -> None:
        """Valid normals and UVs are left as they are."""
        from scene_squash.cleaners import normalize_geometry

        geom = normalize_geometry(quad_geometry)
        assert geom is not None
        np.testing.assert_array_equal(geom.uvs, quad_geometry.uvs)
        np.testing.assert_array_equal(geom.normals, quad_geometry.normals)

    def test_replaces_mis_sized_uvs(self, quad_geometry: Geometry) -> None:
        """UV buffers that don't match the vertex count are replaced."""
        from scene_squash.cleaners import normalize_geometry

        quad_geometry.uvs = np.zeros((3, 2), dtype=np.float32)
        geom = normalize_geometry(quad_geometry)
        assert geom is not None
        assert geom.uvs is not None and geom.uvs.shape == (4, 2)

    def test_clears_morph_targets(self, quad_geometry: Geometry) -> None:
        """Morph targets are always removed."""
        from scene_squash.cleaners import normalize_geometry

        quad_geometry.morph_targets = {"position": [np.zeros((4, 3))]}
        geom = normalize_geometry(quad_geometry)
        assert geom is not None
        assert geom.morph_targets == {}

    def test_input_not_mutated(self, make_grid) -> None:
        """Normalization works on a copy."""
        from scene_squash.cleaners import normalize_geometry

        original = make_grid(3, 3)
        normalize_geometry(original)
        assert original.normals is None
        assert original.uvs is None


class TestComputeVertexNormals:
    """Tests for compute_vertex_normals function."""

    def test_non_indexed_triangles(self) -> None:
        """Sequential triangles use consecutive vertices."""
        from scene_squash.cleaners import compute_vertex_normals

        positions = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float32)
        normals = compute_vertex_normals(positions)
        np.testing.assert_allclose(normals, np.tile([0, 0, 1], (3, 1)), atol=1e-6)

    def test_unreferenced_vertex_gets_fallback(self) -> None:
        """Vertices in no triangle get the up vector."""
        from scene_squash.cleaners import compute_vertex_normals

        positions = np.array(
            [[0, 0, 0], [1, 0, 0], [0, 1, 0], [5, 5, 5]], dtype=np.float32
        )
        normals = compute_vertex_normals(positions, np.array([0, 1, 2], dtype=np.uint32))
        np.testing.assert_allclose(normals[3], [0, 1, 0])

    def test_out_of_range_triangles_ignored(self) -> None:
        """Triangles pointing past the vertex buffer are skipped."""
        from scene_squash.cleaners import compute_vertex_normals

        positions = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float32)
        indices = np.array([0, 1, 2, 0, 1, 9], dtype=np.uint32)
        normals = compute_vertex_normals(positions, indices)
        np.testing.assert_allclose(normals, np.tile([0, 0, 1], (3, 1)), atol=1e-6)
