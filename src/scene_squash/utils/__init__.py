"""Matrix and vector helpers shared by the pipeline stages."""

import math

import numpy as np
from numpy.typing import ArrayLike, NDArray

# Normal used where a direction cannot be derived
FALLBACK_NORMAL = (0.0, 1.0, 0.0)


def identity_matrix() -> NDArray[np.float64]:
    """Return a fresh 4x4 identity matrix."""
    return np.eye(4, dtype=np.float64)


def translation_matrix(x: float, y: float, z: float) -> NDArray[np.float64]:
    """Build a 4x4 translation matrix."""
    m = identity_matrix()
    m[:3, 3] = (x, y, z)
    return m


def scale_matrix(x: float, y: float, z: float) -> NDArray[np.float64]:
    """Build a 4x4 scale matrix."""
    return np.diag([x, y, z, 1.0]).astype(np.float64)


def as_matrix(value: ArrayLike | None) -> NDArray[np.float64]:
    """Coerce a matrix-like value into a 4x4 float64 array (None = identity)."""
    if value is None:
        return identity_matrix()
    m = np.array(value, dtype=np.float64)
    if m.shape == (16,):
        m = m.reshape(4, 4)
    if m.shape != (4, 4):
        raise ValueError(f"Expected a 4x4 matrix, got shape {m.shape}")
    return m


def normal_matrix(matrix: NDArray[np.float64]) -> NDArray[np.float64]:
    """Inverse-transpose of the upper 3x3 (pseudo-inverse when singular)."""
    upper = matrix[:3, :3]
    try:
        inv = np.linalg.inv(upper)
    except np.linalg.LinAlgError:
        inv = np.linalg.pinv(upper)
    return inv.T


def normalize_vectors(vectors: NDArray[np.floating]) -> NDArray[np.float32]:
    """Normalize rows to unit length; zero-length rows become FALLBACK_NORMAL."""
    out = np.array(vectors, dtype=np.float32)
    if out.size == 0:
        return out.reshape(-1, 3)
    lengths = np.linalg.norm(out, axis=1)
    valid = lengths > 1e-12
    if np.any(valid):
        out[valid] /= lengths[valid][:, None]
    if np.any(~valid):
        out[~valid] = np.array(FALLBACK_NORMAL, dtype=np.float32)
    return out


def transform_points(
    points: NDArray[np.floating], matrix: NDArray[np.float64]
) -> NDArray[np.float32]:
    """Apply the affine part of a 4x4 matrix to (n, 3) points."""
    pts = np.asarray(points, dtype=np.float64)
    out = pts @ matrix[:3, :3].T + matrix[:3, 3]
    return out.astype(np.float32)


def transform_normals(
    normals: NDArray[np.floating], matrix: NDArray[np.float64]
) -> NDArray[np.float32]:
    """Transform (n, 3) normals by the normal matrix and renormalize."""
    nrm = np.asarray(normals, dtype=np.float64) @ normal_matrix(matrix).T
    return normalize_vectors(nrm)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with halves rounding up (not to even)."""
    return int(math.floor(value + 0.5))
