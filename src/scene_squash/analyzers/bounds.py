"""Axis-aligned bounding boxes over geometry buffers."""

from collections.abc import Iterable

import numpy as np
from numpy.typing import NDArray

from scene_squash.scene import Geometry

BoundingBox = tuple[NDArray[np.float64], NDArray[np.float64]]


def compute_bounding_box(geometries: Iterable[Geometry]) -> BoundingBox | None:
    """Return (min, max) corners over all positions, or None if there are none."""
    lo = np.full(3, np.inf)
    hi = np.full(3, -np.inf)
    found = False

    for geom in geometries:
        if geom.positions is None or geom.vertex_count == 0:
            continue
        pts = np.asarray(geom.positions, dtype=np.float64)
        lo = np.minimum(lo, pts.min(axis=0))
        hi = np.maximum(hi, pts.max(axis=0))
        found = True

    if not found:
        return None
    return lo, hi


def bounding_box_center(box: BoundingBox) -> NDArray[np.float64]:
    lo, hi = box
    return (lo + hi) / 2.0
