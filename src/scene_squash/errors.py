"""Exceptions and non-fatal issue kinds raised while compressing a scene."""

from enum import Enum


class IssueKind(str, Enum):
    """Non-fatal problems recorded on a compressed scene."""

    MISSING_POSITIONS = "MISSING_POSITIONS"
    UNSUPPORTED_TEXTURE_SOURCE = "UNSUPPORTED_TEXTURE_SOURCE"
    ALPHA_SAMPLE_RESTRICTED = "ALPHA_SAMPLE_RESTRICTED"
    NO_MESHES_FOUND = "NO_MESHES_FOUND"
    GEOMETRY_MERGE_FAILED = "GEOMETRY_MERGE_FAILED"


class SceneSquashError(Exception):
    """Base class for scene-squash errors."""


class UnsupportedTextureSourceError(SceneSquashError):
    """Texture image is not a raster kind we can resample."""


class AlphaSampleRestrictedError(SceneSquashError):
    """Pixel data could not be read back to check for transparency."""


class GeometryMergeError(SceneSquashError):
    """Geometries of one material group could not be combined."""


def make_issue(
    kind: IssueKind, obj: str, detail: str, severity: str = "WARNING"
) -> dict[str, object]:
    """Build an issue record in the same shape analyzers report warnings."""
    return {
        "severity": severity,
        "issue": kind.value,
        "object": obj,
        "detail": detail,
    }
