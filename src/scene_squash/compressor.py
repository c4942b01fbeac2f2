"""Scene compression pipeline: collect, normalize, group, merge, compress, ground."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from contextvars import copy_context
from dataclasses import dataclass, field, fields, replace
from typing import Any

import numpy as np
from numpy.typing import NDArray

from scene_squash.analyzers import (
    CompressionStats,
    calculate_stats,
    collect_mesh_instances,
    count_source_meshes,
    group_by_material,
)
from scene_squash.cleaners import (
    TextureSettings,
    compress_material_textures,
    merge_group,
    normalize_geometry,
    reposition_meshes,
)
from scene_squash.errors import GeometryMergeError, IssueKind, make_issue
from scene_squash.scene import Geometry, MergedMesh, MergeGroup, MeshInstance, SceneTree
from scene_squash.utils.constants import DEFAULT_CONFIG
from scene_squash.utils.logging import (
    StepTimer,
    bold,
    bright_cyan,
    bright_green,
    cyan,
    dim,
    format_count,
    format_delta,
    format_duration,
    is_quiet,
    log_detail,
    log_info,
    log_ok,
    log_warn,
    print_header,
    quiet_output,
    timed,
)

ProgressCallback = Callable[[str], None]

# Collect, normalize, group, merge, stats, reposition
TOTAL_STEPS = 6


@dataclass
class CompressionConfig:
    """Configuration for one compression pass."""

    max_texture_dimension: int = DEFAULT_CONFIG["max_texture_dimension"]
    min_texture_dimension: int = DEFAULT_CONFIG["min_texture_dimension"]
    weld_tolerance: float = DEFAULT_CONFIG["weld_tolerance"]
    jpeg_quality: float = DEFAULT_CONFIG["jpeg_quality"]
    transparent_quality: float = DEFAULT_CONFIG["transparent_quality"]
    ground_y: float = DEFAULT_CONFIG["ground_y"]
    include_all_texture_slots: bool = DEFAULT_CONFIG["include_all_texture_slots"]
    use_webp: bool = DEFAULT_CONFIG["use_webp"]
    workers: int = DEFAULT_CONFIG["workers"]
    quiet: bool = DEFAULT_CONFIG["quiet"]

    def __post_init__(self) -> None:
        if self.min_texture_dimension < 1:
            raise ValueError("min_texture_dimension must be at least 1")
        if self.max_texture_dimension < self.min_texture_dimension:
            raise ValueError(
                f"max_texture_dimension ({self.max_texture_dimension}) is smaller "
                f"than min_texture_dimension ({self.min_texture_dimension})"
            )
        if self.weld_tolerance <= 0:
            raise ValueError("weld_tolerance must be positive")
        for name in ("jpeg_quality", "transparent_quality"):
            value = getattr(self, name)
            if not 0 < value <= 1:
                raise ValueError(f"{name} must be in (0, 1], got {value}")
        if self.workers < 1:
            raise ValueError("workers must be at least 1")

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> CompressionConfig:
        """Build a config from a settings mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown config option(s): {', '.join(sorted(unknown))}")
        return cls(**dict(values))

    def texture_settings(self) -> TextureSettings:
        return TextureSettings(
            max_dimension=self.max_texture_dimension,
            min_dimension=self.min_texture_dimension,
            jpeg_quality=self.jpeg_quality,
            transparent_quality=self.transparent_quality,
            use_webp=self.use_webp,
        )


@dataclass
class CompressedScene:
    """Result of a compression pass, owned by the caller."""

    meshes: list[MergedMesh] = field(default_factory=list)
    stats: CompressionStats = field(default_factory=CompressionStats)
    translation: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    issues: list[dict[str, object]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.meshes


def _normalize_instances(
    instances: list[MeshInstance], issues: list[dict[str, object]]
) -> list[MeshInstance]:
    """Normalize each distinct geometry once and drop those without positions."""
    cache: dict[int, Geometry | None] = {}
    normalized: list[MeshInstance] = []

    for inst in instances:
        key = id(inst.geometry)
        if key not in cache:
            geom = normalize_geometry(inst.geometry)
            cache[key] = geom
            if geom is None:
                detail = "geometry has no positions, dropped"
                log_warn(f"{inst.name}: {detail}")
                issues.append(
                    make_issue(IssueKind.MISSING_POSITIONS, inst.name, detail)
                )
        geom = cache[key]
        if geom is not None:
            normalized.append(replace(inst, geometry=geom))

    return normalized


def _process_group(
    group: MergeGroup, config: CompressionConfig
) -> tuple[MergedMesh | None, list[dict[str, object]]]:
    """Merge one material group and compress its material's textures."""
    issues: list[dict[str, object]] = []
    name = group.material.name or str(group.key)

    try:
        with timed(f"Merge {name}", print_on_exit=False) as t:
            geometry = merge_group(group, config.weld_tolerance)
    except GeometryMergeError as e:
        log_warn(f"{name}: {e}, skipping group")
        issues.append(make_issue(IssueKind.GEOMETRY_MERGE_FAILED, name, str(e)))
        return None, issues

    before = sum(inst.geometry.vertex_count for inst in group.instances)
    log_detail(
        f"{name}: {format_count(len(group.instances), 'mesh')}, "
        f"{before:,} -> {bright_cyan(f'{geometry.vertex_count:,}')} verts "
        f"{dim(f'({format_duration(t.elapsed)})')}"
    )

    material = compress_material_textures(
        group.material, config.texture_settings(), issues
    )
    mesh = MergedMesh(
        geometry=geometry, material=material, source_count=len(group.instances)
    )
    return mesh, issues


def _process_groups(
    groups: list[MergeGroup],
    config: CompressionConfig,
    issues: list[dict[str, object]],
    progress: ProgressCallback | None,
) -> list[MergedMesh]:
    """Process groups in order, optionally on a thread pool."""
    total = len(groups)
    meshes: list[MergedMesh] = []

    def collect(result: tuple[MergedMesh | None, list[dict[str, object]]]) -> None:
        mesh, group_issues = result
        issues.extend(group_issues)
        if mesh is not None:
            meshes.append(mesh)

    if config.workers > 1 and total > 1:
        with ThreadPoolExecutor(max_workers=min(config.workers, total)) as executor:
            # Each task runs in its own copy of the caller's context (quiet flag)
            futures = [
                executor.submit(copy_context().run, _process_group, group, config)
                for group in groups
            ]
            for i, future in enumerate(futures):
                result = future.result()
                _notify(progress, f"Merged material {i + 1} of {total}")
                collect(result)
        return meshes

    for i, group in enumerate(groups):
        _notify(progress, f"Merging material {i + 1} of {total}")
        collect(_process_group(group, config))
    return meshes


def _notify(progress: ProgressCallback | None, message: str) -> None:
    if progress is not None:
        progress(message)


def _print_summary(stats: CompressionStats, step: StepTimer) -> None:
    if is_quiet():
        return
    print(f"\n{cyan('=' * 60)}")
    print(
        f"  {bold('MESHES')}:   {stats.original_mesh_count:,} -> "
        f"{bright_green(f'{stats.merged_mesh_count:,}')}"
    )
    print(
        f"  {bold('VERTICES')}: {stats.original_vertex_count:,} -> "
        f"{bright_green(f'{stats.merged_vertex_count:,}')} "
        f"({format_delta(stats.original_vertex_count, stats.merged_vertex_count)}, "
        f"{stats.vertex_reduction_percent}%)"
    )
    print(f"  {bold('TEXTURES')}: {bright_cyan(f'{stats.total_texture_pixels:,}')} px")
    print(f"  {bold('TIME')}:     {bright_cyan(format_duration(step.total_elapsed()))}")
    print(f"{cyan('=' * 60)}")
    step.print_summary()


def _run_pipeline(
    tree: SceneTree, config: CompressionConfig, progress: ProgressCallback | None
) -> CompressedScene:
    step = StepTimer(total_steps=TOTAL_STEPS, on_step=progress)
    print_header("SCENE COMPRESSOR")
    issues: list[dict[str, object]] = []

    step.step("Collecting meshes...")
    instances = collect_mesh_instances(tree)
    if not instances:
        log_info("No meshes found, nothing to compress")
        issues.append(
            make_issue(
                IssueKind.NO_MESHES_FOUND, "SCENE", "no mesh nodes", severity="INFO"
            )
        )
        step.finish()
        return CompressedScene(issues=issues)
    log_detail(
        f"Found {cyan(format_count(count_source_meshes(instances), 'mesh'))} "
        f"({format_count(len(instances), 'instance')})"
    )

    step.step("Normalizing geometry...")
    normalized = _normalize_instances(instances, issues)

    step.step("Grouping geometries by material...")
    groups = group_by_material(normalized)
    log_detail(f"{format_count(len(groups), 'material group')}")

    step.step(f"Merging {format_count(len(groups), 'group')}...")
    meshes = _process_groups(groups, config, issues, progress)

    step.step("Calculating stats...")
    stats = calculate_stats(instances, meshes, config.include_all_texture_slots)

    step.step("Repositioning output...")
    meshes, translation = reposition_meshes(meshes, config.ground_y)
    x, y, z = translation
    log_detail(dim(f"offset ({x:.3f}, {y:.3f}, {z:.3f})"))

    step.finish()
    _print_summary(stats, step)
    log_ok(
        f"{format_count(stats.original_mesh_count, 'mesh')} -> "
        f"{format_count(stats.merged_mesh_count, 'mesh')}, "
        f"{stats.vertex_reduction_percent}% fewer vertices"
    )

    return CompressedScene(
        meshes=meshes, stats=stats, translation=translation, issues=issues
    )


def compress_scene(
    tree: SceneTree,
    config: CompressionConfig | None = None,
    progress: ProgressCallback | None = None,
) -> CompressedScene:
    """
    Compress a scene into one merged mesh per material.

    Args:
        tree: Scene produced by the loader; never modified
        config: Compression options (defaults to CompressionConfig())
        progress: Optional callback receiving a message before each stage
            and for each material group

    Non-fatal problems are logged and listed on ``CompressedScene.issues``;
    only an invalid config raises. ``config.quiet`` hides progress output
    but never warnings.
    """
    config = config or CompressionConfig()
    with quiet_output(config.quiet):
        return _run_pipeline(tree, config, progress)
