"""Constants and defaults for scene compression."""

from typing import TypedDict

# Texture slots a standard PBR material may populate
TEXTURE_SLOTS: tuple[str, ...] = (
    "map",
    "ao_map",
    "emissive_map",
    "metalness_map",
    "roughness_map",
    "normal_map",
    "displacement_map",
    "alpha_map",
)

# Color slot counted when texture stats are limited to one slot
PRIMARY_TEXTURE_SLOT = "map"

# Fallback material key for nodes without a material
DEFAULT_MATERIAL_KEY = "default"

# Reference height geometry is placed on after repositioning
DEFAULT_GROUND_Y = 0.0


class CompressionSettings(TypedDict):
    """Configuration for scene compression."""

    max_texture_dimension: int
    min_texture_dimension: int
    weld_tolerance: float
    jpeg_quality: float
    transparent_quality: float
    ground_y: float
    include_all_texture_slots: bool
    use_webp: bool
    workers: int
    quiet: bool


# Default configuration for compression
DEFAULT_CONFIG: CompressionSettings = {
    "max_texture_dimension": 1024,  # Longer side cap
    "min_texture_dimension": 128,  # Shorter side floor (never upscales)
    "weld_tolerance": 1e-5,  # Vertex weld quantization step
    "jpeg_quality": 0.8,  # Opaque textures
    "transparent_quality": 0.9,  # Textures with alpha
    "ground_y": DEFAULT_GROUND_Y,
    "include_all_texture_slots": True,  # False = count "map" only
    "use_webp": False,  # WebP instead of JPEG/PNG
    "workers": 1,  # Material groups processed in parallel
    "quiet": True,  # Minimize console output
}
