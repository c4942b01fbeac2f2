"""Texture resampling and re-encoding."""

import io
from dataclasses import dataclass

import numpy as np
from PIL import Image

from scene_squash.errors import (
    AlphaSampleRestrictedError,
    IssueKind,
    UnsupportedTextureSourceError,
    make_issue,
)
from scene_squash.scene import Material, Texture, TextureState
from scene_squash.utils import round_half_up
from scene_squash.utils.logging import (
    bright_cyan,
    dim,
    format_dims,
    log_detail,
    log_warn,
    magenta,
)

_ALPHA_MODES = ("RGBA", "LA", "PA", "RGBa", "La")
_PASSTHROUGH_MODES = ("RGB", "RGBA", "L", "LA")
# Premultiplied-alpha modes and their straight-alpha counterparts
_PREMULTIPLIED = {"La": "LA", "RGBa": "RGBA"}
_ARRAY_CHANNELS = (1, 3, 4)


@dataclass(frozen=True)
class TextureSettings:
    """Resize limits and encoder choices for one compression pass."""

    max_dimension: int = 1024
    min_dimension: int = 128
    jpeg_quality: float = 0.8
    transparent_quality: float = 0.9
    use_webp: bool = False


def target_texture_size(
    width: int, height: int, max_dim: int = 1024, min_dim: int = 128
) -> tuple[int, int]:
    """
    Compute output dimensions for a texture.

    The longer side is capped at max_dim with the aspect ratio kept. Each
    side is then floored at min_dim, but never above its original length,
    so small sources are never upscaled.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid texture size {width}x{height}")

    new_w, new_h = width, height
    if width > height and width > max_dim:
        new_h = round_half_up(height * max_dim / width)
        new_w = max_dim
    elif height > max_dim:
        new_w = round_half_up(width * max_dim / height)
        new_h = max_dim

    new_w = max(new_w, min(min_dim, width), 1)
    new_h = max(new_h, min(min_dim, height), 1)
    return new_w, new_h


def _carries_alpha(image: Image.Image) -> bool:
    """True for any mode with an alpha band, palettes and keyed transparency."""
    bands = image.getbands()
    return (
        "A" in bands
        or "a" in bands
        or image.mode == "P"
        or "transparency" in image.info
    )


def _unpremultiply(image: Image.Image) -> Image.Image:
    """Divide color bands by alpha, giving an LA or RGBA image."""
    *color, alpha = image.split()
    a = np.asarray(alpha, dtype=np.float32)
    scale = np.divide(255.0, a, out=np.zeros_like(a), where=a > 0)
    straight = [
        Image.fromarray(
            np.clip(np.round(np.asarray(band, dtype=np.float32) * scale), 0, 255)
            .astype(np.uint8)
        )
        for band in color
    ]
    return Image.merge(_PREMULTIPLIED[image.mode], [*straight, alpha])


def to_pil_image(source: object) -> Image.Image:
    """
    Convert a raster source to a Pillow image we can resample and encode.

    Accepts Pillow images and uint8/float numpy pixel arrays shaped
    (H, W), (H, W, 1), (H, W, 3) or (H, W, 4). Raises
    UnsupportedTextureSourceError for anything else.
    """
    if isinstance(source, Image.Image):
        if source.width == 0 or source.height == 0:
            raise UnsupportedTextureSourceError("Empty image")
        if source.mode in _PASSTHROUGH_MODES:
            return source
        if source.mode in _PREMULTIPLIED:
            return _unpremultiply(source)
        target = "RGBA" if _carries_alpha(source) else "RGB"
        try:
            return source.convert(target)
        except (OSError, ValueError) as e:
            raise UnsupportedTextureSourceError(
                f"Cannot convert mode {source.mode}: {e}"
            ) from e

    if isinstance(source, np.ndarray):
        arr = source
        if arr.ndim == 3 and arr.shape[2] == 1:
            arr = arr[:, :, 0]
        channels = 1 if arr.ndim == 2 else (arr.shape[2] if arr.ndim == 3 else 0)
        if channels not in _ARRAY_CHANNELS or arr.size == 0:
            raise UnsupportedTextureSourceError(
                f"Unsupported pixel array shape {source.shape}"
            )
        if np.issubdtype(arr.dtype, np.floating):
            arr = np.round(np.clip(arr, 0.0, 1.0) * 255.0).astype(np.uint8)
        elif arr.dtype != np.uint8:
            raise UnsupportedTextureSourceError(f"Unsupported pixel dtype {arr.dtype}")
        return Image.fromarray(np.ascontiguousarray(arr))

    raise UnsupportedTextureSourceError(
        f"Unsupported texture image type: {type(source).__name__}"
    )


def has_transparency(image: Image.Image) -> bool:
    """True if any alpha sample is below full opacity."""
    if image.mode not in _ALPHA_MODES:
        return False
    try:
        low, _ = image.getchannel("A").getextrema()
    except (OSError, ValueError) as e:
        raise AlphaSampleRestrictedError(str(e)) from e
    return low < 255


def encode_image(
    image: Image.Image, transparent: bool, settings: TextureSettings
) -> tuple[str, float, bytes]:
    """
    Encode an image, returning (mime_type, quality, data).

    Transparent images go to a lossless alpha format (PNG, or lossless WebP),
    opaque ones to a lossy format (JPEG, or WebP).
    """
    buffer = io.BytesIO()
    if transparent:
        quality = settings.transparent_quality
        level = round_half_up(quality * 100)
        img = image if image.mode in ("RGBA", "LA") else image.convert("RGBA")
        if settings.use_webp:
            rgba = img.convert("RGBA")
            rgba.save(buffer, format="WEBP", lossless=True, quality=level)
            mime = "image/webp"
        else:
            img.save(buffer, format="PNG", optimize=True)
            mime = "image/png"
    else:
        quality = settings.jpeg_quality
        level = round_half_up(quality * 100)
        img = image if image.mode in ("RGB", "L") else image.convert("RGB")
        if settings.use_webp:
            img.save(buffer, format="WEBP", quality=level, method=6)
            mime = "image/webp"
        else:
            img.save(buffer, format="JPEG", quality=level, optimize=True)
            mime = "image/jpeg"
    return mime, quality, buffer.getvalue()


def compress_texture(
    texture: Texture,
    settings: TextureSettings | None = None,
    issues: list[dict[str, object]] | None = None,
    label: str = "texture",
) -> Texture:
    """
    Resample and re-encode one texture.

    Already-compressed textures are returned as is. Problems never raise:
    unsupported sources and failed encodes return the input untouched, and
    unreadable alpha is treated as opaque. Each case is logged and appended
    to ``issues`` when given.
    """
    if texture.state is TextureState.COMPRESSED:
        return texture

    settings = settings or TextureSettings()

    def report(kind: IssueKind, detail: str) -> None:
        log_warn(f"{label}: {detail}")
        if issues is not None:
            issues.append(make_issue(kind, label, detail))

    try:
        source = to_pil_image(texture.image)
    except UnsupportedTextureSourceError as e:
        report(IssueKind.UNSUPPORTED_TEXTURE_SOURCE, f"{e}, keeping original")
        return texture

    w, h = source.size
    new_w, new_h = target_texture_size(
        w, h, settings.max_dimension, settings.min_dimension
    )
    resampled = (
        source
        if (new_w, new_h) == (w, h)
        else source.resize((new_w, new_h), Image.Resampling.LANCZOS)
    )

    try:
        transparent = has_transparency(resampled)
    except AlphaSampleRestrictedError as e:
        report(
            IssueKind.ALPHA_SAMPLE_RESTRICTED,
            f"could not check transparency ({e}), assuming opaque",
        )
        transparent = False

    try:
        mime, quality, data = encode_image(resampled, transparent, settings)
        decoded = Image.open(io.BytesIO(data))
        decoded.load()
    except (OSError, ValueError) as e:
        detail = f"encode failed ({e}), keeping original"
        report(IssueKind.UNSUPPORTED_TEXTURE_SOURCE, detail)
        return texture

    fmt = mime.split("/")[-1].upper()
    before, after = format_dims(w, h), format_dims(new_w, new_h)
    log_detail(f"{label}: {dim(before)} -> {bright_cyan(after)} {magenta(fmt)}")

    return Texture(
        image=decoded,
        color_space=texture.color_space,
        state=TextureState.COMPRESSED,
        mime_type=mime,
        quality=quality,
        data=data,
    )


def compress_material_textures(
    material: Material,
    settings: TextureSettings | None = None,
    issues: list[dict[str, object]] | None = None,
) -> Material:
    """Compress every populated slot into a cloned Material (input untouched)."""
    name = material.name or str(material.identity)
    replacements = {
        slot: compress_texture(texture, settings, issues, label=f"{name}.{slot}")
        for slot, texture in material.populated_slots()
    }
    return material.with_texture_slots(replacements)
