"""Web optimization: resize, format-aware recompression, sRGB conversion."""

import io
from dataclasses import replace

from PIL import Image, ImageCms

from pixmeta.config.settings import Settings, get_settings
from pixmeta.core.exceptions import OptimizationError
from pixmeta.core.models import Frame, ImageBuffer, ProcessOptions
from pixmeta.utils.image_io import ALPHA_MODES, has_alpha
from pixmeta.utils.logging import get_logger


logger = get_logger(__name__)

# Above this density a flat PNG is treated as a photographic scan
PHOTO_DENSITY_DPI = 72

# WebP encoder effort (0-6); 6 is markedly slower for little gain
WEBP_METHOD = 5


def choose_format(source: ImageBuffer) -> str:
    """Pick the output format for an optimized image.

    - PNG without alpha above 72 DPI -> JPEG (photos saved as PNG)
    - PNG with alpha or at screen density -> PNG
    - WebP -> WebP
    - Everything else -> JPEG
    """
    if source.format == "png":
        if not source.has_alpha and source.density and source.density > PHOTO_DENSITY_DPI:
            return "jpeg"
        return "png"
    if source.format == "webp":
        return "webp"
    return "jpeg"


def resize_to_width(img: Image.Image, max_width: int | None) -> Image.Image:
    """Shrink to ``max_width`` preserving aspect ratio; never enlarges."""
    if not max_width or img.width <= max_width:
        return img

    scale = max_width / img.width
    new_height = max(1, round(img.height * scale))
    return img.resize((max_width, new_height), Image.Resampling.LANCZOS)


def to_srgb(img: Image.Image, icc_profile: bytes | None) -> Image.Image:
    """Convert to sRGB, applying the embedded ICC profile when present."""
    if icc_profile:
        source_profile = ImageCms.ImageCmsProfile(io.BytesIO(icc_profile))
        srgb = ImageCms.createProfile("sRGB")
        output_mode = "RGBA" if img.mode in ALPHA_MODES else "RGB"
        if img.mode not in {"RGB", "RGBA", "CMYK", "L"}:
            img = img.convert(output_mode)
        return ImageCms.profileToProfile(img, source_profile, srgb, outputMode=output_mode)

    if img.mode == "CMYK":
        return img.convert("RGB")
    return img


def profile_matches(icc_profile: bytes, mode: str) -> bool:
    """Whether an ICC profile describes pixels of the given mode."""
    try:
        space = ImageCms.ImageCmsProfile(io.BytesIO(icc_profile)).profile.xcolor_space.strip()
    except (ImageCms.PyCMSError, OSError):
        return False
    if mode == "CMYK":
        return space == "CMYK"
    if mode in {"1", "L", "LA", "I", "I;16", "F"}:
        return space == "GRAY"
    return space == "RGB"


def _flatten(img: Image.Image) -> Image.Image:
    """Composite transparency onto white for formats without alpha."""
    if img.mode in {"RGBA", "LA", "P", "PA"}:
        background = Image.new("RGB", img.size, (255, 255, 255))
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        background.paste(img, mask=img.split()[-1])
        return background
    elif img.mode not in {"RGB", "L", "CMYK"}:
        return img.convert("RGB")
    return img


def prepare_for_format(img: Image.Image, format: str) -> Image.Image:
    """Convert the raster into a mode the target encoder handles well."""
    if format == "jpeg":
        return _flatten(img)

    alpha = has_alpha(img)
    if format == "png":
        # Palette quantization; FASTOCTREE is used for RGBA and keeps alpha
        return img.convert("RGBA" if alpha else "RGB").quantize(colors=256)

    if img.mode not in {"RGB", "RGBA"}:
        return img.convert("RGBA" if alpha else "RGB")
    return img


def save_options_for(format: str, quality: int) -> dict:
    """Encoder options per output format."""
    if format == "jpeg":
        return {"quality": quality, "optimize": True, "progressive": True}
    if format == "png":
        return {"optimize": True, "compress_level": 9}
    if format == "webp":
        return {"quality": quality, "method": WEBP_METHOD, "lossless": False}
    return {"quality": quality}


def optimize(
    frame: Frame,
    options: ProcessOptions,
    settings: Settings | None = None,
) -> Frame:
    """Apply resize, recompression and colorspace rules to a frame.

    Raises:
        OptimizationError: If any step fails. Callers fall back to the
            frame they passed in.
    """
    settings = settings or get_settings()
    quality = options.quality or settings.default_quality

    try:
        img = frame.image
        if img.mode == "P":
            img = img.convert("RGBA" if has_alpha(img) else "RGB")

        resized = resize_to_width(img, options.max_width)
        if resized is not img:
            logger.debug("Resized from %dpx to %dpx", img.width, resized.width)
        img = resized

        icc_profile = frame.icc_profile
        if not options.keep_color_profile:
            img = to_srgb(img, icc_profile)
            icc_profile = None

        target = choose_format(frame.source)
        img = prepare_for_format(img, target)
    except Exception as e:
        raise OptimizationError(f"Optimization failed: {e}") from e

    return replace(
        frame,
        image=img,
        format=target,
        icc_profile=icc_profile,
        pixels_changed=True,
        save_options=save_options_for(target, quality),
    )
