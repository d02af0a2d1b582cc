"""Pixel scrambling algorithms.

Every algorithm takes a decoded raster and an intensity in 0-100 and returns
a new raster of the same size. These are obfuscation transforms for privacy
and anti-scraping use. They are not encryption and can be partly undone by a
determined adversary.
"""

from dataclasses import replace
from typing import Callable

import numpy as np
from PIL import Image, ImageCms, ImageDraw, ImageEnhance, ImageFilter, ImageFont

from pixmeta.config.settings import Settings, get_settings
from pixmeta.core.exceptions import DecodeError, ProcessingError, ScrambleError
from pixmeta.core.models import (
    DEFAULT_WATERMARK_TEXT,
    Frame,
    ProcessOptions,
    ScrambleType,
    WatermarkPosition,
    clamp_intensity,
)
from pixmeta.core.optimizer import to_srgb
from pixmeta.utils.image_io import has_alpha
from pixmeta.utils.logging import get_logger


logger = get_logger(__name__)

ScrambleFn = Callable[
    [Image.Image, tuple[int, int], ProcessOptions, np.random.Generator, Settings],
    Image.Image,
]

# Red at 40% opacity
WATERMARK_FILL = (255, 0, 0, 102)
WATERMARK_ANGLE = 45

BLUR_RADIUS = 20
NOISE_ALPHA = 0.5
# Overlay blend leaves a pixel unchanged against this value
NOISE_NEUTRAL = 127.5
MAX_NOISE_AMPLITUDE = 50


def resolve_dimensions(
    width: int | None,
    height: int | None,
    fallback: tuple[int, int],
    best_effort: bool,
) -> tuple[int, int]:
    """Dimensions to scramble against.

    Raises:
        DecodeError: If the raster reports no size and best-effort mode is off.
    """
    if width and height:
        return width, height
    if best_effort:
        logger.warning("Image reports no dimensions, assuming %dx%d", *fallback)
        return fallback
    raise DecodeError("Image reports no dimensions")


def _working_frame(frame: Frame) -> Frame:
    """Frame with its raster in a mode the algorithms handle.

    CMYK goes to sRGB through the embedded profile, which is then dropped
    since it no longer describes the pixels.
    """
    img = frame.image
    if img.mode in {"RGB", "RGBA", "L"}:
        return frame
    if img.mode == "CMYK":
        try:
            img = to_srgb(img, frame.icc_profile)
        except (ImageCms.PyCMSError, OSError) as e:
            logger.warning("Colour profile not applied, converting directly: %s", e)
            img = img.convert("RGB")
        return replace(frame, image=img, icc_profile=None)
    return replace(frame, image=img.convert("RGBA" if has_alpha(img) else "RGB"))


def block_size_for(width: int, height: int) -> int:
    """Edge length of the square blocks used by pixel-shift."""
    return max(4, min(width, height) // 20)


def plan_block_moves(
    block_count: int,
    intensity: int,
    rng: np.random.Generator,
) -> list[tuple[int, int]]:
    """Choose where each moving block goes.

    Each block, in raster order, is picked with probability intensity/100.
    The picked blocks are shuffled into a single cycle, each taking the
    place of the next, so no picked block stays where it was. A lone pick
    is paired with a uniformly chosen other block.

    Returns:
        (source, target) block index pairs; sources and targets are each
        distinct.
    """
    if block_count < 2 or intensity <= 0:
        return []

    probability = intensity / 100
    picked = [index for index in range(block_count) if rng.random() < probability]
    if not picked:
        return []
    if len(picked) == 1:
        other = int(rng.integers(0, block_count - 1))
        if other >= picked[0]:
            other += 1
        picked.append(other)

    cycle = [picked[i] for i in rng.permutation(len(picked))]
    return list(zip(cycle, cycle[1:] + cycle[:1]))


def pixel_shift(
    img: Image.Image,
    size: tuple[int, int],
    options: ProcessOptions,
    rng: np.random.Generator,
    settings: Settings,
) -> Image.Image:
    """Move square blocks of pixels to other places on the grid."""
    width, height = size
    block = block_size_for(width, height)
    columns, rows = width // block, height // block

    moves = plan_block_moves(columns * rows, options.scramble_intensity, rng)
    if not moves:
        return img

    pixels = np.array(img)
    shifted = pixels.copy()

    def region(index: int) -> tuple[slice, slice]:
        row, column = divmod(index, columns)
        return (
            slice(row * block, (row + 1) * block),
            slice(column * block, (column + 1) * block),
        )

    for source, target in moves:
        shifted[region(target)] = pixels[region(source)]

    return Image.fromarray(shifted)


def _load_font(name: str, size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    try:
        return ImageFont.truetype(name, size)
    except OSError:
        return ImageFont.load_default(size=size)


def _anchor(
    position: WatermarkPosition,
    canvas: tuple[int, int],
    layer: tuple[int, int],
) -> tuple[int, int]:
    free_x = max(0, canvas[0] - layer[0])
    free_y = max(0, canvas[1] - layer[1])
    return {
        WatermarkPosition.CENTER: (free_x // 2, free_y // 2),
        WatermarkPosition.TOP_LEFT: (0, 0),
        WatermarkPosition.TOP_RIGHT: (free_x, 0),
        WatermarkPosition.BOTTOM_LEFT: (0, free_y),
        WatermarkPosition.BOTTOM_RIGHT: (free_x, free_y),
    }[position]


def render_watermark(text: str, font_size: int, font_name: str) -> Image.Image:
    """Render diagonal semi-transparent watermark text on a transparent layer."""
    font = _load_font(font_name, font_size)
    measure = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
    left, top, right, bottom = measure.textbbox((0, 0), text, font=font)

    # Transparent pixels carry the fill color so edges blend without dark fringes
    clear = WATERMARK_FILL[:3] + (0,)
    layer = Image.new("RGBA", (max(1, right - left), max(1, bottom - top)), clear)
    ImageDraw.Draw(layer).text((-left, -top), text, font=font, fill=WATERMARK_FILL)
    return layer.rotate(
        WATERMARK_ANGLE, expand=True, resample=Image.Resampling.BICUBIC, fillcolor=clear
    )


def watermark(
    img: Image.Image,
    size: tuple[int, int],
    options: ProcessOptions,
    rng: np.random.Generator,
    settings: Settings,
) -> Image.Image:
    """Composite watermark text at the requested position. Intensity is unused."""
    width, height = size
    text = options.watermark_text or DEFAULT_WATERMARK_TEXT
    font_size = max(1, min(width, height) // 10)

    layer = render_watermark(text, font_size, settings.watermark_font)
    if layer.width > width or layer.height > height:
        layer.thumbnail((width, height))

    canvas = img.convert("RGBA")
    canvas.alpha_composite(layer, dest=_anchor(options.watermark_position, size, layer.size))
    return canvas if has_alpha(img) else canvas.convert("RGB")


def blur_regions(
    img: Image.Image,
    size: tuple[int, int],
    options: ProcessOptions,
    rng: np.random.Generator,
    settings: Settings,
) -> Image.Image:
    """Blur intensity/10 random rectangles, each 10-30% of the image per side."""
    count = options.scramble_intensity // 10
    if count == 0:
        return img

    width, height = size
    result = img.copy()
    for _ in range(count):
        region_width = max(1, int(width * (0.1 + rng.random() * 0.2)))
        region_height = max(1, int(height * (0.1 + rng.random() * 0.2)))
        x = int(rng.integers(0, width - region_width + 1))
        y = int(rng.integers(0, height - region_height + 1))

        box = (x, y, x + region_width, y + region_height)
        blurred = img.crop(box).filter(ImageFilter.GaussianBlur(radius=BLUR_RADIUS))
        result.paste(blurred, (x, y))
    return result


def color_shift(
    img: Image.Image,
    size: tuple[int, int],
    options: ProcessOptions,
    rng: np.random.Generator,
    settings: Settings,
) -> Image.Image:
    """Rotate hue, perturb saturation and brightness, then add a random tint."""
    intensity = options.scramble_intensity
    if intensity == 0:
        return img

    alpha = img.getchannel("A") if img.mode == "RGBA" else None
    rgb = img.convert("RGB")

    # Pillow stores hue as 0-255
    hue_offset = round((intensity / 100) * 180 / 360 * 256) % 256
    if hue_offset:
        hue, saturation, value = rgb.convert("HSV").split()
        hue = hue.point(lambda h: (h + hue_offset) % 256)
        rgb = Image.merge("HSV", (hue, saturation, value)).convert("RGB")

    saturation_factor = 1 + rng.uniform(-1, 1) * intensity / 100
    brightness_factor = 1 + rng.uniform(-1, 1) * intensity / 200
    rgb = ImageEnhance.Color(rgb).enhance(saturation_factor)
    rgb = ImageEnhance.Brightness(rgb).enhance(brightness_factor)

    tint = rng.integers(0, intensity + 1, size=3)
    pixels = np.asarray(rgb, dtype=np.int16) + tint
    rgb = Image.fromarray(np.clip(pixels, 0, 255).astype(np.uint8))

    if alpha is not None:
        rgb.putalpha(alpha)
    return rgb


def noise(
    img: Image.Image,
    size: tuple[int, int],
    options: ProcessOptions,
    rng: np.random.Generator,
    settings: Settings,
) -> Image.Image:
    """Overlay-blend grey luminance noise at 50% opacity."""
    amplitude = options.scramble_intensity / 100 * MAX_NOISE_AMPLITUDE
    if amplitude == 0:
        return img

    pixels = np.asarray(img, dtype=np.float32).copy()
    if pixels.ndim == 2:
        pixels = pixels[..., np.newaxis]
    rgb = pixels[..., :3]

    layer = NOISE_NEUTRAL + rng.uniform(-amplitude, amplitude, size=pixels.shape[:2] + (1,))
    layer = layer.astype(np.float32)
    overlay = np.where(
        rgb < 128,
        2 * rgb * layer / 255,
        255 - 2 * (255 - rgb) * (255 - layer) / 255,
    )
    pixels[..., :3] = rgb * (1 - NOISE_ALPHA) + overlay * NOISE_ALPHA

    result = np.clip(np.rint(pixels), 0, 255).astype(np.uint8)
    return Image.fromarray(result[..., 0] if img.mode == "L" else result)


# Algorithm and placeholder size used in best-effort mode
SCRAMBLERS: dict[ScrambleType, tuple[ScrambleFn, tuple[int, int]]] = {
    ScrambleType.PIXEL_SHIFT: (pixel_shift, (100, 100)),
    ScrambleType.WATERMARK: (watermark, (800, 600)),
    ScrambleType.BLUR_REGIONS: (blur_regions, (800, 600)),
    ScrambleType.COLOR_SHIFT: (color_shift, (800, 600)),
    ScrambleType.NOISE: (noise, (800, 600)),
}


def scramble(
    frame: Frame,
    options: ProcessOptions,
    rng: np.random.Generator | None = None,
    settings: Settings | None = None,
) -> Frame:
    """Run the scramble algorithm selected by ``options.scramble_type``.

    Raises:
        DecodeError: If the frame has no usable dimensions.
        ScrambleError: If the raster operation fails.
    """
    settings = settings or get_settings()
    if rng is None:
        rng = np.random.default_rng(options.seed)
    if options.scramble_type is None:
        raise ScrambleError("No scramble type given")

    algorithm, fallback = SCRAMBLERS[options.scramble_type]
    size = resolve_dimensions(
        frame.source.width, frame.source.height, fallback, settings.best_effort_dimensions
    )
    # Options are validated already; clamp again for directly built ones
    options = options.model_copy(
        update={"scramble_intensity": clamp_intensity(options.scramble_intensity)}
    )

    logger.debug(
        "Applying scramble: %s at %d%% intensity",
        options.scramble_type.value, options.scramble_intensity,
    )
    frame = _working_frame(frame)
    try:
        image = algorithm(frame.image, size, options, rng, settings)
    except ProcessingError:
        raise
    except Exception as e:
        raise ScrambleError(f"{options.scramble_type.value} failed: {e}") from e

    return replace(frame, image=image, pixels_changed=True)
