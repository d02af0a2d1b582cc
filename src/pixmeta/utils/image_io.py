"""Image I/O utilities built on Pillow."""

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from PIL import ExifTags, Image

from pixmeta.core.exceptions import DecodeError
from pixmeta.core.models import ImageBuffer


# Supported image extensions
SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tiff", ".tif"}

ALPHA_MODES = {"RGBA", "LA", "PA", "RGBa", "La"}

# Pillow format names folded onto the format they are written as
FORMAT_ALIASES = {"mpo": "jpeg"}


@dataclass
class ImageInfo:
    """Image metadata information."""

    path: Path
    format: str
    mode: str
    width: int
    height: int
    size_bytes: int
    has_exif: bool
    exif_data: dict[str, Any] | None = None


def is_supported_image(path: Path) -> bool:
    """Check if a file is a supported image format."""
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def load_bytes(path: Path) -> bytes:
    """Read an image file into memory.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file is not a supported image.
    """
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")

    if not is_supported_image(path):
        raise ValueError(f"Unsupported image format: {path.suffix}")

    return path.read_bytes()


def normalize_format(name: str | None) -> str:
    """Lower-case format name, with multi-picture JPEGs treated as JPEG."""
    name = (name or "").lower()
    return FORMAT_ALIASES.get(name, name)


def has_alpha(img: Image.Image) -> bool:
    """Whether the raster carries transparency."""
    if img.mode in ALPHA_MODES:
        return True
    return "transparency" in img.info


def describe_image(img: Image.Image, data: bytes) -> ImageBuffer:
    """Build an ImageBuffer from a loaded Pillow image and its encoded bytes."""
    density = None
    dpi = img.info.get("dpi")
    if dpi:
        density = float(dpi[0])

    orientation = None
    try:
        orientation = img.getexif().get(ExifTags.Base.Orientation)
    except Exception:
        pass  # Malformed EXIF is handled by the metadata stage

    exif = img.info.get("exif")
    icc_profile = img.info.get("icc_profile")

    return ImageBuffer(
        data=data,
        format=normalize_format(img.format),
        width=img.width,
        height=img.height,
        mode=img.mode,
        channels=len(img.getbands()),
        has_alpha=has_alpha(img),
        exif=exif if isinstance(exif, bytes) and exif else None,
        density=density,
        orientation=int(orientation) if orientation else None,
        icc_profile=icc_profile if isinstance(icc_profile, bytes) and icc_profile else None,
    )


def decode_image(data: bytes) -> ImageBuffer:
    """Decode raw bytes into an ImageBuffer.

    Raises:
        DecodeError: If the bytes are not a recognizable raster image.
    """
    if not data:
        raise DecodeError("Empty image data")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return describe_image(img, data)
    except Exception as e:
        raise DecodeError(f"Cannot decode image: {e}") from e


def open_image(image: ImageBuffer) -> Image.Image:
    """Open the raster of an ImageBuffer as a fully loaded Pillow image."""
    try:
        img = Image.open(io.BytesIO(image.data))
        img.load()
    except Exception as e:
        raise DecodeError(f"Cannot decode image: {e}") from e
    return img


def encode_image(img: Image.Image, format: str, **kwargs: Any) -> bytes:
    """Encode a Pillow image to bytes in the given format.

    Args:
        img: Image to encode.
        format: Lower-case format name (jpeg, png, webp, ...).
        **kwargs: Format-specific save options.

    Returns:
        Encoded bytes.
    """
    out = io.BytesIO()
    img.save(out, format=format.upper(), **kwargs)
    return out.getvalue()


def get_image_info(path: Path) -> ImageInfo:
    """Get detailed information about an image.

    Args:
        path: Path to the image file.

    Returns:
        ImageInfo object with decoded provenance fields.
    """
    from pixmeta.core.metadata import read_exif

    data = load_bytes(path)
    image = decode_image(data)
    exif_data = read_exif(image.exif) if image.exif else None

    return ImageInfo(
        path=path,
        format=image.format.upper() or "Unknown",
        mode=image.mode,
        width=image.width,
        height=image.height,
        size_bytes=image.size_bytes,
        has_exif=bool(exif_data),
        exif_data=exif_data,
    )


def collect_images(
    directory: Path,
    recursive: bool = False,
) -> list[Path]:
    """Collect all image files from a directory.

    Args:
        directory: Directory to scan.
        recursive: Include subdirectories.

    Returns:
        List of image file paths.
    """
    if not directory.is_dir():
        raise ValueError(f"Not a directory: {directory}")

    pattern = "**/*" if recursive else "*"
    images = []

    for path in directory.glob(pattern):
        if path.is_file() and is_supported_image(path):
            images.append(path)

    return sorted(images)


def output_path_for(input_path: Path, extension: str, suffix: str = "_processed") -> Path:
    """Default output path next to the input, with the output format's extension."""
    return input_path.with_name(f"{input_path.stem}{suffix}{extension}")


def save_bytes(data: bytes, path: Path) -> int:
    """Write encoded image bytes, creating parent directories.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return len(data)
