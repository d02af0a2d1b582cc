"""Pytest configuration and fixtures."""

import io
import tempfile
from pathlib import Path

import numpy as np
import piexif
import pytest
from PIL import Image

from pixmeta.config.settings import Settings
from pixmeta.core.processor import ImageProcessor


GPS_RECORD = {
    piexif.GPSIFD.GPSLatitudeRef: b"N",
    piexif.GPSIFD.GPSLatitude: ((40, 1), (26, 1), (4614, 100)),
    piexif.GPSIFD.GPSLongitudeRef: b"W",
    piexif.GPSIFD.GPSLongitude: ((79, 1), (58, 1), (5600, 100)),
}


def encode(img: Image.Image, format: str, **kwargs) -> bytes:
    """Encode a Pillow image to bytes."""
    out = io.BytesIO()
    img.save(out, format=format, **kwargs)
    return out.getvalue()


def gradient(width: int, height: int) -> Image.Image:
    """RGB test pattern where every block looks different."""
    rng = np.random.default_rng(0)
    pixels = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    return Image.fromarray(pixels)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings() -> Settings:
    """Settings with a known software stamp."""
    return Settings(software_name="TestSuite", log_level="WARNING")


@pytest.fixture
def processor(settings: Settings) -> ImageProcessor:
    """Pipeline with fixed settings."""
    return ImageProcessor(settings=settings)


@pytest.fixture
def exif_bytes() -> bytes:
    """EXIF block with camera, copyright, orientation and GPS."""
    return piexif.dump({
        "0th": {
            piexif.ImageIFD.Make: b"Canon",
            piexif.ImageIFD.Model: b"EOS 5D",
            piexif.ImageIFD.Copyright: b"Old Owner",
            piexif.ImageIFD.Orientation: 6,
        },
        "Exif": {piexif.ExifIFD.DateTimeOriginal: b"2020:01:01 10:00:00"},
        "GPS": dict(GPS_RECORD),
        "1st": {},
        "thumbnail": None,
    })


@pytest.fixture
def jpeg_with_exif(exif_bytes: bytes) -> bytes:
    """Small JPEG photo carrying EXIF and GPS."""
    return encode(Image.new("RGB", (120, 80), color=(200, 100, 50)), "JPEG", quality=95, exif=exif_bytes)


@pytest.fixture
def large_jpeg(exif_bytes: bytes) -> bytes:
    """1920x1080 JPEG photo."""
    return encode(gradient(1920, 1080), "JPEG", quality=90, exif=exif_bytes)


@pytest.fixture
def png_with_alpha() -> bytes:
    """PNG with transparency."""
    return encode(Image.new("RGBA", (400, 300), color=(255, 0, 0, 128)), "PNG")


@pytest.fixture
def flat_png() -> bytes:
    """Lossless RGB PNG test pattern at screen density."""
    return encode(gradient(120, 100), "PNG")


@pytest.fixture
def scanned_png() -> bytes:
    """Opaque PNG saved at print density."""
    return encode(gradient(200, 150), "PNG", dpi=(300, 300))


@pytest.fixture
def webp_image() -> bytes:
    """Lossy WebP image."""
    return encode(gradient(160, 120), "WEBP", quality=80)


@pytest.fixture
def png_with_exif(exif_bytes: bytes) -> bytes:
    """RGB PNG carrying EXIF and GPS in an eXIf chunk."""
    return encode(gradient(90, 60), "PNG", exif=exif_bytes)


@pytest.fixture
def webp_with_exif(exif_bytes: bytes) -> bytes:
    """Lossy WebP carrying EXIF and GPS."""
    return encode(gradient(90, 60), "WEBP", quality=80, exif=exif_bytes)


@pytest.fixture
def white_png() -> bytes:
    """Plain white canvas for overlay tests."""
    return encode(Image.new("RGB", (400, 300), color="white"), "PNG")


@pytest.fixture
def corrupt_bytes() -> bytes:
    """Bytes that are not an image."""
    return b"definitely not an image"


@pytest.fixture
def sample_image(temp_dir: Path, jpeg_with_exif: bytes) -> Path:
    """JPEG file with EXIF on disk."""
    path = temp_dir / "sample.jpg"
    path.write_bytes(jpeg_with_exif)
    return path


@pytest.fixture
def sample_directory(temp_dir: Path) -> Path:
    """Create a directory with multiple test images."""
    directory = temp_dir / "photos"
    directory.mkdir()
    for i in range(5):
        img = Image.new("RGB", (100, 100), color=(i * 50, 0, 0))
        img.save(directory / f"image_{i}.jpg", quality=95)
    return directory
