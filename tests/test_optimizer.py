"""Tests for the optimization stage."""

import io

import piexif
import pytest
from PIL import Image, ImageCms

from pixmeta.core.models import ProcessOptions
from pixmeta.core.optimizer import choose_format, profile_matches, resize_to_width, save_options_for
from pixmeta.core.processor import ImageProcessor
from pixmeta.utils.image_io import decode_image

from conftest import encode, gradient


class TestFormatChoice:
    """Tests for output format selection."""

    def test_png_with_alpha_stays_png(self, png_with_alpha: bytes):
        assert choose_format(decode_image(png_with_alpha)) == "png"

    def test_screen_png_stays_png(self, flat_png: bytes):
        assert choose_format(decode_image(flat_png)) == "png"

    def test_scanned_png_becomes_jpeg(self, scanned_png: bytes):
        assert choose_format(decode_image(scanned_png)) == "jpeg"

    def test_webp_stays_webp(self, webp_image: bytes):
        assert choose_format(decode_image(webp_image)) == "webp"

    def test_other_formats_become_jpeg(self):
        gif = encode(Image.new("RGB", (10, 10)), "GIF")
        assert choose_format(decode_image(gif)) == "jpeg"

    def test_save_options(self):
        """Encoder options per format."""
        assert save_options_for("jpeg", 80) == {"quality": 80, "optimize": True, "progressive": True}
        assert save_options_for("png", 80)["compress_level"] == 9
        assert save_options_for("webp", 80)["method"] == 5


class TestResize:
    """Tests for width limiting."""

    def test_never_enlarges(self):
        img = Image.new("RGB", (100, 50))
        assert resize_to_width(img, 400) is img

    def test_keeps_aspect_ratio(self):
        resized = resize_to_width(Image.new("RGB", (1000, 500)), 200)
        assert resized.size == (200, 100)


class TestOptimize:
    """End-to-end optimization scenarios."""

    def test_width_is_idempotent(self, processor: ImageProcessor, large_jpeg: bytes):
        """A second pass with the same limit does not shrink further."""
        options = {"action": "strip", "optimize": True, "maxWidth": 800}
        first = processor.process(large_jpeg, options)
        second = processor.process(first, options)

        assert first.width == 800
        assert second.width == 800
        assert first.height == 450

    def test_width_below_limit_unchanged(self, processor: ImageProcessor, jpeg_with_exif: bytes):
        output = processor.process(jpeg_with_exif, {"action": "strip", "optimize": True, "maxWidth": 800})
        assert output.width == 120

    def test_add_optimize_scenario(self, processor: ImageProcessor, large_jpeg: bytes):
        """Provenance survives optimization of a large photo."""
        output = processor.process(large_jpeg, {
            "action": "add",
            "copyright": "© 2024 Acme",
            "optimize": True,
            "maxWidth": 800,
            "quality": 80,
        })
        copyright = piexif.load(output.exif)["0th"][piexif.ImageIFD.Copyright]

        assert output.format == "jpeg"
        assert output.width <= 800
        assert copyright.decode("utf-8") == "© 2024 Acme"

    def test_strip_optimize_png_keeps_alpha(self, processor: ImageProcessor, png_with_alpha: bytes):
        """Transparent PNGs stay PNG with alpha."""
        output = processor.process(png_with_alpha, {"action": "strip", "optimize": True})

        assert output.format == "png"
        assert output.has_alpha is True
        assert output.exif is None
        with Image.open(io.BytesIO(output.data)) as img:
            assert img.convert("RGBA").getpixel((10, 10))[3] < 255

    def test_scanned_png_becomes_jpeg(self, processor: ImageProcessor, scanned_png: bytes):
        output = processor.process(scanned_png, {"action": "strip", "optimize": True})
        assert output.format == "jpeg"
        assert output.extension == ".jpg"

    def test_webp_stays_webp(self, processor: ImageProcessor, webp_image: bytes):
        output = processor.process(webp_image, {"action": "strip", "optimize": True, "quality": 60})
        assert output.format == "webp"

    def test_converts_to_srgb(self, processor: ImageProcessor):
        """Embedded profiles are applied and dropped."""
        srgb = ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB")).tobytes()
        data = encode(gradient(40, 40), "JPEG", icc_profile=srgb)
        assert decode_image(data).icc_profile == srgb

        output = processor.process(data, {"action": "strip", "optimize": True})
        assert output.icc_profile is None

    def test_profile_matches_mode(self):
        srgb = ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB")).tobytes()

        assert profile_matches(srgb, "RGB") is True
        assert profile_matches(srgb, "P") is True
        assert profile_matches(srgb, "CMYK") is False
        assert profile_matches(srgb, "L") is False
        assert profile_matches(b"not a profile", "RGB") is False

    def test_mismatched_profile_not_embedded(self, processor: ImageProcessor):
        """A profile that cannot describe the output pixels is left out."""
        srgb = ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB")).tobytes()
        data = encode(Image.new("CMYK", (32, 32), (10, 20, 30, 0)), "JPEG", icc_profile=srgb)

        output = processor.process(data, {"action": "strip"})

        assert output.mode == "CMYK"
        assert output.icc_profile is None

    def test_keep_color_profile(self, processor: ImageProcessor):
        """keep_color_profile leaves the ICC profile in place."""
        srgb = ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB")).tobytes()
        data = encode(gradient(40, 40), "JPEG", icc_profile=srgb)

        output = processor.process(
            data, ProcessOptions(action="strip", optimize=True, keep_color_profile=True)
        )
        assert output.icc_profile == srgb

    def test_optimization_failure_is_a_warning(self, processor: ImageProcessor, jpeg_with_exif: bytes,
                                               monkeypatch: pytest.MonkeyPatch):
        """A failing optimizer leaves the unoptimized image and a warning."""
        import pixmeta.core.optimizer as optimizer

        def broken(img, max_width):
            raise RuntimeError("resize exploded")

        monkeypatch.setattr(optimizer, "resize_to_width", broken)
        result = processor.run(jpeg_with_exif, {"action": "strip", "optimize": True, "maxWidth": 50})

        assert result.image.width == 120
        assert any("resize exploded" in w for w in result.warnings)
