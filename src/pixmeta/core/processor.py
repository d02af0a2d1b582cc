"""Single-image pipeline: decode, scramble, metadata, optimize, encode."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

import numpy as np

from pixmeta.config.settings import Settings, get_settings
from pixmeta.core.exceptions import MetadataEncodeError, OptimizationError, ProcessingError
from pixmeta.core.metadata import EXIF_FORMATS, apply_metadata, splice_exif
from pixmeta.core.models import Action, Frame, ImageBuffer, ProcessOptions
from pixmeta.core.optimizer import optimize, profile_matches, save_options_for
from pixmeta.core.scramble import scramble
from pixmeta.utils.image_io import decode_image, encode_image, open_image
from pixmeta.utils.logging import get_logger


logger = get_logger(__name__)

Stage = Callable[[Frame], Frame]

# Pillow info keys that describe pixels rather than provenance
KEPT_INFO = ("transparency",)


@dataclass(frozen=True)
class ProcessOutput:
    """Processed image plus the non-fatal problems met on the way."""

    image: ImageBuffer
    warnings: tuple[str, ...] = ()


class ImageProcessor:
    """Central image processor combining the pipeline stages.

    The stage list is resolved once per image from ``options.action``:
    ``[scramble?, metadata, optimize?]``. Each stage takes a Frame and
    returns a new one, so no builder state is shared between stages or
    between images.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings or get_settings()
        self.clock = clock

    def stages(
        self,
        options: ProcessOptions,
        rng: np.random.Generator,
    ) -> list[tuple[str, Stage]]:
        """Ordered (name, stage) pairs for the given options."""
        stages: list[tuple[str, Stage]] = []

        if options.action == Action.SCRAMBLE:
            stages.append(("scramble", lambda f: scramble(f, options, rng, self.settings)))

        stages.append(("metadata", lambda f: apply_metadata(f, options, self.settings, self.clock())))

        if options.optimize:
            stages.append(("optimize", lambda f: self._optimize(f, options)))

        return stages

    def _optimize(self, frame: Frame, options: ProcessOptions) -> Frame:
        try:
            return optimize(frame, options, self.settings)
        except OptimizationError as e:
            logger.warning("Optimization skipped, keeping unoptimized image: %s", e)
            return frame.with_warning(str(e))

    def run(
        self,
        image: ImageBuffer | bytes,
        options: ProcessOptions | dict[str, Any],
        rng: np.random.Generator | None = None,
    ) -> ProcessOutput:
        """Process one image and report warnings.

        Args:
            image: Decoded ImageBuffer or raw encoded bytes.
            options: Processing options (dicts are validated).
            rng: Random source for scrambling; seeded from ``options.seed``
                when omitted.

        Returns:
            ProcessOutput with the new image and any warnings.

        Raises:
            DecodeError: If the input is not an image.
            ScrambleError: If a scramble transform fails.
            ProcessingError: If the result cannot be encoded.
        """
        if isinstance(options, dict):
            options = ProcessOptions.model_validate(options)
        if isinstance(image, (bytes, bytearray)):
            image = decode_image(bytes(image))
        if rng is None:
            rng = np.random.default_rng(options.seed)

        frame = Frame(
            image=open_image(image),
            source=image,
            format=image.format,
            exif=image.exif,
            icc_profile=image.icc_profile,
        )

        for name, stage in self.stages(options, rng):
            logger.debug("Stage %s (%s)", name, options.action.value)
            frame = stage(frame)

        data, warnings = self.encode(frame, options)
        output = decode_image(data)
        logger.debug("Processed size: %.1fKB", output.size_bytes / 1024)
        return ProcessOutput(image=output, warnings=warnings)

    def process(
        self,
        image: ImageBuffer | bytes,
        options: ProcessOptions | dict[str, Any],
        rng: np.random.Generator | None = None,
    ) -> ImageBuffer:
        """Process one image and return the new ImageBuffer."""
        return self.run(image, options, rng).image

    def encode(self, frame: Frame, options: ProcessOptions) -> tuple[bytes, tuple[str, ...]]:
        """Encode the final frame, embedding its EXIF segment.

        Metadata-only jobs on JPEG sources splice the EXIF segment into the
        original bytes instead of recompressing.
        """
        warnings = frame.warnings
        exif = frame.exif

        if exif and frame.format not in EXIF_FORMATS:
            message = f"{frame.format.upper()} cannot carry EXIF; metadata not written"
            logger.warning(message)
            warnings += (message,)
            exif = None

        lossless = (
            options.action in (Action.ADD, Action.UPDATE)
            and not frame.pixels_changed
            and frame.format == "jpeg"
            and frame.source.format == "jpeg"
        )
        if lossless and not frame.metadata_changed:
            return frame.source.data, warnings
        if lossless and exif:
            try:
                return splice_exif(frame.source.data, exif), warnings
            except MetadataEncodeError as e:
                logger.debug("Lossless EXIF insert failed, re-encoding: %s", e)

        quality = options.quality or self.settings.default_quality
        save_kwargs = dict(frame.save_options) or save_options_for(frame.format, quality)
        if exif:
            save_kwargs["exif"] = exif
        if frame.icc_profile:
            if profile_matches(frame.icc_profile, frame.image.mode):
                save_kwargs["icc_profile"] = frame.icc_profile
            else:
                logger.debug("ICC profile does not describe %s pixels; not embedded", frame.image.mode)

        # Drop XMP, comments and other container chunks carried in info
        img = frame.image.copy()
        img.info = {key: img.info[key] for key in KEPT_INFO if key in img.info}

        try:
            return encode_image(img, frame.format, **save_kwargs), warnings
        except Exception as e:
            if "exif" not in save_kwargs:
                raise ProcessingError(f"Cannot encode {frame.format}: {e}") from e
            message = f"Metadata not written, original EXIF kept: {e}"
            logger.warning(message)

        if frame.source.exif and frame.format in EXIF_FORMATS:
            save_kwargs["exif"] = frame.source.exif
        else:
            save_kwargs.pop("exif")
        try:
            return encode_image(img, frame.format, **save_kwargs), warnings + (message,)
        except Exception as e:
            raise ProcessingError(f"Cannot encode {frame.format}: {e}") from e


def process(
    image: ImageBuffer | bytes,
    options: ProcessOptions | dict[str, Any],
    rng: np.random.Generator | None = None,
) -> ImageBuffer:
    """Process one image with default settings."""
    return ImageProcessor().process(image, options, rng)
