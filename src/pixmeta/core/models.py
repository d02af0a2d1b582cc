"""Data model for the processing pipeline."""

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


DEFAULT_INTENSITY = 50
DEFAULT_WATERMARK_TEXT = "CONFIDENTIAL"


class Action(str, Enum):
    """Metadata or scramble branch selected for an image."""

    ADD = "add"
    STRIP = "strip"
    UPDATE = "update"
    SCRAMBLE = "scramble"


class ScrambleType(str, Enum):
    """Pixel obfuscation algorithms."""

    PIXEL_SHIFT = "pixel-shift"
    WATERMARK = "watermark"
    BLUR_REGIONS = "blur-regions"
    COLOR_SHIFT = "color-shift"
    NOISE = "noise"


class WatermarkPosition(str, Enum):
    """Anchor for the watermark overlay."""

    CENTER = "center"
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"


class ImageState(str, Enum):
    """Per-image lifecycle inside a batch."""

    PENDING = "pending"
    DOWNLOADING = "downloading"
    TRANSFORMING = "transforming"
    UPLOADING = "uploading"
    SUCCESS = "success"
    FAILED = "failed"


def clamp_intensity(value: Any) -> int:
    """Coerce a scramble intensity into the 0-100 range."""
    if value is None:
        return DEFAULT_INTENSITY
    return max(0, min(100, int(round(float(value)))))


class ProcessOptions(BaseModel):
    """Options for a single pipeline run.

    Field names are snake_case; the camelCase names used by the web client
    (``scrambleType``, ``maxWidth``, ``removeGPS`` ...) are accepted as
    aliases.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    action: Action

    # Provenance fields written into IFD0
    copyright: str | None = None
    author: str | None = None
    image_description: str | None = None
    make: str | None = None
    model: str | None = None
    software: str | None = None
    host_computer: str | None = None
    keywords: list[str] = Field(default_factory=list)

    remove_gps: bool = Field(default=False, alias="removeGPS")

    # Optimization
    optimize: bool = False
    max_width: int | None = Field(default=None, ge=1)
    quality: int | None = Field(default=None, ge=1, le=100)
    keep_color_profile: bool = False

    # Scrambling
    scramble_type: ScrambleType | None = None
    scramble_intensity: int = DEFAULT_INTENSITY
    watermark_text: str | None = None
    watermark_position: WatermarkPosition = WatermarkPosition.CENTER

    # Seed for the random source; None draws fresh entropy
    seed: int | None = None

    @field_validator("scramble_intensity", mode="before")
    @classmethod
    def _clamp_intensity(cls, value: Any) -> int:
        return clamp_intensity(value)

    @field_validator("watermark_position", mode="before")
    @classmethod
    def _default_position(cls, value: Any) -> Any:
        return WatermarkPosition.CENTER if value in (None, "") else value

    @model_validator(mode="after")
    def _require_scramble_type(self) -> "ProcessOptions":
        if self.action == Action.SCRAMBLE and self.scramble_type is None:
            raise ValueError("scrambleType is required when action is 'scramble'")
        return self


@dataclass(frozen=True)
class ImageBuffer:
    """Encoded image bytes plus the raster metadata decoded from them."""

    data: bytes = field(repr=False)
    format: str
    width: int
    height: int
    mode: str
    channels: int
    has_alpha: bool = False
    exif: bytes | None = field(default=None, repr=False)
    density: float | None = None
    orientation: int | None = None
    icc_profile: bytes | None = field(default=None, repr=False)

    @property
    def size_bytes(self) -> int:
        """Encoded size in bytes."""
        return len(self.data)

    @property
    def content_type(self) -> str:
        """MIME type for the encoded format."""
        return f"image/{self.format}"

    @property
    def extension(self) -> str:
        """File extension for the encoded format."""
        return ".jpg" if self.format == "jpeg" else f".{self.format}"


@dataclass(frozen=True)
class Frame:
    """Decoded raster moving through the pipeline stages.

    Stages never draw on ``image`` in place; each returns a new Frame built
    with ``dataclasses.replace``.
    """

    image: Image.Image = field(repr=False)
    source: ImageBuffer
    format: str
    exif: bytes | None = field(default=None, repr=False)
    icc_profile: bytes | None = field(default=None, repr=False)
    pixels_changed: bool = False
    metadata_changed: bool = False
    save_options: dict[str, Any] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()

    def with_warning(self, message: str) -> "Frame":
        """Return a copy with a non-fatal warning attached."""
        return replace(self, warnings=self.warnings + (message,))


@dataclass
class ProcessResult:
    """Outcome of one image in a batch."""

    image_id: str
    success: bool
    message: str = ""
    error: str | None = None
    new_url: str | None = None
    state: ImageState = ImageState.PENDING
    output: ImageBuffer | None = field(default=None, repr=False)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the shape the web client expects."""
        payload: dict[str, Any] = {"imageId": self.image_id, "success": self.success}
        if self.success:
            payload["message"] = self.message
        else:
            payload["error"] = self.error
        if self.new_url:
            payload["newUrl"] = self.new_url
        return payload


@dataclass(frozen=True)
class BatchItem:
    """One entry submitted to the batch coordinator.

    ``image`` is either a decoded ImageBuffer, raw encoded bytes, or a source
    reference (path or URL) that the coordinator's fetcher resolves.
    """

    id: str
    image: ImageBuffer | bytes | str | Path
    options: ProcessOptions | dict[str, Any]


@dataclass
class BatchSummary:
    """Aggregate counts for a finished batch."""

    total: int
    processed: int
    failed: int
    elapsed: float
    errors: list[dict[str, str]] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Percentage of images processed successfully."""
        if self.total == 0:
            return 0.0
        return self.processed / self.total * 100

    @property
    def message(self) -> str:
        """Human-readable outcome line."""
        return f"Processed {self.processed} of {self.total} images"

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the shape the web client expects."""
        payload: dict[str, Any] = {
            "success": self.failed == 0,
            "message": self.message,
            "processed": self.processed,
            "failed": self.failed,
            "total": self.total,
            "successRate": f"{round(self.success_rate)}%",
        }
        if self.errors:
            payload["errors"] = self.errors
        return payload
