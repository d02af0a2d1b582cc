"""Core processing module for pixmeta."""

from pixmeta.core.models import Action, ImageBuffer, ProcessOptions, ProcessResult, ScrambleType
from pixmeta.core.exceptions import (
    DecodeError,
    MetadataEncodeError,
    OptimizationError,
    ProcessingError,
    ScrambleError,
)
from pixmeta.core.processor import ImageProcessor
from pixmeta.core.batch import BatchProcessor

__all__ = [
    "Action",
    "ImageBuffer",
    "ProcessOptions",
    "ProcessResult",
    "ScrambleType",
    "DecodeError",
    "MetadataEncodeError",
    "OptimizationError",
    "ProcessingError",
    "ScrambleError",
    "ImageProcessor",
    "BatchProcessor",
]
