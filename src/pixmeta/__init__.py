"""pixmeta - image metadata, optimization and scrambling pipeline."""

__app_name__ = "pixmeta"
__version__ = "0.1.0"

from pixmeta.core.batch import BatchProcessor, process_batch
from pixmeta.core.models import (
    Action,
    BatchItem,
    ImageBuffer,
    ProcessOptions,
    ProcessResult,
    ScrambleType,
    WatermarkPosition,
)
from pixmeta.core.processor import ImageProcessor, process

__all__ = [
    "__app_name__",
    "__version__",
    "Action",
    "BatchItem",
    "BatchProcessor",
    "ImageBuffer",
    "ImageProcessor",
    "ProcessOptions",
    "ProcessResult",
    "ScrambleType",
    "WatermarkPosition",
    "process",
    "process_batch",
]
