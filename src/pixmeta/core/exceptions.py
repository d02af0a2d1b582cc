"""Exceptions raised by the processing pipeline."""


class ProcessingError(Exception):
    """Base exception for all pixmeta processing errors."""


class DecodeError(ProcessingError):
    """Input bytes are not a recognizable raster image."""


class MetadataEncodeError(ProcessingError):
    """EXIF could not be parsed or written for an otherwise valid image."""


class ScrambleError(ProcessingError):
    """A scramble transform failed on the decoded raster."""


class OptimizationError(ProcessingError):
    """Resize or re-encode failed during optimization."""
