"""Utility module for pixmeta."""

from pixmeta.utils.image_io import decode_image, encode_image
from pixmeta.utils.logging import get_console, get_logger

__all__ = ["decode_image", "encode_image", "get_console", "get_logger"]
