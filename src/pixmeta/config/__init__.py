"""Configuration module for pixmeta."""

from pixmeta.config.settings import Settings, get_settings
from pixmeta.config.presets import Preset, PresetManager

__all__ = ["Settings", "get_settings", "Preset", "PresetManager"]
