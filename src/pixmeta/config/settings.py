"""Application settings and configuration."""

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_prefix="PIXMETA_", env_file=".env")

    # General settings
    app_name: str = "pixmeta"
    version: str = "0.1.0"

    # Processing defaults
    default_quality: int = Field(default=85, ge=1, le=100)
    # Batch worker threads; None uses min(cpu_count, 8)
    default_workers: int | None = Field(default=None, ge=1, le=32)

    # Provenance stamp written into IFD0 Software
    software_name: str = "AI Content Manager"

    # Paths
    presets_dir: Path = Field(default=Path("presets"))

    # Logging
    log_level: str = "WARNING"

    # Substitute placeholder dimensions instead of failing when a raster
    # reports no width/height.
    best_effort_dimensions: bool = False

    # TrueType font used for watermark text; Pillow's default font if missing
    watermark_font: str = "DejaVuSans-Bold.ttf"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
