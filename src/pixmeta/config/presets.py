"""Named processing presets."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from pixmeta.core.models import (
    Action,
    ProcessOptions,
    ProcessResult,
    ScrambleType,
    WatermarkPosition,
)
from pixmeta.utils.logging import get_logger


logger = get_logger(__name__)


class Preset(BaseModel):
    """A named set of processing options."""

    name: str
    description: str = ""
    options: ProcessOptions

    def summary(self) -> dict[str, Any]:
        """Flat view used by ``preset list`` and ``preset show``."""
        return {
            "name": self.name,
            "description": self.description,
            **self.options.model_dump(mode="json", exclude_none=True),
        }


# Built-in presets
BUILTIN_PRESETS: dict[str, Preset] = {
    "web": Preset(
        name="web",
        description="Strip metadata and optimize for web delivery",
        options=ProcessOptions(
            action=Action.STRIP,
            optimize=True,
            max_width=1920,
            quality=80,
        ),
    ),
    "privacy": Preset(
        name="privacy",
        description="Remove all identifying metadata including GPS",
        options=ProcessOptions(action=Action.STRIP, remove_gps=True),
    ),
    "copyright": Preset(
        name="copyright",
        description="Stamp copyright provenance and drop location",
        options=ProcessOptions(
            action=Action.ADD,
            copyright="All rights reserved",
            remove_gps=True,
        ),
    ),
    "draft": Preset(
        name="draft",
        description="Watermark previews as DRAFT",
        options=ProcessOptions(
            action=Action.SCRAMBLE,
            scramble_type=ScrambleType.WATERMARK,
            watermark_text="DRAFT",
            watermark_position=WatermarkPosition.CENTER,
        ),
    ),
    "obfuscate": Preset(
        name="obfuscate",
        description="Shuffle pixel blocks to defeat scraping",
        options=ProcessOptions(
            action=Action.SCRAMBLE,
            scramble_type=ScrambleType.PIXEL_SHIFT,
            scramble_intensity=70,
        ),
    ),
}


class PresetManager:
    """Manage processing presets."""

    def __init__(self, presets_dir: Path | None = None) -> None:
        """Initialize preset manager.

        Args:
            presets_dir: Directory for custom preset YAML files. Defaults
                to ``Settings.presets_dir``.
        """
        if presets_dir is None:
            from pixmeta.config.settings import get_settings

            presets_dir = get_settings().presets_dir
        self.presets_dir = presets_dir
        self._custom_presets: dict[str, Preset] = {}
        self._load_custom_presets()

    def _load_custom_presets(self) -> None:
        """Load custom presets from YAML files."""
        if not self.presets_dir.exists():
            return

        for yaml_file in sorted(self.presets_dir.glob("*.yaml")):
            try:
                with open(yaml_file) as f:
                    data = yaml.safe_load(f)
                if data:
                    preset = Preset.model_validate(data)
                    self._custom_presets[preset.name] = preset
            except (OSError, yaml.YAMLError, ValidationError) as e:
                logger.warning("Skipping invalid preset file %s: %s", yaml_file.name, e)

    def list_presets(self) -> list[dict[str, Any]]:
        """List all available presets."""
        presets = []

        for name, preset in BUILTIN_PRESETS.items():
            if name in self._custom_presets:
                continue
            presets.append({**preset.summary(), "builtin": True})

        for preset in self._custom_presets.values():
            presets.append({**preset.summary(), "builtin": False})

        return presets

    def get_preset(self, name: str) -> Preset | None:
        """Get a preset by name."""
        # Check custom first (allows overriding built-ins)
        if name in self._custom_presets:
            return self._custom_presets[name]
        return BUILTIN_PRESETS.get(name)

    def apply_preset(
        self,
        preset: Preset,
        input_path: Path,
        output: Path | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> ProcessResult:
        """Apply a preset to an image file and write the result.

        Args:
            preset: Preset configuration.
            input_path: Input image path.
            output: Output path. Defaults to ``<stem>_<preset><ext>`` next
                to the input.
            overrides: Option fields replacing the preset's values.

        Returns:
            ProcessResult for the image.
        """
        from rich.console import Console

        from pixmeta.core.batch import BatchProcessor
        from pixmeta.core.models import BatchItem
        from pixmeta.utils.image_io import output_path_for, save_bytes

        options: ProcessOptions | dict[str, Any] = preset.options
        if overrides:
            options = {**preset.options.model_dump(), **overrides}

        processor = BatchProcessor(Console(quiet=True), workers=1)
        result = processor.process_batch(
            [BatchItem(id=input_path.name, image=input_path, options=options)]
        )[0]

        if result.success and result.output is not None:
            out_path = output or output_path_for(
                input_path, result.output.extension, suffix=f"_{preset.name}"
            )
            save_bytes(result.output.data, out_path)

        return result

    def save_preset(self, preset: Preset) -> Path:
        """Save a preset to a YAML file.

        Args:
            preset: Preset to save.

        Returns:
            Path of the written file.
        """
        self.presets_dir.mkdir(parents=True, exist_ok=True)

        yaml_path = self.presets_dir / f"{preset.name}.yaml"
        with open(yaml_path, "w") as f:
            yaml.dump(preset.model_dump(mode="json", exclude_none=True), f, default_flow_style=False)

        self._custom_presets[preset.name] = preset
        return yaml_path
