"""Main Typer CLI application for pixmeta."""

from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.console import Console

from pixmeta import __app_name__, __version__
from pixmeta.core.models import Action, ProcessOptions, ScrambleType, WatermarkPosition
from pixmeta.utils.logging import log_error, log_info, log_success, log_warning

# Initialize console and app
console = Console()
app = typer.Typer(
    name=__app_name__,
    help="🖼️  pixmeta - image provenance, privacy and optimization pipeline",
    no_args_is_help=True,
)

# Sub-apps
preset_app = typer.Typer(help="Manage processing presets")
app.add_typer(preset_app, name="preset")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/] version [green]{__version__}[/]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version", "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """pixmeta - add, strip or update EXIF, scramble and optimize images."""
    pass


def build_options(**fields: Any) -> ProcessOptions:
    """Validate CLI flags into ProcessOptions, exiting on bad combinations."""
    from pydantic import ValidationError

    fields = {key: value for key, value in fields.items() if value is not None}
    try:
        return ProcessOptions.model_validate(fields)
    except ValidationError as e:
        for error in e.errors():
            console.print(f"[red]Error:[/] {error['msg']}")
        raise typer.Exit(1)


@app.command()
def process(
    path: Path = typer.Argument(..., help="Image file to process"),
    action: Action = typer.Option(Action.ADD, "--action", "-a", help="Metadata action"),
    copyright: Optional[str] = typer.Option(None, "--copyright", help="Copyright notice"),
    author: Optional[str] = typer.Option(None, "--author", help="Artist / author"),
    description: Optional[str] = typer.Option(None, "--description", help="Image description"),
    make: Optional[str] = typer.Option(None, "--make", help="Camera make"),
    model: Optional[str] = typer.Option(None, "--model", help="Camera model"),
    software: Optional[str] = typer.Option(None, "--software", help="Software tag"),
    keywords: Optional[List[str]] = typer.Option(None, "--keyword", "-k", help="Keyword (repeatable)"),
    remove_gps: bool = typer.Option(False, "--remove-gps", help="Remove GPS location"),
    optimize: bool = typer.Option(False, "--optimize", help="Resize and recompress for the web"),
    max_width: Optional[int] = typer.Option(None, "--max-width", "-w", help="Maximum width in px"),
    quality: Optional[int] = typer.Option(None, "--quality", "-q", help="Quality (1-100)"),
    keep_profile: bool = typer.Option(False, "--keep-profile", help="Keep the ICC color profile"),
    scramble_type: Optional[ScrambleType] = typer.Option(None, "--scramble", "-s", help="Scramble algorithm"),
    intensity: Optional[int] = typer.Option(None, "--intensity", "-i", help="Scramble intensity (0-100)"),
    watermark_text: Optional[str] = typer.Option(None, "--text", help="Watermark text"),
    position: Optional[WatermarkPosition] = typer.Option(None, "--position", help="Watermark position"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for scrambling"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output path"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Process a single image.

    Examples:
        pixmeta process photo.jpg --copyright "© 2024 Acme" --author Jane
        pixmeta process photo.jpg -a strip --optimize -w 1200
        pixmeta process photo.jpg -a scramble -s pixel-shift -i 80
    """
    from pixmeta.cli.dashboard import Dashboard
    from pixmeta.core.batch import BatchProcessor
    from pixmeta.core.models import BatchItem
    from pixmeta.utils.image_io import output_path_for, save_bytes

    options = build_options(
        action=action,
        copyright=copyright,
        author=author,
        image_description=description,
        make=make,
        model=model,
        software=software,
        keywords=keywords,
        remove_gps=remove_gps,
        optimize=optimize,
        max_width=max_width,
        quality=quality,
        keep_color_profile=keep_profile,
        scramble_type=scramble_type,
        scramble_intensity=intensity,
        watermark_text=watermark_text,
        watermark_position=position,
        seed=seed,
    )

    dashboard = Dashboard(console)
    processor = BatchProcessor(console, workers=1)

    with dashboard.progress_context(f"Processing ({action.value})") as progress:
        task = progress.add_task(f"[cyan]{path.name}", total=100)
        result = processor.process_batch([BatchItem(id=path.name, image=path, options=options)])[0]
        progress.update(task, completed=100)

    out_path = None
    if result.success and result.output is not None:
        out_path = output or output_path_for(path, result.output.extension)
        save_bytes(result.output.data, out_path)
        log_success(f"Saved {out_path}")

    if as_json:
        console.print_json(data=result.to_dict())
    else:
        dashboard.show_result(result, input_size=_file_size(path), output_path=out_path)

    if not result.success:
        raise typer.Exit(1)


def _file_size(path: Path) -> int:
    return path.stat().st_size if path.is_file() else 0


@app.command()
def batch(
    directory: Path = typer.Argument(..., help="Directory to process"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    action: Action = typer.Option(Action.STRIP, "--action", "-a", help="Metadata action"),
    copyright: Optional[str] = typer.Option(None, "--copyright", help="Copyright notice"),
    author: Optional[str] = typer.Option(None, "--author", help="Artist / author"),
    remove_gps: bool = typer.Option(False, "--remove-gps", help="Remove GPS location"),
    optimize: bool = typer.Option(False, "--optimize", help="Resize and recompress for the web"),
    max_width: Optional[int] = typer.Option(None, "--max-width", "-w", help="Maximum width in px"),
    quality: Optional[int] = typer.Option(None, "--quality", "-q", help="Quality (1-100)"),
    scramble_type: Optional[ScrambleType] = typer.Option(None, "--scramble", "-s", help="Scramble algorithm"),
    intensity: Optional[int] = typer.Option(None, "--intensity", "-i", help="Scramble intensity (0-100)"),
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="Use a named preset instead of flags"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Process subdirs"),
    workers: Optional[int] = typer.Option(None, "--workers", help="Number of worker threads"),
) -> None:
    """Process entire directories with a live progress bar.

    Examples:
        pixmeta batch ./photos/ -o ./clean/ --remove-gps
        pixmeta batch ./photos/ -p web -r
    """
    from pixmeta.core.batch import BatchProcessor

    if preset:
        options = _require_preset(preset).options
    else:
        options = build_options(
            action=action,
            copyright=copyright,
            author=author,
            remove_gps=remove_gps,
            optimize=optimize,
            max_width=max_width,
            quality=quality,
            scramble_type=scramble_type,
            scramble_intensity=intensity,
        )

    if not directory.is_dir():
        console.print(f"[red]Error:[/] Not a directory: {directory}")
        raise typer.Exit(1)

    processor = BatchProcessor(console, workers=workers)
    out_dir = output or directory.parent / f"{directory.name}_processed"
    results = processor.process_directory(directory, out_dir, options, recursive=recursive)

    failed = sum(not r.success for r in results)
    if failed:
        log_warning(f"{failed} of {len(results)} images failed")
    if results:
        log_info(f"Output written to {out_dir}")


@app.command()
def info(
    path: Path = typer.Argument(..., help="Image file path"),
) -> None:
    """Display image information and EXIF provenance.

    Examples:
        pixmeta info photo.jpg
    """
    from pixmeta.cli.dashboard import Dashboard
    from pixmeta.core.exceptions import DecodeError
    from pixmeta.utils.image_io import get_image_info

    try:
        info_data = get_image_info(path)
    except (FileNotFoundError, ValueError, DecodeError) as e:
        log_error(str(e))
        raise typer.Exit(1)

    dashboard = Dashboard(console)
    dashboard.show_image_info(info_data)


@app.command()
def strip(
    path: Path = typer.Argument(..., help="Image file path"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output path"),
) -> None:
    """Remove all metadata except orientation.

    Examples:
        pixmeta strip photo.jpg
        pixmeta strip photo.jpg -o photo_clean.jpg
    """
    from pixmeta.cli.dashboard import Dashboard
    from pixmeta.core.batch import BatchProcessor
    from pixmeta.core.models import BatchItem
    from pixmeta.utils.image_io import output_path_for, save_bytes

    options = ProcessOptions(action=Action.STRIP, remove_gps=True)
    processor = BatchProcessor(console, workers=1)
    result = processor.process_batch([BatchItem(id=path.name, image=path, options=options)])[0]

    out_path = None
    if result.success and result.output is not None:
        out_path = output or output_path_for(path, result.output.extension, suffix="_clean")
        save_bytes(result.output.data, out_path)
        log_success(f"Saved {out_path}")

    dashboard = Dashboard(console)
    dashboard.show_result(result, input_size=_file_size(path), output_path=out_path)

    if not result.success:
        raise typer.Exit(1)


def _require_preset(name: str):
    from pixmeta.config.presets import PresetManager

    preset = PresetManager().get_preset(name)
    if preset is None:
        console.print(f"[red]Error:[/] Preset '{name}' not found.")
        console.print(f"Use [cyan]{__app_name__} preset list[/] to see available presets.")
        raise typer.Exit(1)
    return preset


# Preset subcommands
@preset_app.command("list")
def preset_list() -> None:
    """List all available presets."""
    from pixmeta.cli.dashboard import Dashboard
    from pixmeta.config.presets import PresetManager

    manager = PresetManager()
    dashboard = Dashboard(console)
    dashboard.show_presets(manager.list_presets())


@preset_app.command("show")
def preset_show(
    name: str = typer.Argument(..., help="Preset name"),
) -> None:
    """Show details of a specific preset."""
    from pixmeta.cli.dashboard import Dashboard

    preset = _require_preset(name)
    dashboard = Dashboard(console)
    dashboard.show_preset_details(preset.summary())


@preset_app.command("apply")
def preset_apply(
    name: str = typer.Argument(..., help="Preset name"),
    path: Path = typer.Argument(..., help="Image file or directory"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output path"),
    copyright: Optional[str] = typer.Option(None, "--copyright", help="Override the copyright notice"),
    author: Optional[str] = typer.Option(None, "--author", help="Override the author"),
) -> None:
    """Apply a preset to an image or directory.

    Examples:
        pixmeta preset apply web image.jpg
        pixmeta preset apply privacy ./photos/ -o ./clean/
    """
    from pixmeta.cli.dashboard import Dashboard
    from pixmeta.config.presets import PresetManager
    from pixmeta.core.batch import BatchProcessor

    preset = _require_preset(name)
    overrides = {
        key: value
        for key, value in {"copyright": copyright, "author": author}.items()
        if value is not None
    }
    options = preset.options.model_copy(update=overrides) if overrides else preset.options

    if path.is_dir():
        processor = BatchProcessor(console)
        processor.process_directory(path, output or path.parent / f"{path.name}_{name}", options)
        return

    dashboard = Dashboard(console)
    with dashboard.progress_context(f"Applying '{name}' preset") as progress:
        task = progress.add_task(f"[cyan]{path.name}", total=100)
        result = PresetManager().apply_preset(preset, path, output, overrides=overrides)
        progress.update(task, completed=100)

    dashboard.show_result(result, input_size=_file_size(path))

    if not result.success:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
