"""Rich dashboard for results, summaries and image details."""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Any

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from pixmeta.core.models import BatchSummary, ProcessResult


class Dashboard:
    """Rich dashboard for displaying progress and results."""

    def __init__(self, console: Console) -> None:
        self.console = console

    @contextmanager
    def progress_context(self, description: str = "Processing") -> Generator[Progress, None, None]:
        """Create a progress context with Rich styling."""
        progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=self.console,
        )
        with progress:
            yield progress

    def show_result(
        self,
        result: ProcessResult,
        input_size: int = 0,
        output_path: Path | None = None,
    ) -> None:
        """Display a single processing result."""
        if result.success:
            table = Table(show_header=False, box=None, padding=(0, 2))
            table.add_column("Label", style="dim")
            table.add_column("Value")

            table.add_row("Image", result.image_id)
            if output_path:
                table.add_row("Output", output_path.name)
            if result.output is not None:
                table.add_row("Format", result.output.format.upper())
                table.add_row("Dimensions", f"{result.output.width} × {result.output.height} px")
                if input_size:
                    table.add_row("Original size", self._format_size(input_size))
                table.add_row("New size", self._format_size(result.output.size_bytes))
            if result.new_url:
                table.add_row("URL", result.new_url)
            for warning in result.warnings:
                table.add_row("Warning", f"[yellow]{warning}[/]")

            panel = Panel(
                table,
                title=f"[bold green]✓ {result.message or 'Success'}[/]",
                border_style="green",
            )
        else:
            panel = Panel(
                f"[red]{result.error}[/]",
                title=f"[bold red]✗ {result.image_id}[/]",
                border_style="red",
            )

        self.console.print(panel)

    def show_batch_summary(self, summary: BatchSummary) -> None:
        """Display batch processing summary."""
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Label", style="dim")
        table.add_column("Value")

        table.add_row("Images processed", f"[green]{summary.processed}[/]")
        if summary.failed:
            table.add_row("Failed", f"[red]{summary.failed}[/]")
        table.add_row("Total", str(summary.total))
        table.add_row("Success rate", f"{summary.success_rate:.0f}%")
        table.add_row("Time elapsed", f"{summary.elapsed:.2f}s")
        table.add_row(
            "Speed",
            f"{summary.processed / summary.elapsed:.1f} images/sec" if summary.elapsed > 0 else "N/A"
        )

        self.console.print()
        self.console.print(Panel(
            table,
            title="[bold cyan]📊 Batch Summary[/]",
            border_style="cyan",
        ))

        if summary.errors:
            errors = Table(show_header=True, box=None, padding=(0, 2))
            errors.add_column("Image", style="cyan")
            errors.add_column("Error", style="red")
            for error in summary.errors:
                errors.add_row(error["imageId"], error["message"])
            self.console.print(Panel(errors, title="[bold red]Errors[/]", border_style="red"))

    def show_image_info(self, info: Any) -> None:
        """Display image information and its decoded provenance tags."""
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Property", style="cyan")
        table.add_column("Value")

        table.add_row("File", str(info.path.name))
        table.add_row("Format", info.format)
        table.add_row("Mode", info.mode)
        table.add_row("Dimensions", f"{info.width} × {info.height} px")
        table.add_row("File size", self._format_size(info.size_bytes))
        table.add_row("Has EXIF", "[green]Yes[/]" if info.has_exif else "[dim]No[/]")

        self.console.print(Panel(table, title="[bold]📷 Image Info[/]", border_style="blue"))

        if not info.exif_data:
            return

        exif_table = Table(show_header=True, box=None, padding=(0, 2))
        exif_table.add_column("IFD", style="dim")
        exif_table.add_column("Tag", style="cyan")
        exif_table.add_column("Value")

        for ifd in ("IFD0", "Exif", "GPS"):
            for tag, value in info.exif_data.get(ifd, {}).items():
                exif_table.add_row(ifd, str(tag), str(value)[:50])

        gps = info.exif_data.get("gps")
        if gps:
            exif_table.add_row("GPS", "Position", f"{gps['latitude']:.6f}, {gps['longitude']:.6f}")

        self.console.print(Panel(exif_table, title="[bold]🏷️ EXIF Data[/]", border_style="dim"))

    def show_presets(self, presets: list[dict[str, Any]]) -> None:
        """Display available presets."""
        table = Table(title="[bold]🎨 Available Presets[/]")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Description")
        table.add_column("Action", style="green")
        table.add_column("Optimize", justify="center")
        table.add_column("Source", style="dim")

        for preset in presets:
            table.add_row(
                preset["name"],
                preset.get("description", ""),
                preset.get("action", "-"),
                "✓" if preset.get("optimize") else "-",
                "built-in" if preset.get("builtin") else "custom",
            )

        self.console.print(table)

    def show_preset_details(self, preset: dict[str, Any]) -> None:
        """Show detailed preset information."""
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Property", style="cyan")
        table.add_column("Value")

        for key, value in preset.items():
            if value in (None, [], ""):
                continue
            table.add_row(key, str(value))

        self.console.print(Panel(
            table,
            title=f"[bold]Preset: {preset.get('name', 'Unknown')}[/]",
            border_style="cyan",
        ))

    @staticmethod
    def _format_size(size_bytes: int) -> str:
        """Format file size in human-readable format."""
        for unit in ["B", "KB", "MB", "GB"]:
            if size_bytes < 1024:
                return f"{size_bytes:.1f} {unit}"
            size_bytes /= 1024
        return f"{size_bytes:.1f} TB"
