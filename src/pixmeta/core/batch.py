"""Concurrent batch coordinator with a Rich progress dashboard."""

import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Callable, Sequence

from rich.console import Console
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TimeRemainingColumn,
    MofNCompleteColumn,
)

from pixmeta.cli.dashboard import Dashboard
from pixmeta.core.models import (
    Action,
    BatchItem,
    BatchSummary,
    ImageBuffer,
    ImageState,
    ProcessOptions,
    ProcessResult,
)
from pixmeta.core.processor import ImageProcessor
from pixmeta.utils.image_io import collect_images, decode_image, load_bytes, save_bytes
from pixmeta.utils.logging import get_logger


logger = get_logger(__name__)

Fetcher = Callable[[str | Path], bytes]
Uploader = Callable[[bytes, str, str], str]

CANCELLED = "cancelled"

SUCCESS_MESSAGES = {
    Action.ADD: "Successfully added metadata to image",
    Action.STRIP: "Successfully stripped metadata from image",
    Action.UPDATE: "Successfully updated image",
    Action.SCRAMBLE: "Successfully scrambled image",
}


def read_local_file(source: str | Path) -> bytes:
    """Default fetcher: read a source reference as a local file path."""
    return load_bytes(Path(source))


class BatchProcessor:
    """Run the single-image pipeline over many images in parallel.

    Every item is isolated: a failure in one image is reported in its
    ProcessResult and never stops the others. Results come back in input
    order regardless of completion order.
    """

    def __init__(
        self,
        console: Console | None = None,
        workers: int | None = None,
        processor: ImageProcessor | None = None,
        fetcher: Fetcher | None = None,
        uploader: Uploader | None = None,
    ) -> None:
        """Initialize batch processor.

        Args:
            console: Rich console for output.
            workers: Number of worker threads (defaults to CPU count, max 8).
            processor: Pipeline used for each image.
            fetcher: Resolves str/Path image references to bytes.
            uploader: Called as ``uploader(data, filename, content_type)``
                after a successful transform; its return value becomes
                ``new_url``.
        """
        self.console = console or Console()
        self.processor = processor or ImageProcessor()
        self.workers = (
            workers
            or self.processor.settings.default_workers
            or min(os.cpu_count() or 4, 8)
        )
        self.fetcher = fetcher or read_local_file
        self.uploader = uploader
        self.dashboard = Dashboard(self.console)
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Stop starting new items. Items already running finish normally."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def process_batch(
        self,
        items: Sequence[BatchItem],
        on_result: Callable[[ProcessResult], None] | None = None,
    ) -> list[ProcessResult]:
        """Process every item and return results in input order.

        Args:
            items: Images with their options.
            on_result: Called once per item as it finishes, in completion
                order.

        Returns:
            One ProcessResult per item, aligned with ``items``.
        """
        results: list[ProcessResult | None] = [None] * len(items)

        if self.workers == 1 or len(items) <= 1:
            for index, item in enumerate(items):
                results[index] = self._process_item(item)
                if on_result:
                    on_result(results[index])
            return results

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = {
                executor.submit(self._process_item, item): index
                for index, item in enumerate(items)
            }
            for future in as_completed(futures):
                index = futures[future]
                results[index] = future.result()
                if on_result:
                    on_result(results[index])

        return results

    def _advance(self, image_id: str, state: ImageState, new: ImageState) -> ImageState:
        logger.debug("%s: %s -> %s", image_id, state.value, new.value)
        return new

    def _resolve(self, image: ImageBuffer | bytes | str | Path) -> ImageBuffer:
        if isinstance(image, ImageBuffer):
            return image
        if isinstance(image, (bytes, bytearray)):
            return decode_image(bytes(image))
        return decode_image(self.fetcher(image))

    @staticmethod
    def _filename(image_id: str, image: ImageBuffer) -> str:
        return f"{Path(str(image_id)).stem}{image.extension}"

    def _process_item(self, item: BatchItem) -> ProcessResult:
        """Run one item through its state machine. Never raises."""
        state = ImageState.PENDING

        if self.cancelled:
            logger.debug("%s: %s -> %s (%s)", item.id, state.value, ImageState.FAILED.value, CANCELLED)
            return ProcessResult(
                image_id=item.id,
                success=False,
                error=CANCELLED,
                state=ImageState.FAILED,
            )

        try:
            options = item.options
            if not isinstance(options, ProcessOptions):
                options = ProcessOptions.model_validate(options)

            state = self._advance(item.id, state, ImageState.DOWNLOADING)
            image = self._resolve(item.image)

            state = self._advance(item.id, state, ImageState.TRANSFORMING)
            output = self.processor.run(image, options)

            new_url = None
            if self.uploader:
                state = self._advance(item.id, state, ImageState.UPLOADING)
                new_url = self.uploader(
                    output.image.data,
                    self._filename(item.id, output.image),
                    output.image.content_type,
                )

            state = self._advance(item.id, state, ImageState.SUCCESS)
            return ProcessResult(
                image_id=item.id,
                success=True,
                message=SUCCESS_MESSAGES[options.action],
                new_url=new_url,
                state=state,
                output=output.image,
                warnings=list(output.warnings),
            )
        except Exception as e:
            self._advance(item.id, state, ImageState.FAILED)
            logger.warning("Image %s failed while %s: %s", item.id, state.value, e)
            return ProcessResult(
                image_id=item.id,
                success=False,
                error=str(e),
                state=ImageState.FAILED,
            )

    @staticmethod
    def summarize(results: list[ProcessResult], elapsed: float = 0.0) -> BatchSummary:
        """Aggregate counts and per-image errors for a finished batch."""
        failed = [r for r in results if not r.success]
        return BatchSummary(
            total=len(results),
            processed=len(results) - len(failed),
            failed=len(failed),
            elapsed=elapsed,
            errors=[{"imageId": r.image_id, "message": r.error or ""} for r in failed],
        )

    def process_directory(
        self,
        input_dir: Path,
        output_dir: Path,
        options: ProcessOptions | dict[str, Any],
        recursive: bool = False,
    ) -> list[ProcessResult]:
        """Process all images in a directory and write the results.

        Output files keep their relative path; the extension follows the
        output format.

        Args:
            input_dir: Input directory.
            output_dir: Output directory.
            options: Options applied to every image.
            recursive: Include subdirectories.

        Returns:
            List of ProcessResult, one per image found.
        """
        self.console.print(f"[dim]Scanning {input_dir}...[/]")
        images = collect_images(input_dir, recursive=recursive)

        if not images:
            self.console.print("[yellow]No images found.[/]")
            return []

        self.console.print(f"[cyan]Found {len(images)} images[/]")
        output_dir.mkdir(parents=True, exist_ok=True)

        items = [
            BatchItem(id=str(path.relative_to(input_dir)), image=path, options=options)
            for path in images
        ]
        start_time = time.time()

        with Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TextColumn("•"),
            TimeRemainingColumn(),
            console=self.console,
        ) as progress:
            task = progress.add_task("[cyan]Processing images...", total=len(items))

            def advance(result: ProcessResult) -> None:
                status = "✓" if result.success else "✗"
                progress.update(
                    task,
                    advance=1,
                    description=f"[cyan]{status} {Path(result.image_id).name}",
                )

            results = self.process_batch(items, on_result=advance)

        for result in results:
            if result.success and result.output is not None:
                out_path = (output_dir / result.image_id).with_suffix(result.output.extension)
                save_bytes(result.output.data, out_path)

        summary = self.summarize(results, time.time() - start_time)
        self.dashboard.show_batch_summary(summary)

        return results


def process_batch(
    items: Sequence[BatchItem],
    workers: int | None = None,
    uploader: Uploader | None = None,
) -> list[ProcessResult]:
    """Process a batch with default settings and no console output."""
    processor = BatchProcessor(Console(quiet=True), workers=workers, uploader=uploader)
    return processor.process_batch(items)
