"""Tests for the batch coordinator."""

from pathlib import Path

import pytest
from rich.console import Console

from pixmeta import process_batch
from pixmeta.core.batch import BatchProcessor
from pixmeta.core.models import BatchItem, ImageState


@pytest.fixture
def batch_processor(processor) -> BatchProcessor:
    return BatchProcessor(console=Console(quiet=True), workers=4, processor=processor)


class TestBatchProcessor:
    """Tests for BatchProcessor class."""

    def test_one_corrupt_item_among_many(self, batch_processor: BatchProcessor,
                                         jpeg_with_exif: bytes, corrupt_bytes: bytes):
        """A bad image fails alone and results keep input order."""
        items = [BatchItem(id=f"img-{i}", image=jpeg_with_exif, options={"action": "strip"})
                 for i in range(6)]
        items.insert(3, BatchItem(id="broken", image=corrupt_bytes, options={"action": "strip"}))

        results = batch_processor.process_batch(items)

        assert [r.image_id for r in results] == [item.id for item in items]
        assert sum(r.success for r in results) == 6
        assert [r.image_id for r in results if not r.success] == ["broken"]
        assert results[3].state == ImageState.FAILED
        assert results[3].error
        assert all(r.state == ImageState.SUCCESS for r in results if r.success)

    def test_success_message_per_action(self, batch_processor: BatchProcessor, jpeg_with_exif: bytes):
        items = [
            BatchItem(id="a", image=jpeg_with_exif, options={"action": "add", "copyright": "C"}),
            BatchItem(id="s", image=jpeg_with_exif, options={"action": "strip"}),
            BatchItem(id="u", image=jpeg_with_exif, options={"action": "update", "author": "A"}),
        ]
        messages = [r.message for r in batch_processor.process_batch(items)]
        assert messages == [
            "Successfully added metadata to image",
            "Successfully stripped metadata from image",
            "Successfully updated image",
        ]

    def test_invalid_options_fail_only_that_item(self, batch_processor: BatchProcessor,
                                                 jpeg_with_exif: bytes):
        items = [
            BatchItem(id="ok", image=jpeg_with_exif, options={"action": "strip"}),
            BatchItem(id="bad", image=jpeg_with_exif, options={"action": "scramble"}),
        ]
        results = batch_processor.process_batch(items)

        assert results[0].success is True
        assert results[1].success is False
        assert "scrambleType" in results[1].error

    def test_uploader_sets_new_url(self, processor, jpeg_with_exif: bytes, png_with_alpha: bytes):
        uploads = []

        def uploader(data: bytes, filename: str, content_type: str) -> str:
            uploads.append((filename, content_type, len(data)))
            return f"https://cdn.example.com/{filename}"

        batch = BatchProcessor(Console(quiet=True), workers=2, processor=processor, uploader=uploader)
        results = batch.process_batch([
            BatchItem(id="photo", image=jpeg_with_exif, options={"action": "strip"}),
            BatchItem(id="logo", image=png_with_alpha, options={"action": "strip"}),
        ])

        assert results[0].new_url == "https://cdn.example.com/photo.jpg"
        assert results[1].new_url == "https://cdn.example.com/logo.png"
        assert sorted(u[:2] for u in uploads) == [
            ("logo.png", "image/png"),
            ("photo.jpg", "image/jpeg"),
        ]
        assert results[0].to_dict()["newUrl"] == "https://cdn.example.com/photo.jpg"

    def test_uploader_failure_fails_item(self, processor, jpeg_with_exif: bytes):
        def uploader(data, filename, content_type):
            raise ConnectionError("storage unavailable")

        batch = BatchProcessor(Console(quiet=True), workers=1, processor=processor, uploader=uploader)
        result = batch.process_batch([BatchItem(id="x", image=jpeg_with_exif, options={"action": "strip"})])[0]

        assert result.success is False
        assert result.error == "storage unavailable"
        assert result.new_url is None

    def test_fetcher_resolves_references(self, processor, jpeg_with_exif: bytes):
        store = {"s3://bucket/a.jpg": jpeg_with_exif}
        batch = BatchProcessor(Console(quiet=True), workers=2, processor=processor, fetcher=store.__getitem__)

        results = batch.process_batch([
            BatchItem(id="a", image="s3://bucket/a.jpg", options={"action": "strip"}),
            BatchItem(id="missing", image="s3://bucket/nope.jpg", options={"action": "strip"}),
        ])

        assert results[0].success is True
        assert results[1].success is False

    def test_default_fetcher_reads_files(self, batch_processor: BatchProcessor, sample_image: Path):
        result = batch_processor.process_batch(
            [BatchItem(id="file", image=sample_image, options={"action": "strip"})]
        )[0]
        assert result.success is True
        assert result.output.format == "jpeg"

    def test_cancel_skips_unstarted_items(self, batch_processor: BatchProcessor, jpeg_with_exif: bytes):
        batch_processor.cancel()
        results = batch_processor.process_batch(
            [BatchItem(id=str(i), image=jpeg_with_exif, options={"action": "strip"}) for i in range(3)]
        )
        assert all(r.error == "cancelled" for r in results)
        assert all(r.state == ImageState.FAILED for r in results)

    def test_summarize(self, batch_processor: BatchProcessor, jpeg_with_exif: bytes, corrupt_bytes: bytes):
        results = batch_processor.process_batch([
            BatchItem(id="good", image=jpeg_with_exif, options={"action": "strip"}),
            BatchItem(id="bad", image=corrupt_bytes, options={"action": "strip"}),
        ])
        summary = batch_processor.summarize(results, elapsed=2.0)

        assert (summary.total, summary.processed, summary.failed) == (2, 1, 1)
        assert summary.success_rate == 50.0
        assert summary.errors[0]["imageId"] == "bad"
        assert summary.to_dict()["successRate"] == "50%"

    def test_worker_count(self):
        """Test worker count initialization."""
        console = Console(quiet=True)

        processor_default = BatchProcessor(console=console)
        assert 1 <= processor_default.workers <= 8

        processor_custom = BatchProcessor(console=console, workers=4)
        assert processor_custom.workers == 4

    def test_module_level_process_batch(self, jpeg_with_exif: bytes, corrupt_bytes: bytes):
        results = process_batch([
            BatchItem(id="1", image=jpeg_with_exif, options={"action": "strip"}),
            BatchItem(id="2", image=corrupt_bytes, options={"action": "strip"}),
        ], workers=2)
        assert [r.success for r in results] == [True, False]


class TestProcessDirectory:
    """Tests for directory processing."""

    def test_process_directory(self, batch_processor: BatchProcessor, sample_directory: Path, temp_dir: Path):
        """Test processing a directory of images."""
        output_dir = temp_dir / "output"

        results = batch_processor.process_directory(sample_directory, output_dir, {"action": "strip"})

        assert len(results) == 5
        assert all(r.success for r in results)
        assert sorted(p.name for p in output_dir.iterdir()) == [f"image_{i}.jpg" for i in range(5)]

    def test_process_empty_directory(self, batch_processor: BatchProcessor, temp_dir: Path):
        """Test processing an empty directory."""
        empty_dir = temp_dir / "empty"
        empty_dir.mkdir()

        results = batch_processor.process_directory(empty_dir, temp_dir / "output", {"action": "strip"})

        assert len(results) == 0

    def test_output_extension_follows_format(self, batch_processor: BatchProcessor,
                                             temp_dir: Path, scanned_png: bytes):
        """Optimized scans are written as JPEG."""
        input_dir = temp_dir / "scans"
        input_dir.mkdir()
        (input_dir / "page.png").write_bytes(scanned_png)

        batch_processor.process_directory(
            input_dir, temp_dir / "out", {"action": "strip", "optimize": True}
        )

        assert (temp_dir / "out" / "page.jpg").exists()
