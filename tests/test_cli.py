"""Tests for the CLI application."""

from pathlib import Path

import piexif
from typer.testing import CliRunner

from pixmeta.cli.app import app
from pixmeta.utils.image_io import decode_image


runner = CliRunner()


class TestCLI:
    """Tests for CLI commands."""

    def test_version(self):
        """Test --version flag."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "pixmeta" in result.stdout
        assert "0.1.0" in result.stdout

    def test_help(self):
        """Test --help flag."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("process", "batch", "info", "strip", "preset"):
            assert command in result.stdout

    def test_process_help(self):
        result = runner.invoke(app, ["process", "--help"])
        assert result.exit_code == 0
        assert "--copyright" in result.stdout
        assert "--scramble" in result.stdout

    def test_preset_list(self):
        """Test preset list command."""
        result = runner.invoke(app, ["preset", "list"])
        assert result.exit_code == 0
        for name in ("web", "privacy", "copyright", "draft", "obfuscate"):
            assert name in result.stdout

    def test_preset_show(self):
        result = runner.invoke(app, ["preset", "show", "draft"])
        assert result.exit_code == 0
        assert "DRAFT" in result.stdout

    def test_preset_show_unknown(self):
        result = runner.invoke(app, ["preset", "show", "nope"])
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_info(self, sample_image: Path):
        result = runner.invoke(app, ["info", str(sample_image)])
        assert result.exit_code == 0
        assert "Canon" in result.stdout
        assert "JPEG" in result.stdout

    def test_info_missing_file(self, temp_dir: Path):
        result = runner.invoke(app, ["info", str(temp_dir / "missing.jpg")])
        assert result.exit_code == 1

    def test_process_add(self, sample_image: Path, temp_dir: Path):
        """Processing writes the output file with new provenance."""
        output = temp_dir / "out.jpg"
        result = runner.invoke(app, [
            "process", str(sample_image),
            "--action", "add",
            "--copyright", "© 2024 Acme",
            "--remove-gps",
            "--output", str(output),
        ])

        assert result.exit_code == 0
        record = piexif.load(decode_image(output.read_bytes()).exif)
        assert record["0th"][piexif.ImageIFD.Copyright].decode("utf-8") == "© 2024 Acme"
        assert record["GPS"] == {}

    def test_process_json(self, sample_image: Path, temp_dir: Path):
        result = runner.invoke(app, [
            "process", str(sample_image), "-a", "strip", "--json", "-o", str(temp_dir / "s.jpg"),
        ])
        assert result.exit_code == 0
        assert '"success": true' in result.stdout

    def test_process_scramble_requires_type(self, sample_image: Path):
        result = runner.invoke(app, ["process", str(sample_image), "--action", "scramble"])
        assert result.exit_code == 1
        assert "scrambleType is required" in result.stdout

    def test_process_default_output_path(self, sample_image: Path):
        result = runner.invoke(app, ["process", str(sample_image), "-a", "scramble", "-s", "noise"])
        assert result.exit_code == 0
        assert (sample_image.parent / "sample_processed.jpg").exists()

    def test_strip(self, sample_image: Path):
        result = runner.invoke(app, ["strip", str(sample_image)])
        assert result.exit_code == 0

        cleaned = decode_image((sample_image.parent / "sample_clean.jpg").read_bytes())
        assert piexif.load(cleaned.exif)["0th"] == {piexif.ImageIFD.Orientation: 6}

    def test_batch(self, sample_directory: Path, temp_dir: Path):
        output = temp_dir / "out"
        result = runner.invoke(app, ["batch", str(sample_directory), "-o", str(output), "--workers", "2"])
        assert result.exit_code == 0
        assert len(list(output.glob("*.jpg"))) == 5

    def test_batch_with_preset(self, sample_directory: Path, temp_dir: Path):
        output = temp_dir / "web"
        result = runner.invoke(app, ["batch", str(sample_directory), "-o", str(output), "-p", "web"])
        assert result.exit_code == 0
        assert len(list(output.iterdir())) == 5

    def test_preset_apply(self, sample_image: Path, temp_dir: Path):
        output = temp_dir / "stamped.jpg"
        result = runner.invoke(app, [
            "preset", "apply", "copyright", str(sample_image),
            "-o", str(output), "--copyright", "© Me",
        ])

        assert result.exit_code == 0
        record = piexif.load(decode_image(output.read_bytes()).exif)
        assert record["0th"][piexif.ImageIFD.Copyright].decode("utf-8") == "© Me"
