"""EXIF metadata operations: add, strip, update and GPS removal.

Records are piexif dicts (``0th``, ``Exif``, ``GPS``, ``Interop``, ``1st``,
``thumbnail``). Text values are written as UTF-8 bytes; Windows XP tags as
UTF-16LE byte tuples.
"""

import io
from dataclasses import replace
from datetime import datetime
from typing import Any

import piexif

from pixmeta.config.settings import Settings, get_settings
from pixmeta.core.exceptions import MetadataEncodeError
from pixmeta.core.models import Action, Frame, ProcessOptions
from pixmeta.utils.logging import get_logger


logger = get_logger(__name__)

# ProcessOptions attribute -> IFD0 tag
IFD0_FIELDS = {
    "copyright": piexif.ImageIFD.Copyright,
    "author": piexif.ImageIFD.Artist,
    "image_description": piexif.ImageIFD.ImageDescription,
    "make": piexif.ImageIFD.Make,
    "model": piexif.ImageIFD.Model,
    "software": piexif.ImageIFD.Software,
    "host_computer": piexif.ImageIFD.HostComputer,
}

XP_TAGS = {piexif.ImageIFD.XPAuthor, piexif.ImageIFD.XPKeywords, piexif.ImageIFD.XPTitle,
           piexif.ImageIFD.XPComment, piexif.ImageIFD.XPSubject}

EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"

# Output formats Pillow can embed an EXIF segment in
EXIF_FORMATS = {"jpeg", "png", "webp"}


def empty_exif() -> dict[str, Any]:
    """A record with every IFD present and empty."""
    return {"0th": {}, "Exif": {}, "GPS": {}, "Interop": {}, "1st": {}, "thumbnail": None}


def load_exif(blob: bytes) -> dict[str, Any]:
    """Parse an EXIF blob into a piexif record.

    Raises:
        MetadataEncodeError: If the blob cannot be parsed.
    """
    if not blob:
        raise MetadataEncodeError("No EXIF data")
    try:
        record = piexif.load(blob)
    except Exception as e:
        raise MetadataEncodeError(f"Unparseable EXIF: {e}") from e
    if not isinstance(record, dict):
        raise MetadataEncodeError("Unparseable EXIF")
    return record


def dump_exif(record: dict[str, Any]) -> bytes:
    """Serialize a piexif record.

    Raises:
        MetadataEncodeError: If piexif rejects a tag value.
    """
    try:
        return piexif.dump(record)
    except Exception as e:
        raise MetadataEncodeError(f"Cannot encode EXIF: {e}") from e


def exif_timestamp(now: datetime | None = None) -> str:
    """EXIF DateTime string (``YYYY:MM:DD HH:MM:SS``)."""
    return (now or datetime.now()).strftime(EXIF_DATE_FORMAT)


def encode_xp(value: str) -> tuple[int, ...]:
    """Encode text for the Windows XP* tags."""
    return tuple((value + "\x00").encode("utf-16le"))


def decode_text(value: Any) -> Any:
    """Decode an ASCII/UTF-8 tag value read by piexif."""
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8").rstrip("\x00")
        except UnicodeDecodeError:
            return value.decode("latin-1").rstrip("\x00")
    return value


def decode_xp(value: Any) -> str:
    """Decode a Windows XP* tag value."""
    return bytes(value).decode("utf-16le", errors="replace").rstrip("\x00")


def provenance_tags(options: ProcessOptions) -> dict[int, bytes]:
    """IFD0 tags for every provenance field the caller supplied."""
    tags = {}
    for attr, tag in IFD0_FIELDS.items():
        value = getattr(options, attr)
        if value:
            tags[tag] = value.encode("utf-8")
    return tags


def _copy_record(record: dict[str, Any]) -> dict[str, Any]:
    copied = empty_exif()
    for ifd in ("0th", "Exif", "GPS", "Interop", "1st"):
        copied[ifd] = dict(record.get(ifd) or {})
    copied["thumbnail"] = record.get("thumbnail")
    return copied


def _stamp(
    record: dict[str, Any],
    options: ProcessOptions,
    software: str,
    timestamp: str,
) -> None:
    ifd0 = record["0th"]
    ifd0.update(provenance_tags(options))
    ifd0[piexif.ImageIFD.Software] = (options.software or software).encode("utf-8")
    ifd0[piexif.ImageIFD.DateTime] = timestamp.encode("ascii")
    if options.author:
        ifd0[piexif.ImageIFD.XPAuthor] = encode_xp(options.author)
    if options.keywords:
        ifd0[piexif.ImageIFD.XPKeywords] = encode_xp("; ".join(options.keywords))


def build_add_record(
    options: ProcessOptions,
    orientation: int | None,
    source_gps: dict[int, Any] | None = None,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Fresh record from the supplied provenance fields.

    Prior IFD0/Exif values are ignored; ``source_gps`` is carried across
    unless GPS removal was requested.
    """
    settings = settings or get_settings()
    timestamp = exif_timestamp(now)

    record = empty_exif()
    _stamp(record, options, settings.software_name, timestamp)
    record["Exif"][piexif.ExifIFD.DateTimeOriginal] = timestamp.encode("ascii")
    record["Exif"][piexif.ExifIFD.DateTimeDigitized] = timestamp.encode("ascii")
    if orientation:
        record["0th"][piexif.ImageIFD.Orientation] = orientation
    if source_gps and not options.remove_gps:
        record["GPS"] = dict(source_gps)
    return record


def build_update_record(
    existing: dict[str, Any],
    options: ProcessOptions,
    orientation: int | None,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Shallow-merge supplied fields over the existing IFD0.

    Supplied fields win on collision. The embedded thumbnail is dropped
    because it would no longer match the re-encoded raster.
    """
    settings = settings or get_settings()

    record = _copy_record(existing)
    _stamp(record, options, f"{settings.software_name} (Updated)", exif_timestamp(now))
    if orientation and piexif.ImageIFD.Orientation not in record["0th"]:
        record["0th"][piexif.ImageIFD.Orientation] = orientation
    record["1st"] = {}
    record["thumbnail"] = None
    return record


def build_strip_record(orientation: int | None) -> dict[str, Any] | None:
    """Record holding orientation only, or None when there is nothing to keep."""
    if not orientation:
        return None
    record = empty_exif()
    record["0th"][piexif.ImageIFD.Orientation] = orientation
    return record


def apply_metadata(
    frame: Frame,
    options: ProcessOptions,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> Frame:
    """Resolve the EXIF segment the frame will be encoded with.

    Never raises for metadata problems: parse and encode failures leave the
    original EXIF in place and attach a warning to the frame.
    """
    source = frame.source
    orientation = source.orientation
    action = options.action

    if action in (Action.STRIP, Action.SCRAMBLE):
        record = build_strip_record(orientation)
    elif action == Action.ADD:
        source_gps = None
        if source.exif and not options.remove_gps:
            try:
                source_gps = load_exif(source.exif).get("GPS")
            except MetadataEncodeError:
                logger.debug("Source EXIF unreadable; GPS not carried over")
        record = build_add_record(options, orientation, source_gps, settings, now)
    elif action == Action.UPDATE:
        existing = None
        if source.exif:
            try:
                existing = load_exif(source.exif)
            except MetadataEncodeError as e:
                logger.warning("Existing EXIF discarded, writing supplied fields only: %s", e)
                frame = frame.with_warning(f"Existing EXIF discarded: {e}")
        if existing is None:
            record = build_add_record(options, orientation, None, settings, now)
        else:
            record = build_update_record(existing, options, orientation, settings, now)
    else:
        raise ValueError(f"Unknown action: {action}")

    if record is not None and options.remove_gps:
        record["GPS"] = {}

    if record is None:
        return replace(frame, exif=None, metadata_changed=True)

    try:
        exif = dump_exif(record)
    except MetadataEncodeError as e:
        logger.warning("Metadata not written, original EXIF kept: %s", e)
        return frame.with_warning(f"Metadata not written: {e}")

    return replace(frame, exif=exif, metadata_changed=True)


def dms_to_degrees(dms: Any, ref: Any) -> float | None:
    """Convert an EXIF degrees/minutes/seconds rational triple to decimal degrees."""
    if not dms or len(dms) != 3:
        return None
    try:
        degrees, minutes, seconds = (num / den for num, den in dms)
    except (TypeError, ValueError, ZeroDivisionError):
        return None

    value = degrees + minutes / 60 + seconds / 3600
    if decode_text(ref) in ("S", "W"):
        value = -value
    return value


def _named(ifd: str, values: dict[int, Any]) -> dict[str, Any]:
    named = {}
    for tag, value in values.items():
        name = piexif.TAGS.get(ifd, {}).get(tag, {}).get("name", str(tag))
        if ifd == "0th" and tag in XP_TAGS:
            named[name] = decode_xp(value)
        else:
            named[name] = decode_text(value)
    return named


def read_exif(blob: bytes | None) -> dict[str, Any] | None:
    """Decode an EXIF blob into a readable summary.

    Returns:
        Dict with ``IFD0``, ``Exif`` and ``GPS`` tag maps keyed by tag name,
        plus ``gps`` decimal coordinates and ``keywords`` when present.
        None when the blob is missing or unparseable.
    """
    if not blob:
        return None
    try:
        record = load_exif(blob)
    except MetadataEncodeError as e:
        logger.warning("Cannot read EXIF: %s", e)
        return None

    gps = record.get("GPS") or {}
    summary: dict[str, Any] = {
        "IFD0": _named("0th", record.get("0th") or {}),
        "Exif": _named("Exif", record.get("Exif") or {}),
        "GPS": _named("GPS", gps),
    }

    latitude = dms_to_degrees(gps.get(piexif.GPSIFD.GPSLatitude), gps.get(piexif.GPSIFD.GPSLatitudeRef))
    longitude = dms_to_degrees(gps.get(piexif.GPSIFD.GPSLongitude), gps.get(piexif.GPSIFD.GPSLongitudeRef))
    if latitude is not None and longitude is not None:
        summary["gps"] = {"latitude": latitude, "longitude": longitude}

    keywords = summary["IFD0"].get("XPKeywords")
    if keywords:
        summary["keywords"] = [k.strip() for k in keywords.split(";") if k.strip()]

    return summary


def splice_exif(jpeg: bytes, exif: bytes) -> bytes:
    """Replace the EXIF segment of JPEG bytes without re-encoding pixels.

    Raises:
        MetadataEncodeError: If piexif cannot insert the segment.
    """
    out = io.BytesIO()
    try:
        piexif.insert(exif, jpeg, out)
    except Exception as e:
        raise MetadataEncodeError(f"Cannot insert EXIF: {e}") from e
    return out.getvalue()
