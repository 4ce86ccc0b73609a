"""
Image Metadata Resolution.

Derives a best-effort capture timestamp and a content signature for an
image file. Timestamps come from several sources of decreasing
trustworthiness, each tagged with a confidence tier:

    HIGH    EXIF DateTime / DateTimeOriginal
    MIDDLE  EXIF GPSDateStamp, or a YYYYMMDD date in the filename
    LOW     container create/modify timestamps (RFC3339)

A filename date beats a LOW container timestamp. A filename date with
nothing else to corroborate it is downgraded to LOW.
"""

import hashlib
import logging
import os
import re
import struct
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, Optional

import piexif
from PIL import Image

logger = logging.getLogger(__name__)

# Checked in order; the first parseable one wins.
CAPTURE_TIME_PROPS = ("exif:DateTime", "exif:DateTimeOriginal")
GPS_DATE_PROP = "exif:GPSDateStamp"
# 2022-05-04T12:40:18+00:00 (RFC3339)
CONTAINER_TIME_PROPS = ("date:create", "date:modify")
SIGNATURE_PROP = "signature"

CAPTURE_TIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y:%m:%d %H:%M:%S")
GPS_DATE_FORMATS = ("%Y-%m-%d", "%Y:%m:%d")

# Trailing YYYYMMDD run, optionally followed by a file extension.
_FILENAME_DATE_RE = re.compile(r"((?:19|20)\d{2})(\d{2})(\d{2})(?:\.[A-Za-z0-9]+)?$")

_DAYS_IN_MONTH = {1: 31, 3: 31, 5: 31, 7: 31, 8: 31, 10: 31, 12: 31, 4: 30, 6: 30, 9: 30, 11: 30}

# One-time image library initialization: set once before the first decode, never reset.
_image_lib_ready = False
_image_lib_lock = threading.Lock()


class Confidence(Enum):
    HIGH = "high"
    MIDDLE = "middle"
    LOW = "low"


@dataclass(frozen=True)
class Resolution:
    """
    Result of resolving a single image file.

    Attributes:
        signature: Content fingerprint (SHA-256 of the decoded pixels).
        timestamp: Best-effort capture time as a naive local datetime.
        confidence: How trustworthy the timestamp is.
    """

    signature: str
    timestamp: datetime
    confidence: Confidence


class ResolutionError(Exception):
    """Base class for files that cannot be resolved into a Resolution."""

    def __init__(self, path, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class NoTimestampError(ResolutionError):
    pass


class NoSignatureError(ResolutionError):
    pass


class DecodeFailureError(ResolutionError):
    pass


# ---------------------------------------------------------------------------
# Image library access
# ---------------------------------------------------------------------------


def ensure_image_library() -> None:
    """Initializes Pillow's format plugins once per process."""
    global _image_lib_ready
    if _image_lib_ready:
        return
    with _image_lib_lock:
        if not _image_lib_ready:
            Image.init()
            _image_lib_ready = True
            logger.debug("Image library initialized")


def _decode_exif_value(value) -> Optional[str]:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    if not isinstance(value, str):
        return None
    value = value.strip("\x00 ").strip()
    return value or None


def _exif_properties(img: Image.Image, path: Path) -> dict[str, str]:
    exif_bytes = img.info.get("exif")
    if not exif_bytes:
        return {}
    try:
        exif_dict = piexif.load(exif_bytes)
    except (ValueError, IndexError, KeyError, struct.error) as e:
        logger.debug(f"Unreadable EXIF block in {path.name}: {e}")
        return {}

    props = {}
    candidates = {
        "exif:DateTime": exif_dict.get("0th", {}).get(piexif.ImageIFD.DateTime),
        "exif:DateTimeOriginal": exif_dict.get("Exif", {}).get(piexif.ExifIFD.DateTimeOriginal),
        "exif:GPSDateStamp": exif_dict.get("GPS", {}).get(piexif.GPSIFD.GPSDateStamp),
    }
    for name, raw in candidates.items():
        value = _decode_exif_value(raw)
        if value is not None:
            props[name] = value
    return props


def _container_properties(path: Path) -> dict[str, str]:
    st = path.stat()
    created = getattr(st, "st_birthtime", st.st_ctime)

    def _rfc3339(ts: float) -> str:
        return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat(timespec="seconds")

    return {"date:create": _rfc3339(created), "date:modify": _rfc3339(st.st_mtime)}


def read_image_properties(path) -> dict[str, str]:
    """
    Decodes an image and returns its properties by name.

    Raises:
        DecodeFailureError: The file is missing or not a decodable image.
    """
    ensure_image_library()
    path = Path(path)
    try:
        with Image.open(path) as img:
            img.load()
            props = _exif_properties(img, path)
            pixels = img.tobytes()
            props.update(_container_properties(path))
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeFailureError(path, f"cannot decode image ({e})") from e

    if pixels:
        props[SIGNATURE_PROP] = hashlib.sha256(pixels).hexdigest()
    return props


# ---------------------------------------------------------------------------
# Timestamp heuristics
# ---------------------------------------------------------------------------


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def is_valid_date(year: int, month: int, day: int) -> bool:
    if month == 2:
        return 1 <= day <= (29 if is_leap_year(year) else 28)
    if month not in _DAYS_IN_MONTH:
        return False
    return 1 <= day <= _DAYS_IN_MONTH[month]


def resolve_filename_date(name: str) -> Optional[tuple[datetime, Confidence]]:
    """
    Extracts a trailing YYYYMMDD date from a filename.

    The extension does not need to be stripped first: both "20130320" and
    "photo_20130320.jpg" match. Impossible dates such as 20230230 do not.

    Returns:
        (midnight of that date, Confidence.MIDDLE), or None.
    """
    m = _FILENAME_DATE_RE.search(os.path.basename(str(name)))
    if not m:
        return None
    year, month, day = (int(g) for g in m.groups())
    if not is_valid_date(year, month, day):
        return None
    return datetime(year, month, day), Confidence.MIDDLE


def _parse_in_formats(value: str, formats) -> Optional[datetime]:
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def _parse_rfc3339(value: str) -> Optional[datetime]:
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        # RFC3339 requires an offset
        return None
    return parsed.replace(tzinfo=None)


def resolve_meta_datetime(props: Mapping[str, str]) -> Optional[tuple[datetime, Confidence]]:
    """
    Looks for a timestamp among embedded tags, then container timestamps.
    """
    for name in CAPTURE_TIME_PROPS:
        value = props.get(name)
        if value:
            parsed = _parse_in_formats(value, CAPTURE_TIME_FORMATS)
            if parsed is not None:
                return parsed, Confidence.HIGH

    value = props.get(GPS_DATE_PROP)
    if value:
        parsed = _parse_in_formats(value, GPS_DATE_FORMATS)
        if parsed is not None:
            return parsed, Confidence.MIDDLE

    for name in CONTAINER_TIME_PROPS:
        value = props.get(name)
        if value:
            parsed = _parse_rfc3339(value)
            if parsed is not None:
                return parsed, Confidence.LOW

    return None


def resolve_from_properties(path, props: Mapping[str, str]) -> Resolution:
    """
    Combines the property lookup with the filename date into a Resolution.

    Raises:
        NoSignatureError: No content fingerprint is available.
        NoTimestampError: No source yielded a timestamp.
    """
    signature = props.get(SIGNATURE_PROP)
    if not signature:
        raise NoSignatureError(path, "image has no signature")

    filename_date = resolve_filename_date(Path(path).name)
    meta_date = resolve_meta_datetime(props)

    if meta_date is not None:
        timestamp, confidence = meta_date
        if confidence == Confidence.LOW and filename_date is not None:
            timestamp, confidence = filename_date
    elif filename_date is not None:
        # Nothing corroborates the filename
        timestamp, confidence = filename_date[0], Confidence.LOW
    else:
        raise NoTimestampError(path, "no capture time, GPS date, filename date or file time")

    return Resolution(signature=signature, timestamp=timestamp, confidence=confidence)


def resolve(path, read_properties: Callable[[Path], Mapping[str, str]] = read_image_properties) -> Resolution:
    """
    Resolves an image file into its signature, timestamp and confidence.

    Raises:
        ResolutionError: One of NoTimestampError, NoSignatureError,
            DecodeFailureError.
    """
    ensure_image_library()
    path = Path(path)
    props = read_properties(path)
    resolution = resolve_from_properties(path, props)
    logger.debug(
        f"Resolved {path.name}: {resolution.timestamp} ({resolution.confidence.value})"
    )
    return resolution
