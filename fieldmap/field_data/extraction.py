"""
Capture metadata extraction with Pillow.

Reads image dimensions and mode from the decoded image, camera and exposure
fields from the EXIF IFDs and the capture location from the GPS IFD, then
grades the image. ``MetadataExtractor.process_batch`` validates, hashes,
extracts and thumbnails a whole batch, collecting per-asset errors instead of
aborting.
"""

import hashlib
import io
import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Sequence

from PIL import ExifTags, Image

from fieldmap.config import section
from fieldmap.field_data.models import (
    CameraInfo,
    ExtractedImage,
    ExtractedMetadata,
    ExtractionBatch,
    GpsInfo,
    IngestedAsset,
    PhotographyInfo,
    TechnicalInfo,
)
from fieldmap.field_data.quality import grade_quality
from fieldmap.field_data.report import summarize_batch
from fieldmap.field_data.validation import AssetValidator
from fieldmap.image_processing.thumbnail import ThumbnailGenerator

logger = logging.getLogger(__name__)


EXIF_DATETIME_FORMAT = '%Y:%m:%d %H:%M:%S'

# Bits per channel for common Pillow modes
MODE_BIT_DEPTH = {
    '1': 1, 'L': 8, 'P': 8, 'RGB': 8, 'RGBA': 8, 'CMYK': 8, 'YCbCr': 8,
    'LA': 8, 'I;16': 16, 'I': 32, 'F': 32,
}

MODE_COLOR_SPACE = {
    '1': 'Bilevel', 'L': 'Grayscale', 'LA': 'Grayscale', 'I;16': 'Grayscale',
    'I': 'Grayscale', 'F': 'Grayscale', 'P': 'Palette', 'RGB': 'RGB',
    'RGBA': 'RGB', 'CMYK': 'CMYK', 'YCbCr': 'YCbCr',
}

_DECIMAL_PATTERN = re.compile(r'-?\d+\.\d+')

FILENAME_GPS_ACCURACY_M = 10.0


def compute_content_hash(content: bytes) -> str:
    """SHA-256 hex digest of raw asset bytes."""
    return hashlib.sha256(content).hexdigest()


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, tuple) and len(value) == 2:
        # Raw (numerator, denominator) pair
        numerator, denominator = value
        return float(numerator) / float(denominator) if denominator else None
    try:
        result = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    # IFDRational with a zero denominator converts to nan
    return None if result != result else result


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode('utf-8', errors='ignore')
    text = str(value).strip('\x00 ').strip()
    return text or None


def _parse_datetime(value: Any) -> Optional[datetime]:
    text = _to_text(value)
    if not text:
        return None
    try:
        return datetime.strptime(text, EXIF_DATETIME_FORMAT)
    except ValueError:
        logger.debug(f"Unparseable EXIF timestamp: {text!r}")
        return None


def _dms_to_degrees(dms: Any, ref: Any) -> Optional[float]:
    """Convert an EXIF (degrees, minutes, seconds) triple to signed degrees."""
    if not dms:
        return None
    try:
        parts = [_to_float(part) for part in dms]
    except TypeError:
        return None
    if len(parts) != 3 or any(part is None for part in parts):
        return None

    degrees = parts[0] + parts[1] / 60.0 + parts[2] / 3600.0
    if (_to_text(ref) or '').upper() in ('S', 'W'):
        degrees = -degrees
    return degrees


def _format_shutter(value: Any) -> Optional[str]:
    seconds = _to_float(value)
    if not seconds:
        return None
    if seconds >= 1:
        return f"{seconds:g}s"
    return f"1/{round(1 / seconds)}s"


def parse_gps(gps_ifd: Dict[int, Any]) -> GpsInfo:
    """
    Build GpsInfo from a GPS IFD mapping.

    Returns a GpsInfo with ``present=False`` when latitude or longitude is
    missing or out of range.
    """
    lat = _dms_to_degrees(
        gps_ifd.get(ExifTags.GPS.GPSLatitude),
        gps_ifd.get(ExifTags.GPS.GPSLatitudeRef),
    )
    lon = _dms_to_degrees(
        gps_ifd.get(ExifTags.GPS.GPSLongitude),
        gps_ifd.get(ExifTags.GPS.GPSLongitudeRef),
    )

    if lat is None or lon is None or not is_valid_position(lat, lon):
        return GpsInfo()

    altitude = _to_float(gps_ifd.get(ExifTags.GPS.GPSAltitude))
    altitude_ref = gps_ifd.get(ExifTags.GPS.GPSAltitudeRef)
    if isinstance(altitude_ref, bytes):
        altitude_ref = altitude_ref[0] if altitude_ref else 0
    if altitude is not None and altitude_ref == 1:
        altitude = -altitude

    return GpsInfo(
        present=True,
        lat=lat,
        lon=lon,
        altitude=altitude,
        accuracy=_to_float(gps_ifd.get(ExifTags.GPS.GPSHPositioningError)),
        source='exif',
    )


def is_valid_position(lat: float, lon: float) -> bool:
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def location_from_filename(file_name: str) -> GpsInfo:
    """
    Recover a position from two decimal numbers in a file name.

    Example:
        >>> location_from_filename('site_37.7749_-122.4194.jpg').lat
        37.7749
    """
    stem = file_name.rsplit('.', 1)[0]
    numbers = _DECIMAL_PATTERN.findall(stem)
    if len(numbers) < 2:
        return GpsInfo()

    lat, lon = float(numbers[0]), float(numbers[1])
    if not is_valid_position(lat, lon):
        return GpsInfo()

    return GpsInfo(
        present=True,
        lat=lat,
        lon=lon,
        accuracy=FILENAME_GPS_ACCURACY_M,
        source='filename',
    )


class MetadataExtractor:
    """
    Extracts capture metadata and grades field images.

    Reads the ``extraction`` and ``quality`` config sections. Validation
    limits come from the ``validation`` section via AssetValidator.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        extraction = section(config, 'extraction')
        quality = section(config, 'quality')

        self.location_fallback = bool(extraction['enable_location_fallback'])
        self.generate_thumbnails = bool(extraction['generate_thumbnails'])
        self.min_megapixels = float(quality['min_megapixels'])
        self.min_compression_ratio = float(quality['min_compression_ratio'])

        self.validator = AssetValidator(config)
        self.thumbnails = ThumbnailGenerator(config)

    def extract(self, ingested: IngestedAsset) -> ExtractedMetadata:
        """
        Extract metadata from one asset.

        Raises:
            PIL.UnidentifiedImageError: If the content is not a decodable image
        """
        with Image.open(io.BytesIO(ingested.content)) as img:
            width, height = img.size
            mode = img.mode
            exif = img.getexif()
            exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
            gps_ifd = exif.get_ifd(ExifTags.IFD.GPSInfo)

        captured_at = (
            _parse_datetime(exif_ifd.get(ExifTags.Base.DateTimeOriginal))
            or _parse_datetime(exif.get(ExifTags.Base.DateTime))
        )

        camera = CameraInfo(
            make=_to_text(exif.get(ExifTags.Base.Make)),
            model=_to_text(exif.get(ExifTags.Base.Model)),
            software=_to_text(exif.get(ExifTags.Base.Software)),
            captured_at=captured_at,
        )

        technical = TechnicalInfo(
            width=width,
            height=height,
            color_space=MODE_COLOR_SPACE.get(mode, mode),
            bit_depth=MODE_BIT_DEPTH.get(mode),
        )

        iso = exif_ifd.get(ExifTags.Base.ISOSpeedRatings)
        if isinstance(iso, tuple):
            iso = iso[0] if iso else None

        photography = PhotographyInfo(
            aperture=_to_float(exif_ifd.get(ExifTags.Base.FNumber)),
            shutter=_format_shutter(exif_ifd.get(ExifTags.Base.ExposureTime)),
            iso=int(iso) if iso is not None else None,
            focal_length=_to_float(exif_ifd.get(ExifTags.Base.FocalLength)),
        )

        gps = parse_gps(gps_ifd)
        if not gps.present and self.location_fallback:
            gps = location_from_filename(ingested.asset.file_name)

        quality = grade_quality(
            width=width,
            height=height,
            file_size=ingested.asset.file_size_bytes,
            has_gps=gps.present,
            has_timestamp=captured_at is not None,
            min_megapixels=self.min_megapixels,
            min_compression_ratio=self.min_compression_ratio,
        )

        return ExtractedMetadata(
            camera=camera,
            technical=technical,
            photography=photography,
            gps=gps,
            quality=quality,
        )

    def process_batch(
        self,
        assets: Sequence[IngestedAsset],
        cancelled: Optional[Callable[[], bool]] = None
    ) -> ExtractionBatch:
        """
        Validate, hash, extract and thumbnail a batch of assets.

        A rejected or unreadable asset adds one entry to ``errors``; the
        remaining assets are still processed. Missing GPS and duplicate
        content add warnings.

        Args:
            assets: Assets to process, in submission order
            cancelled: Optional callable returning True to stop early

        Returns:
            ExtractionBatch with extracted images, errors, warnings and summary
        """
        batch = ExtractionBatch()
        valid, batch.errors = self.validator.partition(assets)
        seen_hashes = set()

        for ingested in valid:
            if cancelled is not None and cancelled():
                batch.errors.append("Processing cancelled")
                break

            name = ingested.asset.file_name
            content_hash = compute_content_hash(ingested.content)
            is_duplicate = content_hash in seen_hashes
            seen_hashes.add(content_hash)

            try:
                metadata = self.extract(ingested)
            except Exception as e:
                logger.error(f"Failed to extract metadata from {name}: {e}", exc_info=True)
                batch.errors.append(f"{name}: Failed to read image metadata ({e})")
                continue

            thumbnail = None
            if self.generate_thumbnails:
                try:
                    thumbnail = self.thumbnails.generate(ingested.content)
                except Exception as e:
                    logger.error(f"Failed to generate thumbnail for {name}: {e}", exc_info=True)
                    batch.errors.append(f"{name}: Thumbnail generation failed ({e})")
                    continue

            if is_duplicate:
                batch.warnings.append(f"{name}: Duplicate content of an earlier image")
            if not metadata.gps.present:
                batch.warnings.append(f"{name}: No GPS location data found")

            batch.extracted.append(ExtractedImage(
                asset=ingested.asset,
                content_hash=content_hash,
                metadata=metadata,
                is_duplicate=is_duplicate,
                content=ingested.content,
                thumbnail=thumbnail,
            ))

        batch.summary = summarize_batch(
            batch.extracted,
            total=len(assets),
            failed=len(assets) - len(batch.extracted),
        )

        logger.info(
            f"Processed {len(batch.extracted)}/{len(assets)} assets "
            f"({len(batch.errors)} errors, {len(batch.warnings)} warnings)"
        )
        return batch
