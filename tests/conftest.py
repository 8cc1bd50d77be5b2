"""
Shared fixtures: synthetic field images with EXIF/GPS tags and prebuilt
processed images for tests that do not need real decoding.
"""

import hashlib
import io
from datetime import datetime
from typing import Optional

import numpy as np
import pytest
from PIL import ExifTags, Image, TiffImagePlugin

from fieldmap.field_data.models import (
    CameraInfo,
    ExtractedImage,
    ExtractedMetadata,
    GpsInfo,
    ImageAsset,
    IngestedAsset,
    PhotographyInfo,
    QualityAssessment,
    QualityGrade,
    TechnicalInfo,
)


def _rational(value: float, precision: int = 10000) -> TiffImagePlugin.IFDRational:
    return TiffImagePlugin.IFDRational(int(round(value * precision)), precision)


def _to_dms(degrees: float):
    degrees = abs(degrees)
    whole = int(degrees)
    minutes_float = (degrees - whole) * 60
    minutes = int(minutes_float)
    seconds = (minutes_float - minutes) * 60
    return (
        TiffImagePlugin.IFDRational(whole, 1),
        TiffImagePlugin.IFDRational(minutes, 1),
        _rational(seconds),
    )


def build_jpeg(
    width: int = 64,
    height: int = 48,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    altitude: Optional[float] = None,
    timestamp: Optional[str] = None,
    make: Optional[str] = None,
    model: Optional[str] = None,
    seed: int = 0
) -> bytes:
    """Noise JPEG (always over 1 KB) with the requested EXIF tags."""
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    img = Image.fromarray(pixels, 'RGB')

    exif = Image.Exif()
    if make:
        exif[ExifTags.Base.Make] = make
    if model:
        exif[ExifTags.Base.Model] = model
    if timestamp:
        exif[ExifTags.Base.DateTime] = timestamp
    if lat is not None and lon is not None:
        gps = {
            ExifTags.GPS.GPSLatitudeRef: 'N' if lat >= 0 else 'S',
            ExifTags.GPS.GPSLatitude: _to_dms(lat),
            ExifTags.GPS.GPSLongitudeRef: 'E' if lon >= 0 else 'W',
            ExifTags.GPS.GPSLongitude: _to_dms(lon),
        }
        if altitude is not None:
            gps[ExifTags.GPS.GPSAltitude] = _rational(abs(altitude), 100)
        exif[ExifTags.IFD.GPSInfo] = gps

    buffer = io.BytesIO()
    img.save(buffer, format='JPEG', quality=95, exif=exif)
    return buffer.getvalue()


def build_ingested(
    name: str,
    content: bytes,
    mime_type: str = 'image/jpeg',
    size: Optional[int] = None
) -> IngestedAsset:
    """IngestedAsset; ``size`` overrides the declared file size."""
    asset = ImageAsset(
        file_name=name,
        file_size_bytes=len(content) if size is None else size,
        mime_type=mime_type,
        last_modified=datetime(2024, 5, 1, 12, 0, 0),
    )
    return IngestedAsset(asset=asset, content=content)


def build_extracted(
    name: str,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    grade: QualityGrade = QualityGrade.MEDIUM,
    captured_at: Optional[datetime] = None,
    accuracy: Optional[float] = None,
    model: Optional[str] = None,
    file_size: int = 2048,
    content_hash: Optional[str] = None
) -> ExtractedImage:
    """Processed image built directly from models."""
    gps = GpsInfo()
    if lat is not None and lon is not None:
        gps = GpsInfo(present=True, lat=lat, lon=lon, accuracy=accuracy, source='exif')

    metadata = ExtractedMetadata(
        camera=CameraInfo(make='Canon' if model else None, model=model, captured_at=captured_at),
        technical=TechnicalInfo(width=4000, height=3000, color_space='RGB', bit_depth=8),
        photography=PhotographyInfo(),
        gps=gps,
        quality=QualityAssessment(grade=grade),
    )
    asset = ImageAsset(
        file_name=name,
        file_size_bytes=file_size,
        mime_type='image/jpeg',
        last_modified=datetime(2024, 5, 1, 12, 0, 0),
    )
    return ExtractedImage(
        asset=asset,
        content_hash=content_hash or hashlib.sha256(name.encode()).hexdigest(),
        metadata=metadata,
        content=b'original-bytes-' + name.encode(),
    )


@pytest.fixture
def make_jpeg():
    """Factory for synthetic JPEG bytes."""
    return build_jpeg


@pytest.fixture
def make_ingested():
    """Factory for IngestedAsset objects."""
    return build_ingested


@pytest.fixture
def make_extracted():
    """Factory for ExtractedImage objects."""
    return build_extracted


@pytest.fixture
def site_assets():
    """Three geotagged JPEGs: two 30 m apart, one about 1.1 km away."""
    return [
        build_ingested('site_a.jpg', build_jpeg(
            lat=37.7749, lon=-122.4194, timestamp='2024:05:01 09:00:00',
            make='Canon', model='EOS R5', seed=1,
        )),
        build_ingested('site_b.jpg', build_jpeg(
            lat=37.77517, lon=-122.4194, timestamp='2024:05:01 09:05:00',
            make='Canon', model='EOS R5', seed=2,
        )),
        build_ingested('site_c.jpg', build_jpeg(
            lat=37.7849, lon=-122.4194, timestamp='2024:05:01 10:00:00',
            make='Canon', model='EOS R5', seed=3,
        )),
    ]
