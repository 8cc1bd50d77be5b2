"""
Data models for field image processing.

Every model is a frozen dataclass: assets are immutable once ingested,
metadata is derived once per asset, and placemarks/clusters are rebuilt
wholesale on each clustering run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


class QualityGrade(Enum):
    """Coarse quality classification of a field image."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        """0 for High, 2 for Low."""
        return _GRADE_ORDER.index(self)

    @classmethod
    def from_rank(cls, rank: int) -> 'QualityGrade':
        return _GRADE_ORDER[max(0, min(rank, len(_GRADE_ORDER) - 1))]


_GRADE_ORDER = [QualityGrade.HIGH, QualityGrade.MEDIUM, QualityGrade.LOW]


@dataclass(frozen=True)
class ImageAsset:
    """A field image as submitted for processing."""
    file_name: str
    file_size_bytes: int
    mime_type: str
    last_modified: datetime


@dataclass(frozen=True)
class IngestedAsset:
    """An ImageAsset together with its raw byte content."""
    asset: ImageAsset
    content: bytes = field(repr=False)
    source_path: Optional[Path] = None


@dataclass(frozen=True)
class CameraInfo:
    make: Optional[str] = None
    model: Optional[str] = None
    software: Optional[str] = None
    captured_at: Optional[datetime] = None

    @property
    def label(self) -> str:
        """Camera as "make model", empty when unknown."""
        return ' '.join(part for part in (self.make, self.model) if part)


@dataclass(frozen=True)
class TechnicalInfo:
    width: int = 0
    height: int = 0
    color_space: Optional[str] = None
    bit_depth: Optional[int] = None

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def megapixels(self) -> float:
        return self.pixel_count / 1e6


@dataclass(frozen=True)
class PhotographyInfo:
    aperture: Optional[float] = None
    shutter: Optional[str] = None
    iso: Optional[int] = None
    focal_length: Optional[float] = None


@dataclass(frozen=True)
class GpsInfo:
    """
    Capture location.

    ``source`` is ``"exif"`` for positions read from the GPS IFD and
    ``"filename"`` for positions recovered from the file name.
    """
    present: bool = False
    lat: Optional[float] = None
    lon: Optional[float] = None
    altitude: Optional[float] = None
    accuracy: Optional[float] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class QualityAssessment:
    grade: QualityGrade
    issues: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExtractedMetadata:
    """Capture metadata and quality assessment derived from one asset."""
    camera: CameraInfo
    technical: TechnicalInfo
    photography: PhotographyInfo
    gps: GpsInfo
    quality: QualityAssessment

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        captured_at = self.camera.captured_at
        return {
            'camera': {
                'make': self.camera.make,
                'model': self.camera.model,
                'software': self.camera.software,
                'captured_at': captured_at.isoformat() if captured_at else None,
            },
            'technical': {
                'width': self.technical.width,
                'height': self.technical.height,
                'color_space': self.technical.color_space,
                'bit_depth': self.technical.bit_depth,
            },
            'photography': {
                'aperture': self.photography.aperture,
                'shutter': self.photography.shutter,
                'iso': self.photography.iso,
                'focal_length': self.photography.focal_length,
            },
            'gps': {
                'present': self.gps.present,
                'lat': self.gps.lat,
                'lon': self.gps.lon,
                'altitude': self.gps.altitude,
                'accuracy': self.gps.accuracy,
                'source': self.gps.source,
            },
            'quality': {
                'grade': self.quality.grade.value,
                'issues': list(self.quality.issues),
                'recommendations': list(self.quality.recommendations),
            },
        }


@dataclass(frozen=True)
class ExtractedImage:
    """One successfully processed asset."""
    asset: ImageAsset
    content_hash: str
    metadata: ExtractedMetadata
    is_duplicate: bool = False
    content: bytes = field(default=b'', repr=False)
    thumbnail: Optional[bytes] = field(default=None, repr=False)

    @property
    def file_name(self) -> str:
        return self.asset.file_name


@dataclass(frozen=True)
class Placemark:
    """A geolocated point representing one extracted image."""
    id: str
    name: str
    lat: float
    lon: float
    alt: float
    metadata_ref: ExtractedImage = field(repr=False)
    style_key: str = 'mediumQuality'

    @property
    def quality(self) -> QualityGrade:
        return self.metadata_ref.metadata.quality.grade

    @property
    def captured_at(self) -> Optional[datetime]:
        return self.metadata_ref.metadata.camera.captured_at


@dataclass(frozen=True)
class Cluster:
    """
    Placemarks within ``radius_m`` of a seed placemark.

    ``radius_m`` is the configured clustering radius, not the spatial extent
    of the members.
    """
    id: str
    center_lat: float
    center_lon: float
    radius_m: float
    members: Tuple[Placemark, ...]
    representative: Placemark

    @property
    def size(self) -> int:
        return len(self.members)


@dataclass(frozen=True)
class ContextOverlay:
    """
    A named point, line or polygon supplied by an external context provider.

    Coordinates are (lat, lon) pairs: one pair is a point, two a line and
    three or more a polygon ring.

    Raises:
        ValueError: No coordinates, or an entry that is not a (lat, lon) pair
    """
    name: str
    layer_type: str
    coordinates: Tuple[Tuple[float, float], ...]
    description: str = ''

    def __post_init__(self):
        if not self.coordinates:
            raise ValueError(f"Context overlay {self.name!r} has no coordinates")
        pairs = []
        for pair in self.coordinates:
            if not isinstance(pair, (tuple, list)) or len(pair) != 2:
                raise ValueError(
                    f"Context overlay {self.name!r} has a coordinate that is not a (lat, lon) pair: {pair!r}"
                )
            pairs.append((float(pair[0]), float(pair[1])))
        object.__setattr__(self, 'coordinates', tuple(pairs))

    @property
    def geometry(self) -> str:
        """'point', 'line' or 'polygon'."""
        count = len(self.coordinates)
        if count == 1:
            return 'point'
        if count == 2:
            return 'line'
        return 'polygon'

    @property
    def is_polygon(self) -> bool:
        return self.geometry == 'polygon'


@dataclass(frozen=True)
class ExportStatistics:
    placemark_count: int
    cluster_count: int
    coverage_area_km2: float
    date_range: Optional[Tuple[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'placemark_count': self.placemark_count,
            'cluster_count': self.cluster_count,
            'coverage_area_km2': self.coverage_area_km2,
            'date_range': list(self.date_range) if self.date_range else None,
        }


@dataclass(frozen=True)
class ExportBundle:
    """Primary KML document, auxiliary exports and statistics of one export."""
    primary_document: str
    csv: str
    geojson: Dict[str, Any]
    web_map_config: Dict[str, Any]
    statistics: ExportStatistics
    archive_path: Optional[Path] = None

    @property
    def auxiliary_exports(self) -> Dict[str, Any]:
        return {
            'csv': self.csv,
            'geojson': self.geojson,
            'web_map_config': self.web_map_config,
        }


@dataclass
class ExtractionBatch:
    """Outcome of processing a batch of assets."""
    extracted: List[ExtractedImage] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    summary: Dict[str, Any] = field(default_factory=dict)
