"""
Field image ingestion, validation, metadata extraction and quality grading.
"""

from fieldmap.field_data.extraction import MetadataExtractor, compute_content_hash
from fieldmap.field_data.ingest import discover_images, load_asset, load_assets
from fieldmap.field_data.models import (
    CameraInfo,
    Cluster,
    ContextOverlay,
    ExportBundle,
    ExportStatistics,
    ExtractedImage,
    ExtractedMetadata,
    ExtractionBatch,
    GpsInfo,
    ImageAsset,
    IngestedAsset,
    PhotographyInfo,
    Placemark,
    QualityAssessment,
    QualityGrade,
    TechnicalInfo,
)
from fieldmap.field_data.quality import grade_quality
from fieldmap.field_data.validation import AssetValidator

__all__ = [
    'AssetValidator',
    'CameraInfo',
    'Cluster',
    'ContextOverlay',
    'ExportBundle',
    'ExportStatistics',
    'ExtractedImage',
    'ExtractedMetadata',
    'ExtractionBatch',
    'GpsInfo',
    'ImageAsset',
    'IngestedAsset',
    'MetadataExtractor',
    'PhotographyInfo',
    'Placemark',
    'QualityAssessment',
    'QualityGrade',
    'TechnicalInfo',
    'compute_content_hash',
    'discover_images',
    'grade_quality',
    'load_asset',
    'load_assets',
]
