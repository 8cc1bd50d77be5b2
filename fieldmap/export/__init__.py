"""
Export of field placemarks as KML/KMZ, CSV, GeoJSON and web map config.
"""

from fieldmap.export.archive import KmzArchiveExporter
from fieldmap.export.base import BaseExporter
from fieldmap.export.bundle import build_export_bundle
from fieldmap.export.kml import KmlDocumentBuilder
from fieldmap.export.supporting import (
    CSV_COLUMNS,
    compute_statistics,
    coverage_area_km2,
    optimal_zoom,
    to_csv,
    to_geojson,
    web_map_config,
)

__all__ = [
    'BaseExporter',
    'CSV_COLUMNS',
    'KmlDocumentBuilder',
    'KmzArchiveExporter',
    'build_export_bundle',
    'compute_statistics',
    'coverage_area_km2',
    'optimal_zoom',
    'to_csv',
    'to_geojson',
    'web_map_config',
]
