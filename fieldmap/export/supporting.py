"""
Auxiliary exports: CSV table, GeoJSON features, web map configuration and
export statistics.
"""

import csv
import io
import math
from typing import Any, Dict, List, Optional, Sequence

from fieldmap.field_data.models import Cluster, ExportStatistics, Placemark
from fieldmap.field_data.report import format_file_size


CSV_COLUMNS = [
    'Name', 'Latitude', 'Longitude', 'Altitude', 'Quality',
    'FileSize', 'Camera', 'Date', 'GPS_Source',
]

KM_PER_DEGREE = 111.0


def _placemark_fields(placemark: Placemark) -> Dict[str, Any]:
    image = placemark.metadata_ref
    metadata = image.metadata
    captured_at = metadata.camera.captured_at
    return {
        'name': placemark.name,
        'quality': metadata.quality.grade.value,
        'fileSize': format_file_size(image.asset.file_size_bytes),
        'camera': metadata.camera.label,
        'date': captured_at.isoformat() if captured_at else '',
        'gpsSource': metadata.gps.source or '',
    }


def to_csv(placemarks: Sequence[Placemark]) -> str:
    """One row per placemark, columns in CSV_COLUMNS order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(CSV_COLUMNS)
    for placemark in placemarks:
        fields = _placemark_fields(placemark)
        writer.writerow([
            fields['name'],
            placemark.lat,
            placemark.lon,
            placemark.alt,
            fields['quality'],
            fields['fileSize'],
            fields['camera'],
            fields['date'],
            fields['gpsSource'],
        ])
    return buffer.getvalue()


def to_geojson(placemarks: Sequence[Placemark]) -> Dict[str, Any]:
    """FeatureCollection with one Point feature per placemark."""
    return {
        'type': 'FeatureCollection',
        'features': [
            {
                'type': 'Feature',
                'id': placemark.id,
                'geometry': {
                    'type': 'Point',
                    'coordinates': [placemark.lon, placemark.lat, placemark.alt],
                },
                'properties': _placemark_fields(placemark),
            }
            for placemark in placemarks
        ],
    }


def calculate_bounds(placemarks: Sequence[Placemark]) -> Optional[Dict[str, float]]:
    if not placemarks:
        return None
    lats = [p.lat for p in placemarks]
    lons = [p.lon for p in placemarks]
    return {
        'north': max(lats),
        'south': min(lats),
        'east': max(lons),
        'west': min(lons),
    }


def optimal_zoom(bounds: Dict[str, float]) -> int:
    """Map zoom level for the larger of the lat/lon spans in degrees."""
    max_span = max(bounds['north'] - bounds['south'], bounds['east'] - bounds['west'])
    if max_span > 10:
        return 5
    if max_span > 1:
        return 10
    if max_span > 0.1:
        return 13
    return 16


def web_map_config(
    placemarks: Sequence[Placemark],
    clustered: bool = False,
    has_context: bool = False,
    tour: bool = False
) -> Dict[str, Any]:
    """
    Configuration for an interactive web map of the placemarks.

    The center is the bounding-box midpoint. An empty placemark set centers
    on (0, 0) at world zoom.
    """
    bounds = calculate_bounds(placemarks)
    if bounds is None:
        center, zoom = [0.0, 0.0], 2
    else:
        center = [
            (bounds['north'] + bounds['south']) / 2,
            (bounds['east'] + bounds['west']) / 2,
        ]
        zoom = optimal_zoom(bounds)

    return {
        'center': center,
        'zoom': zoom,
        'bounds': bounds,
        'layers': [
            {'type': 'markers', 'source': 'data/placemarks.geojson', 'count': len(placemarks)},
        ] + ([{'type': 'context', 'source': 'doc.kml'}] if has_context else []),
        'controls': {
            'clustering': clustered,
            'flythrough': tour,
        },
    }


def coverage_area_km2(placemarks: Sequence[Placemark]) -> float:
    """
    Approximate bounding-box area in square kilometers.

    Fewer than three placemarks cannot span an area and give 0.
    """
    if len(placemarks) < 3:
        return 0.0
    bounds = calculate_bounds(placemarks)
    lat_span = bounds['north'] - bounds['south']
    lon_span = bounds['east'] - bounds['west']
    mean_lat = (bounds['north'] + bounds['south']) / 2
    return lat_span * lon_span * KM_PER_DEGREE * KM_PER_DEGREE * math.cos(math.radians(mean_lat))


def compute_statistics(
    placemarks: Sequence[Placemark],
    clusters: Optional[Sequence[Cluster]] = None
) -> ExportStatistics:
    """Placemark and cluster counts, coverage area and capture date range."""
    captured: List = [p.captured_at for p in placemarks if p.captured_at is not None]
    date_range = None
    if captured:
        date_range = (min(captured).isoformat(), max(captured).isoformat())

    return ExportStatistics(
        placemark_count=len(placemarks),
        cluster_count=len(clusters) if clusters else 0,
        coverage_area_km2=coverage_area_km2(placemarks),
        date_range=date_range,
    )
