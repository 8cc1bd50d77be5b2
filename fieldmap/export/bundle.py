"""
Assembly of the full export bundle: KML document, auxiliary exports,
statistics and, when an output path is given, the KMZ archive.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

from fieldmap.export.archive import KmzArchiveExporter
from fieldmap.export.kml import KmlDocumentBuilder
from fieldmap.export.supporting import compute_statistics, to_csv, to_geojson, web_map_config
from fieldmap.field_data.models import (
    Cluster,
    ContextOverlay,
    ExportBundle,
    ExtractedImage,
    Placemark,
)
from fieldmap.field_data.report import build_metadata_report

logger = logging.getLogger(__name__)


def build_export_bundle(
    placemarks: Sequence[Placemark],
    clusters: Optional[Sequence[Cluster]] = None,
    output_path: Optional[Union[str, Path]] = None,
    extracted: Sequence[ExtractedImage] = (),
    overlays: Sequence[ContextOverlay] = (),
    evidence_records: Sequence[Any] = (),
    processing: Optional[Dict[str, Any]] = None,
    config: Optional[Dict[str, Any]] = None
) -> ExportBundle:
    """
    Build every export format and optionally package them.

    Args:
        placemarks: Image placemarks in processing order
        clusters: Clusters of the placemarks, or None when clustering is off
        output_path: Target KMZ path; None skips packaging
        extracted: All processed images (originals, thumbnails, report)
        overlays: Context overlays from external providers
        evidence_records: Records with a ``to_dict()`` method, stored under
            data/evidence/
        processing: Batch summary, errors and warnings stored as
            data/processing_summary.json
        config: Configuration dict (``export`` section)

    Returns:
        ExportBundle; ``archive_path`` is set when an archive was written

    Raises:
        ExportError: If packaging fails
    """
    archiver = KmzArchiveExporter(config)
    asset_paths = archiver.plan_asset_paths(extracted) if output_path is not None else []
    # placemarks reference the ExtractedImage objects of ``extracted``
    paths_by_image = {id(image): paths for image, paths in zip(extracted, asset_paths)}
    asset_links = {
        placemark.id: paths_by_image[id(placemark.metadata_ref)]
        for placemark in placemarks
        if id(placemark.metadata_ref) in paths_by_image
    }

    builder = KmlDocumentBuilder(config)
    kml = builder.build(
        placemarks,
        clusters=clusters,
        overlays=overlays,
        total_images=len(extracted) if extracted else None,
        asset_links=asset_links,
    )

    csv_text = to_csv(placemarks)
    geojson = to_geojson(placemarks)
    map_config = web_map_config(
        placemarks,
        clustered=clusters is not None,
        has_context=bool(overlays),
        tour=builder.enable_tour,
    )
    statistics = compute_statistics(placemarks, clusters)

    archive_path = None
    if output_path is not None:
        data_files: Dict[str, Any] = {
            'placemarks.csv': csv_text,
            'placemarks.geojson': geojson,
            'web_map_config.json': map_config,
            'statistics.json': statistics.to_dict(),
            'metadata_report.json': build_metadata_report(extracted),
        }
        if processing:
            data_files['processing_summary.json'] = processing
        for index, record in enumerate(evidence_records, start=1):
            data_files[f"evidence/{index:04d}_{record.asset_hash[:12]}.json"] = record.to_dict()

        archive_path = archiver.export(
            output_path, kml, images=extracted, data_files=data_files, asset_paths=asset_paths,
        )

    logger.info(
        f"Export bundle: {statistics.placemark_count} placemarks, "
        f"{statistics.cluster_count} clusters"
    )

    return ExportBundle(
        primary_document=kml,
        csv=csv_text,
        geojson=geojson,
        web_map_config=map_config,
        statistics=statistics,
        archive_path=archive_path,
    )
