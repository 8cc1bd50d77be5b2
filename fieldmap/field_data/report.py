"""
Batch summaries and metadata reports for processed field images.
"""

from collections import Counter
from typing import Any, Dict, List, Sequence

from fieldmap.field_data.models import ExtractedImage, QualityGrade


_SIZE_UNITS = ['Bytes', 'KB', 'MB', 'GB']


def format_file_size(size_bytes: int) -> str:
    """
    Format a byte count for display.

    Example:
        >>> format_file_size(1536)
        '1.5 KB'
    """
    if size_bytes <= 0:
        return '0 Bytes'
    value = float(size_bytes)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[unit]}"


def summarize_batch(
    extracted: Sequence[ExtractedImage],
    total: int,
    failed: int
) -> Dict[str, Any]:
    """
    Summarize one processed batch.

    Args:
        extracted: Successfully processed images
        total: Number of submitted assets
        failed: Number of assets rejected or failed during processing

    Returns:
        Dictionary with counts, quality distribution, camera models and
        capture date range
    """
    quality_distribution = {grade.value: 0 for grade in QualityGrade}
    camera_models: Counter = Counter()
    captured = []
    gps_tagged = 0
    location_enriched = 0

    for image in extracted:
        metadata = image.metadata
        quality_distribution[metadata.quality.grade.value] += 1

        if metadata.camera.label:
            camera_models[metadata.camera.label] += 1

        if metadata.gps.present:
            if metadata.gps.source == 'exif':
                gps_tagged += 1
            else:
                location_enriched += 1

        if metadata.camera.captured_at:
            captured.append(metadata.camera.captured_at)

    date_range = None
    if captured:
        date_range = {
            'earliest': min(captured).isoformat(),
            'latest': max(captured).isoformat(),
        }

    return {
        'total': total,
        'processed': len(extracted),
        'failed': failed,
        'duplicates': sum(1 for image in extracted if image.is_duplicate),
        'gps_tagged': gps_tagged,
        'location_enriched': location_enriched,
        'quality_distribution': quality_distribution,
        'camera_models': dict(camera_models),
        'date_range': date_range,
    }


def build_metadata_report(extracted: Sequence[ExtractedImage]) -> Dict[str, Any]:
    """
    Build the per-batch metadata report written into export archives.

    Issues seen on more than one image are reported as common issues;
    recommendations are the union across all images.
    """
    issue_counts: Counter = Counter()
    recommendations: List[str] = []

    images = []
    for image in extracted:
        quality = image.metadata.quality
        issue_counts.update(quality.issues)
        for recommendation in quality.recommendations:
            if recommendation not in recommendations:
                recommendations.append(recommendation)

        images.append({
            'file_name': image.file_name,
            'file_size': format_file_size(image.asset.file_size_bytes),
            'content_hash': image.content_hash,
            'duplicate': image.is_duplicate,
            'metadata': image.metadata.to_dict(),
        })

    common_issues = [
        f"{issue} ({count} images)"
        for issue, count in issue_counts.most_common()
        if count > 1
    ]

    widths = [i.metadata.technical.width for i in extracted if i.metadata.technical.width]
    heights = [i.metadata.technical.height for i in extracted if i.metadata.technical.height]
    total_bytes = sum(i.asset.file_size_bytes for i in extracted)

    return {
        'images': images,
        'common_issues': common_issues,
        'recommendations': recommendations,
        'technical_summary': {
            'image_count': len(images),
            'total_size': format_file_size(total_bytes),
            'average_width': round(sum(widths) / len(widths)) if widths else 0,
            'average_height': round(sum(heights) / len(heights)) if heights else 0,
            'with_gps': sum(1 for i in extracted if i.metadata.gps.present),
        },
    }
