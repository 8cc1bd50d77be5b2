"""
Rule-based quality grading for field images.

The grade is a pure function of image dimensions, file size and metadata
completeness, so identical inputs always give identical grades and issues.
"""

from typing import Dict, List

from fieldmap.field_data.models import QualityAssessment, QualityGrade


ISSUE_LOW_RESOLUTION = "low resolution"
ISSUE_HIGH_COMPRESSION = "high compression"
ISSUE_NO_GPS = "no GPS data"
ISSUE_NO_TIMESTAMP = "no capture timestamp"

RECOMMENDATIONS: Dict[str, str] = {
    ISSUE_LOW_RESOLUTION: "Use higher resolution camera settings",
    ISSUE_HIGH_COMPRESSION: "Use lower compression settings for better quality",
    ISSUE_NO_GPS: "Enable GPS/location services on camera",
    ISSUE_NO_TIMESTAMP: "Ensure camera date/time is set correctly",
}


def grade_quality(
    width: int,
    height: int,
    file_size: int,
    has_gps: bool,
    has_timestamp: bool,
    min_megapixels: float = 2.0,
    min_compression_ratio: float = 0.1
) -> QualityAssessment:
    """
    Grade an image and list its quality issues.

    Low resolution and high compression each degrade the grade by one level.
    Missing GPS and timestamp only add issues, but every issue counts toward
    the issue-count grade (0 -> High, 1 -> Medium, 2+ -> Low). The final grade
    is the worse of the two.

    Args:
        width: Image width in pixels
        height: Image height in pixels
        file_size: File size in bytes
        has_gps: Whether a capture location is known
        has_timestamp: Whether a capture timestamp is known
        min_megapixels: Resolution below which "low resolution" is reported
        min_compression_ratio: Bytes per pixel below which
            "high compression" is reported

    Returns:
        QualityAssessment with grade, issues and matching recommendations
    """
    issues: List[str] = []
    degraded = 0

    pixel_count = width * height
    if pixel_count / 1e6 < min_megapixels:
        issues.append(ISSUE_LOW_RESOLUTION)
        degraded += 1

    # Ratio is undefined without dimensions
    if pixel_count > 0 and file_size / pixel_count < min_compression_ratio:
        issues.append(ISSUE_HIGH_COMPRESSION)
        degraded += 1

    if not has_gps:
        issues.append(ISSUE_NO_GPS)

    if not has_timestamp:
        issues.append(ISSUE_NO_TIMESTAMP)

    count_rank = min(len(issues), 2)
    grade = QualityGrade.from_rank(max(degraded, count_rank))

    return QualityAssessment(
        grade=grade,
        issues=tuple(issues),
        recommendations=tuple(RECOMMENDATIONS[issue] for issue in issues),
    )
