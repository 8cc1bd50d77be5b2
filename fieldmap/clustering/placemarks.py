"""
Placemark construction and placemark-level clustering.
"""

import logging
from typing import List, Sequence

import numpy as np

from fieldmap.clustering.base import load_clustering_method
from fieldmap.field_data.models import Cluster, ExtractedImage, Placemark, QualityGrade

logger = logging.getLogger(__name__)


COLOR_SCHEMES = ('quality', 'uniform')


def style_for(image: ExtractedImage, color_scheme: str = 'quality') -> str:
    """KML style id for an image under a color scheme."""
    if color_scheme == 'quality':
        return f"{image.metadata.quality.grade.value.lower()}Quality"
    return 'defaultStyle'


def build_placemarks(
    extracted: Sequence[ExtractedImage],
    color_scheme: str = 'quality'
) -> List[Placemark]:
    """
    Build one placemark per geotagged image, in input order.

    Images without a position are skipped.
    """
    if color_scheme not in COLOR_SCHEMES:
        raise ValueError(
            f"Unknown color scheme: {color_scheme}. Available: {', '.join(COLOR_SCHEMES)}"
        )

    placemarks = []
    for image in extracted:
        gps = image.metadata.gps
        if not gps.present:
            continue
        placemarks.append(Placemark(
            id=f"placemark-{len(placemarks) + 1:04d}",
            name=image.file_name,
            lat=gps.lat,
            lon=gps.lon,
            alt=gps.altitude or 0.0,
            metadata_ref=image,
            style_key=style_for(image, color_scheme),
        ))
    return placemarks


def cluster_placemarks(placemarks: Sequence[Placemark], radius_m: float) -> List[Cluster]:
    """
    Group placemarks with the greedy fixed-radius algorithm.

    Clusters partition the input: every placemark is a member of exactly one
    cluster. Cluster ids follow seed order (``cluster-0001``, ...), so reruns
    on the same input give the same ids.

    Args:
        placemarks: Placemarks in processing order
        radius_m: Clustering radius in meters

    Returns:
        Clusters in seed order
    """
    if not placemarks:
        return []

    method = load_clustering_method({
        'algorithm': 'greedy_radius',
        'params': {'radius_m': radius_m},
    })

    features = np.array([[p.lat, p.lon] for p in placemarks], dtype=float)
    preferred = np.array([p.quality is QualityGrade.HIGH for p in placemarks], dtype=bool)
    labels, stats = method.cluster(features, preferred)

    clusters = []
    for label in range(stats['n_clusters']):
        members = tuple(placemarks[i] for i in np.flatnonzero(labels == label))
        seed = members[0]
        clusters.append(Cluster(
            id=f"cluster-{label + 1:04d}",
            center_lat=seed.lat,
            center_lon=seed.lon,
            radius_m=method.radius_m,
            members=members,
            representative=placemarks[stats['representatives'][label]],
        ))

    logger.info(f"Clustered {len(placemarks)} placemarks into {len(clusters)} clusters")
    return clusters
