"""
Fixed-radius greedy geo-clustering.

Single pass over the points in input order: each unassigned point seeds a
cluster and absorbs every other unassigned point within the radius. The
result depends on input order and is not a globally optimal clustering.
O(n^2) in the number of points.
"""

import logging
from typing import Any, Dict, Optional, Tuple

import numpy as np

from fieldmap.clustering.base import ClusteringMethod

logger = logging.getLogger(__name__)


EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(
    lat1: float,
    lon1: float,
    lats: np.ndarray,
    lons: np.ndarray
) -> np.ndarray:
    """
    Great-circle distance in meters from one point to many.

    Args:
        lat1, lon1: Origin in degrees
        lats, lons: Destinations in degrees

    Returns:
        Distances in meters, same shape as lats
    """
    phi1 = np.radians(lat1)
    phi2 = np.radians(np.asarray(lats, dtype=float))
    dphi = phi2 - phi1
    dlambda = np.radians(np.asarray(lons, dtype=float) - lon1)

    a = np.sin(dphi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


class GreedyRadiusClusterer(ClusteringMethod):
    """
    Greedy clustering with a fixed radius in meters.

    Config params:
        radius_m: Maximum distance from the seed point (default 100)
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.radius_m = float(self.params.get('radius_m', 100.0))
        if self.radius_m < 0:
            raise ValueError(f"radius_m must be non-negative, got {self.radius_m}")

    def cluster(
        self,
        features: np.ndarray,
        preferred: Optional[np.ndarray] = None
    ) -> Tuple[np.ndarray, Dict[str, Any]]:
        """
        Assign every point to exactly one cluster.

        The representative of each cluster is its seed, replaced by the first
        preferred member when the seed itself is not preferred.

        Args:
            features: Coordinates [n_samples, 2] as (lat, lon) degrees
            preferred: Optional boolean mask of preferred representatives

        Returns:
            labels: Cluster label per point, numbered in seed order from 0
            stats: algorithm, radius_m, n_clusters, cluster_sizes,
                representatives (label -> point index)
        """
        coords = np.asarray(features, dtype=float).reshape(-1, 2)
        n = len(coords)
        preferred = (
            np.zeros(n, dtype=bool) if preferred is None
            else np.asarray(preferred, dtype=bool)
        )

        labels = np.full(n, -1, dtype=int)
        representatives: Dict[int, int] = {}
        next_label = 0

        for seed in range(n):
            if labels[seed] >= 0:
                continue

            labels[seed] = next_label
            unassigned = np.flatnonzero(labels < 0)
            if unassigned.size:
                distances = haversine_distance(
                    coords[seed, 0], coords[seed, 1],
                    coords[unassigned, 0], coords[unassigned, 1],
                )
                labels[unassigned[distances <= self.radius_m]] = next_label

            # Members in input order; the seed is always the first
            members = np.flatnonzero(labels == next_label)
            representative = seed
            if not preferred[seed]:
                preferred_members = members[preferred[members]]
                if preferred_members.size:
                    representative = int(preferred_members[0])
            representatives[next_label] = representative

            next_label += 1

        cluster_sizes = {
            int(label): int(count)
            for label, count in zip(*np.unique(labels, return_counts=True))
        } if n else {}

        stats = {
            'algorithm': 'greedy_radius',
            'radius_m': self.radius_m,
            'n_clusters': next_label,
            'cluster_sizes': cluster_sizes,
            'representatives': representatives,
        }

        logger.debug(f"Greedy clustering: {n} points -> {next_label} clusters")
        return labels, stats
