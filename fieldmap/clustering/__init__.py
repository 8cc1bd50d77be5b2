"""
Geo-clustering of field placemarks.
"""

from fieldmap.clustering.base import ClusteringMethod, load_clustering_method
from fieldmap.clustering.greedy_radius import GreedyRadiusClusterer, haversine_distance
from fieldmap.clustering.placemarks import build_placemarks, cluster_placemarks

__all__ = [
    'ClusteringMethod',
    'GreedyRadiusClusterer',
    'build_placemarks',
    'cluster_placemarks',
    'haversine_distance',
    'load_clustering_method',
]
