"""
Geo-clustering strategies and their lookup by algorithm name.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import numpy as np


class ClusteringMethod(ABC):
    """
    A way of grouping placemark positions.

    Built from the ``{'algorithm': ..., 'params': {...}}`` block that
    ``cluster_placemarks`` passes in; subclasses read their own params.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.algorithm = config.get('algorithm', 'greedy_radius')
        self.params = config.get('params', {})

    @abstractmethod
    def cluster(
        self,
        features: np.ndarray,
        preferred: Optional[np.ndarray] = None
    ) -> Tuple[np.ndarray, Dict[str, Any]]:
        """
        Assign a cluster label to every position.

        Args:
            features: (lat, lon) degrees, shape [n, 2]
            preferred: Boolean mask of positions to favor as representatives

        Returns:
            (labels, stats): integer labels of shape [n] numbered from 0 in
            order of first appearance, and a statistics dict
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(params={self.params})"


def load_clustering_method(config: Dict[str, Any]) -> ClusteringMethod:
    """
    Instantiate the clustering method named by ``config['algorithm']``.

    Raises:
        ValueError: Unknown algorithm name
    """
    from fieldmap.clustering.greedy_radius import GreedyRadiusClusterer

    methods = {
        'greedy_radius': GreedyRadiusClusterer,
    }

    name = str(config.get('algorithm', 'greedy_radius')).lower()
    if name not in methods:
        raise ValueError(
            f"Unknown clustering algorithm: {name}. Available: {', '.join(methods)}"
        )
    return methods[name](config)
