"""
Geo-clustering capability: placemarks for geotagged images grouped with the
fixed-radius greedy algorithm.
"""

from typing import List, Literal, Optional
import logging

from pydantic import Field, InstanceOf

from fieldmap.agent.core.cancellation import CancellationToken
from fieldmap.agent.tools.base import AgentResult, Capability, CapabilityParams
from fieldmap.clustering.placemarks import build_placemarks, cluster_placemarks
from fieldmap.config import section
from fieldmap.field_data.models import ExtractedImage

logger = logging.getLogger(__name__)


class GeoClusteringParams(CapabilityParams):
    extracted: List[InstanceOf[ExtractedImage]] = Field(
        description="Processed images; those without GPS are skipped",
    )
    radius_m: Optional[float] = Field(
        default=None, ge=0, description="Clustering radius in meters",
    )
    enabled: Optional[bool] = Field(
        default=None, description="Set False to build placemarks without clustering",
    )
    color_scheme: Optional[Literal['quality', 'uniform']] = Field(
        default=None, description="Placemark styling",
    )


class GeoClusteringAgent(Capability):
    """
    Build placemarks and clusters.

    Unset parameters fall back to the ``clustering`` and ``export`` config
    sections.

    Output data:
        placemarks: List[Placemark] in processing order
        clusters: List[Cluster], or None when clustering is disabled
    """

    name = 'GeoClusteringAgent'
    purpose = 'Group geotagged images into fixed-radius spatial clusters'
    params_model = GeoClusteringParams
    forwards = ('extracted', 'errors', 'warnings', 'batch_summary')

    def setup(self):
        clustering = section(self.config, 'clustering')
        self.default_radius = float(clustering['radius_m'])
        self.default_enabled = bool(clustering['enabled'])
        self.default_scheme = section(self.config, 'export')['color_scheme']

    def handle(self, params: GeoClusteringParams, token: CancellationToken) -> AgentResult:
        radius = self.default_radius if params.radius_m is None else params.radius_m
        enabled = self.default_enabled if params.enabled is None else params.enabled

        placemarks = build_placemarks(
            params.extracted, params.color_scheme or self.default_scheme,
        )
        token.raise_if_cancelled()

        clusters = cluster_placemarks(placemarks, radius) if enabled else None

        if clusters is None:
            summary = f"Built {len(placemarks)} placemarks (clustering disabled)"
        else:
            summary = f"Grouped {len(placemarks)} placemarks into {len(clusters)} clusters ({radius:g}m radius)"

        return AgentResult(
            success=True,
            summary=summary,
            data={'placemarks': placemarks, 'clusters': clusters},
        )
