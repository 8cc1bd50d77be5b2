"""
Export capability: KML document, auxiliary exports and KMZ packaging.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from pydantic import Field, InstanceOf

from fieldmap.agent.core.cancellation import CancellationToken
from fieldmap.agent.tools.base import AgentResult, Capability, CapabilityParams
from fieldmap.config import deep_merge
from fieldmap.evidence.chain import EvidenceRecord
from fieldmap.export.bundle import build_export_bundle
from fieldmap.field_data.models import Cluster, ContextOverlay, ExtractedImage, Placemark

logger = logging.getLogger(__name__)


class ExportParams(CapabilityParams):
    placemarks: List[InstanceOf[Placemark]] = Field(default_factory=list)
    clusters: Optional[List[InstanceOf[Cluster]]] = None
    extracted: List[InstanceOf[ExtractedImage]] = Field(default_factory=list)
    overlays: List[InstanceOf[ContextOverlay]] = Field(default_factory=list)
    evidence_records: List[InstanceOf[EvidenceRecord]] = Field(default_factory=list)
    output_path: Optional[Path] = Field(
        default=None, description="Target KMZ path; omit to skip packaging",
    )
    project_name: Optional[str] = None
    analyst: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    batch_summary: Dict[str, Any] = Field(default_factory=dict)


class ExportAgent(Capability):
    """
    Serialize placemarks and clusters and package the KMZ archive.

    A packaging failure fails the capability; no partial archive is kept.

    Output data:
        bundle: ExportBundle
        archive_path: Path of the KMZ archive, or None
        statistics: Export statistics as a dict
    """

    name = 'ExportAgent'
    purpose = 'Export placemarks as KML/KMZ with CSV, GeoJSON and web map config'
    params_model = ExportParams
    forwards = ('errors', 'warnings', 'batch_summary')

    def handle(self, params: ExportParams, token: CancellationToken) -> AgentResult:
        overrides = {
            key: value
            for key, value in (('project_name', params.project_name), ('analyst', params.analyst))
            if value is not None
        }
        config = deep_merge(self.config, {'export': overrides}) if overrides else self.config

        token.raise_if_cancelled()
        bundle = build_export_bundle(
            params.placemarks,
            clusters=params.clusters,
            output_path=params.output_path,
            extracted=params.extracted,
            overlays=params.overlays,
            evidence_records=params.evidence_records,
            processing={
                'summary': params.batch_summary,
                'errors': params.errors,
                'warnings': params.warnings,
            },
            config=config,
        )

        stats = bundle.statistics
        summary = f"Exported {stats.placemark_count} placemarks in {stats.cluster_count} clusters"
        if bundle.archive_path:
            summary += f" to {bundle.archive_path}"

        return AgentResult(
            success=True,
            summary=summary,
            data={
                'bundle': bundle,
                'archive_path': bundle.archive_path,
                'statistics': stats.to_dict(),
            },
        )
