"""
Pre-defined workflow templates for field documentation processing.
"""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union
import logging

from fieldmap.agent.workflows.base import Workflow, WorkflowTask
from fieldmap.field_data.models import ContextOverlay, IngestedAsset

logger = logging.getLogger(__name__)


class WorkflowTemplates:
    """Factory for the common field processing workflows."""

    @staticmethod
    def field_processing(
        assets: Sequence[IngestedAsset] = (),
        output_path: Optional[Union[str, Path]] = None,
        evidence: bool = False,
        analyst: Optional[str] = None,
        radius_m: Optional[float] = None,
        clustering: bool = True,
        overlays: Sequence[ContextOverlay] = (),
        inferences: Optional[Mapping[str, Any]] = None
    ) -> Workflow:
        """
        Full processing of a field image batch.

        Workflow:
        1. Validate, extract metadata and grade quality
        2. Build placemarks and clusters (and evidence records, concurrently)
        3. Export KML/KMZ with the auxiliary formats

        Args:
            assets: Ingested images
            output_path: KMZ target; None builds the exports in memory only
            evidence: Create chain-of-custody records
            analyst: Analyst identifier for the export and evidence records
            radius_m: Clustering radius, or None for the configured default
            clustering: Set False to export individual placemarks
            overlays: Context overlays from external providers
            inferences: Findings per file name for the evidence records

        Returns:
            Workflow instance
        """
        cluster_params: Dict[str, Any] = {'enabled': clustering}
        if radius_m is not None:
            cluster_params['radius_m'] = radius_m

        second_step = [WorkflowTask('GeoClusteringAgent', cluster_params)]
        if evidence:
            evidence_params: Dict[str, Any] = {'inferences': dict(inferences or {})}
            if analyst:
                evidence_params['analyst'] = analyst
            second_step.append(WorkflowTask('EvidenceChainAgent', evidence_params))

        export_params: Dict[str, Any] = {'overlays': list(overlays)}
        if output_path is not None:
            export_params['output_path'] = Path(output_path)
        if analyst:
            export_params['analyst'] = analyst

        return Workflow(
            name='field_processing',
            steps=(
                (WorkflowTask('MetadataExtractionAgent', {'assets': list(assets)}),),
                tuple(second_step),
                (WorkflowTask('ExportAgent', export_params),),
            ),
        )

    @staticmethod
    def metadata_survey(assets: Sequence[IngestedAsset] = ()) -> Workflow:
        """
        Extraction and grading only, without placemarks or exports.

        Args:
            assets: Ingested images

        Returns:
            Workflow instance
        """
        return Workflow(
            name='metadata_survey',
            steps=((WorkflowTask('MetadataExtractionAgent', {'assets': list(assets)}),),),
        )

    @staticmethod
    def list_templates() -> Dict[str, str]:
        """
        Get list of available templates.

        Returns:
            Dictionary mapping template name to description
        """
        return {
            'field_processing': 'Extract, cluster and export a field image batch as KMZ',
            'metadata_survey': 'Extract metadata and grade quality only',
        }

    @staticmethod
    def get_template(name: str, **kwargs) -> Workflow:
        """
        Get workflow template by name.

        Raises:
            ValueError: If template not found
        """
        templates = {
            'field_processing': WorkflowTemplates.field_processing,
            'metadata_survey': WorkflowTemplates.metadata_survey,
        }

        template_fn = templates.get(name)
        if not template_fn:
            raise ValueError(
                f"Unknown template: {name}. "
                f"Available: {', '.join(templates.keys())}"
            )

        return template_fn(**kwargs)


def field_processing_workflow(assets: Sequence[IngestedAsset] = (), **kwargs) -> Workflow:
    """Shortcut for ``WorkflowTemplates.field_processing``."""
    return WorkflowTemplates.field_processing(assets, **kwargs)
