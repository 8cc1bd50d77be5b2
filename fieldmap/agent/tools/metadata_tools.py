"""
Metadata extraction capability: validation, EXIF extraction and quality
grading of a batch of field images.
"""

from typing import List
import logging

from pydantic import Field, InstanceOf

from fieldmap.agent.core.cancellation import CancellationToken
from fieldmap.agent.tools.base import AgentResult, Capability, CapabilityParams
from fieldmap.field_data.extraction import MetadataExtractor
from fieldmap.field_data.models import IngestedAsset

logger = logging.getLogger(__name__)


class MetadataExtractionParams(CapabilityParams):
    assets: List[InstanceOf[IngestedAsset]] = Field(
        description="Ingested images with their raw bytes",
    )


class MetadataExtractionAgent(Capability):
    """
    Validate, hash, extract and grade every submitted asset.

    Output data:
        extracted: List[ExtractedImage]
        errors: Per-asset validation/processing errors
        warnings: Missing GPS and duplicate content notices
        batch_summary: Counts, quality distribution and date range
    """

    name = 'MetadataExtractionAgent'
    purpose = 'Validate field images, extract capture metadata and grade quality'
    params_model = MetadataExtractionParams

    def setup(self):
        self.extractor = MetadataExtractor(self.config)

    def handle(self, params: MetadataExtractionParams, token: CancellationToken) -> AgentResult:
        batch = self.extractor.process_batch(params.assets, cancelled=lambda: token.cancelled)
        token.raise_if_cancelled()

        summary = (
            f"Processed {len(batch.extracted)} of {len(params.assets)} images "
            f"({len(batch.errors)} errors, {len(batch.warnings)} warnings)"
        )
        return AgentResult(
            success=True,
            summary=summary,
            data={
                'extracted': batch.extracted,
                'errors': batch.errors,
                'warnings': batch.warnings,
                'batch_summary': batch.summary,
            },
        )
