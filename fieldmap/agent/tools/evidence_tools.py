"""
Evidence chain capability: one hash-chained custody record per processed
image.
"""

from typing import Dict, List, Optional
import logging

from pydantic import BaseModel, Field, InstanceOf

from fieldmap.agent.core.cancellation import CancellationToken
from fieldmap.agent.tools.base import AgentResult, Capability, CapabilityParams
from fieldmap.config import section
from fieldmap.evidence.chain import EvidenceChainManager, InferenceSummary
from fieldmap.field_data.models import ExtractedImage

logger = logging.getLogger(__name__)


class InferenceInput(BaseModel):
    """Labeled findings for one image from an upstream detector."""
    labels: List[str] = Field(default_factory=list)
    risk_level: str = 'unknown'
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    def to_summary(self) -> InferenceSummary:
        return InferenceSummary(
            labels=tuple(self.labels),
            risk_level=self.risk_level,
            confidence=self.confidence,
        )


class EvidenceChainParams(CapabilityParams):
    extracted: List[InstanceOf[ExtractedImage]] = Field(
        description="Processed images to record",
    )
    analyst: Optional[str] = Field(
        default=None, min_length=1, description="Analyst identifier signing the records",
    )
    inferences: Dict[str, InferenceInput] = Field(
        default_factory=dict, description="Findings keyed by image file name",
    )


class EvidenceChainAgent(Capability):
    """
    Create an evidence record for every processed image.

    Output data:
        evidence_records: List[EvidenceRecord] in processing order
    """

    name = 'EvidenceChainAgent'
    purpose = 'Create hash-chained chain-of-custody records for processed images'
    params_model = EvidenceChainParams

    def setup(self):
        self.default_analyst = section(self.config, 'evidence')['analyst']
        self.manager = EvidenceChainManager()

    def handle(self, params: EvidenceChainParams, token: CancellationToken) -> AgentResult:
        analyst = params.analyst or self.default_analyst
        records = []

        for image in params.extracted:
            token.raise_if_cancelled()
            inference = params.inferences.get(image.file_name)
            records.append(self.manager.create(
                image.content_hash,
                analyst,
                image=image.file_name,
                inference=inference.to_summary() if inference else None,
            ))

        return AgentResult(
            success=True,
            summary=f"Created {len(records)} evidence records for analyst {analyst}",
            data={'evidence_records': records},
        )
