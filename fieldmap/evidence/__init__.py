"""
Chain-of-custody evidence records.
"""

from fieldmap.evidence.chain import (
    EvidenceChainManager,
    EvidenceRecord,
    InferenceSummary,
    ProvenanceEntry,
    generate_signature,
)

__all__ = [
    'EvidenceChainManager',
    'EvidenceRecord',
    'InferenceSummary',
    'ProvenanceEntry',
    'generate_signature',
]
