"""
Hash-chained evidence records for chain of custody.

Each record starts from the SHA-256 of the asset bytes. Every update hashes
the serialized record, appends a provenance entry linking the previous hash
to the new one and re-signs the record. Records are immutable: an update
returns a new record whose provenance extends the old one, so history is
never rewritten.
"""

import hashlib
import json
import logging
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from fieldmap.errors import ChainIntegrityError

logger = logging.getLogger(__name__)


CREATE_ACTION = 'evidence_chain_created'

# Record fields an update may change
UPDATABLE_FIELDS = frozenset({'ai_inference', 'linked_report'})


def _sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def generate_signature(record_hash: str, actor: str, timestamp: str) -> str:
    """SHA-256 of ``"<hash>_<actor>_<timestamp>"``."""
    return _sha256_text(f"{record_hash}_{actor}_{timestamp}")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class InferenceSummary:
    """Labeled findings from an upstream detector; opaque to this package."""
    labels: Tuple[str, ...] = ()
    risk_level: str = 'unknown'
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InferenceSummary':
        return cls(
            labels=tuple(data.get('labels', ())),
            risk_level=data.get('risk_level', 'unknown'),
            confidence=float(data.get('confidence', 0.0)),
        )


@dataclass(frozen=True)
class ProvenanceEntry:
    action: str
    actor: str
    timestamp: str
    hash_before: str
    hash_after: str


@dataclass(frozen=True)
class EvidenceRecord:
    """
    Append-only custody record of one asset.

    ``asset_hash`` is the current record hash: the content hash at creation,
    then the hash of the serialized record after each update.
    """
    image: str
    asset_hash: str
    analyst: str
    ai_inference: InferenceSummary
    signature: str
    timestamp: str
    provenance: Tuple[ProvenanceEntry, ...] = field(default=())
    linked_report: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['ai_inference']['labels'] = list(self.ai_inference.labels)
        data['provenance'] = [asdict(entry) for entry in self.provenance]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvidenceRecord':
        return cls(
            image=data['image'],
            asset_hash=data['asset_hash'],
            analyst=data['analyst'],
            ai_inference=InferenceSummary.from_dict(data.get('ai_inference', {})),
            signature=data['signature'],
            timestamp=data['timestamp'],
            provenance=tuple(ProvenanceEntry(**entry) for entry in data.get('provenance', ())),
            linked_report=data.get('linked_report'),
        )


class EvidenceChainManager:
    """
    Creates, updates and verifies evidence records.

    Args:
        clock: Callable returning ISO-8601 timestamps (UTC now by default)
    """

    def __init__(self, clock: Optional[Callable[[], str]] = None):
        self._clock = clock or _utc_now

    def create(
        self,
        content_hash: str,
        analyst: str,
        image: str = '',
        inference: Optional[InferenceSummary] = None
    ) -> EvidenceRecord:
        """
        Start a record from an asset's SHA-256 content hash.

        The record carries a single provenance entry from ``""`` to the
        content hash, signed by the analyst.
        """
        timestamp = self._clock()
        record = EvidenceRecord(
            image=image,
            asset_hash=content_hash,
            analyst=analyst,
            ai_inference=inference or InferenceSummary(),
            signature=generate_signature(content_hash, analyst, timestamp),
            timestamp=timestamp,
            provenance=(ProvenanceEntry(
                action=CREATE_ACTION,
                actor=analyst,
                timestamp=timestamp,
                hash_before='',
                hash_after=content_hash,
            ),),
        )
        logger.debug(f"Created evidence record for {image or content_hash[:12]}")
        return record

    def update(
        self,
        record: EvidenceRecord,
        action: str,
        actor: str,
        **changes: Any
    ) -> EvidenceRecord:
        """
        Apply changes and append a provenance entry.

        Args:
            record: Record to extend; verified before the update
            action: Action name recorded in provenance
            actor: Acting party; signs the new record
            **changes: New values for ``ai_inference`` and/or ``linked_report``

        Returns:
            New record with the extended provenance

        Raises:
            ChainIntegrityError: If the input record fails verification
            ValueError: If a change targets a field that cannot be updated
        """
        self.verify(record)

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update evidence fields: {', '.join(sorted(unknown))}")

        if isinstance(changes.get('ai_inference'), dict):
            changes['ai_inference'] = InferenceSummary.from_dict(changes['ai_inference'])

        timestamp = self._clock()
        changed = replace(record, **changes)
        new_hash = self.compute_record_hash(changed)

        entry = ProvenanceEntry(
            action=action,
            actor=actor,
            timestamp=timestamp,
            hash_before=record.asset_hash,
            hash_after=new_hash,
        )
        logger.info(f"Evidence update '{action}' by {actor}: {record.asset_hash[:12]} -> {new_hash[:12]}")

        return replace(
            changed,
            asset_hash=new_hash,
            signature=generate_signature(new_hash, actor, timestamp),
            provenance=record.provenance + (entry,),
        )

    @staticmethod
    def compute_record_hash(record: EvidenceRecord) -> str:
        """SHA-256 of the canonical JSON serialization of a record."""
        return _sha256_text(json.dumps(record.to_dict(), sort_keys=True, separators=(',', ':')))

    def verify(self, record: EvidenceRecord) -> bool:
        """
        Check provenance continuity and the signature.

        Returns:
            True when the record is intact

        Raises:
            ChainIntegrityError: On any discontinuity or signature mismatch
        """
        entries: Sequence[ProvenanceEntry] = record.provenance
        if not entries:
            raise ChainIntegrityError("Evidence record has no provenance entries")

        if entries[0].hash_before != '':
            raise ChainIntegrityError("First provenance entry does not start a chain")

        for index in range(len(entries) - 1):
            if entries[index].hash_after != entries[index + 1].hash_before:
                raise ChainIntegrityError(
                    f"Provenance discontinuity between entries {index} and {index + 1}"
                )

        last = entries[-1]
        if last.hash_after != record.asset_hash:
            raise ChainIntegrityError("Record hash does not match the last provenance entry")

        expected = generate_signature(record.asset_hash, last.actor, last.timestamp)
        if record.signature != expected:
            raise ChainIntegrityError("Record signature does not match")

        return True
