"""
Reversal JSON Importer

Reads ``reverts/*.json``. Each element is ``{id, claim_id, timestamp}`` with
an optional ``reason``.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from pharmacy_claims.core.enums import AuditEventType
from pharmacy_claims.schemas.claim import ReversalRecord
from pharmacy_claims.services.data_import.json_importer import JSONImporter
from pharmacy_claims.utils.clock import as_utc


class ReversalImporter(JSONImporter):
    """Loads historical reversals. Run after claims so references resolve."""

    entity_name = "reversals"
    subdirectory = "reverts"
    audit_event = AuditEventType.REVERSAL_LOADED

    async def count_existing(self) -> int:
        return await self.gateway.count_reversals()

    async def insert_batch(self, rows: Sequence[Mapping[str, Any]]) -> int:
        return await self.gateway.batch_create_reversals(rows)

    def parse_record(self, item: Any) -> dict[str, Any]:
        record = ReversalRecord.model_validate(item)
        return {
            "id": record.id,
            "claim_id": record.claim_id,
            "reason": record.reason,
            "timestamp": as_utc(record.timestamp),
        }

    def audit_payload(self, row: Mapping[str, Any]) -> dict[str, Any]:
        return {"id": str(row["id"]), "claim_id": str(row["claim_id"])}
