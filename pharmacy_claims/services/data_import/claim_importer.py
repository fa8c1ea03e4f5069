"""
Claim JSON Importer

Reads ``claims/*.json``. Each element is ``{id, ndc, npi, quantity, price,
timestamp}`` and must pass the same field rules as an API submission.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from pharmacy_claims.core.enums import AuditEventType
from pharmacy_claims.schemas.claim import ClaimRecord
from pharmacy_claims.services.data_import.json_importer import JSONImporter
from pharmacy_claims.utils.clock import as_utc


class ClaimImporter(JSONImporter):
    """Loads historical claims."""

    entity_name = "claims"
    subdirectory = "claims"
    audit_event = AuditEventType.CLAIM_LOADED

    async def count_existing(self) -> int:
        return await self.gateway.count_claims()

    async def insert_batch(self, rows: Sequence[Mapping[str, Any]]) -> int:
        return await self.gateway.batch_create_claims(rows)

    def parse_record(self, item: Any) -> dict[str, Any]:
        record = ClaimRecord.model_validate(item)
        self.validator.validate_claim_request(record)
        return {
            "id": record.id,
            "ndc": record.ndc,
            "npi": record.npi,
            "quantity": record.quantity,
            "price": record.price,
            "timestamp": as_utc(record.timestamp),
        }

    def audit_payload(self, row: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "id": str(row["id"]),
            "ndc": row["ndc"],
            "npi": row["npi"],
            "quantity": str(row["quantity"]),
            "price": str(row["price"]),
        }
