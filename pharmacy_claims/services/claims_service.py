"""
Claims Service
Submit, reverse and look up pharmacy claims.

Workflow for both operations: validate → check the referenced entity
exists → persist → emit a best-effort audit event.
"""

from typing import Any
from uuid import UUID, uuid4

from pharmacy_claims.core.enums import (
    CLAIM_REVERSED_STATUS,
    CLAIM_SUBMITTED_STATUS,
    AuditEventType,
)
from pharmacy_claims.gateways.persistence_gateway import PersistenceGateway
from pharmacy_claims.models import Claim
from pharmacy_claims.schemas.claim import (
    ClaimDetail,
    ClaimRequest,
    ClaimResponse,
    ReversalRequest,
    ReversalResponse,
)
from pharmacy_claims.services.audit import AuditSink
from pharmacy_claims.services.validator import ClaimValidator
from pharmacy_claims.utils.clock import as_utc, utc_now
from pharmacy_claims.utils.errors import NotFoundError, StorageError
from pharmacy_claims.utils.logging import get_logger

logger = get_logger(__name__)


class ClaimsService:
    """Claim submission and reversal workflow."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        audit_sink: AuditSink,
        validator: ClaimValidator | None = None,
    ):
        self.gateway = gateway
        self.audit_sink = audit_sink
        self.validator = validator or ClaimValidator()

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit_claim(self, request: ClaimRequest) -> ClaimResponse:
        """
        Validate and store a new claim.

        Raises:
            ValidationError: a field has an invalid format
            NotFoundError: no pharmacy has the given NPI
            StorageError: the database failed
        """
        self.validator.validate_claim_request(request)

        pharmacy = await self.gateway.get_pharmacy_by_npi(request.npi)
        if pharmacy is None:
            raise NotFoundError(f"pharmacy with NPI {request.npi} not found", resource="Pharmacy")

        claim = Claim(
            id=uuid4(),
            ndc=request.ndc,
            quantity=request.quantity,
            npi=request.npi,
            price=request.price,
            timestamp=utc_now(),
        )
        await self.gateway.create_claim(claim)

        self._emit(
            AuditEventType.CLAIM_SUBMITTED,
            {
                "claim_id": str(claim.id),
                "ndc": claim.ndc,
                "quantity": str(claim.quantity),
                "npi": claim.npi,
                "price": str(claim.price),
                "chain": pharmacy.chain,
            },
        )
        logger.info(f"Claim {claim.id} submitted by pharmacy {claim.npi}")

        return ClaimResponse(status=CLAIM_SUBMITTED_STATUS, claim_id=claim.id)

    # =========================================================================
    # Reversal
    # =========================================================================

    async def reverse_claim(self, request: ReversalRequest) -> ReversalResponse:
        """
        Reverse a claim exactly once.

        Raises:
            NotFoundError: the claim does not exist
            ConflictError: the claim was already reversed
            StorageError: the database failed
        """
        claim = await self.gateway.get_claim_by_id(request.claim_id)
        if claim is None:
            raise NotFoundError(f"claim with ID {request.claim_id} not found", resource="Claim")

        reversal = await self.gateway.reverse_claim(claim.id, request.reason)

        payload: dict[str, Any] = {
            "claim_id": str(claim.id),
            "original_ndc": claim.ndc,
            "original_quantity": str(claim.quantity),
            "original_npi": claim.npi,
            "original_price": str(claim.price),
            "reason": request.reason,
        }
        try:
            pharmacy = await self.gateway.get_pharmacy_by_npi(claim.npi)
        except StorageError as e:
            logger.warning(f"Could not resolve chain for reversed claim {claim.id}: {e}")
        else:
            if pharmacy is not None:
                payload["chain"] = pharmacy.chain

        self._emit(AuditEventType.CLAIM_REVERSED, payload)
        logger.info(f"Claim {claim.id} reversed (reversal {reversal.id})")

        return ReversalResponse(
            status=CLAIM_REVERSED_STATUS,
            claim_id=claim.id,
            reversal_id=reversal.id,
        )

    # =========================================================================
    # Lookup
    # =========================================================================

    async def get_claim(self, claim_id: UUID) -> ClaimDetail:
        """Return a stored claim and whether it has been reversed."""
        claim = await self.gateway.get_claim_by_id(claim_id)
        if claim is None:
            raise NotFoundError(f"claim with ID {claim_id} not found", resource="Claim")

        return ClaimDetail(
            id=claim.id,
            ndc=claim.ndc,
            quantity=claim.quantity,
            npi=claim.npi,
            price=claim.price,
            timestamp=as_utc(claim.timestamp),
            reversed=await self.gateway.has_reversal(claim.id),
        )

    def _emit(self, event_type: AuditEventType, payload: dict[str, Any]) -> None:
        try:
            self.audit_sink.record(event_type.value, payload)
        except Exception as e:  # noqa: BLE001
            # Audit is best effort; the claim is already committed
            logger.error(f"Audit sink failed for {event_type.value}: {e}")
