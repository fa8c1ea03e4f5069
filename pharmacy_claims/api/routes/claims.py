"""
Claim Routes
Submit, reverse and fetch pharmacy claims
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from pharmacy_claims.api.deps import get_claims_service
from pharmacy_claims.schemas.claim import (
    ClaimDetail,
    ClaimRequest,
    ClaimResponse,
    ErrorResponse,
    ReversalRequest,
    ReversalResponse,
)
from pharmacy_claims.services.claims_service import ClaimsService
from pharmacy_claims.utils.errors import ValidationError

router = APIRouter(tags=["Claims"])

NIL_UUID = UUID(int=0)


@router.post(
    "/claim",
    response_model=ClaimResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid JSON or field format"},
        404: {"model": ErrorResponse, "description": "Pharmacy not found"},
        500: {"model": ErrorResponse},
    },
)
async def submit_claim(
    request: ClaimRequest,
    service: ClaimsService = Depends(get_claims_service),
) -> ClaimResponse:
    """Submit a new claim for an existing pharmacy."""
    return await service.submit_claim(request)


@router.post(
    "/reversal",
    response_model=ReversalResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid JSON or claim ID"},
        404: {"model": ErrorResponse, "description": "Claim not found"},
        409: {"model": ErrorResponse, "description": "Claim already reversed"},
        500: {"model": ErrorResponse},
    },
)
async def reverse_claim(
    request: ReversalRequest,
    service: ClaimsService = Depends(get_claims_service),
) -> ReversalResponse:
    """Reverse a previously submitted claim. A claim can be reversed once."""
    if request.claim_id == NIL_UUID:
        raise ValidationError(
            "claim_id must be a non-nil UUID", field="claim_id", title="Invalid claim_id"
        )
    return await service.reverse_claim(request)


@router.get(
    "/claim/{claim_id}",
    response_model=ClaimDetail,
    responses={404: {"model": ErrorResponse, "description": "Claim not found"}},
)
async def get_claim(
    claim_id: UUID,
    service: ClaimsService = Depends(get_claims_service),
) -> ClaimDetail:
    return await service.get_claim(claim_id)
