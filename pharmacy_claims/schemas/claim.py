"""
Pydantic Schemas for Claims and Reversals

Request models only check JSON shape and types. Business rules (digit counts,
positive quantity, non-negative price) live in the claim validator so that the
API and the bulk loader reject the same records with the same messages.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

# Decimals travel as JSON numbers rather than pydantic's default strings
JSONDecimal = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# =============================================================================
# Claim Schemas
# =============================================================================


class ClaimRequest(BaseModel):
    """Body of ``POST /claim``."""

    ndc: str = Field(..., description="National Drug Code, 9-11 digits")
    quantity: Decimal = Field(..., description="Dispensed quantity, must be positive")
    npi: str = Field(..., description="Pharmacy NPI, exactly 10 digits")
    price: Decimal = Field(..., description="Claimed price, must not be negative")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"ndc": "12345678901", "quantity": 30, "npi": "1234567890", "price": 25.99}
        }
    )


class ClaimResponse(BaseModel):
    """Result of a successful submission."""

    status: str
    claim_id: UUID


class ClaimDetail(BaseModel):
    """A stored claim as returned by ``GET /claim/{claim_id}``."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ndc: str
    quantity: JSONDecimal
    npi: str
    price: JSONDecimal
    timestamp: datetime
    reversed: bool = False


# =============================================================================
# Reversal Schemas
# =============================================================================


class ReversalRequest(BaseModel):
    """Body of ``POST /reversal``."""

    claim_id: UUID = Field(..., description="Claim to reverse")
    reason: Optional[str] = Field(None, description="Free-text reversal reason")


class ReversalResponse(BaseModel):
    """Result of a successful reversal."""

    status: str
    claim_id: UUID
    reversal_id: UUID


# =============================================================================
# Error Schema
# =============================================================================


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    error: str
    message: Optional[str] = None


# =============================================================================
# Bulk Load Records
# =============================================================================


class ClaimRecord(BaseModel):
    """One element of a claims JSON seed file."""

    id: UUID
    ndc: str
    npi: str
    quantity: Decimal
    price: Decimal
    timestamp: datetime


class ReversalRecord(BaseModel):
    """One element of a reversals JSON seed file."""

    id: UUID
    claim_id: UUID
    timestamp: datetime
    reason: Optional[str] = None
