"""
Claim and Reversal Models

A reversal never deletes its claim. It adds one linked row, and the UNIQUE
constraint on ``reversals.claim_id`` keeps it to at most one per claim.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_claims.models.base import Base, UUIDModel


class Claim(Base, UUIDModel):
    """A prescription claim submitted by a pharmacy."""

    __tablename__ = "claims"

    ndc: Mapped[str] = mapped_column(
        String(11),
        nullable=False,
        comment="National Drug Code (9-11 digits)",
    )
    npi: Mapped[str] = mapped_column(
        String(10),
        ForeignKey("pharmacies.npi"),
        nullable=False,
        comment="Submitting pharmacy NPI",
    )
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Dispensed quantity",
    )
    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Claimed price",
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="When the claim was recorded (UTC)",
    )

    __table_args__ = (
        Index("idx_claims_npi", "npi"),
        Index("idx_claims_ndc", "ndc"),
        Index("idx_claims_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<Claim(id={self.id}, ndc='{self.ndc}', npi='{self.npi}')>"


class Reversal(Base, UUIDModel):
    """Reversal of exactly one claim."""

    __tablename__ = "reversals"

    claim_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("claims.id"),
        nullable=False,
        comment="Reversed claim",
    )
    reason: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Free-text reversal reason",
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="When the reversal was recorded (UTC)",
    )

    __table_args__ = (
        UniqueConstraint("claim_id", name="uq_reversals_claim_id"),
        Index("idx_reversals_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<Reversal(id={self.id}, claim_id={self.claim_id})>"
