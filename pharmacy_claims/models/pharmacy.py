"""
Pharmacy Model
Pharmacies are created by the bulk loader and never modified afterwards.
"""

from sqlalchemy import CheckConstraint, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_claims.core.enums import PharmacyChain
from pharmacy_claims.models.base import Base

_CHAIN_VALUES = ", ".join(f"'{value}'" for value in PharmacyChain.values())


class Pharmacy(Base):
    """A dispensing pharmacy identified by its National Provider Identifier."""

    __tablename__ = "pharmacies"

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
        comment="Surrogate key",
    )
    npi: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="National Provider Identifier (10 digits)",
    )
    chain: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Pharmacy chain: health, saint, doctor",
    )

    __table_args__ = (
        UniqueConstraint("npi", name="uq_pharmacies_npi"),
        CheckConstraint(f"chain IN ({_CHAIN_VALUES})", name="ck_pharmacies_chain"),
    )

    def __repr__(self) -> str:
        return f"<Pharmacy(npi='{self.npi}', chain='{self.chain}')>"
