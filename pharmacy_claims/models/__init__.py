"""
SQLAlchemy models for the pharmacy claims service.

Importing this package registers every table on ``Base.metadata``.
"""

from pharmacy_claims.models.audit import AuditEvent
from pharmacy_claims.models.base import Base, UUIDModel
from pharmacy_claims.models.claim import Claim, Reversal
from pharmacy_claims.models.pharmacy import Pharmacy

__all__ = [
    "AuditEvent",
    "Base",
    "Claim",
    "Pharmacy",
    "Reversal",
    "UUIDModel",
]
