"""
Core Enumerations
Closed value sets shared by models, services and the loader.
"""

from enum import Enum


class PharmacyChain(str, Enum):
    """Pharmacy chains accepted by the pharmacies table CHECK constraint."""

    HEALTH = "health"
    SAINT = "saint"
    DOCTOR = "doctor"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class AuditEventType(str, Enum):
    """Audit event kinds written to the audit sink."""

    CLAIM_SUBMITTED = "claim_submitted"
    CLAIM_REVERSED = "claim_reversed"
    PHARMACY_LOADED = "pharmacy_loaded"
    CLAIM_LOADED = "claim_loaded"
    REVERSAL_LOADED = "reversal_loaded"


class AuditSinkType(str, Enum):
    """Where audit events are persisted."""

    FILE = "file"
    DATABASE = "database"


# Response status strings
CLAIM_SUBMITTED_STATUS = "claim submitted"
CLAIM_REVERSED_STATUS = "claim reversed"
