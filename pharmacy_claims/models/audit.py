"""
Audit Event Model
Append-only record of business events, written by the database audit sink.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_claims.models.base import Base


class AuditEvent(Base):
    """
    One audit event.

    Rows have no foreign keys: the payload is a snapshot taken when the event
    happened, not a reference to live entities.
    """

    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
        comment="Auto-incrementing ID",
    )
    event_type: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Event kind, e.g. claim_submitted",
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="When the event occurred",
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        comment="Event details",
    )

    __table_args__ = (Index("ix_audit_events_type_timestamp", "event_type", "timestamp"),)

    def __repr__(self) -> str:
        return f"<AuditEvent(id={self.id}, event_type='{self.event_type}')>"
