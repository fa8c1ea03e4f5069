"""Create pharmacies, claims, reversals and audit_events tables.

Revision ID: 20260101_001
Revises:
Create Date: 2026-01-01
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20260101_001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "pharmacies",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("npi", sa.String(10), nullable=False),
        sa.Column("chain", sa.String(20), nullable=False),
        sa.UniqueConstraint("npi", name="uq_pharmacies_npi"),
        sa.CheckConstraint(
            "chain IN ('health', 'saint', 'doctor')", name="ck_pharmacies_chain"
        ),
    )

    op.create_table(
        "claims",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("ndc", sa.String(11), nullable=False),
        sa.Column("npi", sa.String(10), sa.ForeignKey("pharmacies.npi"), nullable=False),
        sa.Column("quantity", sa.Numeric(10, 2), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_claims_npi", "claims", ["npi"])
    op.create_index("idx_claims_ndc", "claims", ["ndc"])
    op.create_index("idx_claims_timestamp", "claims", ["timestamp"])

    op.create_table(
        "reversals",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("claim_id", sa.Uuid(as_uuid=True), sa.ForeignKey("claims.id"), nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("claim_id", name="uq_reversals_claim_id"),
    )
    op.create_index("idx_reversals_timestamp", "reversals", ["timestamp"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("payload", sa.JSON().with_variant(postgresql.JSONB(), "postgresql"), nullable=False),
    )
    op.create_index(
        "ix_audit_events_type_timestamp", "audit_events", ["event_type", "timestamp"]
    )


def downgrade() -> None:
    op.drop_index("ix_audit_events_type_timestamp", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_index("idx_reversals_timestamp", table_name="reversals")
    op.drop_table("reversals")
    op.drop_index("idx_claims_timestamp", table_name="claims")
    op.drop_index("idx_claims_ndc", table_name="claims")
    op.drop_index("idx_claims_npi", table_name="claims")
    op.drop_table("claims")
    op.drop_table("pharmacies")
