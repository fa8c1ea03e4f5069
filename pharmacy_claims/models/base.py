"""
SQLAlchemy Base Model
Source: https://docs.sqlalchemy.org/en/20/orm/declarative_styles.html
"""

from uuid import UUID, uuid4

from sqlalchemy import Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class UUIDModel:
    """
    Mixin for models with UUID primary key.

    Uses the generic ``Uuid`` type: native UUID on PostgreSQL, CHAR(32) on
    SQLite, so the same models back production and the test suite.
    Source: https://docs.sqlalchemy.org/en/20/core/type_basics.html#sqlalchemy.types.Uuid
    """

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
