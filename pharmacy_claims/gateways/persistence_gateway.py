"""
Persistence Gateway
All SQL issued by the service goes through this class.

Every public method runs in its own transaction. SQLAlchemy errors are logged
and re-raised as :class:`StorageError` with the original exception chained;
domain errors raised inside a transaction (not found, conflict) roll it back
and propagate unchanged.

Source: https://docs.sqlalchemy.org/en/20/orm/session_transaction.html
"""

from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Table, func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.dml import Insert

from pharmacy_claims.models import Base, Claim, Pharmacy, Reversal
from pharmacy_claims.utils.clock import utc_now
from pharmacy_claims.utils.errors import ConflictError, NotFoundError, StorageError
from pharmacy_claims.utils.logging import get_logger

logger = get_logger(__name__)

Row = Mapping[str, Any]


class PersistenceGateway:
    """Async storage operations for pharmacies, claims and reversals."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        async with self._session_maker() as session:
            try:
                async with session.begin():
                    yield session
            except SQLAlchemyError as e:
                logger.error(f"Database error during {operation}: {e}")
                raise StorageError(f"{operation} failed") from e

    # =========================================================================
    # Lookups
    # =========================================================================

    async def ping(self) -> None:
        async with self._transaction("ping") as session:
            await session.execute(select(1))

    async def get_pharmacy_by_npi(self, npi: str) -> Pharmacy | None:
        async with self._transaction("get pharmacy") as session:
            result = await session.execute(select(Pharmacy).where(Pharmacy.npi == npi))
            return result.scalar_one_or_none()

    async def get_claim_by_id(self, claim_id: UUID) -> Claim | None:
        async with self._transaction("get claim") as session:
            return await session.get(Claim, claim_id)

    async def has_reversal(self, claim_id: UUID) -> bool:
        async with self._transaction("check reversal") as session:
            result = await session.execute(
                select(Reversal.id).where(Reversal.claim_id == claim_id)
            )
            return result.scalar_one_or_none() is not None

    # =========================================================================
    # Claim Workflow
    # =========================================================================

    async def create_claim(self, claim: Claim) -> None:
        async with self._transaction("create claim") as session:
            session.add(claim)

    async def reverse_claim(self, claim_id: UUID, reason: str | None = None) -> Reversal:
        """
        Record the single reversal of a claim.

        The claim row is locked with ``SELECT ... FOR UPDATE`` (a no-op on
        SQLite) so concurrent reversals of the same claim serialize on the
        existence check. The UNIQUE constraint on ``reversals.claim_id``
        catches anything that slips past it.

        Raises:
            NotFoundError: the claim does not exist
            ConflictError: the claim already has a reversal
            StorageError: any other database failure
        """
        async with self._transaction("reverse claim") as session:
            locked = await session.execute(
                select(Claim.id).where(Claim.id == claim_id).with_for_update()
            )
            if locked.scalar_one_or_none() is None:
                raise NotFoundError(f"claim with ID {claim_id} not found", resource="Claim")

            if await self._find_reversal_id(session, claim_id) is not None:
                raise ConflictError("claim is already reversed")

            reversal = Reversal(
                id=uuid4(),
                claim_id=claim_id,
                reason=reason,
                timestamp=utc_now(),
            )
            session.add(reversal)
            try:
                await session.flush()
            except IntegrityError as e:
                logger.warning(f"Concurrent reversal of claim {claim_id} rejected by constraint")
                raise ConflictError("claim is already reversed") from e

        return reversal

    async def _find_reversal_id(self, session: AsyncSession, claim_id: UUID) -> UUID | None:
        result = await session.execute(select(Reversal.id).where(Reversal.claim_id == claim_id))
        return result.scalar_one_or_none()

    # =========================================================================
    # Bulk Inserts
    # =========================================================================

    async def batch_create_pharmacies(self, rows: Sequence[Row]) -> int:
        return await self._batch_insert(Pharmacy, rows)

    async def batch_create_claims(self, rows: Sequence[Row]) -> int:
        return await self._batch_insert(Claim, rows)

    async def batch_create_reversals(self, rows: Sequence[Row]) -> int:
        return await self._batch_insert(Reversal, rows)

    async def _batch_insert(self, model: type[Base], rows: Sequence[Row]) -> int:
        """
        Insert ``rows`` in one transaction, ignoring key conflicts.

        Rows that collide with an existing primary or unique key are skipped
        by the database. Any other failure rolls back the whole batch.

        Returns:
            Number of rows submitted
        """
        if not rows:
            return 0

        table = model.__table__
        async with self._transaction(f"batch insert into {table.name}") as session:
            statement = self._insert_ignoring_conflicts(session, table)
            await session.execute(statement, [dict(row) for row in rows])

        logger.debug(f"Inserted batch of {len(rows)} rows into {table.name}")
        return len(rows)

    @staticmethod
    def _insert_ignoring_conflicts(session: AsyncSession, table: Table) -> Insert:
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(table).on_conflict_do_nothing()
        if dialect == "sqlite":
            return sqlite.insert(table).on_conflict_do_nothing()
        # Other backends get a plain insert; a duplicate fails the batch
        return insert(table)

    # =========================================================================
    # Counts
    # =========================================================================

    async def count_pharmacies(self) -> int:
        return await self._count_rows(Pharmacy)

    async def count_claims(self) -> int:
        return await self._count_rows(Claim)

    async def count_reversals(self) -> int:
        return await self._count_rows(Reversal)

    async def _count_rows(self, model: type[Base]) -> int:
        async with self._transaction(f"count {model.__tablename__}") as session:
            result = await session.execute(select(func.count()).select_from(model))
            return int(result.scalar_one())
