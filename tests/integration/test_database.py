"""
Integration Tests for Database Operations
Readiness wait, schema creation and engine construction
"""

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import create_async_engine

from pharmacy_claims.api.config import Settings
from pharmacy_claims.db.connection import (
    create_engine_from_settings,
    init_models,
    wait_for_connection,
)
from pharmacy_claims.utils.errors import StorageError


@pytest.mark.integration
@pytest.mark.asyncio
async def test_wait_for_connection_succeeds(engine):
    await wait_for_connection(engine, retries=1, interval=0)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_wait_for_connection_gives_up(tmp_path):
    missing = tmp_path / "no-such-dir" / "claims.db"
    unreachable = create_async_engine(f"sqlite+aiosqlite:///{missing}")

    with pytest.raises(StorageError):
        await wait_for_connection(unreachable, retries=2, interval=0)

    await unreachable.dispose()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_init_models_is_idempotent(engine):
    await init_models(engine)
    await init_models(engine)

    async with engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    assert {"pharmacies", "claims", "reversals", "audit_events"} <= set(tables)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_reversals_claim_id_is_unique(engine):
    async with engine.connect() as conn:
        constraints = await conn.run_sync(
            lambda sync_conn: inspect(sync_conn).get_unique_constraints("reversals")
        )

    assert any(c["column_names"] == ["claim_id"] for c in constraints)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_engine_from_sqlite_settings(tmp_path):
    settings = Settings(_env_file=None, DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'x.db'}")
    sqlite_engine = create_engine_from_settings(settings)

    async with sqlite_engine.connect() as conn:
        result = await conn.execute(text("SELECT 1 as num"))
        assert result.scalar_one() == 1

    await sqlite_engine.dispose()
