"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

from collections.abc import AsyncIterator
from decimal import Decimal
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pharmacy_claims.db.connection import create_session_maker
from pharmacy_claims.gateways.persistence_gateway import PersistenceGateway
from pharmacy_claims.models import Base
from pharmacy_claims.services.claims_service import ClaimsService
from pharmacy_claims.services.validator import ClaimValidator

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

KNOWN_NPI = "1234567890"
KNOWN_CHAIN = "health"


class RecordingAuditSink:
    """Audit sink that keeps events in memory."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def record(self, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append((event_type, payload))

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [payload for kind, payload in self.events if kind == event_type]


class FailingAuditSink:
    """Audit sink whose every write blows up."""

    def record(self, event_type: str, payload: dict[str, Any]) -> None:
        raise RuntimeError("audit backend unavailable")


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """In-memory SQLite engine with the full schema."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_maker(engine)


@pytest.fixture
def gateway(session_maker: async_sessionmaker[AsyncSession]) -> PersistenceGateway:
    return PersistenceGateway(session_maker)


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def failing_audit_sink() -> FailingAuditSink:
    return FailingAuditSink()


@pytest.fixture
def validator() -> ClaimValidator:
    return ClaimValidator()


@pytest_asyncio.fixture
async def seeded_gateway(gateway: PersistenceGateway) -> PersistenceGateway:
    """Gateway over a database holding one known pharmacy."""
    await gateway.batch_create_pharmacies([{"npi": KNOWN_NPI, "chain": KNOWN_CHAIN}])
    return gateway


@pytest.fixture
def claims_service(
    seeded_gateway: PersistenceGateway,
    audit_sink: RecordingAuditSink,
    validator: ClaimValidator,
) -> ClaimsService:
    return ClaimsService(seeded_gateway, audit_sink, validator)


@pytest.fixture
def valid_claim_data() -> dict[str, Any]:
    """Claim body accepted by the known pharmacy."""
    return {
        "ndc": "12345678901",
        "quantity": Decimal("30"),
        "npi": KNOWN_NPI,
        "price": Decimal("25.99"),
    }


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "api: mark test as an API test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
