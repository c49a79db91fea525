"""
Pytest configuration and fixtures for AGENT-VAULT tests.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from agent_vault.chain.context import StaticContext
from agent_vault.chain.ledger import SqlValueLedger
from agent_vault.core.config import ProtocolParams
from agent_vault.db.models import Base
from agent_vault.services.agent_lifecycle import AgentLifecycleService


# Use an in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Enough to cover a dozen deployments at the default fee
DEFAULT_FUNDING = 1_000_000_000


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def params() -> ProtocolParams:
    """Protocol constants at their production defaults."""
    return ProtocolParams()


@pytest.fixture
def context() -> StaticContext:
    """Manually driven clock starting at height 100, caller alice."""
    return StaticContext(caller="alice", height=100)


@pytest_asyncio.fixture
async def fund(db_session: AsyncSession):
    """
    Mint ledger funds and commit them.

    Funding has to be committed before any lifecycle operation runs,
    since a rejected operation rolls the whole session back.
    """
    ledger = SqlValueLedger(db_session)

    async def _fund(principal: str, amount: int = DEFAULT_FUNDING) -> int:
        balance = await ledger.mint(principal, amount)
        await db_session.commit()
        return balance

    return _fund


@pytest_asyncio.fixture
async def service(
    db_session: AsyncSession,
    context: StaticContext,
    params: ProtocolParams,
    fund,
) -> AgentLifecycleService:
    """Lifecycle service over the SQL ledger, with alice and bob funded."""
    await fund("alice")
    await fund("bob")
    return AgentLifecycleService(db_session, context, params=params)


@pytest.fixture
def ledger(db_session: AsyncSession) -> SqlValueLedger:
    return SqlValueLedger(db_session)
