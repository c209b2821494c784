"""
Shared fixtures.

Integration tests run the real services against a SQLite file database
(aiosqlite). Every transaction opens with BEGIN IMMEDIATE so concurrent
writers serialize on the database lock the way row locks do on Postgres.
"""

import uuid

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import control_tower.models  # noqa: F401
from control_tower.config import settings
from control_tower.database import Base
from control_tower.models.user import User
from control_tower.services.financial_service import FinancialService
from tests.helpers import TEST_JWT_SECRET, add_member


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def service(session_factory) -> FinancialService:
    return FinancialService(session_factory)


@pytest.fixture
def project_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest_asyncio.fixture
async def owner(session_factory, project_id) -> User:
    return await add_member(session_factory, project_id, "olivia", "owner")


@pytest_asyncio.fixture
async def member(session_factory, project_id) -> User:
    return await add_member(session_factory, project_id, "max", "member")


@pytest.fixture
def jwt_settings(monkeypatch):
    monkeypatch.setattr(settings, "JWT_ALGORITHM", "HS256")
    monkeypatch.setattr(settings, "JWT_SECRET", TEST_JWT_SECRET)
