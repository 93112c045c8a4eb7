"""Shared fixtures: an in-memory SQLite store per test."""
import pytest
import pytest_asyncio
from sqlalchemy import event

from db.connection import build_engine, make_sessionmaker
from db.models import Base
from db.store import SqlStore


class CountingStore(SqlStore):
    """SqlStore that records every round trip it makes."""

    def __init__(self, session):
        super().__init__(session)
        self.calls: list[tuple[str, object]] = []

    async def query(self, entity_type, *predicates, **kwargs):
        self.calls.append(("query", entity_type.__name__))
        return await super().query(entity_type, *predicates, **kwargs)

    async def upsert(self, records):
        records = list(records)
        self.calls.append(("upsert", len(records)))
        return await super().upsert(records)

    async def insert(self, records):
        records = list(records)
        self.calls.append(("insert", len(records)))
        return await super().insert(records)

    async def delete(self, records):
        records = list(records)
        self.calls.append(("delete", len(records)))
        return await super().delete(records)


@pytest_asyncio.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    async with make_sessionmaker(engine)() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def store(session):
    return CountingStore(session)


@pytest.fixture
def statements(engine):
    """Leading keyword of every SQL statement sent to the database."""
    seen: list[str] = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        seen.append(statement.split(None, 1)[0].upper())

    event.listen(engine.sync_engine, "before_cursor_execute", _record)
    yield seen
    event.remove(engine.sync_engine, "before_cursor_execute", _record)
