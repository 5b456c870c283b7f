"""Shared pytest fixtures for all test suites."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from tecassist.db.engine import Database
from tecassist.db.inmemory import InMemoryConversationStore, InMemoryDocumentStore
from tecassist.models.chat import UserProfile


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    """Fresh in-memory document/chunk/catalog store."""
    return InMemoryDocumentStore()


@pytest_asyncio.fixture
async def conversation_store() -> InMemoryConversationStore:
    """In-memory conversation store with one known user, "u1"."""
    store = InMemoryConversationStore()
    await store.upsert_user(UserProfile(user_id="u1", name="Ana", job_title="Vendedora"))
    return store


@pytest_asyncio.fixture
async def sqlite_db() -> AsyncGenerator[Database, None]:
    """Open Database on a shared in-memory SQLite connection with tables created.

    Usage:
        async def test_something(sqlite_db):
            store = SqlDocumentStore(sqlite_db)
    """
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.open()
    await db.create_all()
    yield db
    await db.close()
