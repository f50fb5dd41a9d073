"""Shared pytest fixtures for all test suites."""

import hashlib
import os
import re
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from askdocs.db.inmemory import InMemoryDocumentStore
from askdocs.db.models import Base, Organization, OrganizationMembership
from askdocs.errors import EmbeddingError
from askdocs.models.documents import MembershipRecord


@dataclass(frozen=True)
class Tenants:
    """Fixed identities shared by the test suites.

    user_id belongs to org_id; other_user_id belongs to foreign_org_id.
    """

    user_id: uuid.UUID = uuid.UUID("00000000-0000-0000-0000-000000000001")
    other_user_id: uuid.UUID = uuid.UUID("00000000-0000-0000-0000-000000000002")
    org_id: uuid.UUID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
    foreign_org_id: uuid.UUID = uuid.UUID("00000000-0000-0000-0000-0000000000b2")


class HashingEmbedder:
    """Deterministic bag-of-words embedder; texts sharing words score higher."""

    def __init__(self, dimension: int = 384) -> None:
        self.dimension = dimension
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        vector = [0.0] * self.dimension
        for word in re.findall(r"\w+", text.lower()):
            digest = hashlib.sha256(word.encode()).digest()
            vector[int.from_bytes(digest[:4], "big") % self.dimension] += 1.0
        return vector


class FailingEmbedder:
    """Embedder whose backend is always down."""

    def __init__(self, dimension: int = 384) -> None:
        self.dimension = dimension
        self.calls = 0

    async def embed(self, text: str) -> list[float]:
        self.calls += 1
        raise EmbeddingError("backend unavailable")


@pytest.fixture
def tenants() -> Tenants:
    """Fixed user and organization ids."""
    return Tenants()


@pytest.fixture
def embedder() -> HashingEmbedder:
    """Deterministic embedder that records every call."""
    return HashingEmbedder()


@pytest.fixture
def failing_embedder() -> FailingEmbedder:
    """Embedder that always raises EmbeddingError."""
    return FailingEmbedder()


@pytest.fixture
def store(tenants: Tenants) -> InMemoryDocumentStore:
    """In-memory store seeded with one membership per tenant."""
    store = InMemoryDocumentStore()
    store.add_membership(
        MembershipRecord(user_id=tenants.user_id, organization_id=tenants.org_id, role="member")
    )
    store.add_membership(
        MembershipRecord(
            user_id=tenants.other_user_id, organization_id=tenants.foreign_org_id, role="owner"
        )
    )
    return store


@pytest_asyncio.fixture
async def sqlite_engine(tenants: Tenants) -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with all tables and the tenant memberships.

    StaticPool keeps a single connection so every session sees the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSession(engine) as session:
        session.add(Organization(organization_id=tenants.org_id, name="Acme"))
        session.add(Organization(organization_id=tenants.foreign_org_id, name="Globex"))
        session.add(
            OrganizationMembership(
                user_id=tenants.user_id, organization_id=tenants.org_id, role="member"
            )
        )
        session.add(
            OrganizationMembership(
                user_id=tenants.other_user_id, organization_id=tenants.foreign_org_id, role="owner"
            )
        )
        await session.commit()

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def sqlite_session(sqlite_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session on the seeded in-memory SQLite database."""
    async with AsyncSession(sqlite_engine, expire_on_commit=False) as session:
        yield session


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(database_url, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()
