"""Tests for database URL resolution and connectivity checks."""

import pytest

from askdocs.api.routes.health import check_db, check_redis
from askdocs.config import Settings
from askdocs.db.engine import database_url_for, dispose_engine, get_async_engine


def _settings(**overrides: object) -> Settings:
    return Settings(_env_file=None, **overrides)  # type: ignore[arg-type, call-arg]


@pytest.mark.parametrize(
    ("url", "use_async", "expected"),
    [
        ("postgresql://u:p@db:5432/askdocs", True, "postgresql+asyncpg://u:p@db:5432/askdocs"),
        ("postgresql+asyncpg://u:p@db:5432/askdocs", False, "postgresql://u:p@db:5432/askdocs"),
        ("postgresql+asyncpg://u:p@db/askdocs", True, "postgresql+asyncpg://u:p@db/askdocs"),
        ("sqlite:///:memory:", True, "sqlite+aiosqlite:///:memory:"),
        ("sqlite+aiosqlite:///:memory:", False, "sqlite:///:memory:"),
    ],
)
def test_database_url_switches_driver(url: str, use_async: bool, expected: str) -> None:
    """Test the same DATABASE_URL serves the app and migrations."""
    assert database_url_for(_settings(database_url=url), use_async=use_async) == expected


def test_database_url_falls_back_to_postgres_url() -> None:
    """Test POSTGRES_URL is used when DATABASE_URL is unset."""
    settings = _settings(database_url=None, postgres_url="postgresql://a:b@pg/docs")

    assert database_url_for(settings, use_async=True) == "postgresql+asyncpg://a:b@pg/docs"


def test_placeholder_database_url_is_rejected() -> None:
    """Test the shipped placeholder is never used as a real connection string."""
    with pytest.raises(ValueError, match="DATABASE_URL must be set"):
        database_url_for(_settings(database_url=None), use_async=True)


@pytest.mark.asyncio
async def test_check_db_against_sqlite() -> None:
    """Test the readiness query runs on the process-wide async engine."""
    try:
        assert await check_db(_settings()) == (True, "ok")
        assert get_async_engine.cache_info().currsize == 1
    finally:
        await dispose_engine()

    assert get_async_engine.cache_info().currsize == 0


@pytest.mark.asyncio
async def test_check_redis_not_configured() -> None:
    """Test Redis is optional."""
    assert await check_redis(_settings(redis_url=None)) == (True, "not_configured")


@pytest.mark.asyncio
async def test_check_redis_unreachable() -> None:
    """Test an unreachable Redis reports the error class only."""
    ok, detail = await check_redis(_settings(redis_url="redis://127.0.0.1:1/0"))

    assert not ok
    assert detail.startswith("error: ")
