"""Tests for settings loading and database URL handling."""

from rentbill.config import Settings
from rentbill.services import async_database_url


def test_defaults(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("BULK_CONCURRENCY", raising=False)

    settings = Settings(_env_file=None)

    assert settings.database_url == "sqlite+aiosqlite:///./rentbill.db"
    assert settings.bulk_concurrency == 1
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("BULK_CONCURRENCY", "4")

    settings = Settings(_env_file=None)

    assert settings.log_level == "DEBUG"
    assert settings.bulk_concurrency == 4


def test_plain_sqlite_url_is_upgraded_to_aiosqlite():
    assert async_database_url("sqlite:///./rentbill.db") == "sqlite+aiosqlite:///./rentbill.db"
    assert async_database_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"
    assert (
        async_database_url("postgresql+asyncpg://u:p@db/rentbill")
        == "postgresql+asyncpg://u:p@db/rentbill"
    )
