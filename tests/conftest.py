"""
Pytest configuration for the promotions storage service.

Provides fixtures for:
- An in-memory promotions store with the same upsert/replace-all semantics
  as PostgreSQL, for unit tests
- Drop-file helpers
- Database connection management and a clean `promotions` table for
  integration tests
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Dict, Generator, Iterable, Iterator, List, Optional, Set
from uuid import UUID

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from promo_storage.config import Settings, get_settings
from promo_storage.domain.models import NotFound, Promotion
from promo_storage.infrastructure.db_factory import get_sync_connection, open_pool
from promo_storage.infrastructure.promotions_dao import SQL_CREATE_TABLES, PromotionsDao

VALID_LINE = "11111111-1111-1111-1111-111111111111,9.99,2030-01-01 00:00:00 +0000 UTC"


class InMemoryPromotionStore:
    """
    Dict-backed stand-in for PromotionsDao.

    Ids listed in `fail_on` raise a psycopg error when written, to simulate
    a database failure on a specific record.
    """

    def __init__(self, fail_on: Optional[Iterable[UUID]] = None) -> None:
        self.rows: Dict[UUID, Promotion] = {}
        self.next_index = 1
        self.fail_on: Set[UUID] = set(fail_on or ())
        self.write_calls = 0

    def _take_index(self) -> int:
        index = self.next_index
        self.next_index += 1
        return index

    def upsert(self, promotion: Promotion) -> None:
        self.write_calls += 1
        if promotion.id in self.fail_on:
            raise psycopg.OperationalError(f"simulated write failure for {promotion.id}")
        existing = self.rows.get(promotion.id)
        index = existing.index if existing is not None else self._take_index()
        self.rows[promotion.id] = promotion.model_copy(update={"index": index})

    def replace_all(self, promotions: Iterable[Promotion]) -> int:
        snapshot = (dict(self.rows), self.next_index)
        written = 0
        try:
            self.rows.clear()
            self.next_index = 1
            for promotion in promotions:
                self.upsert(promotion)
                written += 1
        except BaseException:
            self.rows, self.next_index = snapshot
            raise
        return written

    def get_by_id(self, promotion_id: UUID) -> Promotion:
        try:
            return self.rows[promotion_id]
        except KeyError:
            raise NotFound(promotion_id) from None

    def get_by_index(self, index: int) -> Promotion:
        for promotion in self.rows.values():
            if promotion.index == index:
                return promotion
        raise NotFound(index)

    def list_all(self) -> List[Promotion]:
        return sorted(self.rows.values(), key=lambda p: p.index or 0)


@pytest.fixture
def memory_store() -> InMemoryPromotionStore:
    return InMemoryPromotionStore()


@pytest.fixture
def write_drop_file(tmp_path: Path) -> Callable[..., Path]:
    """Write lines into `<tmp_path>/<name>` and return its path."""

    def _write(lines: List[str], name: str = "a.csv") -> Path:
        path = tmp_path / name
        path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def _fresh_settings_cache() -> Iterator[None]:
    """Settings are cached per process; tests that tweak env need a clean read."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "storage"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = get_sync_connection(test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> bool:
    """
    Ensure the promotions table exists.
    """
    with db_connection.cursor() as cur:
        cur.execute(SQL_CREATE_TABLES)
    db_connection.commit()
    return True


@pytest.fixture(scope="function")
def clean_promotions_table(db_connection: psycopg.Connection, db_schema_initialized: bool):
    """
    Empty the promotions table and restart its sequence around each test.
    """
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE promotions RESTART IDENTITY;")
    db_connection.commit()
    yield
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE promotions RESTART IDENTITY;")
    db_connection.commit()


@pytest.fixture(scope="session")
def store_pool(test_dsn: str, db_connection_available: bool) -> Generator[ConnectionPool, None, None]:
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")
    pool = open_pool(test_dsn, min_size=1, max_size=2)
    try:
        yield pool
    finally:
        pool.close()


@pytest.fixture(scope="function")
def dao(store_pool: ConnectionPool, clean_promotions_table) -> PromotionsDao:
    return PromotionsDao(store_pool, batch_size=2)
