"""
PostgreSQL data access for the `promotions` table.

The `index` column is an identity column, so the store (not the input file)
assigns sequences. `TRUNCATE ... RESTART IDENTITY` resets it transactionally,
which is what lets a failed replace-all leave both rows and sequence untouched.
"""

from __future__ import annotations

from itertools import islice
from typing import Iterable, Iterator, List, Union
from uuid import UUID

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from promo_storage.domain.models import NotFound, Promotion
from promo_storage.utils.logging import get_logger

log = get_logger(__name__)

SQL_CREATE_TABLES = """
    CREATE TABLE IF NOT EXISTS promotions(
        "index" bigint GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
        id uuid NOT NULL UNIQUE,
        price numeric NOT NULL CHECK (price >= 0),
        expiration_date timestamp with time zone NOT NULL
    );
"""

SQL_SELECT_PROMOTION_BY_ID = (
    'SELECT "index", id, price, expiration_date FROM promotions WHERE id = %s'
)
SQL_SELECT_PROMOTION_BY_INDEX = (
    'SELECT "index", id, price, expiration_date FROM promotions WHERE "index" = %s'
)
SQL_SELECT_ALL_PROMOTIONS = (
    'SELECT "index", id, price, expiration_date FROM promotions ORDER BY "index"'
)
SQL_COUNT_PROMOTIONS = "SELECT COUNT(*) FROM promotions"

SQL_UPSERT_PROMOTION = """
    INSERT INTO promotions(id, price, expiration_date)
        VALUES (%s, %s, %s)
    ON CONFLICT (id) DO UPDATE SET
        price = excluded.price,
        expiration_date = excluded.expiration_date
"""

SQL_TRUNCATE_PROMOTIONS = "TRUNCATE TABLE promotions RESTART IDENTITY"

DEFAULT_BATCH_SIZE = 500


def _batched(records: Iterable[Promotion], size: int) -> Iterator[List[Promotion]]:
    iterator = iter(records)
    while batch := list(islice(iterator, size)):
        yield batch


class PromotionsDao:
    """
    Store handle over a psycopg connection pool.

    Parameters
    ----------
    pool : ConnectionPool
        Shared pool; the DAO never closes it.
    batch_size : int
        Rows per `executemany` round-trip during replace-all.
    """

    def __init__(self, pool: ConnectionPool, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        self._pool = pool
        self._batch_size = batch_size

    def ensure_schema(self) -> None:
        with self._pool.connection() as conn:
            conn.execute(SQL_CREATE_TABLES)
        log.info("Promotions schema ready")

    def upsert(self, promotion: Promotion) -> None:
        """Insert, or overwrite price/expiration of the row with the same id."""
        with self._pool.connection() as conn:
            conn.execute(SQL_UPSERT_PROMOTION, promotion.as_row())

    def replace_all(self, promotions: Iterable[Promotion]) -> int:
        """
        Replace the whole dataset with `promotions` in one transaction.

        The stream is drained inside the transaction; any exception, whether
        from the database or raised by the stream itself, rolls everything back
        and propagates.

        Returns
        -------
        int
            Number of records written (duplicated ids count once per line).
        """
        written = 0
        with self._pool.connection() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(SQL_TRUNCATE_PROMOTIONS)
                    for batch in _batched(promotions, self._batch_size):
                        cur.executemany(SQL_UPSERT_PROMOTION, [p.as_row() for p in batch])
                        written += len(batch)
        log.info("Storage rewritten", extra={"records": written})
        return written

    def _fetch_one(self, sql: str, key: Union[UUID, int]) -> Promotion:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(sql, (key,))
                row = cur.fetchone()
        if row is None:
            raise NotFound(key)
        return Promotion(**row)

    def get_by_id(self, promotion_id: UUID) -> Promotion:
        return self._fetch_one(SQL_SELECT_PROMOTION_BY_ID, promotion_id)

    def get_by_index(self, index: int) -> Promotion:
        return self._fetch_one(SQL_SELECT_PROMOTION_BY_INDEX, index)

    def list_all(self) -> List[Promotion]:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(SQL_SELECT_ALL_PROMOTIONS)
                return [Promotion(**row) for row in cur.fetchall()]

    def count(self) -> int:
        with self._pool.connection() as conn:
            row = conn.execute(SQL_COUNT_PROMOTIONS).fetchone()
        return int(row[0]) if row else 0


__all__ = ["PromotionsDao", "SQL_CREATE_TABLES"]
