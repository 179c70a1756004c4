"""
Integration tests for the promotions store and both storage modes.

These tests run against a real PostgreSQL instance and verify that:
1. Upsert keeps an id's sequence while taking the latest price/expiration
2. Replace-all leaves exactly the file's records, sequenced from 1
3. A failed replace-all leaves the previous dataset untouched

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterator
from uuid import UUID

import pytest

from promo_storage.domain.models import NotFound, Promotion
from promo_storage.orchestrator import IngestState, StorageUpdater
from promo_storage.services import PromotionsService
from promo_storage.strategies import ReplaceAllStrategy, UpsertStrategy

ID_A = "11111111-1111-1111-1111-111111111111"
ID_B = "22222222-2222-2222-2222-222222222222"
EXPIRATION = "2030-01-01 00:00:00 +0000 UTC"

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
    reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Postgres",
)


def _promotion(n: int, price: str = "1.00") -> Promotion:
    return Promotion(
        id=UUID(int=n),
        price=Decimal(price),
        expiration_date=datetime(2030, 1, 1, tzinfo=timezone.utc),
    )


class TestPromotionsDao:
    def test_upsert_keeps_index(self, dao) -> None:
        dao.upsert(_promotion(1, "9.99"))
        dao.upsert(_promotion(2))
        index_before = dao.get_by_id(UUID(int=1)).index

        dao.upsert(_promotion(1, "5.00"))

        stored = dao.get_by_id(UUID(int=1))
        assert stored.price == Decimal("5.00")
        assert stored.index == index_before
        assert dao.count() == 2

    def test_replace_all_restarts_sequence(self, dao) -> None:
        for n in range(10, 13):
            dao.upsert(_promotion(n))

        written = dao.replace_all(iter([_promotion(1), _promotion(2), _promotion(3)]))

        assert written == 3
        assert [(p.id, p.index) for p in dao.list_all()] == [
            (UUID(int=1), 1),
            (UUID(int=2), 2),
            (UUID(int=3), 3),
        ]

    def test_replace_all_rolls_back_on_stream_failure(self, dao) -> None:
        for n in range(10, 15):
            dao.upsert(_promotion(n))
        before = dao.list_all()

        def failing_stream() -> Iterator[Promotion]:
            yield from (_promotion(1), _promotion(2), _promotion(3))
            raise RuntimeError("simulated failure on record 4")

        with pytest.raises(RuntimeError, match="record 4"):
            dao.replace_all(failing_stream())

        assert dao.list_all() == before

    def test_getters_raise_not_found(self, dao) -> None:
        with pytest.raises(NotFound):
            dao.get_by_id(UUID(int=404))
        with pytest.raises(NotFound):
            dao.get_by_index(404)


class TestEndToEnd:
    def test_malformed_line_is_skipped(self, dao, write_drop_file) -> None:
        path = write_drop_file([f"{ID_A},9.99,{EXPIRATION}", f"{ID_B},,{EXPIRATION}"])

        report = StorageUpdater(UpsertStrategy(dao)).ingest_file(str(path))

        assert report.state is IngestState.IDLE
        assert report.decode_faults == 1
        promotion = PromotionsService(dao).lookup(ID_A)
        assert promotion.price == Decimal("9.99")
        assert promotion.expiration_date == datetime(2030, 1, 1, tzinfo=timezone.utc)
        assert dao.count() == 1

    def test_upsert_then_reupsert(self, dao, write_drop_file) -> None:
        updater = StorageUpdater(UpsertStrategy(dao))
        updater.ingest_file(str(write_drop_file([f"{ID_A},9.99,{EXPIRATION}"])))
        index_before = dao.get_by_id(UUID(ID_A)).index

        updater.ingest_file(str(write_drop_file([f"{ID_A},5.00,{EXPIRATION}"])))

        stored = dao.get_by_id(UUID(ID_A))
        assert stored.price == Decimal("5.00")
        assert stored.index == index_before

    def test_replace_all_scenario(self, dao, write_drop_file) -> None:
        for n in range(100, 103):
            dao.upsert(_promotion(n))

        report = StorageUpdater(ReplaceAllStrategy(dao)).ingest_file(
            str(write_drop_file([f"{ID_A},1.00,{EXPIRATION}", f"{ID_B},2.00,{EXPIRATION}"]))
        )

        assert report.succeeded
        assert [(str(p.id), p.index) for p in dao.list_all()] == [(ID_A, 1), (ID_B, 2)]
        assert str(PromotionsService(dao).lookup("2").id) == ID_B
