"""
Upsert strategy (SIMPLE mode): merge each record by identity.

Every record is written independently. A failed write is logged and counted,
and the remaining records are still applied; there is no cross-record
atomicity. Re-ingesting an id keeps its original sequence.
"""

from __future__ import annotations

from typing import Iterable

import psycopg

from promo_storage.domain.models import Promotion
from promo_storage.strategies.abstract import AbstractPersistenceStrategy, ApplyResult, StreamAborted
from promo_storage.utils.logging import get_logger

log = get_logger(__name__)


class UpsertStrategy(AbstractPersistenceStrategy):
    """Per-record insert-or-update by promotion id."""

    name: str = "SIMPLE"
    description: str = "Per-record upsert by id; best-effort, no cross-record atomicity."

    def apply(self, promotions: Iterable[Promotion]) -> ApplyResult:
        applied = 0
        failed = 0
        try:
            for promotion in promotions:
                try:
                    self.store.upsert(promotion)
                except psycopg.Error as exc:
                    failed += 1
                    log.warning(
                        "Failed to save promotion %s: %s",
                        promotion.id,
                        exc,
                        extra={"promotion_id": str(promotion.id)},
                    )
                    continue
                applied += 1
        except StreamAborted as exc:
            log.error(
                "Record stream aborted after %d upserts",
                applied,
                extra={"applied": applied, "failed": failed},
            )
            return ApplyResult(
                applied=applied,
                failed=failed,
                error=str(exc),
                error_type=type(exc).__name__,
            )

        return ApplyResult(
            applied=applied,
            failed=failed,
            error=None,
            notes="per-record upsert",
        )


__all__ = ["UpsertStrategy"]
