"""
Replace-all strategy (IMMUTABLE mode): one transaction per file.

Existing promotions are wiped, the sequence restarts at 1 and the file's
records are inserted in arrival order. Commit happens only after the stream
is drained; any failure, including an aborted stream, rolls the whole file
back and leaves the previous dataset in place.
"""

from __future__ import annotations

from typing import Iterable

from promo_storage.domain.models import Promotion
from promo_storage.strategies.abstract import AbstractPersistenceStrategy, ApplyResult
from promo_storage.utils.logging import get_logger

log = get_logger(__name__)


class ReplaceAllStrategy(AbstractPersistenceStrategy):
    """Transactional wipe + bulk reinsertion with sequence reset."""

    name: str = "IMMUTABLE"
    description: str = "Truncate, restart sequence and reinsert the file in one transaction."

    def apply(self, promotions: Iterable[Promotion]) -> ApplyResult:
        try:
            written = self.store.replace_all(promotions)
        except Exception as exc:  # noqa: BLE001 - any failure rejects the whole batch
            log.exception("Replace-all rolled back; previous dataset kept")
            return ApplyResult(
                applied=0,
                failed=0,
                error=str(exc) or type(exc).__name__,
                error_type=type(exc).__name__,
            )

        return ApplyResult(
            applied=written,
            failed=0,
            error=None,
            notes="transactional replace-all",
        )


__all__ = ["ReplaceAllStrategy"]
