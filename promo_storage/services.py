"""
Read-side lookups over the promotions store.

A key is tried as a UUID first and as a positional sequence number second.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol, Union
from uuid import UUID

from promo_storage.domain.models import Promotion

OUTPUT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class PromotionReader(Protocol):
    def get_by_id(self, promotion_id: UUID) -> Promotion:
        ...

    def get_by_index(self, index: int) -> Promotion:
        ...


class PromotionsService:
    def __init__(self, reader: PromotionReader) -> None:
        self._reader = reader

    def get_by_id(self, promotion_id: Union[UUID, str]) -> Promotion:
        if not isinstance(promotion_id, UUID):
            promotion_id = UUID(promotion_id)
        return self._reader.get_by_id(promotion_id)

    def get_by_index(self, index: int) -> Promotion:
        return self._reader.get_by_index(index)

    def lookup(self, key: str) -> Promotion:
        """
        Resolve `key` as an id or, failing that, as a sequence number.

        Raises
        ------
        ValueError
            If `key` is neither a UUID nor an integer.
        NotFound
            If no promotion matches.
        """
        try:
            promotion_id = UUID(key.strip())
        except ValueError:
            try:
                index = int(key)
            except ValueError:
                raise ValueError(f"Failed to parse specified id: {key}") from None
            return self.get_by_index(index)
        return self.get_by_id(promotion_id)

    @staticmethod
    def render(promotion: Promotion) -> Dict[str, Any]:
        """Public representation: upper-case id, numeric price, local-time expiration."""
        return {
            "id": str(promotion.id).upper(),
            "price": float(promotion.price),
            "expiration_date": promotion.expiration_date.astimezone().strftime(OUTPUT_DATE_FORMAT),
        }


__all__ = ["OUTPUT_DATE_FORMAT", "PromotionReader", "PromotionsService"]
