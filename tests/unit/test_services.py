from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from promo_storage.domain.models import NotFound, Promotion
from promo_storage.services import PromotionsService

PROMOTION_ID = "11111111-1111-1111-1111-111111111111"


@pytest.fixture
def service(memory_store) -> PromotionsService:
    memory_store.upsert(
        Promotion(
            id=UUID(PROMOTION_ID),
            price=Decimal("9.99"),
            expiration_date=datetime(2030, 1, 1, tzinfo=timezone.utc),
        )
    )
    return PromotionsService(memory_store)


def test_lookup_by_id_is_case_insensitive(service: PromotionsService) -> None:
    promotion = service.lookup(PROMOTION_ID.upper())

    assert promotion.price == Decimal("9.99")


def test_lookup_by_sequence(service: PromotionsService) -> None:
    assert str(service.lookup("1").id) == PROMOTION_ID


def test_lookup_unknown_key_raises_not_found(service: PromotionsService) -> None:
    with pytest.raises(NotFound):
        service.lookup("42")
    with pytest.raises(NotFound):
        service.lookup("99999999-9999-9999-9999-999999999999")


def test_lookup_rejects_unparseable_key(service: PromotionsService) -> None:
    with pytest.raises(ValueError, match="Failed to parse specified id: latest"):
        service.lookup("latest")


def test_render_uses_uppercase_id_numeric_price_and_local_time(service: PromotionsService) -> None:
    promotion = service.get_by_id(PROMOTION_ID)

    rendered = service.render(promotion)

    expected_local = promotion.expiration_date.astimezone().strftime("%Y-%m-%d %H:%M:%S")
    assert rendered == {
        "id": PROMOTION_ID.upper(),
        "price": 9.99,
        "expiration_date": expected_local,
    }
