"""
Domain models for the promotions storage service.

Defines the promotion record aligned with the `promotions` table, plus the
exceptions the codec and the store raise. The model is shared by the decoder,
the persistence strategies and the read-side service.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field


class Promotion(BaseModel):
    """
    A priced, time-bounded offer identified by a UUID.
    """

    id: UUID = Field(..., description="Globally unique, immutable identity.")
    price: Decimal = Field(..., ge=0, allow_inf_nan=False, description="Non-negative price.")
    expiration_date: AwareDatetime = Field(..., description="Expiration with UTC offset.")
    index: Optional[int] = Field(
        None, ge=1, description="Store-assigned sequence; None until persisted."
    )

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }

    def as_row(self) -> tuple[UUID, Decimal, datetime]:
        """Parameters for the insert/upsert statements, in column order."""
        return (self.id, self.price, self.expiration_date)


class DecodeFault(ValueError):
    """A single input line could not be decoded into a Promotion."""

    def __init__(self, field: str, raw_value: str, line_number: Optional[int] = None) -> None:
        self.field = field
        self.raw_value = raw_value
        self.line_number = line_number
        location = f" at line {line_number}" if line_number is not None else ""
        super().__init__(f"Failed to parse {field}{location}: {raw_value!r}")


class NotFound(LookupError):
    """No promotion matches the requested identity or sequence."""

    def __init__(self, key: object) -> None:
        self.key = key
        super().__init__(f"Promotion '{key}' not found")


__all__ = ["DecodeFault", "NotFound", "Promotion"]
