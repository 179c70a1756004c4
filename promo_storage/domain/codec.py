"""
Line codec for promotion drop files.

One record per line, three comma-separated fields:

    11111111-1111-1111-1111-111111111111,9.99,2030-01-01 00:00:00 +0000 UTC

Decoding is all-or-nothing: either a complete Promotion comes back or a
DecodeFault naming the offending field is raised.
"""
from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

from promo_storage.domain.models import DecodeFault, Promotion

FIELD_SEPARATOR = ","
EXPIRATION_FORMAT = "%Y-%m-%d %H:%M:%S %z"

# Trailing zone name ("UTC", "CEST") or numeric abbreviation ("+03").
_ZONE_ABBREVIATION = re.compile(r"^(?:[A-Za-z]{3,5}|[+-]\d{2})$")
# `%z` alone would also take "Z" and "+00:00"; only the compact form is valid.
_NUMERIC_OFFSET = re.compile(r"^[+-]\d{4}$")


def _parse_id(value: str, line_number: Optional[int]) -> UUID:
    try:
        return UUID(value.strip())
    except ValueError:
        raise DecodeFault("id", value, line_number) from None


def _parse_price(value: str, line_number: Optional[int]) -> Decimal:
    try:
        price = Decimal(value.strip())
    except InvalidOperation:
        raise DecodeFault("price", value, line_number) from None
    if not price.is_finite() or price < 0:
        raise DecodeFault("price", value, line_number)
    return price


def _parse_expiration(value: str, line_number: Optional[int]) -> datetime:
    # The numeric offset is authoritative, the zone name is only informational.
    stamp, _, zone = value.strip().rpartition(" ")
    offset = stamp.rpartition(" ")[2]
    if not _NUMERIC_OFFSET.match(offset) or not _ZONE_ABBREVIATION.match(zone):
        raise DecodeFault("expiration_date", value, line_number)
    try:
        return datetime.strptime(stamp, EXPIRATION_FORMAT)
    except ValueError:
        raise DecodeFault("expiration_date", value, line_number) from None


def decode_promotion(line: str, line_number: Optional[int] = None) -> Promotion:
    """
    Decode one textual line into a Promotion.

    Raises
    ------
    DecodeFault
        If the line does not hold exactly three fields or any field fails to parse.
    """
    values = line.rstrip("\r\n").split(FIELD_SEPARATOR)
    if len(values) != 3:
        raise DecodeFault("line", line.rstrip("\r\n"), line_number)

    raw_id, raw_price, raw_expiration = values
    return Promotion(
        id=_parse_id(raw_id, line_number),
        price=_parse_price(raw_price, line_number),
        expiration_date=_parse_expiration(raw_expiration, line_number),
    )


__all__ = ["EXPIRATION_FORMAT", "FIELD_SEPARATOR", "decode_promotion"]
