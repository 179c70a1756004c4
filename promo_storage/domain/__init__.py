"""
Domain package for the promotions storage service.

Exports the promotion model, the line codec and the domain exceptions.
Keep this package focused on data definitions and validation concerns.
"""

from promo_storage.domain.codec import decode_promotion
from promo_storage.domain.models import DecodeFault, NotFound, Promotion

__all__ = [
    "DecodeFault",
    "NotFound",
    "Promotion",
    "decode_promotion",
]
