"""
Strategies package for the promotions storage service.

This module re-exports the persistence interfaces and the two concrete
strategies so downstream code can import from `promo_storage.strategies`.
"""

from promo_storage.strategies.abstract import (
    AbstractPersistenceStrategy,
    ApplyResult,
    PersistenceStrategy,
    PromotionStore,
    StreamAborted,
)
from promo_storage.strategies.replace_all import ReplaceAllStrategy
from promo_storage.strategies.upsert import UpsertStrategy

__all__ = [
    # Abstracts
    "AbstractPersistenceStrategy",
    "ApplyResult",
    "PersistenceStrategy",
    "PromotionStore",
    "StreamAborted",
    # Concrete strategies
    "ReplaceAllStrategy",
    "UpsertStrategy",
]
