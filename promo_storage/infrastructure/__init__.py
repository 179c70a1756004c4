"""
Infrastructure package for the promotions storage service.

Centralizes database concerns (connection factory, pooling, the promotions
DAO). Keep this layer focused on I/O and resource management, decoupled from
strategy/orchestrator logic.
"""

from promo_storage.infrastructure.db_factory import (
    PoolManager,
    build_dsn,
    get_sync_connection,
    get_sync_pool,
    open_pool,
)
from promo_storage.infrastructure.promotions_dao import PromotionsDao

__all__ = [
    "PoolManager",
    "PromotionsDao",
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
    "open_pool",
]
