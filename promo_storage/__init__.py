"""
promo-storage - directory-driven ingestion of promotion drop files into PostgreSQL.

Dropped `.csv` files are picked up by a debounced directory watcher, decoded
line by line and applied under one of two consistency policies:

- SIMPLE: per-record upsert by promotion id, preserving each id's sequence
- IMMUTABLE: per-file transactional replace-all with the sequence restarted at 1

A small read side looks promotions up by id or by sequence number.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from promo_storage.config import Settings, StorageMode, get_settings
from promo_storage.domain.codec import decode_promotion
from promo_storage.domain.models import DecodeFault, NotFound, Promotion
from promo_storage.ingest.decoder import StreamingDecoder
from promo_storage.ingest.watcher import DebouncedDirectoryWatcher, WatcherStartupError
from promo_storage.orchestrator import (
    IngestionReport,
    IngestState,
    StorageUpdater,
    available_modes,
    build_strategy,
)
from promo_storage.strategies.abstract import ApplyResult, PersistenceStrategy
from promo_storage.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "StorageMode",
    "get_settings",
    # Domain
    "DecodeFault",
    "NotFound",
    "Promotion",
    "decode_promotion",
    # Pipeline
    "DebouncedDirectoryWatcher",
    "WatcherStartupError",
    "StreamingDecoder",
    "IngestionReport",
    "IngestState",
    "StorageUpdater",
    "available_modes",
    "build_strategy",
    # Strategy abstractions
    "ApplyResult",
    "PersistenceStrategy",
    # Logging
    "configure_logging",
    "get_logger",
]
