"""
Ingest package for the promotions storage service.

Holds the file-facing half of the pipeline: the debounced directory watcher
that announces ready drop files and the streaming decoder that reads them.
"""

from promo_storage.ingest.decoder import StreamingDecoder, process
from promo_storage.ingest.watcher import (
    DebouncedDirectoryWatcher,
    DebounceTable,
    WatcherStartupError,
)

__all__ = [
    "DebounceTable",
    "DebouncedDirectoryWatcher",
    "StreamingDecoder",
    "WatcherStartupError",
    "process",
]
