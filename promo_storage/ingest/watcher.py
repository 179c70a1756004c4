"""
Debounced directory watcher.

Observes a directory (non-recursively) with watchdog and turns bursts of
create/modify events for the same `.csv` file (including a rename onto a
`.csv` name) into a single "file ready" notification, emitted once the file
has been quiet for the debounce window.

All watch entries are owned by one dispatcher thread. The watchdog handler
only forwards relevant paths into the dispatcher's inbox, and timer expiry
is derived from the earliest pending deadline, so the table needs no lock.

Usage:
    watcher = DebouncedDirectoryWatcher("input", quiet_window_ms=100)
    watcher.start()
    for path in watcher.observe():
        ingest(path)
"""

from __future__ import annotations

import os
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler, FileSystemMovedEvent
from watchdog.observers import Observer

from promo_storage.utils.logging import get_logger

log = get_logger(__name__)

WATCHED_SUFFIX = ".csv"
IN_FLIGHT_SUFFIX = ".tmp"
DEFAULT_QUIET_WINDOW_MS = 100

# Upper bound on how long the dispatcher sleeps without checking for stop.
_IDLE_POLL_SECONDS = 0.5
_STOP = object()


class WatcherStartupError(RuntimeError):
    """The directory could not be watched; the environment is misconfigured."""


@dataclass
class WatchEntry:
    """Debounce bookkeeping for one path: a one-shot timer and its history."""

    path: str
    deadline: Optional[float] = None
    events: int = 0
    fired: int = 0

    @property
    def armed(self) -> bool:
        return self.deadline is not None


@dataclass
class DebounceTable:
    """
    Path -> WatchEntry map with per-entry deadlines.

    Not thread-safe; it is meant to be owned by a single thread.
    """

    quiet_window: float
    _entries: Dict[str, WatchEntry] = field(default_factory=dict)

    def touch(self, path: str, now: float) -> WatchEntry:
        """Record an event for `path`, (re)arming its timer from `now`."""
        entry = self._entries.get(path)
        if entry is None:
            entry = WatchEntry(path=path)
            self._entries[path] = entry
        entry.deadline = now + self.quiet_window
        entry.events += 1
        return entry

    def pop_due(self, now: float) -> List[str]:
        """Disarm and return every path whose quiet window has elapsed, oldest first."""
        due = [entry for entry in self._entries.values() if entry.armed and entry.deadline <= now]
        due.sort(key=lambda entry: entry.deadline)
        for entry in due:
            entry.deadline = None
            entry.fired += 1
        return [entry.path for entry in due]

    def next_deadline(self) -> Optional[float]:
        deadlines = [entry.deadline for entry in self._entries.values() if entry.armed]
        return min(deadlines) if deadlines else None

    def get(self, path: str) -> Optional[WatchEntry]:
        return self._entries.get(path)

    def __len__(self) -> int:
        return len(self._entries)


def is_relevant(path: str) -> bool:
    """Only drop files are watched; in-flight `.csv.tmp` files are not."""
    return path.endswith(WATCHED_SUFFIX)


class _EventForwarder(FileSystemEventHandler):
    """Forward create/modify events, and renames onto a drop file name, into the watcher inbox."""

    def __init__(self, submit: Callable[[str], None]) -> None:
        self._submit = submit

    def _forward(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = os.fsdecode(event.src_path)
        if is_relevant(path):
            self._submit(os.path.abspath(path))

    def on_created(self, event: FileSystemEvent) -> None:
        self._forward(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._forward(event)

    def on_moved(self, event: FileSystemMovedEvent) -> None:
        if event.is_directory:
            return
        # Restoring an in-flight file after a failed ingestion must not re-trigger it.
        if os.fsdecode(event.src_path).endswith(WATCHED_SUFFIX + IN_FLIGHT_SUFFIX):
            return
        path = os.fsdecode(event.dest_path)
        if is_relevant(path):
            self._submit(os.path.abspath(path))


class DebouncedDirectoryWatcher:
    """
    Watch `root` and yield each `.csv` file once it has stopped changing.

    Parameters
    ----------
    root : Path | str
        Directory to watch; created if absent.
    quiet_window_ms : int
        Debounce window. A path is emitted once no event arrived for it
        during this long.
    clock : Callable[[], float]
        Monotonic clock, injectable for tests.
    observer_factory : Callable
        Builds the watchdog observer, injectable for tests.
    """

    def __init__(
        self,
        root: Union[Path, str],
        quiet_window_ms: int = DEFAULT_QUIET_WINDOW_MS,
        clock: Callable[[], float] = time.monotonic,
        observer_factory: Callable[[], Observer] = Observer,
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self.table = DebounceTable(quiet_window=quiet_window_ms / 1000.0)
        self._clock = clock
        self._observer_factory = observer_factory
        self._inbox: "queue.Queue[object]" = queue.Queue()
        self._ready: "queue.Queue[object]" = queue.Queue()
        self._observer: Optional[Observer] = None
        self._dispatcher: Optional[threading.Thread] = None
        self._observer_failure_logged = False

    def start(self) -> None:
        """
        Start the dispatcher and the filesystem observer.

        Raises
        ------
        WatcherStartupError
            If the directory cannot be created or watched.
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WatcherStartupError(f"Failed to create input directory {self.root}") from exc

        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, name="watcher-dispatch", daemon=True
        )
        self._dispatcher.start()

        observer = self._observer_factory()
        try:
            observer.schedule(_EventForwarder(self.submit), str(self.root), recursive=False)
            observer.start()
        except Exception as exc:
            self._inbox.put(_STOP)
            raise WatcherStartupError(f"Failed to watch directory {self.root}") from exc
        self._observer = observer
        log.info("Watching directory", extra={"root": str(self.root)})

        self._submit_backlog()

    def _submit_backlog(self) -> None:
        """Queue drop files that were already present before watching began."""
        for entry in sorted(self.root.iterdir()):
            if not entry.is_file():
                continue
            if entry.name.endswith(WATCHED_SUFFIX + IN_FLIGHT_SUFFIX):
                log.warning(
                    "Found leftover in-flight file from an interrupted ingestion; "
                    "manual recovery required",
                    extra={"path": str(entry)},
                )
            elif is_relevant(entry.name):
                self.submit(str(entry))

    def submit(self, path: str) -> None:
        """Hand a relevant filesystem event for `path` to the dispatcher."""
        self._inbox.put(path)

    def _dispatch_loop(self) -> None:
        while True:
            deadline = self.table.next_deadline()
            timeout = _IDLE_POLL_SECONDS
            if deadline is not None:
                timeout = min(timeout, max(0.0, deadline - self._clock()))
            try:
                item = self._inbox.get(timeout=timeout)
            except queue.Empty:
                item = None
            if item is _STOP:
                break

            try:
                if item is not None:
                    self.table.touch(str(item), self._clock())
                for path in self.table.pop_due(self._clock()):
                    self._emit(path)
                self._check_observer()
            except Exception:
                log.exception("Error while handling file system event", extra={"event_path": item})

        self._ready.put(_STOP)

    def _emit(self, path: str) -> None:
        log.info("Received file", extra={"path": path})
        self._ready.put(path)

    def _check_observer(self) -> None:
        observer = self._observer
        if observer is None or observer.is_alive() or self._observer_failure_logged:
            return
        self._observer_failure_logged = True
        log.error("File system observer stopped unexpectedly", extra={"root": str(self.root)})

    def observe(self) -> Iterator[str]:
        """Yield ready paths until the watcher is stopped."""
        while True:
            item = self._ready.get()
            if item is _STOP:
                # Leave the marker for any other consumer.
                self._ready.put(_STOP)
                return
            yield str(item)

    def stop(self, timeout: float = 5.0) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=timeout)
            self._observer = None
        if self._dispatcher is not None:
            self._inbox.put(_STOP)
            self._dispatcher.join(timeout=timeout)
            self._dispatcher = None
        log.info("Stopped watching directory", extra={"root": str(self.root)})

    def __enter__(self) -> "DebouncedDirectoryWatcher":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


__all__ = [
    "DebounceTable",
    "DebouncedDirectoryWatcher",
    "WatchEntry",
    "WatcherStartupError",
    "is_relevant",
]
