"""
Storage updater: drives each ready drop file through decode and persistence.

Usage (example from CLI):
    from promo_storage.orchestrator import StorageUpdater, build_strategy

    updater = StorageUpdater(build_strategy("IMMUTABLE", dao))
    report = updater.ingest_file("/data/input/promotions.csv")
    print(report.as_dict())

Per file the updater moves through IDLE -> ACQUIRING -> STREAMING -> FINALIZING
and back to IDLE, or ends in FAILED:

- ACQUIRING renames `name.csv` to `name.csv.tmp` and opens it. A leftover
  `.tmp` file therefore marks an interrupted ingestion.
- STREAMING runs the decoder on a producer thread feeding a bounded queue
  that the persistence strategy drains on the calling thread.
- FINALIZING waits for the producer, closes the file, then deletes the temp
  file on success or renames it back to the original name on a batch failure,
  unless a newer drop file has taken that name meanwhile.
"""

from __future__ import annotations

import errno
import os
import queue
import threading
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional, TextIO, Union

from promo_storage.config import StorageMode
from promo_storage.domain.codec import decode_promotion
from promo_storage.domain.models import Promotion
from promo_storage.ingest.decoder import PromotionParser, StreamingDecoder
from promo_storage.ingest.watcher import IN_FLIGHT_SUFFIX
from promo_storage.strategies.abstract import (
    ApplyResult,
    PersistenceStrategy,
    PromotionStore,
    StreamAborted,
)
from promo_storage.strategies.replace_all import ReplaceAllStrategy
from promo_storage.strategies.upsert import UpsertStrategy
from promo_storage.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_QUEUE_CAPACITY = 1_000
_PUT_POLL_SECONDS = 0.1
_STREAM_END = object()


class IngestState(str, Enum):
    IDLE = "IDLE"
    ACQUIRING = "ACQUIRING"
    STREAMING = "STREAMING"
    FINALIZING = "FINALIZING"
    FAILED = "FAILED"


@dataclass
class IngestionReport:
    """Structured outcome of ingesting one drop file."""

    path: str
    state: IngestState = IngestState.IDLE
    lines_read: int = 0
    records_decoded: int = 0
    decode_faults: int = 0
    applied: int = 0
    failed: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None
    notes: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state is not IngestState.FAILED

    def as_dict(self) -> dict:
        payload = asdict(self)
        payload["state"] = self.state.value
        payload["duration_seconds"] = round(self.duration_seconds, 3)
        return payload


class _ProducerFailure:
    def __init__(self, exc: BaseException) -> None:
        self.exc = exc


class RecordPipe:
    """
    Bounded hand-off from the decoder thread to the persistence strategy.

    Iterating the pipe yields promotions until the producer finishes; if the
    producer failed, iteration raises StreamAborted instead of ending cleanly.
    Once the consumer calls `close()`, blocked producers give up.
    """

    def __init__(self, capacity: int = DEFAULT_QUEUE_CAPACITY) -> None:
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=capacity)
        self._closed = threading.Event()

    def put(self, item: object) -> bool:
        """Block until `item` is queued; False if the consumer has gone away."""
        while not self._closed.is_set():
            try:
                self._queue.put(item, timeout=_PUT_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def finish(self) -> None:
        self.put(_STREAM_END)

    def fail(self, exc: BaseException) -> None:
        self.put(_ProducerFailure(exc))

    def close(self) -> None:
        self._closed.set()

    def __iter__(self) -> Iterator[Promotion]:
        while True:
            item = self._queue.get()
            if item is _STREAM_END:
                return
            if isinstance(item, _ProducerFailure):
                raise StreamAborted(f"Record stream aborted: {item.exc}") from item.exc
            yield item  # type: ignore[misc]


def _strategy_factories() -> Dict[StorageMode, Callable[[PromotionStore], PersistenceStrategy]]:
    """Registry of persistence strategies by storage mode."""
    return {
        StorageMode.SIMPLE: UpsertStrategy,
        StorageMode.IMMUTABLE: ReplaceAllStrategy,
    }


def available_modes() -> List[str]:
    """List supported storage mode names."""
    return sorted(mode.value for mode in _strategy_factories())


def build_strategy(mode: Union[StorageMode, str], store: PromotionStore) -> PersistenceStrategy:
    """Construct the persistence strategy for `mode`; anything but SIMPLE/IMMUTABLE is rejected."""
    try:
        resolved = StorageMode(mode)
    except ValueError:
        raise ValueError(
            f"Unsupported mode '{mode}'. Available: {', '.join(available_modes())}"
        ) from None
    return _strategy_factories()[resolved](store)


class StorageUpdater:
    """
    Single-consumer ingestion loop over file-ready notifications.

    Parameters
    ----------
    strategy : PersistenceStrategy
        Active persistence policy; the updater only relies on `apply`.
    queue_capacity : int
        Maximum decoded records buffered ahead of persistence.
    parse : PromotionParser
        Line codec used by the decoder.
    """

    def __init__(
        self,
        strategy: PersistenceStrategy,
        queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
        parse: PromotionParser = decode_promotion,
    ) -> None:
        self.strategy = strategy
        self.queue_capacity = queue_capacity
        self._parse = parse

    def run(self, notifications: Iterable[str]) -> None:
        """Ingest every notified file in order; returns when the notifications end."""
        log.info("Storage updater started", extra={"mode": self.strategy.name})
        for path in notifications:
            try:
                self.ingest_file(path)
            except Exception:  # noqa: BLE001 - one file must never stop the loop
                log.exception("Unexpected failure while ingesting file", extra={"path": path})
        log.info("Storage updater stopped", extra={"mode": self.strategy.name})

    def ingest_file(self, path: str) -> IngestionReport:
        report = IngestionReport(path=path)
        start = time.perf_counter()
        tmp_path = path + IN_FLIGHT_SUFFIX

        report.state = IngestState.ACQUIRING
        try:
            handle = self._acquire(path, tmp_path)
        except OSError as exc:
            report.state = IngestState.FAILED
            report.error = str(exc)
            report.error_type = type(exc).__name__
            report.duration_seconds = time.perf_counter() - start
            return report

        with handle:
            report.state = IngestState.STREAMING
            decoder = StreamingDecoder(handle, self._parse)
            result = self._stream(decoder)
            report.state = IngestState.FINALIZING

        report.lines_read = decoder.lines_read
        report.records_decoded = decoder.records_decoded
        report.decode_faults = len(decoder.faults)
        report.applied = result.get("applied", 0)
        report.failed = result.get("failed", 0)
        report.error = result.get("error")
        report.error_type = result.get("error_type")
        report.notes = result.get("notes")

        self._release(path, tmp_path, succeeded=report.error is None)
        report.state = IngestState.IDLE if report.error is None else IngestState.FAILED
        report.duration_seconds = time.perf_counter() - start

        level_log = log.info if report.succeeded else log.error
        level_log(
            "Ingested file" if report.succeeded else "Ingestion failed",
            extra={k: v for k, v in report.as_dict().items() if k != "state"},
        )
        return report

    def _acquire(self, path: str, tmp_path: str) -> TextIO:
        if os.path.exists(tmp_path):
            # A leftover in-flight file awaits manual recovery; never overwrite it.
            log.error(
                "In-flight file already exists; leaving drop file in place",
                extra={"path": path, "tmp_path": tmp_path},
            )
            raise FileExistsError(errno.EEXIST, "In-flight file already exists", tmp_path)
        try:
            os.rename(path, tmp_path)
        except OSError:
            log.exception("Failed to rename file", extra={"path": path})
            raise
        try:
            # Undecodable bytes become U+FFFD so only the affected line is rejected.
            return open(tmp_path, "r", encoding="utf-8", errors="replace")
        except OSError:
            log.exception("Failed to open file", extra={"path": tmp_path})
            self._restore(tmp_path, path)
            raise

    def _stream(self, decoder: StreamingDecoder) -> ApplyResult:
        pipe = RecordPipe(self.queue_capacity)
        producer = threading.Thread(
            target=self._produce,
            args=(decoder, pipe),
            name=f"decode-{os.path.basename(decoder.name)}",
            daemon=True,
        )
        producer.start()
        try:
            return self.strategy.apply(pipe)
        except Exception as exc:  # noqa: BLE001 - strategies report failures, this is a safety net
            log.exception("Persistence strategy raised", extra={"mode": self.strategy.name})
            return ApplyResult(
                applied=0,
                failed=0,
                error=str(exc) or type(exc).__name__,
                error_type=type(exc).__name__,
            )
        finally:
            pipe.close()
            producer.join()

    @staticmethod
    def _produce(decoder: StreamingDecoder, pipe: RecordPipe) -> None:
        try:
            for promotion in decoder:
                if not pipe.put(promotion):
                    log.debug("Consumer stopped early", extra={"path": decoder.name})
                    return
        except Exception as exc:  # noqa: BLE001 - surfaced to the consumer as StreamAborted
            log.exception("Failed reading file", extra={"path": decoder.name})
            pipe.fail(exc)
            return
        pipe.finish()

    def _release(self, path: str, tmp_path: str, succeeded: bool) -> None:
        if succeeded:
            try:
                os.remove(tmp_path)
            except OSError:
                log.error("Failed to remove file", exc_info=True, extra={"path": tmp_path})
            return
        self._restore(tmp_path, path)

    @staticmethod
    def _restore(tmp_path: str, path: str) -> None:
        """
        Put the drop file back under its original name for an operator retry.

        If a newer drop file already took that name, the temp file is kept as
        the manual-recovery marker instead.
        """
        if os.path.exists(path):
            log.warning(
                "Newer drop file arrived during ingestion; keeping in-flight file",
                extra={"path": path, "tmp_path": tmp_path},
            )
            return
        try:
            os.rename(tmp_path, path)
        except OSError:
            log.error("Failed to restore file", exc_info=True, extra={"path": tmp_path})


__all__ = [
    "IngestState",
    "IngestionReport",
    "RecordPipe",
    "StorageUpdater",
    "available_modes",
    "build_strategy",
]
