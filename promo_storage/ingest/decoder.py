"""
Streaming decoder: turns an open text handle into a lazy sequence of promotions.

Lines are read one at a time, so memory stays bounded regardless of file size.
Lines the codec rejects are logged and skipped; they never abort the file.
"""

from __future__ import annotations

from typing import Callable, Iterator, List, Optional, TextIO

from promo_storage.domain.codec import decode_promotion
from promo_storage.domain.models import DecodeFault, Promotion
from promo_storage.utils.logging import get_logger

log = get_logger(__name__)

PromotionParser = Callable[[str, Optional[int]], Promotion]


class StreamingDecoder:
    """
    Single-use iterator of decoded promotions over a file handle.

    Counters are updated while iterating and are final once iteration ends:

    - ``lines_read``: every line pulled from the handle, faulty or not
    - ``records_decoded``: promotions yielded downstream
    - ``faults``: the DecodeFault raised for each skipped line
    """

    def __init__(self, handle: TextIO, parse: PromotionParser = decode_promotion) -> None:
        self._handle = handle
        self._parse = parse
        self._started = False
        self.lines_read = 0
        self.records_decoded = 0
        self.faults: List[DecodeFault] = []

    @property
    def name(self) -> str:
        return str(getattr(self._handle, "name", "<stream>"))

    def __iter__(self) -> Iterator[Promotion]:
        if self._started:
            raise RuntimeError(f"Decoder for {self.name} has already been consumed")
        self._started = True
        return self._decode()

    def _decode(self) -> Iterator[Promotion]:
        log.info("Start processing file", extra={"path": self.name})
        for line_number, line in enumerate(self._handle, start=1):
            self.lines_read += 1
            try:
                promotion = self._parse(line, line_number)
            except DecodeFault as fault:
                self.faults.append(fault)
                log.warning(
                    "Skipping line %d: %s",
                    line_number,
                    fault,
                    extra={"path": self.name, "field": fault.field},
                )
                continue
            self.records_decoded += 1
            yield promotion

        log.info(
            "Processed file",
            extra={
                "path": self.name,
                "lines": self.lines_read,
                "records": self.records_decoded,
                "faults": len(self.faults),
            },
        )


def process(handle: TextIO, parse: PromotionParser = decode_promotion) -> Iterator[Promotion]:
    """Shorthand for iterating a fresh StreamingDecoder."""
    return iter(StreamingDecoder(handle, parse))


__all__ = ["PromotionParser", "StreamingDecoder", "process"]
