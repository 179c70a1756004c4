from __future__ import annotations

import json
import logging

from promo_storage.utils.logging import _json_formatter

EXPECTED_APPLIED = 10


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.applied = EXPECTED_APPLIED
    record.path = "/data/input/a.csv"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["applied"] == EXPECTED_APPLIED
    assert payload["path"] == "/data/input/a.csv"
    assert "lineno" not in payload


def test_json_formatter_stringifies_unserializable_values() -> None:
    record = _record()
    record.mode = object()

    payload = json.loads(_json_formatter(record))

    assert payload["mode"].startswith("<object object")


def test_json_formatter_keeps_dict_valued_fields_nested() -> None:
    record = _record()
    record.report = {"applied": EXPECTED_APPLIED}

    payload = json.loads(_json_formatter(record))

    assert payload["report"] == {"applied": EXPECTED_APPLIED}
    assert "applied" not in payload
