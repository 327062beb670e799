"""Tests for the logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from crococart.common import format_hexdump, log_hexdump
from crococart.config import logging as log_mod
from crococart.config.model import RuntimeConfig


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="crococart.transfer",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="rom_upload started: %d banks",
        args=(2,),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_structured_formatter_trims_prefix_and_serialises_bytes() -> None:
    record = _record(chunk=b"\xde\xad\xbe\xef", slot=3)

    payload = json.loads(log_mod.StructuredLogFormatter().format(record))

    assert payload["logger"] == "transfer"
    assert payload["level"] == "INFO"
    assert payload["message"] == "rom_upload started: 2 banks"
    assert payload["ts"].endswith("Z")
    assert payload["extra"] == {"chunk": "[DE AD BE EF]", "slot": 3}


def test_structured_formatter_without_extras() -> None:
    payload = json.loads(log_mod.StructuredLogFormatter().format(_record()))
    assert "extra" not in payload
    assert "exception" not in payload


def test_structured_formatter_includes_exception() -> None:
    try:
        raise RuntimeError("usb gone")
    except RuntimeError:
        record = _record()
        record.exc_info = sys.exc_info()
    payload = json.loads(log_mod.StructuredLogFormatter().format(record))
    assert "RuntimeError: usb gone" in payload["exception"]


def test_configure_logging_text_info() -> None:
    with patch("crococart.config.logging.dictConfig") as mock_dict_config:
        log_mod.configure_logging(RuntimeConfig())

    config = mock_dict_config.call_args.args[0]
    handler = config["handlers"]["stderr"]
    assert handler["formatter"] == "text"
    assert handler["level"] == logging.INFO
    assert handler["stream"] == "ext://sys.stderr"
    assert config["root"]["level"] == logging.INFO


def test_configure_logging_json_debug() -> None:
    with patch("crococart.config.logging.dictConfig") as mock_dict_config:
        log_mod.configure_logging(RuntimeConfig(debug_logging=True, log_format="json"))

    config = mock_dict_config.call_args.args[0]
    assert config["handlers"]["stderr"]["formatter"] == "json"
    assert config["root"]["level"] == logging.DEBUG


def test_configure_logging_quiets_pyusb() -> None:
    log_mod.configure_logging(RuntimeConfig(debug_logging=True))
    assert logging.getLogger("usb").level == logging.WARNING
    assert logging.getLogger("transitions").level == logging.WARNING
    assert logging.getLogger().level == logging.DEBUG


def test_log_hexdump_respects_level(caplog) -> None:
    logger = logging.getLogger("crococart.test")
    with caplog.at_level(logging.INFO, logger="crococart.test"):
        log_hexdump(logger, logging.DEBUG, "TX", b"\x01")
    assert caplog.records == []

    with caplog.at_level(logging.DEBUG, logger="crococart.test"):
        log_hexdump(logger, logging.DEBUG, "TX", b"\x01\xff")
    assert "[TX] LEN=2 HEX=01 FF" in caplog.text


def test_format_hexdump() -> None:
    assert format_hexdump(b"", "> ") == "> <empty>"
    dump = format_hexdump(b"CROCO\x00" + bytes(12))
    lines = dump.splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("0000  43 52 4F 43  4F 00 00 00")
    assert lines[0].endswith("|CROCO...........|")
    assert lines[1].startswith("0010  00 00")
    assert lines[1].endswith("|..|")
