"""Small helpers shared by the config and transport layers."""

from __future__ import annotations

import logging

BYTES_PER_LINE = 16


def parse_int(value: object, default: int) -> int:
    """Parse decimal or prefixed (``0x``, ``0o``, ``0b``) integers.

    USB ids are conventionally written in hex, so ``"0x2E8A"`` and ``"11914"``
    both load. Anything unparsable yields *default*.
    """
    if isinstance(value, int):
        return int(value)
    try:
        return int(str(value).strip(), 0)
    except ValueError:
        return default


def log_hexdump(log: logging.Logger, level: int, label: str, data: bytes) -> None:
    """Log *data* on one line as ``[LABEL] LEN=n HEX=..`` if *level* is enabled."""
    if log.isEnabledFor(level):
        log.log(level, "[%s] LEN=%d HEX=%s", label, len(data), bytes(data).hex(" ").upper())


def format_hexdump(data: bytes, prefix: str = "") -> str:
    """Offset / hex / ASCII dump, 16 bytes per line."""
    if not data:
        return f"{prefix}<empty>"

    rows = []
    for offset in range(0, len(data), BYTES_PER_LINE):
        row = bytes(data[offset : offset + BYTES_PER_LINE])
        groups = "  ".join(row[i : i + 4].hex(" ").upper() for i in range(0, len(row), 4))
        text = row.decode("latin-1").translate(_PRINTABLE)
        rows.append(f"{prefix}{offset:04X}  {groups:<50}  |{text}|")
    return "\n".join(rows)


_PRINTABLE = {code: "." for code in range(256) if not 32 <= code < 127}

__all__ = ["parse_int", "log_hexdump", "format_hexdump"]
