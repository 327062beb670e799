"""Exception hierarchy for the cartridge driver.

Nothing raised here is retried by the library. A failed chunk or command
aborts the operation in progress; recovering a bulk transfer means running
its handshake again from bank 0.
"""

from __future__ import annotations


class CrocoError(Exception):
    """Base class for every failure surfaced by crococart."""


class ConfigError(CrocoError, ValueError):
    """Raised when runtime configuration fails validation."""


class DeviceNotFound(CrocoError):
    """Raised when no cartridge with the configured ids is on the bus."""

    def __init__(self, vendor_id: int, product_id: int) -> None:
        super().__init__(
            f"Croco Cartridge not found (VID=0x{vendor_id:04X}, PID=0x{product_id:04X})"
        )
        self.vendor_id = vendor_id
        self.product_id = product_id


class TransportError(CrocoError, OSError):
    """Raised on send errors and non-timeout receive errors."""


class ProtocolError(CrocoError):
    """Base class for command/reply contract violations."""


class OversizedCommand(ProtocolError, ValueError):
    def __init__(self, opcode: int, frame_len: int, limit: int) -> None:
        super().__init__(
            f"Command 0x{opcode:02X} frame is {frame_len} bytes; limit is {limit}"
        )
        self.opcode = opcode
        self.frame_len = frame_len
        self.limit = limit


class EmptyReply(ProtocolError):
    def __init__(self, opcode: int) -> None:
        super().__init__(f"No response from device for command 0x{opcode:02X}")
        self.opcode = opcode


class EchoMismatch(ProtocolError):
    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            f"Command echo mismatch: expected 0x{expected:02X}, got 0x{received:02X}"
        )
        self.expected = expected
        self.received = received


class ShortReply(ProtocolError):
    def __init__(self, opcode: int, expected: int, received: int) -> None:
        super().__init__(
            f"Reply to command 0x{opcode:02X} carried {received} payload bytes; "
            f"need at least {expected}"
        )
        self.opcode = opcode
        self.expected = expected
        self.received = received


class DeviceRejected(ProtocolError):
    """The device answered with a non-zero status byte."""

    def __init__(self, opcode: int, code: int, detail: str = "") -> None:
        message = f"Device rejected command 0x{opcode:02X} with status {code}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.opcode = opcode
        self.code = code


class TransferRejected(DeviceRejected):
    """The transfer handshake was refused."""


class DesynchronizationError(ProtocolError):
    """Chunk reply carried a (bank, chunk) position other than the expected one."""

    def __init__(self, expected: tuple[int, int], received: tuple[int, int]) -> None:
        super().__init__(
            "Transfer desynchronized: expected bank %d chunk %d, "
            "device sent bank %d chunk %d" % (expected + received)
        )
        self.expected = expected
        self.received = received


class TransferCancelled(CrocoError):
    """The caller's abort hook fired between chunks."""

    def __init__(self, bank: int, chunk: int) -> None:
        super().__init__(f"Transfer cancelled before bank {bank} chunk {chunk}")
        self.bank = bank
        self.chunk = chunk


__all__ = [
    "CrocoError",
    "ConfigError",
    "DeviceNotFound",
    "TransportError",
    "ProtocolError",
    "OversizedCommand",
    "EmptyReply",
    "EchoMismatch",
    "ShortReply",
    "DeviceRejected",
    "TransferRejected",
    "DesynchronizationError",
    "TransferCancelled",
]
