"""Command frame building and reply validation.

Frame Structure (host -> device, one bulk OUT transfer):
    [opcode (1 byte)] [payload (0-64 bytes)]

Reply Structure (device -> host, one bulk IN transfer):
    [echo (1 byte)] [data (0-127 bytes)]

The echo byte must equal the opcode of the command being answered. It is
the only desynchronization guard the protocol has: a stale reply from an
earlier command shows up here as a mismatch, and nothing resynchronizes
the stream afterwards.
"""

from __future__ import annotations

import msgspec

from ..errors import EchoMismatch, EmptyReply, OversizedCommand
from . import protocol


class CommandFrame(msgspec.Struct, frozen=True, kw_only=True):
    """A single command as sent over the bulk OUT endpoint.

    Attributes:
        opcode: The command byte (see :class:`protocol.Command`).
        payload: Command arguments, 0 to MAX_PAYLOAD_SIZE bytes.
    """

    opcode: int
    payload: bytes = b""

    @staticmethod
    def build(opcode: int, payload: bytes = b"") -> bytes:
        """Concatenate *opcode* and *payload* into one frame."""
        if not 0 <= opcode <= protocol.UINT8_MASK:
            raise ValueError(f"Opcode {opcode} outside 8-bit range")
        frame_len = protocol.ECHO_SIZE + len(payload)
        if frame_len > protocol.MAX_COMMAND_SIZE:
            raise OversizedCommand(opcode, frame_len, protocol.MAX_COMMAND_SIZE)
        return bytes((opcode,)) + bytes(payload)

    @staticmethod
    def parse_reply(opcode: int, reply: bytes | bytearray | memoryview, max_len: int) -> bytes:
        """Validate the echo byte and return at most *max_len* payload bytes.

        Replies longer than the caller's buffer are truncated, not rejected;
        firmware pads some replies for forward compatibility.
        """
        data = bytes(reply)
        if not data:
            raise EmptyReply(opcode)
        if data[0] != opcode:
            raise EchoMismatch(opcode, data[0])
        return data[protocol.ECHO_SIZE : protocol.ECHO_SIZE + max(0, max_len)]

    def to_bytes(self) -> bytes:
        """Serialize the instance using :meth:`build`."""
        return self.build(self.opcode, self.payload)
