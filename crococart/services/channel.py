"""Command channel: one framed command, one validated reply."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..common import format_hexdump
from ..errors import ProtocolError, ShortReply
from ..protocol import protocol
from ..protocol.frame import CommandFrame
from ..transport import Transport

logger = logging.getLogger("crococart.channel")


class CommandChannel:
    """Strict request-then-reply exchange over a :class:`Transport`.

    The protocol has no pipelining: the caller must consume each reply before
    issuing the next command, otherwise the echo check fails on a stale reply.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        settle_delay: float,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._transport = transport
        self._settle_delay = max(0.0, settle_delay)
        self._sleep = sleep

    def execute(
        self,
        opcode: int,
        payload: bytes = b"",
        max_len: int = protocol.MAX_REPLY_SIZE - protocol.ECHO_SIZE,
    ) -> bytes:
        """Send *opcode* with *payload* and return the reply minus its echo byte.

        Raises OversizedCommand before touching the transport, TransportError
        on link failures, EmptyReply when nothing arrives (including timeouts)
        and EchoMismatch when the reply answers a different command.
        """
        frame = CommandFrame(opcode=opcode, payload=bytes(payload))
        self._transport.send(frame.to_bytes())

        # Firmware needs a moment after each OUT transfer before its reply is ready.
        if self._settle_delay:
            self._sleep(self._settle_delay)

        reply = self._transport.receive(protocol.MAX_REPLY_SIZE)
        try:
            return CommandFrame.parse_reply(opcode, reply, max_len)
        except ProtocolError:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Rejected reply to 0x%02X:\n%s", opcode, format_hexdump(reply, "  "))
            raise

    def execute_status(self, opcode: int, payload: bytes = b"") -> int:
        """Run a command whose reply is a single status byte and return it."""
        data = self.execute(opcode, payload, protocol.STATUS_REPLY_MAX)
        if not data:
            raise ShortReply(opcode, protocol.STATUS_REPLY_MAX, 0)
        return data[0]
