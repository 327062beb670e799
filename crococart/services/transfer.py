"""Chunked bulk transfers (ROM upload, save download, save upload).

All three transfers share one shape: a handshake command carrying the
transfer metadata, then ``total_banks * chunks_per_bank`` chunk exchanges in
strictly increasing (bank, chunk) order. Each chunk is 32 data bytes tagged
with big-endian bank and chunk indices. The first failure aborts the whole
transfer; the protocol has no resume token, so recovery means a new
handshake from bank 0.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, BinaryIO

from transitions import Machine

from ..errors import (
    DesynchronizationError,
    DeviceRejected,
    ShortReply,
    TransferCancelled,
    TransferRejected,
)
from ..protocol import protocol
from ..protocol.structures import (
    ChunkPacket,
    Direction,
    RomUploadRequestPacket,
    SlotRequestPacket,
    TransferProfile,
    TransferProgress,
)
from .channel import CommandChannel

ProgressCallback = Callable[[TransferProgress], None]
AbortCheck = Callable[[], bool]

logger = logging.getLogger("crococart.transfer")


def rom_upload_request(num_banks: int, name: bytes) -> bytes:
    """Handshake payload for a ROM upload: banks, 17-byte name, speed marker."""
    return RomUploadRequestPacket(num_banks=num_banks, name=name).encode()


def slot_request(slot_id: int) -> bytes:
    """Handshake payload for save transfers: the target slot id."""
    return SlotRequestPacket(slot_id=slot_id).encode()


class BulkTransfer:
    """One transfer session for a given :class:`TransferProfile`.

    A session runs once. It starts ``idle``, moves through ``handshaking``
    and ``streaming`` and ends ``completed`` or ``aborted``. Cancellation
    through *should_abort* is checked between chunks only.
    """

    if TYPE_CHECKING:
        # FSM generated methods and attributes for static analysis
        fsm_state: str
        begin: Callable[[], bool]
        accept: Callable[[], bool]
        finish: Callable[[], bool]
        fail: Callable[[], bool]

    STATE_IDLE = "idle"
    STATE_HANDSHAKING = "handshaking"
    STATE_STREAMING = "streaming"
    STATE_COMPLETED = "completed"
    STATE_ABORTED = "aborted"

    def __init__(
        self,
        channel: CommandChannel,
        profile: TransferProfile,
        *,
        progress: ProgressCallback | None = None,
        should_abort: AbortCheck | None = None,
        logger_: logging.Logger | None = None,
    ) -> None:
        self._channel = channel
        self._profile = profile
        self._progress = progress
        self._should_abort = should_abort
        self._logger = logger_ or logger
        self.chunks_done = 0
        self.total_chunks = 0

        self.state_machine = Machine(
            model=self,
            states=[
                self.STATE_IDLE,
                self.STATE_HANDSHAKING,
                self.STATE_STREAMING,
                self.STATE_COMPLETED,
                {"name": self.STATE_ABORTED, "on_enter": "_on_fsm_aborted"},
            ],
            initial=self.STATE_IDLE,
            auto_transitions=False,
            model_attribute="fsm_state",
        )
        self.state_machine.add_transition(trigger="begin", source=self.STATE_IDLE, dest=self.STATE_HANDSHAKING)
        self.state_machine.add_transition(
            trigger="accept", source=self.STATE_HANDSHAKING, dest=self.STATE_STREAMING
        )
        self.state_machine.add_transition(
            trigger="finish", source=self.STATE_STREAMING, dest=self.STATE_COMPLETED
        )
        self.state_machine.add_transition(
            trigger="fail",
            source=[self.STATE_HANDSHAKING, self.STATE_STREAMING],
            dest=self.STATE_ABORTED,
        )

    @property
    def profile(self) -> TransferProfile:
        return self._profile

    def _on_fsm_aborted(self) -> None:
        self._logger.error(
            "%s aborted after %d/%d chunks",
            self._profile.name,
            self.chunks_done,
            self.total_chunks,
        )

    def run(self, handshake_payload: bytes, total_banks: int, stream: BinaryIO) -> int:
        """Run handshake and streaming loop; return the number of chunks exchanged.

        *stream* is read from for outbound transfers and written to for
        inbound ones.
        """
        if not 0 < total_banks <= protocol.UINT16_MAX:
            raise ValueError(f"total_banks must be between 1 and {protocol.UINT16_MAX}")
        if self.fsm_state != self.STATE_IDLE:
            raise RuntimeError(f"Transfer session already used (state={self.fsm_state})")

        profile = self._profile
        self.total_chunks = total_banks * profile.chunks_per_bank
        self.begin()
        try:
            self._handshake(handshake_payload)
            self.accept()
            self._logger.info(
                "%s started: %d banks, %d chunks",
                profile.name,
                total_banks,
                self.total_chunks,
            )
            for bank in range(total_banks):
                for chunk in range(profile.chunks_per_bank):
                    if self._should_abort is not None and self._should_abort():
                        raise TransferCancelled(bank, chunk)
                    if profile.direction is Direction.OUTBOUND:
                        self._send_chunk(bank, chunk, self._read_chunk(stream))
                    else:
                        stream.write(self._receive_chunk(bank, chunk))
                    self.chunks_done += 1
                    self._report(bank, chunk)
                self._logger.debug("%s bank %d/%d done", profile.name, bank + 1, total_banks)
        except BaseException:
            self.fail()
            raise

        self.finish()
        self._logger.info("%s completed: %d chunks", profile.name, self.chunks_done)
        return self.chunks_done

    def _handshake(self, payload: bytes) -> None:
        opcode = self._profile.request_command
        status = self._channel.execute_status(opcode, payload)
        if status != protocol.STATUS_OK:
            raise TransferRejected(opcode, status, "handshake refused")

    def _read_chunk(self, source: BinaryIO) -> bytes:
        size = self._profile.chunk_size
        data = source.read(size) or b""
        return data.ljust(size, b"\x00")

    def _send_chunk(self, bank: int, chunk: int, data: bytes) -> None:
        opcode = self._profile.chunk_command
        payload = ChunkPacket(bank=bank, chunk=chunk, data=data).encode()
        status = self._channel.execute_status(opcode, payload)
        if status != protocol.STATUS_OK:
            raise DeviceRejected(opcode, status, f"bank {bank} chunk {chunk}")

    def _receive_chunk(self, bank: int, chunk: int) -> bytes:
        opcode = self._profile.chunk_command
        reply = self._channel.execute(opcode, b"", protocol.CHUNK_SIZE)
        if len(reply) < protocol.CHUNK_SIZE:
            raise ShortReply(opcode, protocol.CHUNK_SIZE, len(reply))
        packet = ChunkPacket.decode(reply)
        if packet.position != (bank, chunk):
            raise DesynchronizationError((bank, chunk), packet.position)
        return packet.data

    def _report(self, bank: int, chunk: int) -> None:
        if self._progress is None:
            return
        self._progress(
            TransferProgress(
                profile=self._profile.name,
                bank=bank,
                chunk=chunk,
                chunks_done=self.chunks_done,
                total_chunks=self.total_chunks,
            )
        )
