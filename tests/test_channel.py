"""Tests for the command channel."""

from __future__ import annotations

import pytest

from crococart.errors import EchoMismatch, EmptyReply, OversizedCommand, ShortReply
from crococart.protocol.frame import CommandFrame
from crococart.protocol.protocol import Command
from crococart.services.channel import CommandChannel

from tests.mocks import ScriptedTransport


def test_execute_sends_frame_and_returns_payload(scripted: ScriptedTransport) -> None:
    scripted.queue(b"\x01\x02\x00\x01\x00\x00")
    channel = CommandChannel(scripted, settle_delay=0.0)

    data = channel.execute(Command.CMD_GET_UTILIZATION, b"", 10)

    assert scripted.sent == [b"\x01"]
    assert data == b"\x02\x00\x01\x00\x00"


def test_execute_waits_settle_delay_between_send_and_receive() -> None:
    events: list[str] = []

    class RecordingTransport(ScriptedTransport):
        def send(self, data: bytes) -> int:
            events.append("send")
            return super().send(data)

        def receive(self, max_len: int) -> bytes:
            events.append("receive")
            return super().receive(max_len)

    transport = RecordingTransport()
    transport.queue(b"\x05\x00")
    channel = CommandChannel(transport, settle_delay=0.01, sleep=lambda s: events.append(f"sleep {s}"))

    channel.execute(Command.CMD_DELETE_ROM, b"\x00", 1)

    assert events == ["send", "sleep 0.01", "receive"]


def test_execute_timeout_surfaces_as_empty_reply(scripted: ScriptedTransport) -> None:
    channel = CommandChannel(scripted, settle_delay=0.0)
    with pytest.raises(EmptyReply):
        channel.execute(Command.CMD_GET_DEVICE_INFO)


def test_execute_stale_reply_is_echo_mismatch(scripted: ScriptedTransport) -> None:
    scripted.queue(b"\x03\x00")
    channel = CommandChannel(scripted, settle_delay=0.0)
    with pytest.raises(EchoMismatch):
        channel.execute(Command.CMD_GET_UTILIZATION)


def test_oversized_command_never_reaches_transport(scripted: ScriptedTransport) -> None:
    channel = CommandChannel(scripted, settle_delay=0.0)
    with pytest.raises(OversizedCommand):
        channel.execute(Command.CMD_ROM_CHUNK, bytes(65))
    assert scripted.sent == []


def test_execute_status_returns_first_byte(scripted: ScriptedTransport) -> None:
    scripted.queue(b"\x05\x07\xFF")
    channel = CommandChannel(scripted, settle_delay=0.0)
    assert channel.execute_status(Command.CMD_DELETE_ROM, b"\x00") == 7


def test_execute_status_echo_only_is_short_reply(scripted: ScriptedTransport) -> None:
    scripted.queue(b"\x05")
    channel = CommandChannel(scripted, settle_delay=0.0)
    with pytest.raises(ShortReply) as excinfo:
        channel.execute_status(Command.CMD_DELETE_ROM, b"\x00")
    assert excinfo.value.received == 0


def test_execute_sends_serialized_command_frame(scripted: ScriptedTransport) -> None:
    scripted.queue(b"\x04" + bytes(21))
    channel = CommandChannel(scripted, settle_delay=0.0)

    channel.execute(Command.CMD_GET_ROM_INFO, b"\x02", 25)

    expected = CommandFrame(opcode=Command.CMD_GET_ROM_INFO, payload=b"\x02").to_bytes()
    assert scripted.sent == [expected] == [b"\x04\x02"]
