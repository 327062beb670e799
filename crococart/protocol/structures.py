"""Cartridge data structures and packet schemas.

Fixed-layout packets pair a ``construct`` schema (byte layout) with a
``msgspec.Struct`` (typed value), following the same hybrid approach for
every command the host sends or parses.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, ClassVar, Type, TypeVar

import msgspec
from construct import Construct  # type: ignore

from . import protocol

T = TypeVar("T", bound="BaseStruct")


class BaseStruct(msgspec.Struct, frozen=True):
    """Base class for hybrid Msgspec/Construct structures."""

    _SCHEMA: ClassVar[Construct[Any]]

    @classmethod
    def decode(cls: Type[T], data: bytes | bytearray | memoryview) -> T:
        """Decode binary data into a typed Msgspec struct."""
        if not data:
            raise ValueError("Empty payload")

        container: Any = cls._SCHEMA.parse(bytes(data))
        return cls(**{k: v for k, v in container.items() if not k.startswith("_")})

    def encode(self) -> bytes:
        """Encode the typed Msgspec struct into binary data."""
        return self._SCHEMA.build(msgspec.structs.asdict(self))


# --- Binary Protocol Packets ---


class ChunkPacket(BaseStruct, frozen=True):
    bank: int
    chunk: int
    data: bytes

    _SCHEMA = protocol.CHUNK_STRUCT

    @property
    def position(self) -> tuple[int, int]:
        return (self.bank, self.chunk)


class RomUploadRequestPacket(BaseStruct, frozen=True):
    num_banks: int
    name: bytes
    speed_switch_bank: int = protocol.SPEED_SWITCH_NOT_APPLICABLE

    _SCHEMA = protocol.ROM_UPLOAD_REQUEST_STRUCT


class SlotRequestPacket(BaseStruct, frozen=True):
    slot_id: int

    _SCHEMA = protocol.SLOT_REQUEST_STRUCT


class DeviceInfoResponsePacket(BaseStruct, frozen=True):
    feature_step: int
    hw_version: int
    sw_major: int
    sw_minor: int
    sw_patch: int
    build_tag: int
    git_short: int
    git_dirty: int

    _SCHEMA = protocol.DEVICE_INFO_STRUCT


class SerialIdResponsePacket(BaseStruct, frozen=True):
    serial: bytes

    _SCHEMA = protocol.SERIAL_ID_STRUCT


def encode_rom_name(name: str) -> bytes:
    """Return *name* as the fixed-width, NUL-padded ROM title field."""
    raw = name.encode("ascii", errors="replace")[: protocol.ROM_NAME_LENGTH]
    return raw.ljust(protocol.ROM_NAME_LENGTH, b"\x00")


def decode_rom_name(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("ascii", errors="replace")


# --- High-Level Structures (Msgspec Only) ---


class Utilization(msgspec.Struct, frozen=True):
    num_roms: int
    used_banks: int
    max_banks: int


class Slot(msgspec.Struct, frozen=True):
    """One ROM entry; ``slot_id`` is only valid within the listing it came from."""

    slot_id: int
    name: str
    num_ram_banks: int
    mbc: int = protocol.MBC_UNKNOWN
    num_rom_banks: int = 0

    @property
    def has_save(self) -> bool:
        return self.num_ram_banks > 0


class SlotFailure(msgspec.Struct, frozen=True):
    slot_id: int
    reason: str


class SlotListing(msgspec.Struct, frozen=True):
    utilization: Utilization
    slots: tuple[Slot, ...] = ()
    failures: tuple[SlotFailure, ...] = ()


class SoftwareVersion(msgspec.Struct, frozen=True):
    major: int
    minor: int
    patch: int
    build_tag: str = ""

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}{self.build_tag}"


class DeviceIdentity(msgspec.Struct, frozen=True):
    feature_step: int
    hw_version: int
    sw_version: SoftwareVersion
    git_short_hash: int
    git_dirty: bool
    serial_id: str | None = None

    @property
    def git_short(self) -> str:
        return f"{self.git_short_hash:08x}"


class Direction(StrEnum):
    OUTBOUND = "outbound"  # host -> device
    INBOUND = "inbound"  # device -> host


class TransferProfile(msgspec.Struct, frozen=True):
    """Constants that distinguish one bulk transfer from another."""

    name: str
    direction: Direction
    bank_size: int
    request_command: protocol.Command
    chunk_command: protocol.Command
    chunk_size: int = protocol.CHUNK_DATA_SIZE

    @property
    def chunks_per_bank(self) -> int:
        return self.bank_size // self.chunk_size


class TransferProgress(msgspec.Struct, frozen=True):
    profile: str
    bank: int
    chunk: int
    chunks_done: int
    total_chunks: int

    @property
    def fraction(self) -> float:
        if not self.total_chunks:
            return 1.0
        return self.chunks_done / self.total_chunks


ROM_UPLOAD = TransferProfile(
    name="rom_upload",
    direction=Direction.OUTBOUND,
    bank_size=protocol.ROM_BANK_SIZE,
    request_command=protocol.Command.CMD_REQUEST_ROM_UPLOAD,
    chunk_command=protocol.Command.CMD_ROM_CHUNK,
)

SAVE_DOWNLOAD = TransferProfile(
    name="save_download",
    direction=Direction.INBOUND,
    bank_size=protocol.SRAM_BANK_SIZE,
    request_command=protocol.Command.CMD_REQUEST_SAVE_DOWNLOAD,
    chunk_command=protocol.Command.CMD_SAVE_CHUNK_IN,
)

SAVE_UPLOAD = TransferProfile(
    name="save_upload",
    direction=Direction.OUTBOUND,
    bank_size=protocol.SRAM_BANK_SIZE,
    request_command=protocol.Command.CMD_REQUEST_SAVE_UPLOAD,
    chunk_command=protocol.Command.CMD_SAVE_CHUNK_OUT,
)
