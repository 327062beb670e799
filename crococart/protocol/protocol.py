"""Wire constants and binary layouts for the Croco Cartridge USB protocol."""
from __future__ import annotations
from construct import Bytes, Const, Int8ub, Int16ub, Int16ul, Int32ub, Struct as BinStruct  # type: ignore
from enum import IntEnum
from typing import Final

MAX_PAYLOAD_SIZE: Final[int] = 64
MAX_COMMAND_SIZE: Final[int] = 1 + MAX_PAYLOAD_SIZE
MAX_REPLY_SIZE: Final[int] = 128
ECHO_SIZE: Final[int] = 1

STATUS_OK: Final[int] = 0
UINT8_MASK: Final[int] = 255
UINT16_MAX: Final[int] = 65535

CHUNK_DATA_SIZE: Final[int] = 32
ROM_BANK_SIZE: Final[int] = 16384
SRAM_BANK_SIZE: Final[int] = 8192
ROM_NAME_LENGTH: Final[int] = 17
SPEED_SWITCH_NOT_APPLICABLE: Final[int] = 0xFFFF
UTILIZATION_UNIT: Final[int] = 256
MBC_UNKNOWN: Final[int] = 0xFF
SERIAL_ID_LENGTH: Final[int] = 8

# Caller-side reply buffers; replies longer than these are truncated.
STATUS_REPLY_MAX: Final[int] = 1
UTILIZATION_REPLY_MAX: Final[int] = 10
SLOT_INFO_REPLY_MAX: Final[int] = 25
DEVICE_INFO_REPLY_MAX: Final[int] = 15
SERIAL_ID_REPLY_MAX: Final[int] = 10

UTILIZATION_MIN_PAYLOAD: Final[int] = 5
SLOT_INFO_MIN_PAYLOAD: Final[int] = ROM_NAME_LENGTH + 1
SLOT_INFO_MBC_PAYLOAD: Final[int] = SLOT_INFO_MIN_PAYLOAD + 1
SLOT_INFO_FULL_PAYLOAD: Final[int] = SLOT_INFO_MBC_PAYLOAD + 2
DEVICE_INFO_MIN_PAYLOAD: Final[int] = 11


class Command(IntEnum):
    CMD_GET_UTILIZATION = 0x01
    CMD_REQUEST_ROM_UPLOAD = 0x02
    CMD_ROM_CHUNK = 0x03
    CMD_GET_ROM_INFO = 0x04
    CMD_DELETE_ROM = 0x05
    CMD_REQUEST_SAVE_DOWNLOAD = 0x06
    CMD_SAVE_CHUNK_IN = 0x07
    CMD_REQUEST_SAVE_UPLOAD = 0x08
    CMD_SAVE_CHUNK_OUT = 0x09
    CMD_GET_RTC = 0x0A  # Not implemented by this host.
    CMD_SET_RTC = 0x0B  # Not implemented by this host.
    CMD_GET_SERIAL_ID = 0xFD
    CMD_GET_DEVICE_INFO = 0xFE


CHUNK_STRUCT: Final = BinStruct(
    "bank" / Int16ub,
    "chunk" / Int16ub,
    "data" / Bytes(CHUNK_DATA_SIZE),
)
CHUNK_SIZE: Final[int] = CHUNK_STRUCT.sizeof()  # type: ignore

ROM_UPLOAD_REQUEST_STRUCT: Final = BinStruct(
    "num_banks" / Int16ub,
    "name" / Bytes(ROM_NAME_LENGTH),
    "speed_switch_bank" / Const(SPEED_SWITCH_NOT_APPLICABLE, Int16ub),
)

UTILIZATION_STRUCT: Final = BinStruct(
    "num_roms" / Int8ub,
    # Counter of used 256-byte units, low byte first.
    "used_units" / Int16ul,
)

SLOT_REQUEST_STRUCT: Final = BinStruct("slot_id" / Int8ub)

# Legacy firmware stops after the RAM bank count; MBC type and ROM bank
# count (low byte first) follow on current firmware.
SLOT_INFO_HEADER_STRUCT: Final = BinStruct(
    "name" / Bytes(ROM_NAME_LENGTH),
    "num_ram_banks" / Int8ub,
)
SLOT_INFO_MBC_STRUCT: Final = Int8ub
SLOT_INFO_ROM_BANKS_STRUCT: Final = Int16ul

DEVICE_INFO_STRUCT: Final = BinStruct(
    "feature_step" / Int8ub,
    "hw_version" / Int8ub,
    "sw_major" / Int8ub,
    "sw_minor" / Int8ub,
    "sw_patch" / Int8ub,
    "build_tag" / Int8ub,
    "git_short" / Int32ub,
    "git_dirty" / Int8ub,
)

SERIAL_ID_STRUCT: Final = BinStruct("serial" / Bytes(SERIAL_ID_LENGTH))
