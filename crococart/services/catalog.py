"""Catalog operations: utilization, slot metadata, delete, device identity."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..errors import EmptyReply, ShortReply
from ..protocol import protocol
from ..protocol.protocol import Command
from ..protocol.structures import (
    DeviceIdentity,
    DeviceInfoResponsePacket,
    SerialIdResponsePacket,
    Slot,
    SlotFailure,
    SlotListing,
    SlotRequestPacket,
    SoftwareVersion,
    Utilization,
    decode_rom_name,
)
from .channel import CommandChannel

logger = logging.getLogger("crococart.catalog")


class CatalogService:
    """Read and delete slots through single command/reply exchanges.

    Slot ids are dense, zero-based and may be reassigned by the device after
    a delete. Nothing here caches them; callers re-query before use.
    """

    def __init__(
        self,
        channel: CommandChannel,
        *,
        max_banks: int,
        listing_delay: float = 0.0,
        identity_delay: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._channel = channel
        self._max_banks = max_banks
        self._listing_delay = listing_delay
        self._identity_delay = identity_delay
        self._sleep = sleep

    def get_utilization(self) -> Utilization:
        opcode = Command.CMD_GET_UTILIZATION
        data = self._channel.execute(opcode, b"", protocol.UTILIZATION_REPLY_MAX)
        if len(data) < protocol.UTILIZATION_MIN_PAYLOAD:
            raise ShortReply(opcode, protocol.UTILIZATION_MIN_PAYLOAD, len(data))

        container = protocol.UTILIZATION_STRUCT.parse(data)
        # The device counts 256-byte units; the host reports banks.
        return Utilization(
            num_roms=container.num_roms,
            used_banks=container.used_units // protocol.UTILIZATION_UNIT,
            max_banks=self._max_banks,
        )

    def get_slot_info(self, slot_id: int) -> Slot:
        """Fetch metadata for *slot_id*.

        Legacy firmware answers with only the name and RAM bank count (18
        bytes) or adds the MBC type (19 bytes). Missing fields fall back to
        ``MBC_UNKNOWN`` and a ROM bank count of 0.
        """
        opcode = Command.CMD_GET_ROM_INFO
        data = self._channel.execute(
            opcode,
            SlotRequestPacket(slot_id=slot_id).encode(),
            protocol.SLOT_INFO_REPLY_MAX,
        )
        if len(data) < protocol.SLOT_INFO_MIN_PAYLOAD:
            raise ShortReply(opcode, protocol.SLOT_INFO_MIN_PAYLOAD, len(data))
        if len(data) < protocol.SLOT_INFO_FULL_PAYLOAD:
            logger.debug("Slot %d: legacy info reply (%d bytes)", slot_id, len(data))

        header = protocol.SLOT_INFO_HEADER_STRUCT.parse(data)
        mbc = protocol.MBC_UNKNOWN
        if len(data) >= protocol.SLOT_INFO_MBC_PAYLOAD:
            mbc = protocol.SLOT_INFO_MBC_STRUCT.parse(data[protocol.SLOT_INFO_MIN_PAYLOAD :])
        num_rom_banks = 0
        if len(data) >= protocol.SLOT_INFO_FULL_PAYLOAD:
            num_rom_banks = protocol.SLOT_INFO_ROM_BANKS_STRUCT.parse(
                data[protocol.SLOT_INFO_MBC_PAYLOAD :]
            )

        return Slot(
            slot_id=slot_id,
            name=decode_rom_name(header.name),
            num_ram_banks=header.num_ram_banks,
            mbc=mbc,
            num_rom_banks=num_rom_banks,
        )

    def list_slots(self) -> SlotListing:
        """Snapshot utilization and every slot.

        A slot whose info cannot be read is recorded as a failure and the scan
        moves on. Link failures and echo mismatches still abort the listing.
        """
        utilization = self.get_utilization()
        slots: list[Slot] = []
        failures: list[SlotFailure] = []
        for slot_id in range(utilization.num_roms):
            if slot_id and self._listing_delay:
                self._sleep(self._listing_delay)
            try:
                slots.append(self.get_slot_info(slot_id))
            except (ShortReply, EmptyReply) as exc:
                logger.warning("Failed to get ROM %d info: %s", slot_id, exc)
                failures.append(SlotFailure(slot_id=slot_id, reason=str(exc)))
        return SlotListing(
            utilization=utilization,
            slots=tuple(slots),
            failures=tuple(failures),
        )

    def delete_slot(self, slot_id: int) -> int:
        """Delete *slot_id*; return the device status byte (0 on success)."""
        status = self._channel.execute_status(
            Command.CMD_DELETE_ROM,
            SlotRequestPacket(slot_id=slot_id).encode(),
        )
        if status != protocol.STATUS_OK:
            logger.warning("Device refused to delete slot %d (status %d)", slot_id, status)
        else:
            logger.info("Deleted slot %d", slot_id)
        return status

    def get_device_identity(self) -> DeviceIdentity:
        opcode = Command.CMD_GET_DEVICE_INFO
        data = self._channel.execute(opcode, b"", protocol.DEVICE_INFO_REPLY_MAX)
        if len(data) < protocol.DEVICE_INFO_MIN_PAYLOAD:
            raise ShortReply(opcode, protocol.DEVICE_INFO_MIN_PAYLOAD, len(data))
        info = DeviceInfoResponsePacket.decode(data)

        if self._identity_delay:
            self._sleep(self._identity_delay)

        return DeviceIdentity(
            feature_step=info.feature_step,
            hw_version=info.hw_version,
            sw_version=SoftwareVersion(
                major=info.sw_major,
                minor=info.sw_minor,
                patch=info.sw_patch,
                build_tag=chr(info.build_tag) if info.build_tag else "",
            ),
            git_short_hash=info.git_short,
            git_dirty=bool(info.git_dirty),
            serial_id=self._get_serial_id(),
        )

    def _get_serial_id(self) -> str | None:
        opcode = Command.CMD_GET_SERIAL_ID
        try:
            data = self._channel.execute(opcode, b"", protocol.SERIAL_ID_REPLY_MAX)
        except EmptyReply:
            logger.debug("Serial id unavailable: no reply")
            return None
        if len(data) < protocol.SERIAL_ID_LENGTH:
            logger.debug("Serial id unavailable: %d byte reply", len(data))
            return None
        return SerialIdResponsePacket.decode(data).serial.hex().upper()
