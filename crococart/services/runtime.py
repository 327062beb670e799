"""High-level cartridge operations composed from channel, catalog and transfers."""

from __future__ import annotations

import logging
import math
import os
import tempfile
import stat
import time
from collections.abc import Callable
from pathlib import Path

from ..config.model import RuntimeConfig
from ..errors import ProtocolError
from ..protocol import protocol
from ..protocol.structures import (
    ROM_UPLOAD,
    SAVE_DOWNLOAD,
    SAVE_UPLOAD,
    DeviceIdentity,
    Slot,
    SlotListing,
    TransferProfile,
    Utilization,
    encode_rom_name,
)
from ..transport import Transport
from .catalog import CatalogService
from .channel import CommandChannel
from .transfer import AbortCheck, BulkTransfer, ProgressCallback, rom_upload_request, slot_request

logger = logging.getLogger("crococart.service")


class SlotOutOfRange(ProtocolError, IndexError):
    """The slot id is not present in the device's current listing."""

    def __init__(self, slot_id: int, num_roms: int) -> None:
        super().__init__(f"Slot {slot_id} does not exist (device holds {num_roms} ROMs)")
        self.slot_id = slot_id
        self.num_roms = num_roms


class CartridgeService:
    """User-level operations for one opened cartridge.

    Attributes:
        config: Runtime configuration for delays and capacity.
        channel: The command channel bound to the open transport.
        catalog: Catalog operations sharing that channel.
    """

    def __init__(
        self,
        config: RuntimeConfig,
        transport: Transport,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.channel = CommandChannel(transport, settle_delay=config.settle_delay, sleep=sleep)
        self.catalog = CatalogService(
            self.channel,
            max_banks=config.max_banks,
            listing_delay=config.listing_delay,
            identity_delay=config.identity_delay,
            sleep=sleep,
        )

    # --- Catalog ---

    def utilization(self) -> Utilization:
        return self.catalog.get_utilization()

    def list_slots(self) -> SlotListing:
        return self.catalog.list_slots()

    def device_identity(self) -> DeviceIdentity:
        return self.catalog.get_device_identity()

    def slot_info(self, slot_id: int) -> Slot:
        """Re-validate *slot_id* against fresh utilization, then fetch its info."""
        self._require_slot(slot_id)
        return self.catalog.get_slot_info(slot_id)

    def delete_slot(self, slot_id: int) -> int:
        self._require_slot(slot_id)
        return self.catalog.delete_slot(slot_id)

    def _require_slot(self, slot_id: int) -> None:
        num_roms = self.catalog.get_utilization().num_roms
        if not 0 <= slot_id < num_roms:
            raise SlotOutOfRange(slot_id, num_roms)

    # --- Transfers ---

    def _transfer(
        self,
        profile: TransferProfile,
        progress: ProgressCallback | None,
        should_abort: AbortCheck | None,
    ) -> BulkTransfer:
        return BulkTransfer(self.channel, profile, progress=progress, should_abort=should_abort)

    def upload_rom(
        self,
        path: str | os.PathLike[str],
        name: str | None = None,
        *,
        progress: ProgressCallback | None = None,
        should_abort: AbortCheck | None = None,
    ) -> int:
        """Flash the ROM image at *path* into a new slot; return banks sent."""
        rom_path = Path(path)
        size = rom_path.stat().st_size
        if size == 0:
            raise ValueError(f"ROM image {rom_path} is empty")
        num_banks = math.ceil(size / protocol.ROM_BANK_SIZE)
        title = encode_rom_name(name if name is not None else rom_path.stem)

        logger.info("Uploading %s (%d bytes, %d banks)", rom_path.name, size, num_banks)
        with rom_path.open("rb") as source:
            self._transfer(ROM_UPLOAD, progress, should_abort).run(
                rom_upload_request(num_banks, title), num_banks, source
            )
        return num_banks

    def download_save(
        self,
        slot_id: int,
        path: str | os.PathLike[str],
        *,
        progress: ProgressCallback | None = None,
        should_abort: AbortCheck | None = None,
    ) -> int:
        """Write the save RAM of *slot_id* to *path*; return banks received."""
        slot = self.slot_info(slot_id)
        if not slot.has_save:
            logger.warning("ROM %d (%s) has no save RAM; nothing to download", slot_id, slot.name)
            return 0

        target = Path(path)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
        try:
            with os.fdopen(fd, "wb") as sink:
                self._transfer(SAVE_DOWNLOAD, progress, should_abort).run(
                    slot_request(slot_id), slot.num_ram_banks, sink
                )
            os.chmod(tmp_name, _replacement_mode(target))
            os.replace(tmp_name, target)
        except BaseException:
            _discard_partial(tmp_name)
            raise
        return slot.num_ram_banks

    def upload_save(
        self,
        slot_id: int,
        path: str | os.PathLike[str],
        *,
        progress: ProgressCallback | None = None,
        should_abort: AbortCheck | None = None,
    ) -> int:
        """Write the save image at *path* into *slot_id*; return banks sent."""
        slot = self.slot_info(slot_id)
        if not slot.has_save:
            logger.warning("ROM %d (%s) has no save RAM; nothing to upload", slot_id, slot.name)
            return 0

        save_path = Path(path)
        expected = slot.num_ram_banks * protocol.SRAM_BANK_SIZE
        size = save_path.stat().st_size
        if size != expected:
            logger.warning(
                "Save image %s is %d bytes; slot expects %d (data is %s)",
                save_path.name,
                size,
                expected,
                "zero-padded" if size < expected else "truncated",
            )
        with save_path.open("rb") as source:
            self._transfer(SAVE_UPLOAD, progress, should_abort).run(
                slot_request(slot_id), slot.num_ram_banks, source
            )
        return slot.num_ram_banks


def _discard_partial(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def _replacement_mode(target: Path) -> int:
    """Mode for a file about to replace *target*.

    An existing save keeps its permissions; a new one gets what ``open()``
    would have given it under the current umask.
    """
    try:
        return stat.S_IMODE(target.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask
