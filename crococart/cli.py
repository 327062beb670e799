"""Command line interface for the Croco Cartridge."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from typing import NoReturn, TextIO

from . import __version__
from .config.logging import configure_logging
from .config.settings import get_config_source, load_runtime_config
from .errors import ConfigError, CrocoError
from .protocol.structures import Slot, SlotFailure, TransferProgress
from .services.runtime import CartridgeService
from .transport import open_transport

logger = logging.getLogger("crococart")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def _slot_number(value: str) -> int:
    """Parse a 1-based slot number as printed by ``list``."""
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid slot number: {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError("slot numbers start at 1")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="croco-cli", description="Manage ROMs and saves on a Croco Cartridge.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", default=None, help="Enable debug logging with hexdumps")
    parser.add_argument("--json-logs", action="store_true", help="Emit structured JSON log lines")
    parser.add_argument("--timeout", type=int, metavar="MS", help="USB transfer timeout in milliseconds")

    sub = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    sub.add_parser("list", help="List all games on the cartridge")
    sub.add_parser("info", help="Show device information")

    upload_rom = sub.add_parser("upload-rom", help="Flash a ROM image into a new slot")
    upload_rom.add_argument("file", help="Path to the .gb/.gbc image")
    upload_rom.add_argument("--name", help="Title stored on the cartridge (default: file name)")

    download_save = sub.add_parser("download-save", help="Copy a slot's save RAM to a file")
    download_save.add_argument("slot", type=_slot_number, help="Slot number as shown by 'list'")
    download_save.add_argument("file", help="Destination file")

    upload_save = sub.add_parser("upload-save", help="Write a save file into a slot")
    upload_save.add_argument("slot", type=_slot_number, help="Slot number as shown by 'list'")
    upload_save.add_argument("file", help="Save image to upload")

    delete = sub.add_parser("delete", help="Delete a slot")
    delete.add_argument("slot", type=_slot_number, help="Slot number as shown by 'list'")
    delete.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    return parser


class ProgressPrinter:
    """Single-line progress indicator, redrawn only when the percentage changes."""

    def __init__(self, stream: TextIO, label: str) -> None:
        self._stream = stream
        self._label = label
        self._last = -1
        self._enabled = stream.isatty()

    def __call__(self, progress: TransferProgress) -> None:
        if not self._enabled:
            return
        percent = int(progress.fraction * 100)
        if percent == self._last:
            return
        self._last = percent
        filled = percent // 5
        self._stream.write(
            f"\r{self._label} [{'#' * filled}{' ' * (20 - filled)}] {percent:3d}% "
            f"(bank {progress.bank + 1})"
        )
        if progress.chunks_done == progress.total_chunks:
            self._stream.write("\n")
        self._stream.flush()


def cmd_list(service: CartridgeService, args: argparse.Namespace, out: TextIO) -> int:
    listing = service.list_slots()
    usage = listing.utilization
    out.write(
        f"Found {usage.num_roms} game(s) using {usage.used_banks} / {usage.max_banks} banks\n\n"
    )
    if usage.num_roms == 0:
        out.write("No ROMs found on cartridge\n")
        return EXIT_OK

    entries: list[Slot | SlotFailure] = sorted(
        [*listing.slots, *listing.failures], key=lambda entry: entry.slot_id
    )
    for entry in entries:
        if isinstance(entry, SlotFailure):
            out.write("[%2u] <unreadable: %s>\n" % (entry.slot_id + 1, entry.reason))
            continue
        out.write(
            "[%2u] %-22s | ROM: %5u x 32KB | RAM: %u x 8KB | MBC: 0x%02x\n"
            % (entry.slot_id + 1, entry.name, entry.num_rom_banks, entry.num_ram_banks, entry.mbc)
        )
    return EXIT_OK


def cmd_info(service: CartridgeService, args: argparse.Namespace, out: TextIO) -> int:
    identity = service.device_identity()
    out.write("Device Information:\n")
    out.write(f"  Feature Step: {identity.feature_step}\n")
    out.write(f"  HW Version: {identity.hw_version}\n")
    out.write(f"  SW Version: {identity.sw_version}\n")
    out.write(f"  Git Short: 0x{identity.git_short}\n")
    out.write(f"  Git Dirty: {'yes' if identity.git_dirty else 'no'}\n")
    if identity.serial_id is not None:
        out.write(f"  Serial ID: {identity.serial_id}\n")
    return EXIT_OK


def cmd_upload_rom(service: CartridgeService, args: argparse.Namespace, out: TextIO) -> int:
    banks = service.upload_rom(args.file, args.name, progress=ProgressPrinter(sys.stderr, "Flashing"))
    out.write(f"Uploaded {args.file} ({banks} banks)\n")
    return EXIT_OK


def cmd_download_save(service: CartridgeService, args: argparse.Namespace, out: TextIO) -> int:
    banks = service.download_save(
        args.slot - 1, args.file, progress=ProgressPrinter(sys.stderr, "Reading save")
    )
    if banks == 0:
        out.write(f"Slot {args.slot} has no save RAM; nothing written\n")
    else:
        out.write(f"Saved {banks} x 8KB from slot {args.slot} to {args.file}\n")
    return EXIT_OK


def cmd_upload_save(service: CartridgeService, args: argparse.Namespace, out: TextIO) -> int:
    banks = service.upload_save(
        args.slot - 1, args.file, progress=ProgressPrinter(sys.stderr, "Writing save")
    )
    if banks == 0:
        out.write(f"Slot {args.slot} has no save RAM; nothing uploaded\n")
    else:
        out.write(f"Wrote {banks} x 8KB from {args.file} to slot {args.slot}\n")
    return EXIT_OK


def cmd_delete(service: CartridgeService, args: argparse.Namespace, out: TextIO) -> int:
    slot = service.slot_info(args.slot - 1)
    if not args.yes:
        answer = input(f"Delete [{args.slot}] {slot.name}? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            out.write("Aborted\n")
            return EXIT_FAILURE
    status = service.delete_slot(slot.slot_id)
    if status != 0:
        out.write(f"Device refused to delete slot {args.slot} (status {status})\n")
        return EXIT_FAILURE
    out.write(f"Deleted [{args.slot}] {slot.name}\n")
    return EXIT_OK


COMMANDS: dict[str, Callable[[CartridgeService, argparse.Namespace, TextIO], int]] = {
    "list": cmd_list,
    "info": cmd_info,
    "upload-rom": cmd_upload_rom,
    "download-save": cmd_download_save,
    "upload-save": cmd_upload_save,
    "delete": cmd_delete,
}


def run(argv: Sequence[str] | None = None, out: TextIO | None = None) -> int:
    """Parse *argv*, open the cartridge and dispatch; return the exit status."""
    args = build_parser().parse_args(argv)
    out = out or sys.stdout

    try:
        config = load_runtime_config(
            {
                "debug_logging": args.debug,
                "log_format": "json" if args.json_logs else None,
                "usb_timeout_ms": args.timeout,
            }
        )
    except ConfigError as exc:
        sys.stderr.write(f"croco-cli: {exc}\n")
        return EXIT_FAILURE

    configure_logging(config)
    logger.debug("Configuration source: %s", get_config_source())

    handler = COMMANDS[args.command]
    try:
        with open_transport(config) as transport:
            return handler(CartridgeService(config, transport), args, out)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user.")
        return EXIT_INTERRUPTED
    except CrocoError as exc:
        logger.error("%s", exc)
        return EXIT_FAILURE
    except OSError as exc:
        logger.error("File error: %s", exc)
        return EXIT_FAILURE
    except ValueError as exc:
        logger.error("%s", exc)
        return EXIT_FAILURE


def main() -> NoReturn:  # pragma: no cover (Entry point wrapper)
    sys.exit(run())


if __name__ == "__main__":
    main()
