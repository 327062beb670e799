"""Croco Cartridge host tools package initialisation."""

__version__ = "1.0.0"

import logging
import sys

logger = logging.getLogger(__name__)


def _check_dependencies():
    """Verify the installed pyusb can tell timeouts apart from link errors."""
    try:
        import usb.core

        # The command channel treats a receive timeout as an empty reply.
        # pyusb < 1.1 reports timeouts as a plain USBError, which would turn
        # every slow reply into a fatal transport failure.
        if not hasattr(usb.core, "USBTimeoutError"):
            logger.critical(
                "FATAL: Incompatible pyusb version detected. "
                "croco-cli requires pyusb >= 1.1 with USBTimeoutError support."
            )
            sys.exit(1)

    except ImportError:
        # If imports are missing entirely, Python will raise ImportError naturally later.
        pass


_check_dependencies()
