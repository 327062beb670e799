"""Cartridge services: command channel, catalog, transfers and the facade."""

from .catalog import CatalogService
from .channel import CommandChannel
from .runtime import CartridgeService, SlotOutOfRange
from .transfer import BulkTransfer

__all__ = [
    "BulkTransfer",
    "CartridgeService",
    "CatalogService",
    "CommandChannel",
    "SlotOutOfRange",
]
