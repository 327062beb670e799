"""Protocol helper utilities for the Croco Cartridge."""

from .frame import CommandFrame
from .protocol import Command
from . import protocol, frame, structures

__all__ = [
    "Command",
    "CommandFrame",
    "protocol",
    "frame",
    "structures",
]
