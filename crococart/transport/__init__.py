"""Transport layer for the Croco Cartridge."""

from .usb import Transport, UsbTransport, open_transport

__all__ = ["Transport", "UsbTransport", "open_transport"]
