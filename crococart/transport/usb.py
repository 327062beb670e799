"""USB transport for the Croco Cartridge (pyusb/libusb).

The cartridge exposes one vendor-specific interface (class 0xFF) with a bulk
OUT and a bulk IN endpoint. Every command is a single OUT transfer and every
reply a single IN transfer, both bounded by the same fixed timeout.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from typing import Any, Protocol

import tenacity
import usb.core
import usb.util

from ..common import log_hexdump
from ..config.model import RuntimeConfig
from ..const import (
    CONTROL_REQUEST_LINE_STATE,
    CONTROL_REQUEST_TYPE,
    CONTROL_VALUE_DTR,
    USB_ERRNO_BUSY,
    USB_ERRNO_TIMEOUT,
)
from ..errors import DeviceNotFound, TransportError

logger = logging.getLogger("crococart.transport")


class Transport(Protocol):
    """Byte channel consumed by the command channel."""

    def send(self, data: bytes) -> int: ...

    def receive(self, max_len: int) -> bytes: ...


def _is_timeout(exc: usb.core.USBError) -> bool:
    if isinstance(exc, usb.core.USBTimeoutError):
        return True
    return getattr(exc, "errno", None) in USB_ERRNO_TIMEOUT


def _is_busy(exc: BaseException) -> bool:
    return isinstance(exc, usb.core.USBError) and getattr(exc, "errno", None) == USB_ERRNO_BUSY


def _is_bulk(endpoint: Any, direction: int) -> bool:
    return (
        usb.util.endpoint_type(endpoint.bmAttributes) == usb.util.ENDPOINT_TYPE_BULK
        and usb.util.endpoint_direction(endpoint.bEndpointAddress) == direction
    )


class UsbTransport:
    """Owns the opened cartridge handle and its claimed vendor interface."""

    def __init__(self, config: RuntimeConfig) -> None:
        self._config = config
        self._dev: Any = None
        self._ep_out: Any = None
        self._ep_in: Any = None
        self._if_num: int | None = None
        self._claimed = False

    @property
    def is_open(self) -> bool:
        return self._dev is not None and self._claimed

    def open(self) -> None:
        if self.is_open:
            return

        config = self._config
        dev = usb.core.find(idVendor=config.vendor_id, idProduct=config.product_id)
        if dev is None:
            raise DeviceNotFound(config.vendor_id, config.product_id)
        self._dev = dev
        logger.info(
            "Found Croco Cartridge: VID=0x%04X PID=0x%04X",
            dev.idVendor,
            dev.idProduct,
        )

        try:
            self._find_endpoints()
            self._detach_kernel_driver()
            self._claim_interface()
            self._configure_interface()
        except TransportError:
            self.close()
            raise
        except usb.core.USBError as exc:
            self.close()
            raise TransportError(f"USB setup failed: {exc}") from exc

        logger.debug(
            "Transport opened (interface=%d EP OUT=0x%02X EP IN=0x%02X)",
            self._if_num,
            self._ep_out.bEndpointAddress,
            self._ep_in.bEndpointAddress,
        )

    def _find_endpoints(self) -> None:
        try:
            cfg = self._dev.get_active_configuration()
        except usb.core.USBError as exc:
            raise TransportError(f"Failed to get config descriptor: {exc}") from exc

        intf = usb.util.find_descriptor(cfg, bInterfaceClass=self._config.interface_class)
        if intf is None:
            raise TransportError(
                f"No interface with class 0x{self._config.interface_class:02X} on device"
            )
        self._if_num = intf.bInterfaceNumber
        self._ep_out = usb.util.find_descriptor(
            intf, custom_match=lambda e: _is_bulk(e, usb.util.ENDPOINT_OUT)
        )
        self._ep_in = usb.util.find_descriptor(
            intf, custom_match=lambda e: _is_bulk(e, usb.util.ENDPOINT_IN)
        )
        if self._ep_out is None or self._ep_in is None:
            raise TransportError("Could not find bulk endpoints")

    def _detach_kernel_driver(self) -> None:
        try:
            if self._dev.is_kernel_driver_active(self._if_num):
                self._dev.detach_kernel_driver(self._if_num)
                logger.debug("Detached kernel driver from interface %d", self._if_num)
        except NotImplementedError:
            # Backends without kernel driver support (macOS, Windows).
            pass
        except usb.core.USBError as exc:
            raise TransportError(f"Failed to detach kernel driver: {exc}") from exc

    def _claim_interface(self) -> None:
        retryer = tenacity.Retrying(
            stop=tenacity.stop_after_attempt(self._config.claim_attempts),
            wait=tenacity.wait_fixed(self._config.claim_retry_delay),
            retry=tenacity.retry_if_exception(_is_busy),
            before_sleep=self._on_claim_retry,
            reraise=True,
        )
        try:
            retryer(usb.util.claim_interface, self._dev, self._if_num)
        except usb.core.USBError as exc:
            raise TransportError(f"Failed to claim interface: {exc}") from exc
        self._claimed = True

    def _on_claim_retry(self, retry_state: tenacity.RetryCallState) -> None:
        logger.warning(
            "Interface %d busy (attempt %d/%d); retrying",
            self._if_num,
            retry_state.attempt_number,
            self._config.claim_attempts,
        )

    def _configure_interface(self) -> None:
        try:
            self._dev.set_interface_altsetting(interface=self._if_num, alternate_setting=0)
        except usb.core.USBError as exc:
            raise TransportError(f"Failed to set alt setting: {exc}") from exc
        try:
            self._dev.ctrl_transfer(
                CONTROL_REQUEST_TYPE,
                CONTROL_REQUEST_LINE_STATE,
                CONTROL_VALUE_DTR,
                self._if_num,
                None,
                self._config.usb_timeout_ms,
            )
        except usb.core.USBError as exc:
            raise TransportError(f"Control transfer failed: {exc}") from exc

    def close(self) -> None:
        """Release the interface and libusb resources. Safe to call twice."""
        dev = self._dev
        if dev is None:
            return
        if self._claimed and self._if_num is not None:
            try:
                usb.util.release_interface(dev, self._if_num)
            except usb.core.USBError as exc:
                logger.warning("Failed to release interface %d: %s", self._if_num, exc)
        usb.util.dispose_resources(dev)
        self._dev = None
        self._ep_out = None
        self._ep_in = None
        self._claimed = False
        logger.debug("Transport closed")

    def _check_open(self) -> None:
        if not self.is_open:
            raise TransportError("USB transport is not open")

    def send(self, data: bytes) -> int:
        self._check_open()
        log_hexdump(logger, logging.DEBUG, "TX", data)
        try:
            return int(self._ep_out.write(data, timeout=self._config.usb_timeout_ms))
        except usb.core.USBError as exc:
            raise TransportError(f"Failed to send command: {exc}") from exc

    def receive(self, max_len: int) -> bytes:
        """Read one reply; returns ``b""`` when the device stays silent until timeout."""
        self._check_open()
        try:
            data = bytes(self._ep_in.read(max_len, timeout=self._config.usb_timeout_ms))
        except usb.core.USBError as exc:
            if _is_timeout(exc):
                logger.debug("Receive timed out after %d ms", self._config.usb_timeout_ms)
                return b""
            raise TransportError(f"Failed to read response: {exc}") from exc
        log_hexdump(logger, logging.DEBUG, "RX", data)
        return data

    def __enter__(self) -> "UsbTransport":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@contextlib.contextmanager
def open_transport(config: RuntimeConfig) -> Iterator[UsbTransport]:
    """Yield an opened transport, closing it on every exit path."""
    transport = UsbTransport(config)
    transport.open()
    try:
        yield transport
    finally:
        transport.close()
