"""Tests for the pyusb transport, with libusb mocked out."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, call, patch

import pytest
import usb.core
import usb.util

from crococart.config.model import RuntimeConfig
from crococart.errors import DeviceNotFound, TransportError
from crococart.transport import usb as usb_mod
from crococart.transport.usb import UsbTransport, open_transport


@pytest.fixture()
def usb_device():
    dev = MagicMock()
    dev.idVendor = 0x2E8A
    dev.idProduct = 0x107F
    dev.is_kernel_driver_active.return_value = False
    intf = SimpleNamespace(bInterfaceNumber=1)
    ep_out = MagicMock(bEndpointAddress=0x01)
    ep_in = MagicMock(bEndpointAddress=0x81)

    with (
        patch.object(usb.core, "find", return_value=dev) as find,
        patch.object(usb.util, "find_descriptor", side_effect=[intf, ep_out, ep_in]),
        patch.object(usb.util, "claim_interface") as claim,
        patch.object(usb.util, "release_interface") as release,
        patch.object(usb.util, "dispose_resources") as dispose,
    ):
        yield SimpleNamespace(
            dev=dev,
            ep_out=ep_out,
            ep_in=ep_in,
            find=find,
            claim=claim,
            release=release,
            dispose=dispose,
        )


def test_open_claims_and_raises_dtr(runtime_config: RuntimeConfig, usb_device) -> None:
    transport = UsbTransport(runtime_config)
    transport.open()

    assert transport.is_open
    usb_device.find.assert_called_once_with(idVendor=0x2E8A, idProduct=0x107F)
    usb_device.claim.assert_called_once_with(usb_device.dev, 1)
    usb_device.dev.set_interface_altsetting.assert_called_once_with(interface=1, alternate_setting=0)
    usb_device.dev.ctrl_transfer.assert_called_once_with(0x21, 0x22, 0x01, 1, None, runtime_config.usb_timeout_ms)


def test_open_detaches_kernel_driver(runtime_config: RuntimeConfig, usb_device) -> None:
    usb_device.dev.is_kernel_driver_active.return_value = True
    UsbTransport(runtime_config).open()
    usb_device.dev.detach_kernel_driver.assert_called_once_with(1)


def test_open_tolerates_backend_without_kernel_drivers(runtime_config: RuntimeConfig, usb_device) -> None:
    usb_device.dev.is_kernel_driver_active.side_effect = NotImplementedError
    transport = UsbTransport(runtime_config)
    transport.open()
    assert transport.is_open


def test_open_device_not_found(runtime_config: RuntimeConfig, usb_device) -> None:
    usb_device.find.return_value = None
    with pytest.raises(DeviceNotFound) as excinfo:
        UsbTransport(runtime_config).open()
    assert "VID=0x2E8A" in str(excinfo.value)


def test_open_missing_endpoints(runtime_config: RuntimeConfig, usb_device) -> None:
    with patch.object(usb.util, "find_descriptor", side_effect=[SimpleNamespace(bInterfaceNumber=0), None, None]):
        with pytest.raises(TransportError, match="bulk endpoints"):
            UsbTransport(runtime_config).open()
    usb_device.dispose.assert_called_once()


def test_claim_retries_while_busy(runtime_config: RuntimeConfig, usb_device) -> None:
    usb_device.claim.side_effect = [usb.core.USBError("busy", errno=16), None]
    transport = UsbTransport(runtime_config)
    transport.open()
    assert usb_device.claim.call_count == 2
    assert transport.is_open


def test_claim_gives_up_after_attempts(runtime_config: RuntimeConfig, usb_device) -> None:
    usb_device.claim.side_effect = usb.core.USBError("busy", errno=16)
    with pytest.raises(TransportError, match="claim"):
        UsbTransport(runtime_config).open()
    assert usb_device.claim.call_count == runtime_config.claim_attempts
    usb_device.release.assert_not_called()
    usb_device.dispose.assert_called_once()


def test_claim_other_error_not_retried(runtime_config: RuntimeConfig, usb_device) -> None:
    usb_device.claim.side_effect = usb.core.USBError("access denied", errno=13)
    with pytest.raises(TransportError):
        UsbTransport(runtime_config).open()
    assert usb_device.claim.call_count == 1


def test_control_transfer_failure_closes(runtime_config: RuntimeConfig, usb_device) -> None:
    usb_device.dev.ctrl_transfer.side_effect = usb.core.USBError("pipe", errno=32)
    transport = UsbTransport(runtime_config)
    with pytest.raises(TransportError, match="Control transfer"):
        transport.open()
    assert not transport.is_open
    usb_device.release.assert_called_once_with(usb_device.dev, 1)


def test_send_and_receive(runtime_config: RuntimeConfig, usb_device) -> None:
    usb_device.ep_out.write.return_value = 2
    usb_device.ep_in.read.return_value = bytearray(b"\x05\x00")
    transport = UsbTransport(runtime_config)
    transport.open()

    assert transport.send(b"\x05\x00") == 2
    assert transport.receive(128) == b"\x05\x00"
    usb_device.ep_out.write.assert_called_once_with(b"\x05\x00", timeout=runtime_config.usb_timeout_ms)
    usb_device.ep_in.read.assert_called_once_with(128, timeout=runtime_config.usb_timeout_ms)


@pytest.mark.parametrize(
    "error",
    [
        usb.core.USBTimeoutError("timeout", errno=110),
        usb.core.USBError("Operation timed out", errno=110),
        usb.core.USBError("Operation timed out", errno=60),
    ],
)
def test_receive_timeout_is_empty(runtime_config: RuntimeConfig, usb_device, error) -> None:
    usb_device.ep_in.read.side_effect = error
    transport = UsbTransport(runtime_config)
    transport.open()
    assert transport.receive(128) == b""


def test_receive_other_error_raises(runtime_config: RuntimeConfig, usb_device) -> None:
    usb_device.ep_in.read.side_effect = usb.core.USBError("no device", errno=19)
    transport = UsbTransport(runtime_config)
    transport.open()
    with pytest.raises(TransportError):
        transport.receive(128)


def test_send_error_raises(runtime_config: RuntimeConfig, usb_device) -> None:
    usb_device.ep_out.write.side_effect = usb.core.USBError("pipe", errno=32)
    transport = UsbTransport(runtime_config)
    transport.open()
    with pytest.raises(TransportError):
        transport.send(b"\x01")


def test_io_requires_open(runtime_config: RuntimeConfig) -> None:
    transport = UsbTransport(runtime_config)
    with pytest.raises(TransportError, match="not open"):
        transport.send(b"\x01")
    with pytest.raises(TransportError, match="not open"):
        transport.receive(128)


def test_close_is_idempotent(runtime_config: RuntimeConfig, usb_device) -> None:
    transport = UsbTransport(runtime_config)
    transport.open()
    transport.close()
    transport.close()
    usb_device.release.assert_called_once_with(usb_device.dev, 1)
    usb_device.dispose.assert_called_once_with(usb_device.dev)


def test_open_transport_closes_on_error(runtime_config: RuntimeConfig, usb_device) -> None:
    with pytest.raises(RuntimeError):
        with open_transport(runtime_config) as transport:
            assert transport.is_open
            raise RuntimeError("boom")
    assert usb_device.release.call_args_list == [call(usb_device.dev, 1)]


def test_context_manager(runtime_config: RuntimeConfig, usb_device) -> None:
    with UsbTransport(runtime_config) as transport:
        assert transport.is_open
    assert not transport.is_open


def test_is_bulk_matches_direction() -> None:
    bulk_in = SimpleNamespace(bmAttributes=usb.util.ENDPOINT_TYPE_BULK, bEndpointAddress=0x81)
    interrupt_in = SimpleNamespace(bmAttributes=usb.util.ENDPOINT_TYPE_INTR, bEndpointAddress=0x82)
    assert usb_mod._is_bulk(bulk_in, usb.util.ENDPOINT_IN)
    assert not usb_mod._is_bulk(bulk_in, usb.util.ENDPOINT_OUT)
    assert not usb_mod._is_bulk(interrupt_in, usb.util.ENDPOINT_IN)
