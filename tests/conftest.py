"""Pytest configuration for crococart tests."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGE_ROOT))

from crococart.config.model import RuntimeConfig  # noqa: E402
from crococart.services.channel import CommandChannel  # noqa: E402
from crococart.services.runtime import CartridgeService  # noqa: E402

from tests.mocks import FakeCartridge, ScriptedTransport  # noqa: E402


@pytest.fixture(autouse=True)
def reset_logging_handlers():
    """Close and remove all logging handlers after each test to prevent ResourceWarnings."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        try:
            handler.close()
        except (OSError, RuntimeError):
            pass
        root.removeHandler(handler)


@pytest.fixture()
def runtime_config() -> RuntimeConfig:
    return RuntimeConfig(
        usb_timeout_ms=100,
        settle_delay=0.0,
        identity_delay=0.0,
        listing_delay=0.0,
        claim_attempts=3,
        claim_retry_delay=0.0,
    )


@pytest.fixture()
def scripted() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture()
def cartridge() -> FakeCartridge:
    return FakeCartridge()


@pytest.fixture()
def channel(cartridge: FakeCartridge) -> CommandChannel:
    return CommandChannel(cartridge, settle_delay=0.0)


@pytest.fixture()
def service(runtime_config: RuntimeConfig, cartridge: FakeCartridge) -> CartridgeService:
    return CartridgeService(runtime_config, cartridge)
