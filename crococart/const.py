"""Default values shared by configuration and runtime components."""

from __future__ import annotations

from typing import Final

DEFAULT_VENDOR_ID: Final[int] = 0x2E8A
DEFAULT_PRODUCT_ID: Final[int] = 0x107F
DEFAULT_INTERFACE_CLASS: Final[int] = 0xFF

DEFAULT_USB_TIMEOUT_MS: Final[int] = 5000
DEFAULT_SETTLE_DELAY: Final[float] = 0.010
DEFAULT_IDENTITY_DELAY: Final[float] = 0.050
DEFAULT_LISTING_DELAY: Final[float] = 0.010

DEFAULT_MAX_BANKS: Final[int] = 888

DEFAULT_CLAIM_ATTEMPTS: Final[int] = 3
DEFAULT_CLAIM_RETRY_DELAY: Final[float] = 0.2

DEFAULT_DEBUG_LOGGING: Final[bool] = False
DEFAULT_LOG_FORMAT: Final[str] = "text"
LOG_FORMATS: Final[tuple[str, ...]] = ("text", "json")

ENV_PREFIX: Final[str] = "CROCOCART_"

# CDC SET_CONTROL_LINE_STATE with DTR asserted; firmware ignores bulk
# commands until the host raises DTR.
CONTROL_REQUEST_TYPE: Final[int] = 0x21
CONTROL_REQUEST_LINE_STATE: Final[int] = 0x22
CONTROL_VALUE_DTR: Final[int] = 0x01

USB_ERRNO_BUSY: Final[int] = 16
USB_ERRNO_TIMEOUT: Final[frozenset[int]] = frozenset({60, 110})
