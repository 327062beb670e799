"""Data model for croco cartridge configuration."""

from __future__ import annotations

from dataclasses import dataclass

from ..const import (
    DEFAULT_CLAIM_ATTEMPTS,
    DEFAULT_CLAIM_RETRY_DELAY,
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_IDENTITY_DELAY,
    DEFAULT_INTERFACE_CLASS,
    DEFAULT_LISTING_DELAY,
    DEFAULT_LOG_FORMAT,
    DEFAULT_MAX_BANKS,
    DEFAULT_PRODUCT_ID,
    DEFAULT_SETTLE_DELAY,
    DEFAULT_USB_TIMEOUT_MS,
    DEFAULT_VENDOR_ID,
    LOG_FORMATS,
)
from ..errors import ConfigError


@dataclass(slots=True)
class RuntimeConfig:
    """Strongly typed configuration for one croco-cli invocation."""

    vendor_id: int = DEFAULT_VENDOR_ID
    product_id: int = DEFAULT_PRODUCT_ID
    interface_class: int = DEFAULT_INTERFACE_CLASS
    usb_timeout_ms: int = DEFAULT_USB_TIMEOUT_MS
    settle_delay: float = DEFAULT_SETTLE_DELAY
    identity_delay: float = DEFAULT_IDENTITY_DELAY
    listing_delay: float = DEFAULT_LISTING_DELAY
    max_banks: int = DEFAULT_MAX_BANKS
    claim_attempts: int = DEFAULT_CLAIM_ATTEMPTS
    claim_retry_delay: float = DEFAULT_CLAIM_RETRY_DELAY
    debug_logging: bool = DEFAULT_DEBUG_LOGGING
    log_format: str = DEFAULT_LOG_FORMAT

    def __post_init__(self) -> None:
        for name in ("vendor_id", "product_id"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFFFF:
                raise ConfigError(f"{name} must fit in 16 bits")
        if not 0 <= self.interface_class <= 0xFF:
            raise ConfigError("interface_class must fit in 8 bits")
        self.usb_timeout_ms = self._require_positive("usb_timeout_ms", self.usb_timeout_ms)
        self.max_banks = self._require_positive("max_banks", self.max_banks)
        self.claim_attempts = self._require_positive("claim_attempts", self.claim_attempts)
        for name in ("settle_delay", "identity_delay", "listing_delay", "claim_retry_delay"):
            if getattr(self, name) < 0.0:
                raise ConfigError(f"{name} must not be negative")
        if self.log_format not in LOG_FORMATS:
            raise ConfigError(f"log_format must be one of {', '.join(LOG_FORMATS)}")

    @staticmethod
    def _require_positive(name: str, value: int) -> int:
        if value <= 0:
            raise ConfigError(f"{name} must be a positive integer")
        return value
