"""Marshmallow schema for RuntimeConfig validation."""

from __future__ import annotations

from typing import Any, Dict

from marshmallow import Schema, fields, post_load, pre_load, validate

from ..common import parse_int
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
from .model import RuntimeConfig

_HEX_FIELDS = ("vendor_id", "product_id", "interface_class")


class RuntimeConfigSchema(Schema):
    """Declarative validation schema for croco cartridge configuration."""

    # USB
    vendor_id = fields.Int(load_default=DEFAULT_VENDOR_ID, validate=validate.Range(min=0, max=0xFFFF))
    product_id = fields.Int(load_default=DEFAULT_PRODUCT_ID, validate=validate.Range(min=0, max=0xFFFF))
    interface_class = fields.Int(load_default=DEFAULT_INTERFACE_CLASS, validate=validate.Range(min=0, max=0xFF))
    usb_timeout_ms = fields.Int(load_default=DEFAULT_USB_TIMEOUT_MS, validate=validate.Range(min=1))
    claim_attempts = fields.Int(load_default=DEFAULT_CLAIM_ATTEMPTS, validate=validate.Range(min=1))
    claim_retry_delay = fields.Float(load_default=DEFAULT_CLAIM_RETRY_DELAY, validate=validate.Range(min=0.0))

    # Protocol pacing
    settle_delay = fields.Float(load_default=DEFAULT_SETTLE_DELAY, validate=validate.Range(min=0.0))
    identity_delay = fields.Float(load_default=DEFAULT_IDENTITY_DELAY, validate=validate.Range(min=0.0))
    listing_delay = fields.Float(load_default=DEFAULT_LISTING_DELAY, validate=validate.Range(min=0.0))
    max_banks = fields.Int(load_default=DEFAULT_MAX_BANKS, validate=validate.Range(min=1))

    # Logging
    debug_logging = fields.Bool(load_default=DEFAULT_DEBUG_LOGGING)
    log_format = fields.Str(load_default=DEFAULT_LOG_FORMAT, validate=validate.OneOf(LOG_FORMATS))

    @pre_load
    def normalize_ids(self, data: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
        # USB ids are usually written in hex ("0x2E8A").
        for key in _HEX_FIELDS:
            value = data.get(key)
            if isinstance(value, str):
                parsed = parse_int(value, -1)
                data[key] = parsed if parsed >= 0 else value
        if isinstance(data.get("log_format"), str):
            data["log_format"] = data["log_format"].strip().lower()
        return data

    @post_load
    def make_config(self, data: Dict[str, Any], **kwargs: Any) -> RuntimeConfig:
        return RuntimeConfig(**data)
