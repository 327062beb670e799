"""Settings loader for croco-cli.

Values come from ``CROCOCART_*`` environment variables with defaults from
:mod:`crococart.const`; command-line flags are applied on top as overrides.
Everything passes through :class:`RuntimeConfigSchema` before use.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any

from marshmallow import ValidationError

from ..const import ENV_PREFIX
from ..errors import ConfigError
from .model import RuntimeConfig
from .schema import RuntimeConfigSchema

logger = logging.getLogger(__name__)


def _load_raw_config(environ: Mapping[str, str]) -> dict[str, Any]:
    raw: dict[str, Any] = {}
    fields = RuntimeConfigSchema().fields
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX) :].lower()
        if name not in fields:
            logger.warning("Ignoring unknown configuration variable %s", key)
            continue
        raw[name] = value.strip()
    return raw


def load_runtime_config(
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> RuntimeConfig:
    """Load configuration from the environment, applying *overrides* last."""

    raw = _load_raw_config(os.environ if environ is None else environ)
    if overrides:
        raw.update({key: value for key, value in overrides.items() if value is not None})

    try:
        config: RuntimeConfig = RuntimeConfigSchema().load(raw)
    except ValidationError as exc:
        problems = "; ".join(
            f"{field}: {', '.join(str(m) for m in messages)}"
            for field, messages in sorted(exc.normalized_messages().items())
        )
        raise ConfigError(f"Invalid configuration: {problems}") from exc
    return config


def get_config_source(environ: Mapping[str, str] | None = None) -> str:
    source = os.environ if environ is None else environ
    return "environment" if any(key.startswith(ENV_PREFIX) for key in source) else "defaults"
