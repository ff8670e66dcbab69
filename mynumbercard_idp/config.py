"""Configuration and application setup for the identity provider."""
from __future__ import annotations

import os
from typing import Dict, Optional

from flask import Flask

app = Flask(__name__)
app.secret_key = os.environ.get("MYNUMBERCARD_SECRET_KEY") or os.urandom(32)

# Save users next to this module, regardless of CWD.
basepath = os.path.abspath(os.path.dirname(__file__))

DEBUG_MODE_CONFIG = "debug-mode"
PLATFORM_API_URL_CONFIG = "platform-api-url"
PLATFORM_IDP_SENDER_CONFIG = "platform-idp-sender"
PLATFORM_TIMEOUT_CONFIG = "platform-connect-timeout"
USER_STORE_PATH_CONFIG = "user-store-path"

# Session config names mapped to their ``app.config`` keys.
CONFIG_KEYS: Dict[str, str] = {
    DEBUG_MODE_CONFIG: "MYNUMBERCARD_DEBUG_MODE",
    PLATFORM_API_URL_CONFIG: "MYNUMBERCARD_PLATFORM_API_URL",
    PLATFORM_IDP_SENDER_CONFIG: "MYNUMBERCARD_PLATFORM_IDP_SENDER",
    PLATFORM_TIMEOUT_CONFIG: "MYNUMBERCARD_PLATFORM_TIMEOUT",
    USER_STORE_PATH_CONFIG: "MYNUMBERCARD_USER_STORE_PATH",
}

_DEFAULTS: Dict[str, str] = {
    "MYNUMBERCARD_DEBUG_MODE": "false",
    "MYNUMBERCARD_PLATFORM_API_URL": "",
    "MYNUMBERCARD_PLATFORM_IDP_SENDER": "",
    "MYNUMBERCARD_PLATFORM_TIMEOUT": "10",
    "MYNUMBERCARD_USER_STORE_PATH": os.path.join(basepath, "users.json"),
}

for _key, _default in _DEFAULTS.items():
    app.config.setdefault(_key, os.environ.get(_key, _default))


def parse_debug_mode(raw_value: Optional[str]) -> bool:
    """Return ``True`` only for a case-insensitive ``"true"``.

    Missing or blank values mean ``False``.
    """

    if raw_value is None:
        return False
    normalised = raw_value.strip().lower()
    if not normalised:
        return False
    return normalised == "true"


def get_config_value(name: str) -> str:
    """Return the configured value for ``name`` or an empty string."""

    key = CONFIG_KEYS.get(name, name)
    value = app.config.get(key)
    return str(value) if value is not None else ""


def parse_timeout(raw_value: str, default: float = 10.0) -> float:
    try:
        timeout = float(raw_value)
    except (TypeError, ValueError):
        return default
    return timeout if timeout > 0 else default


__all__ = [
    "CONFIG_KEYS",
    "DEBUG_MODE_CONFIG",
    "PLATFORM_API_URL_CONFIG",
    "PLATFORM_IDP_SENDER_CONFIG",
    "PLATFORM_TIMEOUT_CONFIG",
    "USER_STORE_PATH_CONFIG",
    "app",
    "basepath",
    "get_config_value",
    "parse_debug_mode",
    "parse_timeout",
]
