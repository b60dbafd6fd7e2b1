"""Common coercion helpers and constants."""

from __future__ import annotations

import math
from typing import Final, Optional

TRUTHY_STRINGS = {"1", "true", "yes", "on"}
FALSY_STRINGS = {"0", "false", "no", "off"}


CONFIG_BASENAME = "gatedoctor"
DEFAULT_CONFIG_FILENAME = f"{CONFIG_BASENAME}.toml"
LOCAL_CONFIG_FILENAME = f"{CONFIG_BASENAME}.local.toml"
DOTENV_FILENAME = ".env"

ENV_PREFIX: Final = "GATEDOCTOR"

DEFAULT_GATEWAY_HOST: Final = "api.example.com"
DEFAULT_ORIGIN: Final = f"https://{DEFAULT_GATEWAY_HOST}"
DEFAULT_API_BASE: Final = f"{DEFAULT_ORIGIN}/v1"

DEFAULT_TIMEOUT_MS: Final = 10_000.0
DEFAULT_USAGE_FEE_RATE: Final = 0.1


def coerce_bool(value: Optional[object], *, default: bool = False) -> bool:
    """Convert common truthy/falsey string markers into booleans.

    Falls back to ``default`` when the value is ``None`` or ambiguous.
    """

    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if not normalized:
            return default
        if normalized in TRUTHY_STRINGS:
            return True
        if normalized in FALSY_STRINGS:
            return False
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def coerce_finite_float(candidate: Optional[object]) -> Optional[float]:
    """Return ``candidate`` as a finite float, or ``None`` when it is not one.

    Booleans are rejected even though Python treats them as integers.
    Numeric strings are accepted after trimming.
    """

    if candidate is None or isinstance(candidate, bool):
        return None
    if isinstance(candidate, (int, float)):
        value = float(candidate)
    elif isinstance(candidate, str):
        text = candidate.strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(value):
        return None
    return value


__all__ = [
    "CONFIG_BASENAME",
    "DEFAULT_API_BASE",
    "DEFAULT_CONFIG_FILENAME",
    "DEFAULT_GATEWAY_HOST",
    "DEFAULT_ORIGIN",
    "DEFAULT_TIMEOUT_MS",
    "DEFAULT_USAGE_FEE_RATE",
    "DOTENV_FILENAME",
    "ENV_PREFIX",
    "FALSY_STRINGS",
    "LOCAL_CONFIG_FILENAME",
    "TRUTHY_STRINGS",
    "coerce_bool",
    "coerce_finite_float",
]
