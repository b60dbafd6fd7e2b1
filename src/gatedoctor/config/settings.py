"""Dynaconf-backed configuration helpers for gatedoctor.

Settings resolve according to the following precedence:

1. Command line inputs
2. Environment variables (including a ``.env`` file in the working directory)
3. Local configuration overlays (``gatedoctor.local.toml``)
4. Primary configuration file (``gatedoctor.toml``)

Blank or whitespace-only values are treated as "not provided" so they do not
override lower-priority sources.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from dotenv import load_dotenv
from dynaconf import Dynaconf

from .constants import (
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_USAGE_FEE_RATE,
    DOTENV_FILENAME,
    ENV_PREFIX,
    LOCAL_CONFIG_FILENAME,
    coerce_bool,
    coerce_finite_float,
)

LOG_FORMAT_TEXT = "text"
LOG_FORMAT_JSON = "json"
DEFAULT_LOG_FORMAT = LOG_FORMAT_TEXT
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_MAX_BYTES = 10_000_000
DEFAULT_BACKUP_COUNT = 5

# Dynaconf keys used throughout the module. Using constants keeps environment
# and configuration lookups consistent.
GATEWAY_BASE_URL_KEY = "gateway.base_url"
GATEWAY_API_KEY_KEY = "gateway.api_key"
GATEWAY_MODEL_KEY = "gateway.model"

RUNTIME_TIMEOUT_MS_KEY = "runtime.timeout_ms"
RUNTIME_DEBUG_KEY = "runtime.debug"

PRICING_DEFAULT_USAGE_FEE_RATE_KEY = "pricing.default_usage_fee_rate"

LOGGING_LEVEL_KEY = "logging.level"
LOGGING_FORMAT_KEY = "logging.format"
LOGGING_FILE_KEY = "logging.file"
LOGGING_MAX_BYTES_KEY = "logging.max_bytes"
LOGGING_BACKUP_COUNT_KEY = "logging.backup_count"

ENV_BASE_URL = f"{ENV_PREFIX}_BASE_URL"
ENV_API_KEY = f"{ENV_PREFIX}_API_KEY"
ENV_MODEL = f"{ENV_PREFIX}_MODEL"
ENV_TIMEOUT_MS = f"{ENV_PREFIX}_TIMEOUT_MS"
ENV_CONFIG = f"{ENV_PREFIX}_CONFIG"

_ENVIRONMENT_MAP = {
    ENV_BASE_URL: GATEWAY_BASE_URL_KEY,
    ENV_API_KEY: GATEWAY_API_KEY_KEY,
    ENV_MODEL: GATEWAY_MODEL_KEY,
    ENV_TIMEOUT_MS: RUNTIME_TIMEOUT_MS_KEY,
    f"{ENV_PREFIX}_DEBUG": RUNTIME_DEBUG_KEY,
    f"{ENV_PREFIX}_DEFAULT_USAGE_FEE_RATE": PRICING_DEFAULT_USAGE_FEE_RATE_KEY,
    f"{ENV_PREFIX}_LOG_LEVEL": LOGGING_LEVEL_KEY,
    f"{ENV_PREFIX}_LOG_FORMAT": LOGGING_FORMAT_KEY,
    f"{ENV_PREFIX}_LOG_FILE": LOGGING_FILE_KEY,
    f"{ENV_PREFIX}_LOG_MAX_BYTES": LOGGING_MAX_BYTES_KEY,
    f"{ENV_PREFIX}_LOG_BACKUP_COUNT": LOGGING_BACKUP_COUNT_KEY,
}

ENVVAR_TO_SETTINGS_KEY = dict(_ENVIRONMENT_MAP)

_LOGFILE_DISABLED_VALUES = {"-", "none", "stderr", "off"}


@dataclass(frozen=True)
class GatewayInputs:
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None


@dataclass(frozen=True)
class RuntimeInputs:
    timeout_ms: Optional[float] = None
    debug: Optional[bool] = None


@dataclass(frozen=True)
class LoggingInputs:
    level: Optional[str] = None
    format: Optional[str] = None
    file_path: Optional[str] = None
    max_bytes: Optional[int] = None
    backup_count: Optional[int] = None


@dataclass(frozen=True)
class LoggingSettings:
    level: int
    format: str
    file_path: Optional[str]
    max_bytes: int
    backup_count: int

    @property
    def level_name(self) -> str:
        return logging.getLevelName(self.level)


@dataclass(frozen=True)
class DoctorSettings:
    """Resolved inputs shared by every command.

    ``timeout_ms`` is NaN when a value was supplied but could not be parsed;
    the application layer rejects it before any request is made.
    """

    base_url: Optional[str]
    api_key: Optional[str]
    model: Optional[str]
    timeout_ms: float = DEFAULT_TIMEOUT_MS
    debug: bool = False
    default_usage_fee_rate: float = DEFAULT_USAGE_FEE_RATE
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


def is_logfile_disabled_value(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in _LOGFILE_DISABLED_VALUES


def _default_settings_files(config_path: Optional[str]) -> Tuple[Sequence[str], str]:
    if config_path:
        config_file = Path(config_path)
        local_file = config_file.with_name(f"{config_file.stem}.local{config_file.suffix}")
        files: list[str] = []
        if config_file.exists():
            files.append(str(config_file))
        if local_file.exists():
            files.append(str(local_file))
        return files or [str(config_file)], str(config_file.parent.resolve())
    return [DEFAULT_CONFIG_FILENAME, LOCAL_CONFIG_FILENAME], str(Path.cwd())


def resolve_config_file_candidates(config_path: Optional[str] = None) -> list[Path]:
    """Return the configuration files considered for *config_path*, in load order."""

    if config_path:
        config_file = Path(config_path)
        local_file = config_file.with_name(f"{config_file.stem}.local{config_file.suffix}")
        return [config_file, local_file]
    return [Path.cwd() / DEFAULT_CONFIG_FILENAME, Path.cwd() / LOCAL_CONFIG_FILENAME]


def _coerce_str(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        candidate = value.strip()
        return candidate or None
    return str(value)


def _coerce_int(value: Optional[Any]) -> Optional[int]:
    if value is None:
        return None
    try:
        coerced = int(value)
    except (TypeError, ValueError):
        return None
    return coerced


def _apply_environment_overrides(settings: Dynaconf) -> None:
    for env_var, key in _ENVIRONMENT_MAP.items():
        raw = os.getenv(env_var)
        if raw is None:
            continue
        if not raw.strip():
            continue
        settings.set(key, raw)


def _apply_gateway_inputs(settings: Dynaconf, gateway_inputs: Optional[GatewayInputs]) -> None:
    if gateway_inputs is None:
        return

    if gateway_inputs.base_url is not None:
        settings.set(GATEWAY_BASE_URL_KEY, gateway_inputs.base_url.strip())
    if gateway_inputs.api_key is not None:
        settings.set(GATEWAY_API_KEY_KEY, gateway_inputs.api_key.strip())
    if gateway_inputs.model is not None:
        settings.set(GATEWAY_MODEL_KEY, gateway_inputs.model.strip())


def _apply_runtime_inputs(settings: Dynaconf, runtime_inputs: Optional[RuntimeInputs]) -> None:
    if runtime_inputs is None:
        return

    if runtime_inputs.timeout_ms is not None:
        settings.set(RUNTIME_TIMEOUT_MS_KEY, runtime_inputs.timeout_ms)
    if runtime_inputs.debug is not None:
        settings.set(RUNTIME_DEBUG_KEY, runtime_inputs.debug)


def _apply_logging_inputs(settings: Dynaconf, logging_inputs: Optional[LoggingInputs]) -> None:
    if logging_inputs is None:
        return

    if logging_inputs.level is not None:
        settings.set(LOGGING_LEVEL_KEY, logging_inputs.level.strip())
    if logging_inputs.format is not None:
        settings.set(LOGGING_FORMAT_KEY, logging_inputs.format.strip())
    if logging_inputs.file_path is not None:
        settings.set(LOGGING_FILE_KEY, logging_inputs.file_path.strip())
    if logging_inputs.max_bytes is not None:
        settings.set(LOGGING_MAX_BYTES_KEY, logging_inputs.max_bytes)
    if logging_inputs.backup_count is not None:
        settings.set(LOGGING_BACKUP_COUNT_KEY, logging_inputs.backup_count)


def _build_dynaconf(config_path: Optional[str]) -> Dynaconf:
    files, root_path = _default_settings_files(config_path)
    settings = Dynaconf(
        settings_files=list(files),
        envvar_prefix=ENV_PREFIX,
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
        root_path=root_path,
    )
    _apply_environment_overrides(settings)
    return settings


def load_settings(
    config_path: Optional[str] = None,
    *,
    dotenv_path: Optional[Path] = None,
) -> Dynaconf:
    """Create a Dynaconf instance configured for the supplied path.

    A ``.env`` file in the working directory is loaded first; variables that
    are already present in the environment are left untouched.
    """

    env_file = dotenv_path if dotenv_path is not None else Path.cwd() / DOTENV_FILENAME
    if env_file.is_file():
        load_dotenv(env_file, override=False)
    return _build_dynaconf(config_path)


def apply_cli_overrides(
    settings: Dynaconf,
    *,
    gateway_inputs: Optional[GatewayInputs] = None,
    runtime_inputs: Optional[RuntimeInputs] = None,
    logging_inputs: Optional[LoggingInputs] = None,
) -> None:
    """Apply CLI overrides to the provided settings instance."""

    _apply_gateway_inputs(settings, gateway_inputs)
    _apply_runtime_inputs(settings, runtime_inputs)
    _apply_logging_inputs(settings, logging_inputs)


def _resolve_timeout_ms(settings: Dynaconf) -> float:
    raw = settings.get(RUNTIME_TIMEOUT_MS_KEY)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return DEFAULT_TIMEOUT_MS
    value = coerce_finite_float(raw)
    if value is None:
        return math.nan
    return value


def _resolve_usage_fee_rate(settings: Dynaconf, warnings: list[str]) -> float:
    raw = settings.get(PRICING_DEFAULT_USAGE_FEE_RATE_KEY)
    if raw is None:
        return DEFAULT_USAGE_FEE_RATE
    value = coerce_finite_float(raw)
    if value is None or value < 0:
        warnings.append(
            "Invalid default_usage_fee_rate override; using default configuration"
        )
        return DEFAULT_USAGE_FEE_RATE
    return value


def runtime_from_settings(settings: Dynaconf) -> DoctorSettings:
    """Extract the resolved command inputs from Dynaconf."""

    warnings: list[str] = []
    return DoctorSettings(
        base_url=_coerce_str(settings.get(GATEWAY_BASE_URL_KEY)),
        api_key=_coerce_str(settings.get(GATEWAY_API_KEY_KEY)),
        model=_coerce_str(settings.get(GATEWAY_MODEL_KEY)),
        timeout_ms=_resolve_timeout_ms(settings),
        debug=coerce_bool(settings.get(RUNTIME_DEBUG_KEY), default=False),
        default_usage_fee_rate=_resolve_usage_fee_rate(settings, warnings),
        warnings=tuple(warnings),
    )


def logging_from_settings(settings: Dynaconf) -> LoggingSettings:
    """Extract logging configuration from Dynaconf."""

    level_value = _coerce_str(settings.get(LOGGING_LEVEL_KEY)) or DEFAULT_LOG_LEVEL
    format_value = (_coerce_str(settings.get(LOGGING_FORMAT_KEY)) or DEFAULT_LOG_FORMAT).lower()
    if format_value not in {LOG_FORMAT_TEXT, LOG_FORMAT_JSON}:
        raise ValueError(f"Unsupported log format: {format_value}")

    file_path = _coerce_str(settings.get(LOGGING_FILE_KEY))
    if is_logfile_disabled_value(file_path):
        file_path = None

    max_bytes_value = _coerce_int(settings.get(LOGGING_MAX_BYTES_KEY))
    if max_bytes_value is None or max_bytes_value <= 0:
        max_bytes_value = DEFAULT_MAX_BYTES

    backup_count_value = _coerce_int(settings.get(LOGGING_BACKUP_COUNT_KEY))
    if backup_count_value is None or backup_count_value <= 0:
        backup_count_value = DEFAULT_BACKUP_COUNT

    mapping = logging.getLevelNamesMapping()
    level_upper = level_value.upper()
    if level_upper.isdigit():
        resolved_level = int(level_upper)
    else:
        resolved_level = mapping.get(level_upper, logging.WARNING)

    return LoggingSettings(
        level=resolved_level,
        format=format_value,
        file_path=file_path,
        max_bytes=max_bytes_value,
        backup_count=backup_count_value,
    )


def resolve_application_settings(
    *,
    config_path: Optional[str] = None,
    gateway_inputs: Optional[GatewayInputs] = None,
    runtime_inputs: Optional[RuntimeInputs] = None,
    logging_inputs: Optional[LoggingInputs] = None,
    dotenv_path: Optional[Path] = None,
) -> Tuple[DoctorSettings, LoggingSettings]:
    settings = load_settings(config_path, dotenv_path=dotenv_path)
    apply_cli_overrides(
        settings,
        gateway_inputs=gateway_inputs,
        runtime_inputs=runtime_inputs,
        logging_inputs=logging_inputs,
    )
    runtime_settings = runtime_from_settings(settings)
    logging_settings = logging_from_settings(settings)

    if runtime_settings.debug and logging_settings.level > logging.DEBUG:
        logging_settings = LoggingSettings(
            level=logging.DEBUG,
            format=logging_settings.format,
            file_path=logging_settings.file_path,
            max_bytes=logging_settings.max_bytes,
            backup_count=logging_settings.backup_count,
        )

    return runtime_settings, logging_settings


def describe_settings(runtime_settings: DoctorSettings) -> Dict[str, Any]:
    """Flatten resolved settings into dotted keys for display."""

    return {
        GATEWAY_BASE_URL_KEY: runtime_settings.base_url,
        GATEWAY_API_KEY_KEY: runtime_settings.api_key,
        GATEWAY_MODEL_KEY: runtime_settings.model,
        RUNTIME_TIMEOUT_MS_KEY: runtime_settings.timeout_ms,
        RUNTIME_DEBUG_KEY: runtime_settings.debug,
        PRICING_DEFAULT_USAGE_FEE_RATE_KEY: runtime_settings.default_usage_fee_rate,
    }


__all__ = [
    "DEFAULT_BACKUP_COUNT",
    "DEFAULT_LOG_FORMAT",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_MAX_BYTES",
    "DoctorSettings",
    "ENV_API_KEY",
    "ENV_BASE_URL",
    "ENV_CONFIG",
    "ENV_MODEL",
    "ENV_TIMEOUT_MS",
    "ENVVAR_TO_SETTINGS_KEY",
    "GatewayInputs",
    "LOG_FORMAT_JSON",
    "LOG_FORMAT_TEXT",
    "LoggingInputs",
    "LoggingSettings",
    "RuntimeInputs",
    "apply_cli_overrides",
    "describe_settings",
    "is_logfile_disabled_value",
    "load_settings",
    "logging_from_settings",
    "resolve_application_settings",
    "resolve_config_file_candidates",
    "runtime_from_settings",
]
