"""Typer option declarations and normalization helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Final

import typer

LOG_FORMAT_CHOICES: Final[set[str]] = {"text", "json"}
LOG_LEVEL_CHOICES: Final[list[str]] = sorted(
    name
    for name, value in logging.getLevelNamesMapping().items()
    if isinstance(name, str) and not name.isdigit()
)
LOG_LEVEL_SET: Final[set[str]] = {choice.upper() for choice in LOG_LEVEL_CHOICES}

ConfigPathOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        help="Path to a gatedoctor configuration TOML file to load",
        envvar="GATEDOCTOR_CONFIG",
        show_envvar=True,
        rich_help_panel="Configuration",
    ),
]

BaseUrlOption = Annotated[
    str | None,
    typer.Option(
        "--base-url",
        help="Gateway API base URL; should end with /v1",
        envvar="GATEDOCTOR_BASE_URL",
        show_envvar=True,
        rich_help_panel="Gateway",
    ),
]

ApiKeyOption = Annotated[
    str | None,
    typer.Option(
        "--api-key",
        help="Gateway API key sent as a bearer token",
        envvar="GATEDOCTOR_API_KEY",
        show_envvar=True,
        rich_help_panel="Gateway",
    ),
]

ModelOption = Annotated[
    str | None,
    typer.Option(
        "--model",
        help="Model id to check, e.g. llama-3.1-70b-instruct",
        envvar="GATEDOCTOR_MODEL",
        show_envvar=True,
        rich_help_panel="Gateway",
    ),
]

TimeoutOption = Annotated[
    float | None,
    typer.Option(
        "--timeout",
        help="Per-request timeout in milliseconds",
        envvar="GATEDOCTOR_TIMEOUT_MS",
        show_envvar=True,
        rich_help_panel="Runtime",
    ),
]

SmokeOption = Annotated[
    bool,
    typer.Option(
        "--smoke/--no-smoke",
        help="Send a real one-token completion instead of probing the route",
        rich_help_panel="Runtime",
    ),
]

JsonOption = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Emit a machine-readable JSON report on standard output",
        rich_help_panel="Output",
    ),
]

VerboseOption = Annotated[
    bool,
    typer.Option(
        "--verbose",
        "-v",
        help="Show request ids and extra model details",
        rich_help_panel="Output",
    ),
]

DebugOption = Annotated[
    bool | None,
    typer.Option(
        "--debug/--no-debug",
        help="Enable debug logging",
        envvar="GATEDOCTOR_DEBUG",
        show_envvar=True,
        rich_help_panel="Diagnostics",
    ),
]

LogLevelOption = Annotated[
    str | None,
    typer.Option(
        "--log-level",
        help="Logging level (e.g. INFO, DEBUG)",
        envvar="GATEDOCTOR_LOG_LEVEL",
        show_envvar=True,
        rich_help_panel="Logging",
    ),
]

LogFormatOption = Annotated[
    str | None,
    typer.Option(
        "--log-format",
        help="Logging format (text or json)",
        envvar="GATEDOCTOR_LOG_FORMAT",
        show_envvar=True,
        rich_help_panel="Logging",
    ),
]

LogFileOption = Annotated[
    str | None,
    typer.Option(
        "--log-file",
        help="Path to a log file (use '-', none, stderr to disable)",
        envvar="GATEDOCTOR_LOG_FILE",
        show_envvar=True,
        rich_help_panel="Logging",
    ),
]


def clean_string(value: str | None) -> str | None:
    """Normalize optional string input."""

    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def normalize_log_format(value: str | None) -> str | None:
    """Normalize the log format option."""

    if value is None:
        return None
    candidate = value.strip().lower()
    if not candidate:
        return None
    if candidate not in LOG_FORMAT_CHOICES:
        raise typer.BadParameter(
            "Log format must be either 'text' or 'json'",
            param_hint="--log-format",
        )
    return candidate


def normalize_log_level(value: str | None) -> str | None:
    """Normalize the log level option."""

    if value is None:
        return None
    candidate = value.strip().upper()
    if not candidate:
        return None
    if candidate not in LOG_LEVEL_SET:
        raise typer.BadParameter(
            f"Log level must be one of: {', '.join(LOG_LEVEL_CHOICES)}",
            param_hint="--log-level",
        )
    return candidate


__all__ = [
    "ApiKeyOption",
    "BaseUrlOption",
    "ConfigPathOption",
    "DebugOption",
    "JsonOption",
    "LOG_FORMAT_CHOICES",
    "LOG_LEVEL_CHOICES",
    "LogFileOption",
    "LogFormatOption",
    "LogLevelOption",
    "ModelOption",
    "SmokeOption",
    "TimeoutOption",
    "VerboseOption",
    "clean_string",
    "normalize_log_format",
    "normalize_log_level",
]
