"""Config inspection commands for the gatedoctor CLI."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Final

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from gatedoctor.cli import options as cli_options
from gatedoctor.cli.formatting import RichStyles, create_config_table, format_config_value
from gatedoctor.cli.helpers import build_invocation, resolve_settings
from gatedoctor.config.settings import (
    ENVVAR_TO_SETTINGS_KEY,
    GATEWAY_API_KEY_KEY,
    GATEWAY_BASE_URL_KEY,
    GATEWAY_MODEL_KEY,
    LOGGING_BACKUP_COUNT_KEY,
    LOGGING_FILE_KEY,
    LOGGING_FORMAT_KEY,
    LOGGING_LEVEL_KEY,
    LOGGING_MAX_BYTES_KEY,
    PRICING_DEFAULT_USAGE_FEE_RATE_KEY,
    RUNTIME_DEBUG_KEY,
    RUNTIME_TIMEOUT_MS_KEY,
    DoctorSettings,
    LoggingSettings,
    describe_settings,
    resolve_config_file_candidates,
)

SOURCE_CLI: Final = "CLI"
SOURCE_DEFAULT: Final = "Default"
SECRET_KEYS: Final = frozenset({GATEWAY_API_KEY_KEY})

# Typer parameter name -> settings key
_PARAMETER_KEYS: Final[dict[str, str]] = {
    "base_url": GATEWAY_BASE_URL_KEY,
    "api_key": GATEWAY_API_KEY_KEY,
    "model": GATEWAY_MODEL_KEY,
    "timeout": RUNTIME_TIMEOUT_MS_KEY,
    "debug": RUNTIME_DEBUG_KEY,
    "log_level": LOGGING_LEVEL_KEY,
    "log_format": LOGGING_FORMAT_KEY,
    "log_file": LOGGING_FILE_KEY,
}

_EFFECTIVE_CONFIG_KEY_ORDER: Final[tuple[str, ...]] = (
    GATEWAY_BASE_URL_KEY,
    GATEWAY_API_KEY_KEY,
    GATEWAY_MODEL_KEY,
    RUNTIME_TIMEOUT_MS_KEY,
    RUNTIME_DEBUG_KEY,
    PRICING_DEFAULT_USAGE_FEE_RATE_KEY,
    LOGGING_LEVEL_KEY,
    LOGGING_FORMAT_KEY,
    LOGGING_FILE_KEY,
    LOGGING_MAX_BYTES_KEY,
    LOGGING_BACKUP_COUNT_KEY,
)


def flatten_to_dotted(mapping: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    flattened: dict[str, Any] = {}
    for key, value in mapping.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flattened.update(flatten_to_dotted(value, dotted))
        else:
            flattened[dotted] = value
    return flattened


def _collect_config_file_entries(files: Sequence[Path]) -> dict[str, str]:
    """Map each dotted key to the file name that last set it."""

    result: dict[str, str] = {}
    for file in files:
        if not file.is_file():
            continue
        try:
            parsed = tomllib.loads(file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise typer.BadParameter(f"{file}: {exc}", param_hint="--config") from exc
        for key in flatten_to_dotted(parsed):
            result[key.lower()] = file.name
    return result


def _parameter_source_labels(ctx: typer.Context) -> dict[str, str]:
    labels: dict[str, str] = {}
    params = {param.name: param for param in ctx.command.params}
    for name, key in _PARAMETER_KEYS.items():
        source_name = getattr(ctx.get_parameter_source(name), "name", None)
        if source_name == "COMMANDLINE":
            labels[key] = SOURCE_CLI
        elif source_name == "ENVIRONMENT":
            envvar = getattr(params.get(name), "envvar", None)
            labels[key] = f"ENV ({envvar})" if envvar else "ENV"
    return labels


def _environment_source_labels() -> dict[str, str]:
    labels: dict[str, str] = {}
    for env_var, key in ENVVAR_TO_SETTINGS_KEY.items():
        value = os.getenv(env_var)
        if value is not None and value.strip():
            labels[key] = f"ENV ({env_var})"
    return labels


def _effective_configuration_values(
    runtime_settings: DoctorSettings, logging_settings: LoggingSettings
) -> dict[str, Any]:
    values = describe_settings(runtime_settings)
    values.update(
        {
            LOGGING_LEVEL_KEY: logging_settings.level_name,
            LOGGING_FORMAT_KEY: logging_settings.format,
            LOGGING_FILE_KEY: logging_settings.file_path,
            LOGGING_MAX_BYTES_KEY: logging_settings.max_bytes,
            LOGGING_BACKUP_COUNT_KEY: logging_settings.backup_count,
        }
    )
    return values


def _determine_source_label(
    key: str,
    cli_labels: Mapping[str, str],
    env_labels: Mapping[str, str],
    config_entries: Mapping[str, str],
) -> str:
    if key in cli_labels:
        return cli_labels[key]
    if key in env_labels:
        return env_labels[key]
    if key in config_entries:
        return f"Config File ({config_entries[key]})"
    return SOURCE_DEFAULT


def _print_config_table(
    title: str,
    rows: Sequence[tuple[str, str, str]],
    stdout_console: Console,
) -> None:
    table = create_config_table(title)
    for key, value, source in rows:
        table.add_row(key, value, source)
    stdout_console.print(table)


def register(
    app: typer.Typer,
    *,
    stdout_console: Console,
    stderr_console: Console,
) -> None:
    """Register config commands with the app."""

    config_app = typer.Typer(
        help="Inspect gatedoctor configuration files and settings.",
        invoke_without_command=True,
        no_args_is_help=True,
    )
    app.add_typer(config_app, name="config")

    @config_app.callback(invoke_without_command=True)
    def config_group_callback(ctx: typer.Context) -> None:
        """Display help when config group is invoked without a subcommand."""
        if ctx.invoked_subcommand is None:
            typer.echo(ctx.get_help())
            raise typer.Exit()

    @config_app.command(
        "show",
        help="Show configuration files and the effective value of every setting.",
    )
    def config_show(  # NOSONAR python:S107
        ctx: typer.Context,
        base_url: cli_options.BaseUrlOption = None,
        api_key: cli_options.ApiKeyOption = None,
        model: cli_options.ModelOption = None,
        timeout: cli_options.TimeoutOption = None,
        config: cli_options.ConfigPathOption = None,
        debug: cli_options.DebugOption = None,
        log_level: cli_options.LogLevelOption = None,
        log_format: cli_options.LogFormatOption = None,
        log_file: cli_options.LogFileOption = None,
    ) -> None:
        """Display configuration files, overrides and effective values."""

        invocation = build_invocation(
            config_path=config,
            base_url=base_url,
            api_key=api_key,
            model=model,
            timeout_ms=timeout,
            debug=debug,
            log_level=log_level,
            log_format=log_format,
            log_file=log_file,
        )
        runtime_settings, logging_settings = resolve_settings(invocation)

        files = resolve_config_file_candidates(invocation.config_path)
        config_entries = _collect_config_file_entries(files)

        files_table = Table(title="Configuration files", box=box.SIMPLE_HEAVY)
        files_table.add_column("File", style=RichStyles.ACCENT, overflow="fold")
        files_table.add_column("Status", style=RichStyles.SECONDARY)
        for file in files:
            files_table.add_row(str(file), "exists" if file.is_file() else "missing")
        stdout_console.print(files_table)

        cli_labels = _parameter_source_labels(ctx)
        env_labels = _environment_source_labels()
        effective_values = _effective_configuration_values(runtime_settings, logging_settings)
        rows = [
            (
                key,
                format_config_value(key, effective_values.get(key), secret_keys=SECRET_KEYS),
                _determine_source_label(key, cli_labels, env_labels, config_entries),
            )
            for key in _EFFECTIVE_CONFIG_KEY_ORDER
        ]
        stdout_console.print()
        _print_config_table("Effective configuration", rows, stdout_console)

        for warning in runtime_settings.warnings:
            stderr_console.print(f"Warning: {warning}", style=RichStyles.WARNING)


__all__ = ["flatten_to_dotted", "register"]
