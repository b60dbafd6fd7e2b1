"""Reusable helper utilities for the gatedoctor CLI."""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console

from gatedoctor.cli import options as cli_options
from gatedoctor.cli.formatting import render_input_error
from gatedoctor.cli.sync_bridge import await_sync
from gatedoctor.config.settings import (
    DoctorSettings,
    GatewayInputs,
    LoggingInputs,
    LoggingSettings,
    RuntimeInputs,
    is_logfile_disabled_value,
    resolve_application_settings,
)
from gatedoctor.domain.exit_codes import ExitCode
from gatedoctor.infrastructure.errors import InputValidationError
from gatedoctor.infrastructure.logging import (
    BoundLogger,
    attach_invocation_context,
    configure_logging,
    get_logger,
    log_event,
)

R = TypeVar("R")


@dataclass(frozen=True)
class CliInvocation:
    config_path: str | None
    gateway: GatewayInputs
    runtime: RuntimeInputs
    logging: LoggingInputs


def build_invocation(
    *,
    config_path: Path | str | None,
    base_url: str | None = None,
    api_key: str | None = None,
    model: str | None = None,
    timeout_ms: float | None = None,
    debug: bool | None = None,
    log_level: str | None = None,
    log_format: str | None = None,
    log_file: str | None = None,
) -> CliInvocation:
    """Construct a :class:`CliInvocation` with normalized CLI parameters."""

    clean_log_file = cli_options.clean_string(log_file)
    if clean_log_file is not None and is_logfile_disabled_value(clean_log_file):
        clean_log_file = ""

    return CliInvocation(
        config_path=str(config_path) if config_path is not None else None,
        gateway=GatewayInputs(
            base_url=cli_options.clean_string(base_url),
            api_key=cli_options.clean_string(api_key),
            model=cli_options.clean_string(model),
        ),
        runtime=RuntimeInputs(timeout_ms=timeout_ms, debug=debug),
        logging=LoggingInputs(
            level=cli_options.normalize_log_level(log_level),
            format=cli_options.normalize_log_format(log_format),
            file_path=clean_log_file,
        ),
    )


def resolve_settings(invocation: CliInvocation) -> tuple[DoctorSettings, LoggingSettings]:
    """Resolve command and logging settings for an invocation."""

    try:
        return resolve_application_settings(
            config_path=invocation.config_path,
            gateway_inputs=invocation.gateway,
            runtime_inputs=invocation.runtime,
            logging_inputs=invocation.logging,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def initialize_logging(
    runtime_settings: DoctorSettings,
    logging_settings: LoggingSettings,
    *,
    command: str,
) -> BoundLogger:
    """Configure logging and return a logger bound to this invocation."""

    configure_logging(logging_settings)
    logger = attach_invocation_context(get_logger("gatedoctor"), command=command)
    log_event(
        logger,
        "settings.resolved",
        level=logging.DEBUG,
        base_url=runtime_settings.base_url,
        model=runtime_settings.model,
        timeout_ms=runtime_settings.timeout_ms,
        has_api_key=runtime_settings.has_api_key,
    )
    return logger


def prepare_command(invocation: CliInvocation, *, command: str) -> tuple[DoctorSettings, BoundLogger]:
    runtime_settings, logging_settings = resolve_settings(invocation)
    logger = initialize_logging(runtime_settings, logging_settings, command=command)
    return runtime_settings, logger


def run_report(
    runner: Callable[[], Coroutine[Any, Any, R]],
    *,
    json_output: bool,
    stdout_console: Console,
    stderr_console: Console,
    **input_error_extra: Any,
) -> R:
    """Run an application coroutine, exiting with the input error code on bad input."""

    try:
        return await_sync(runner())
    except InputValidationError as exc:
        render_input_error(
            exc,
            json_output=json_output,
            stdout_console=stdout_console,
            stderr_console=stderr_console,
            **input_error_extra,
        )
        raise typer.Exit(code=int(ExitCode.INVALID_INPUT)) from exc


__all__ = [
    "CliInvocation",
    "build_invocation",
    "initialize_logging",
    "prepare_command",
    "resolve_settings",
    "run_report",
]
