"""``gatedoctor whoami``: describe the API key in use."""

from __future__ import annotations

import typer
from rich.console import Console

from gatedoctor.application.account import run_whoami
from gatedoctor.cli import options as cli_options
from gatedoctor.cli.formatting import (
    print_json_payload,
    render_failure,
    render_request_id,
    render_whoami_report,
)
from gatedoctor.cli.helpers import build_invocation, prepare_command, run_report


def register(
    app: typer.Typer,
    *,
    stdout_console: Console,
    stderr_console: Console,
) -> None:
    @app.command(help="Show the account, key status and balance behind the API key.")
    def whoami(  # NOSONAR python:S107
        base_url: cli_options.BaseUrlOption = None,
        api_key: cli_options.ApiKeyOption = None,
        timeout: cli_options.TimeoutOption = None,
        json_output: cli_options.JsonOption = False,
        verbose: cli_options.VerboseOption = False,
        config: cli_options.ConfigPathOption = None,
        debug: cli_options.DebugOption = None,
        log_level: cli_options.LogLevelOption = None,
        log_format: cli_options.LogFormatOption = None,
        log_file: cli_options.LogFileOption = None,
    ) -> None:
        invocation = build_invocation(
            config_path=config,
            base_url=base_url,
            api_key=api_key,
            timeout_ms=timeout,
            debug=debug,
            log_level=log_level,
            log_format=log_format,
            log_file=log_file,
        )
        settings, logger = prepare_command(invocation, command="whoami")

        report = run_report(
            lambda: run_whoami(settings, logger=logger),
            json_output=json_output,
            stdout_console=stdout_console,
            stderr_console=stderr_console,
        )

        if json_output:
            print_json_payload(stdout_console, report.to_payload())
        elif report.failure is not None:
            render_failure(report.failure, stderr_console)
            render_request_id(stderr_console, report.request_id, verbose=verbose)
        else:
            render_whoami_report(report, stdout_console, verbose=verbose)
        raise typer.Exit(code=int(report.exit_code))


__all__ = ["register"]
