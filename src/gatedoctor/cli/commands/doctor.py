"""``gatedoctor doctor``: run the gateway diagnostics."""

from __future__ import annotations

import typer
from rich.console import Console

from gatedoctor.application.diagnostics import run_doctor
from gatedoctor.cli import options as cli_options
from gatedoctor.cli.formatting import print_json_payload, render_doctor_report
from gatedoctor.cli.helpers import build_invocation, prepare_command, run_report


def register(
    app: typer.Typer,
    *,
    stdout_console: Console,
    stderr_console: Console,
) -> None:
    @app.command(help="Check connectivity, auth, model availability and pricing of a gateway.")
    def doctor(  # NOSONAR python:S107
        base_url: cli_options.BaseUrlOption = None,
        api_key: cli_options.ApiKeyOption = None,
        model: cli_options.ModelOption = None,
        timeout: cli_options.TimeoutOption = None,
        smoke: cli_options.SmokeOption = False,
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
            model=model,
            timeout_ms=timeout,
            debug=debug,
            log_level=log_level,
            log_format=log_format,
            log_file=log_file,
        )
        settings, logger = prepare_command(invocation, command="doctor")

        report = run_report(
            lambda: run_doctor(settings, smoke=smoke, logger=logger),
            json_output=json_output,
            stdout_console=stdout_console,
            stderr_console=stderr_console,
            checks=[],
        )

        if json_output:
            print_json_payload(stdout_console, report.to_payload())
        else:
            render_doctor_report(report, stdout_console, verbose=verbose)
        raise typer.Exit(code=int(report.exit_code))


__all__ = ["register"]
