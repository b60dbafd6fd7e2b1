"""gatedoctor Typer CLI entrypoint."""

from __future__ import annotations

import typer
from rich.console import Console

from gatedoctor import __version__
from gatedoctor.cli.commands import config as config_command
from gatedoctor.cli.commands import doctor as doctor_command
from gatedoctor.cli.commands import models as models_command
from gatedoctor.cli.commands import pricing as pricing_command
from gatedoctor.cli.commands import whoami as whoami_command

DISTRIBUTION_NAME = "gatedoctor"

stderr_console = Console(stderr=True)
stdout_console = Console(stderr=False)

app = typer.Typer(
    help="Diagnose OpenAI-compatible LLM gateways: connectivity, auth, models and pricing",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

for _command in (
    doctor_command,
    models_command,
    pricing_command,
    whoami_command,
    config_command,
):
    _command.register(app, stdout_console=stdout_console, stderr_console=stderr_console)


@app.command(help="Show the installed gatedoctor package version.")
def version() -> None:
    """Print the version discovered from the package metadata."""
    from importlib import metadata

    try:
        resolved_version = metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        resolved_version = __version__
    stdout_console.print(resolved_version)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the ``gatedoctor`` console script."""

    app(args=argv, prog_name="gatedoctor")


__all__ = ["app", "main", "stderr_console", "stdout_console"]
