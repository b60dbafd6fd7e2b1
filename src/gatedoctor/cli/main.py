"""CLI entry point wrapper.

The :func:`main` function proxies to the Typer application exported by
:mod:`gatedoctor.cli.app`.
"""

from __future__ import annotations

from gatedoctor.cli.app import main as _app_main


def main(argv: list[str] | None = None) -> None:
    """Invoke the CLI.

    Parameters
    ----------
    argv:
        Optional list of arguments to pass to Typer. When ``None`` the
        process arguments are used.
    """

    _app_main(argv)


if __name__ == "__main__":  # pragma: no cover
    main()
