"""
Root Typer application for the scopeflags CLI.
"""

from __future__ import annotations

import sys

import typer
from typer import Typer

from scopeflags.cli.config import app as config_app
from scopeflags.cli.flags import app as flags_app
from scopeflags.cli.overrides import app as overrides_app
from scopeflags.logging import configure_logging

app = Typer(
    name="scopeflags",
    help="scopeflags: feature flags with global, company and user scopes.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from scopeflags import __version__

        typer.echo(f"scopeflags {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log service activity to stderr."),
) -> None:
    """scopeflags CLI: inspect flags, change the global snapshot, manage overrides."""
    configure_logging(
        level="DEBUG" if verbose else "WARNING",
        json_format=False,
        stream=sys.stderr,
    )


# ── Sub-command registration ─────────────────────────────────────────────

app.add_typer(flags_app, name="flags", help="Global flag snapshot.")
app.add_typer(overrides_app, name="overrides", help="User and company overrides.")
app.add_typer(config_app, name="config", help="Configuration inspection.")


if __name__ == "__main__":
    app()
