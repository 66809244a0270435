"""
CLI: ``scopeflags overrides``: user and company override records.
"""

from __future__ import annotations

import typer

from scopeflags.cli.utils import console, fail, make_service, output_flags
from scopeflags.errors import FlagWriteError, UnknownFlagError
from scopeflags.models import ScopeType

app = typer.Typer(no_args_is_help=True)


@app.command("save")
def save_override(
    scope: ScopeType = typer.Argument(..., help="user or company"),
    scope_id: str = typer.Argument(..., help="User or company id"),
    key: str = typer.Argument(..., help="Flag key"),
    enabled: bool | None = typer.Option(None, "--enable/--disable"),
    visible: bool | None = typer.Option(None, "--show/--hide"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Save an override record holding a single flag.

    The record replaces whatever was stored for the scope before.
    """
    service = make_service(database)
    try:
        service.catalog.require(key)
    except UnknownFlagError as e:
        fail(e.message)

    change = {}
    if enabled is not None:
        change["enabled"] = enabled
    if visible is not None:
        change["visible"] = visible
    if not change:
        fail("Nothing to override: pass --enable/--disable and/or --show/--hide")

    try:
        if scope == ScopeType.USER:
            service.save_user_override(scope_id, {key: change})
        else:
            service.save_company_override(scope_id, {key: change})
    except FlagWriteError as e:
        fail(e.message)
    console.print(f"[green]Saved {scope.value} override for {scope_id}: {key} {change}[/green]")


@app.command("show")
def show_overrides(
    scope: ScopeType = typer.Argument(..., help="user or company"),
    scope_id: str = typer.Argument(..., help="User or company id"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the flags a scope overrides, as resolved for that scope."""
    if scope == ScopeType.USER:
        service = make_service(database, user=scope_id)
    else:
        service = make_service(database, company=scope_id)
    overridden = {k: f for k, f in service.get_feature_flags().items() if f.override}
    output_flags(overridden, as_json=json_out, title=f"{scope.value} overrides: {scope_id}")
