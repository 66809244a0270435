"""
CLI: ``scopeflags flags``: inspect and change the global flag snapshot.
"""

from __future__ import annotations

import json

import typer
from rich.table import Table

from scopeflags.cli.utils import console, fail, make_service, output_flag, output_flags
from scopeflags.errors import FlagWriteError, UnknownFlagError

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_flags(
    user: str | None = typer.Option(None, "--user", "-u", help="Apply this user's overrides"),
    company: str | None = typer.Option(None, "--company", "-c", help="Apply this company's overrides"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List resolved flags."""
    service = make_service(database, user=user, company=company)
    output_flags(service.get_feature_flags(), as_json=json_out, title="Feature Flags")


@app.command("groups")
def list_groups(
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List flag definitions grouped as on the admin screen."""
    from scopeflags.catalog import DEFAULT_CATALOG

    groups = DEFAULT_CATALOG.get_grouped_definitions()
    if json_out:
        payload = [
            {
                "name": g.name,
                "category": g.category.value,
                "description": g.description,
                "features": [f.key for f in g.features],
            }
            for g in groups
        ]
        console.print_json(json.dumps(payload))
        return

    for group in groups:
        table = Table(title=f"{group.name}: {group.description}", pad_edge=False)
        table.add_column("key")
        table.add_column("name")
        table.add_column("default")
        for feature in group.features:
            default = feature.default_value
            table.add_row(
                feature.key,
                feature.name,
                f"enabled={default.enabled} visible={default.visible}",
            )
        console.print(table)


@app.command("show")
def show_flag(
    key: str = typer.Argument(..., help="Flag key"),
    user: str | None = typer.Option(None, "--user", "-u"),
    company: str | None = typer.Option(None, "--company", "-c"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show one resolved flag."""
    service = make_service(database, user=user, company=company)
    try:
        definition = service.catalog.require(key)
    except UnknownFlagError as e:
        fail(e.message)
    flag = service.get_feature_flag(key)
    if flag is None:
        fail(f"Feature flag not resolved: {key}")
    output_flag(key, flag, as_json=json_out, name=definition.name, category=definition.category.value)


@app.command("set")
def set_flag(
    key: str = typer.Argument(..., help="Flag key"),
    enabled: bool | None = typer.Option(None, "--enable/--disable", help="Turn the feature on or off"),
    visible: bool | None = typer.Option(None, "--show/--hide", help="Show or hide the feature"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Change a flag in the global snapshot."""
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
        fail("Nothing to change: pass --enable/--disable and/or --show/--hide")

    try:
        service.update_feature_flag(key, change)
    except FlagWriteError as e:
        fail(e.message)
    output_flag(key, service.get_feature_flag(key), as_json=json_out)


@app.command("reset")
def reset_flags(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Reset the global snapshot to catalog defaults."""
    if not yes:
        typer.confirm("Reset all feature flags to default values?", abort=True)
    service = make_service(database)
    try:
        service.reset_to_defaults()
    except FlagWriteError as e:
        fail(e.message)
    console.print(f"[green]Reset {len(service.get_feature_flags())} flags to defaults.[/green]")
