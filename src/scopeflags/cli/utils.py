"""
CLI utility helpers: service construction and output formatting.
"""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from scopeflags.factory import create_service
from scopeflags.models import FlagStore, ResolvedFlag, store_to_dict
from scopeflags.service import FeatureFlagService
from scopeflags.settings import DatabaseBackend, FlagSettings, get_settings

console = Console()
err_console = Console(stderr=True)


# ── Service helper ───────────────────────────────────────────────────────


def cli_settings(database: str | None = None) -> FlagSettings:
    """Settings with the ``--database`` option applied."""
    settings = get_settings()
    if database:
        settings = settings.model_copy(
            update={"database_url": database, "database_backend": DatabaseBackend.SQLITE}
        )
    return settings


def make_service(
    database: str | None = None,
    *,
    user: str | None = None,
    company: str | None = None,
) -> FeatureFlagService:
    """Build a service, load the global snapshot and the requested scope."""
    service = create_service(cli_settings(database))
    service.load_feature_flags()
    if user:
        service.load_user_overrides(user)
    if company:
        service.load_company_overrides(company)
    return service


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    err_console.print(f"[bold red]Error[/bold red]: {message}")
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def _mark(value: bool) -> str:
    return "[green]on[/green]" if value else "[dim]off[/dim]"


def output_flags(store: FlagStore, *, as_json: bool = False, title: str = "") -> None:
    """Render a flag store as a table or JSON."""
    if as_json:
        console.print_json(json.dumps(store_to_dict(store)))
        return
    if not store:
        console.print("[dim]No flags.[/dim]")
        return
    table = Table(title=title or None, pad_edge=False)
    table.add_column("key")
    table.add_column("enabled")
    table.add_column("visible")
    table.add_column("override")
    for key, flag in store.items():
        table.add_row(key, _mark(flag.enabled), _mark(flag.visible), "yes" if flag.override else "")
    console.print(table)


def output_flag(key: str, flag: ResolvedFlag, *, as_json: bool = False, **extra: Any) -> None:
    payload = {"key": key, **flag.to_dict(), **extra}
    if as_json:
        console.print_json(json.dumps(payload, default=str))
        return
    for name, value in payload.items():
        console.print(f"[bold]{name}:[/bold] {value}")
