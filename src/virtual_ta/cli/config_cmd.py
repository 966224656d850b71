"""virtual-ta config commands: the database config store.

Commands:
  virtual-ta config list               show all entries
  virtual-ta config get <key>          print one value
  virtual-ta config set <key> <value>  upsert an entry
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from virtual_ta.cli.common import load_cfg, open_db, open_existing, resolve_db
from virtual_ta.cli.errors import err_config, err_unknown_config_key
from virtual_ta.config import STORE_KEYS, ConfigError, apply_store_overrides
from virtual_ta.db.repository import Repository

console = Console()

config_app = typer.Typer(
    name="config",
    help="Manage config-store entries (list, get, set).",
    add_completion=False,
)

_DbOption = Annotated[Path | None, typer.Option("--db", help="Path to the database.")]


@config_app.command("list")
def config_list_cmd(db: _DbOption = None) -> None:
    """List all config-store entries."""
    cfg = load_cfg(console)
    conn = open_existing(resolve_db(db, cfg), console)
    try:
        entries = Repository(conn).list_config()
    finally:
        conn.close()

    if not entries:
        console.print("[yellow]Config store is empty.[/]\n  Run:  virtual-ta init")
        raise typer.Exit(0)

    table = Table(title="Config Store", show_header=True, header_style="bold")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_column("Description", style="dim")
    table.add_column("Updated", style="dim")
    for e in entries:
        table.add_row(e.key, e.value, e.description or "", (e.updated_at or "")[:19])
    console.print(table)


@config_app.command("get")
def config_get_cmd(
    key: Annotated[str, typer.Argument(help="Config key, e.g. generation_model.")],
    db: _DbOption = None,
) -> None:
    """Print the value stored under KEY."""
    cfg = load_cfg(console)
    conn = open_existing(resolve_db(db, cfg), console)
    try:
        value = Repository(conn).get_config(key)
    finally:
        conn.close()
    if value is None:
        console.print(f"[yellow]Not set:[/] '{key}'")
        raise typer.Exit(1)
    typer.echo(value)


@config_app.command("set")
def config_set_cmd(
    key: Annotated[str, typer.Argument(help="Config key, e.g. temperature.")],
    value: Annotated[str, typer.Argument(help="New value.")],
    db: _DbOption = None,
) -> None:
    """Store VALUE under KEY. Values are validated before they are written."""
    cfg = load_cfg(console)
    if key in STORE_KEYS:
        try:
            apply_store_overrides(cfg, {key: value})
        except ConfigError as exc:
            console.print(err_config(str(exc)))
            raise typer.Exit(1) from exc
    else:
        console.print(err_unknown_config_key(key, list(STORE_KEYS)))

    conn = open_db(resolve_db(db, cfg))
    try:
        Repository(conn).set_config(key, value, STORE_KEYS.get(key))
    finally:
        conn.close()
    console.print(f"[green]✓[/] {key} = {value}")
