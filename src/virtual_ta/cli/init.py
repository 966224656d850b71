"""virtual-ta init: create the database, project config and config-store defaults.

Creates:
  .virtual_ta.db      empty content store with schema
  virtual_ta.yaml     project config with default values (kept if present)

Config-store entries for generation_model, embedding_model, temperature and
max_tokens are seeded from the effective config when missing.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from virtual_ta.cli.common import load_cfg, open_db
from virtual_ta.config import PROJECT_CONFIG_NAME, STORE_KEYS, VirtualTAConfig, write_project_config
from virtual_ta.db.repository import Repository

console = Console()

_DEFAULT_PROJECT_DIR = Path(".")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite an existing virtual_ta.yaml."),
    ] = False,
) -> None:
    """Initialize a virtual-ta project: database, config file, config-store defaults."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    cfg = load_cfg(console, project_dir)

    cfg_path = project_dir / PROJECT_CONFIG_NAME
    if cfg_path.exists() and not force:
        console.print(f"  [dim]–[/] {cfg_path.name} exists, kept")
    else:
        write_project_config(cfg_path, cfg)
        console.print(f"  [green]✓[/] {cfg_path.name}")

    db_path = project_dir / cfg.server.db
    conn = open_db(db_path)
    try:
        seeded = seed_store_defaults(Repository(conn), cfg)
    finally:
        conn.close()
    console.print(f"  [green]✓[/] {cfg.server.db}")
    if seeded:
        console.print(f"  [green]✓[/] config store: {', '.join(seeded)}")
        console.print("    [dim]These keys override virtual_ta.yaml from now on.[/]")
        console.print("    [dim]Change them with: virtual-ta config set <key> <value>[/]")

    console.print("\n[bold green]✓ Project initialized.[/]")
    console.print("\nNext steps:")
    console.print("  1. virtual-ta load --source <records.json>   (add course pages and forum posts)")
    console.print("  2. virtual-ta ask \"<question>\"               (answer from the knowledge base)")
    console.print("  3. virtual-ta serve                           (start the HTTP API)")


def seed_store_defaults(repo: Repository, cfg: VirtualTAConfig) -> list[str]:
    """Write missing config-store entries from *cfg*. Returns the keys written."""
    values = {
        "generation_model": cfg.generation.model,
        "embedding_model": cfg.embedding.model,
        "temperature": str(cfg.generation.temperature),
        "max_tokens": str(cfg.generation.max_tokens),
    }
    seeded: list[str] = []
    for key, description in STORE_KEYS.items():
        if repo.get_config(key) is None:
            repo.set_config(key, values[key], description)
            seeded.append(key)
    return seeded
