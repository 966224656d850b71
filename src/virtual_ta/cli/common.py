"""Shared helpers for CLI commands: config resolution and database access."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from virtual_ta.cli.errors import err_config, err_no_db
from virtual_ta.config import ConfigError, VirtualTAConfig, apply_store_overrides, load_config
from virtual_ta.db.connection import Database
from virtual_ta.db.repository import Repository
from virtual_ta.db.schema import initialize


def load_cfg(console: Console, project_dir: Path | None = None) -> VirtualTAConfig:
    """Load layered config or exit with an actionable error."""
    try:
        return load_config(project_dir)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


def resolve_db(db: Path | None, cfg: VirtualTAConfig) -> Path:
    return db if db is not None else Path(cfg.server.db)


def open_db(db_path: Path) -> sqlite3.Connection:
    conn = Database(db_path).connect()
    initialize(conn)
    return conn


def open_existing(db_path: Path, console: Console) -> sqlite3.Connection:
    """Open *db_path*, exiting with an error if it does not exist."""
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    return open_db(db_path)


def store_overrides(cfg: VirtualTAConfig, repo: Repository, console: Console) -> VirtualTAConfig:
    """Apply config-store entries from *repo* onto *cfg*."""
    try:
        return apply_store_overrides(cfg, {e.key: e.value for e in repo.list_config()})
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
