"""virtual-ta reindex: rebuild embeddings for all stored content."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from virtual_ta.cli.common import load_cfg, open_existing, resolve_db, store_overrides
from virtual_ta.cli.errors import err_reindex_in_progress
from virtual_ta.db.repository import Repository
from virtual_ta.errors import ReindexInProgressError
from virtual_ta.rag.index import EmbeddingIndex
from virtual_ta.rag.providers import make_embedder

console = Console()


def reindex_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the database."),
    ] = None,
) -> None:
    """Re-embed every course page and forum post and swap the new index in."""
    cfg = load_cfg(console)
    conn = open_existing(resolve_db(db, cfg), console)
    try:
        repo = Repository(conn)
        cfg = store_overrides(cfg, repo, console)
        index = EmbeddingIndex(repo, dimensions=cfg.embedding.dimensions)
        with console.status("Re-embedding content …"):
            try:
                result = index.reindex(make_embedder(cfg.embedding))
            except ReindexInProgressError as exc:
                console.print(err_reindex_in_progress())
                raise typer.Exit(1) from exc
    finally:
        conn.close()

    console.print(f"[green]✓[/] Reindexed {result.embedded} item(s).")
    if result.failed:
        console.print(
            f"[yellow]⚠[/] {result.failed} item(s) failed and kept their previous vectors."
        )
