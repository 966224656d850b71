"""virtual-ta load: add course pages and forum posts from JSON/YAML record files.

Re-loading a file is safe: items whose identity (course url, forum post id)
is already stored are skipped, and only new items are embedded.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from virtual_ta.cli.common import load_cfg, open_db, resolve_db, store_overrides
from virtual_ta.cli.errors import err_invalid_records, err_source_not_found
from virtual_ta.db.models import ContentVariant
from virtual_ta.db.repository import Repository
from virtual_ta.errors import ValidationError
from virtual_ta.ingest.embedding_writer import ContentWriter
from virtual_ta.ingest.records import load_records
from virtual_ta.rag.index import EmbeddingIndex
from virtual_ta.rag.providers import make_embedder

console = Console()


def load_cmd(
    source: Annotated[
        list[Path] | None,
        typer.Option("--source", "-s", help="JSON or YAML record file (repeatable)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the database (created if missing)."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Validate records without writing."),
    ] = False,
) -> None:
    """Load content records into the knowledge base and embed new items."""
    sources = source or []
    if not sources:
        console.print("[red]Error:[/] No --source specified. Use --source PATH.")
        raise typer.Exit(1)

    batches = []
    for path in sources:
        if not path.is_file():
            console.print(err_source_not_found(str(path)))
            raise typer.Exit(1)
        try:
            batches.append((path, load_records(path)))
        except ValidationError as exc:
            console.print(err_invalid_records(str(path), str(exc)))
            raise typer.Exit(1) from exc

    if dry_run:
        for path, items in batches:
            courses = sum(1 for i in items if i.variant is ContentVariant.COURSE)
            console.print(
                f"  [dim]dry-run[/] {path}: {courses} course, {len(items) - courses} forum"
            )
        raise typer.Exit(0)

    cfg = load_cfg(console)
    conn = open_db(resolve_db(db, cfg))
    try:
        repo = Repository(conn)
        cfg = store_overrides(cfg, repo, console)
        index = EmbeddingIndex(repo, dimensions=cfg.embedding.dimensions)
        writer = ContentWriter(repo, index, make_embedder(cfg.embedding))
        for path, items in batches:
            console.print(f"\n[bold]→ {path}[/]")
            result = writer.write(items)
            console.print(
                f"  [green]✓[/] {result.created} added, {result.skipped} already present, "
                f"{result.embedded} embedded"
            )
            if result.failed:
                console.print(
                    f"  [yellow]⚠[/] {result.failed} item(s) could not be embedded.\n"
                    "    Run:  virtual-ta reindex  once the provider is reachable."
                )
    finally:
        conn.close()
