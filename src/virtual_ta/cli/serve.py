"""virtual-ta serve: run the HTTP API with uvicorn."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
import uvicorn
from rich.console import Console

from virtual_ta.api.app import create_app
from virtual_ta.cli.common import load_cfg, resolve_db

console = Console()


def serve_cmd(
    host: Annotated[str | None, typer.Option("--host", help="Bind address.")] = None,
    port: Annotated[int | None, typer.Option("--port", help="Port to listen on.")] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the database (created if missing)."),
    ] = None,
) -> None:
    """Serve POST /api and the metrics/config endpoints."""
    cfg = load_cfg(console)
    db_path = resolve_db(db, cfg)
    app = create_app(db_path, cfg)
    bind_host = host or cfg.server.host
    bind_port = port or cfg.server.port
    console.print(f"[bold]virtual-ta[/] serving {db_path} on http://{bind_host}:{bind_port}")
    uvicorn.run(app, host=bind_host, port=bind_port, log_level="info")
