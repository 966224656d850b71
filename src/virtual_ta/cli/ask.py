"""virtual-ta ask: answer one question from the command line."""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from virtual_ta.cli.common import load_cfg, open_db, resolve_db, store_overrides
from virtual_ta.cli.errors import (
    err_image_not_found,
    err_image_too_large,
    err_no_api_key,
    err_provider,
    err_question_required,
)
from virtual_ta.db.repository import Repository
from virtual_ta.errors import ProviderError, ValidationError
from virtual_ta.rag import llm_client
from virtual_ta.rag.pipeline import build_pipeline

console = Console()


def ask_cmd(
    question: Annotated[str, typer.Argument(help="The student question.")],
    image: Annotated[
        Path | None,
        typer.Option("--image", "-i", help="Screenshot to include as context."),
    ] = None,
    offline: Annotated[
        bool,
        typer.Option("--offline", help="Use the rule-based fallback, no model calls."),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the raw {answer, links} response."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the database (created if missing)."),
    ] = None,
) -> None:
    """Answer a question from course material and forum posts."""
    if not question.strip():
        console.print(err_question_required())
        raise typer.Exit(1)

    payload = _read_image(image) if image is not None else None

    cfg = load_cfg(console)
    conn = open_db(resolve_db(db, cfg))
    try:
        repo = Repository(conn)
        cfg = store_overrides(cfg, repo, console)
        if not offline and not cfg.generation.offline and not as_json:
            if not llm_client.has_api_key(cfg.generation.model):
                console.print(err_no_api_key(cfg.generation.model))
        pipeline = build_pipeline(repo, cfg)
        if payload is not None and not pipeline.images.fits(payload):
            console.print(err_image_too_large(str(image), cfg.image.max_size_mb))
            raise typer.Exit(1)
        try:
            result = pipeline.answer(question, image=payload, offline=offline)
        except ValidationError as exc:
            console.print(f"[red]Error:[/] {exc}")
            raise typer.Exit(1) from exc
        except ProviderError as exc:
            console.print(err_provider(str(exc)))
            raise typer.Exit(1) from exc
    finally:
        conn.close()

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    console.print(Panel(Markdown(result.answer), title="[bold]Answer[/]", expand=False))
    if result.links:
        console.print("\n[bold]Links[/]")
        for link in result.links:
            console.print(f"  • {link['text']}  [dim]{link['url']}[/]")


def _read_image(path: Path) -> str:
    """Base64-encode *path* as a data URL."""
    if not path.is_file():
        console.print(err_image_not_found(str(path)))
        raise typer.Exit(1)
    fmt = path.suffix.lower().lstrip(".") or "png"
    if fmt == "jpg":
        fmt = "jpeg"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:image/{fmt};base64,{encoded}"
