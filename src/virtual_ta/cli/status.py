"""virtual-ta status and questions commands.

status shows the database, content counts, index statistics and question
metrics; questions lists the most recent entries of the question log.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from virtual_ta.cli.common import load_cfg, open_db, resolve_db
from virtual_ta.db.models import ContentVariant
from virtual_ta.db.repository import Repository
from virtual_ta.rag.index import EmbeddingIndex
from virtual_ta.rag.outcomes import OutcomeLogger

console = Console()


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the database."),
    ] = None,
) -> None:
    """Show knowledge base, index and question metrics."""
    cfg = load_cfg(console)
    db_path = resolve_db(db, cfg)

    if not db_path.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  virtual-ta init",
                title="[bold]Knowledge Base[/]",
                expand=False,
            )
        )
        return

    conn = open_db(db_path)
    try:
        repo = Repository(conn)
        _show_knowledge_panel(db_path, repo)
        _show_metrics_panel(repo)
    finally:
        conn.close()


def questions_cmd(
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", min=1, help="Number of questions to show."),
    ] = 20,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the database."),
    ] = None,
) -> None:
    """List recent questions, newest first."""
    cfg = load_cfg(console)
    db_path = resolve_db(db, cfg)
    if not db_path.exists():
        console.print("[yellow]No database found.[/]\n  Run:  virtual-ta init")
        return

    conn = open_db(db_path)
    try:
        records = OutcomeLogger(Repository(conn)).recent(limit)
    finally:
        conn.close()

    if not records:
        console.print("[dim]No questions logged yet.[/]")
        return

    table = Table(title="Recent Questions", show_header=True, header_style="bold")
    table.add_column("When", style="dim")
    table.add_column("Question")
    table.add_column("Status")
    table.add_column("Time", justify="right")
    for r in records:
        status = "[green]✓[/]" if r.success else f"[red]✗[/] {r.error_message or ''}"
        elapsed = f"{r.response_time:.2f}s" if r.response_time is not None else "-"
        table.add_row((r.created_at or "")[:19], _truncate(r.question), status, elapsed)
    console.print(table)


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_knowledge_panel(db_path: Path, repo: Repository) -> None:
    size_mb = db_path.stat().st_size / (1024 * 1024)
    stats = EmbeddingIndex(repo).stats()
    lines = [
        f"Database:  {db_path} ({size_mb:.1f} MB)",
        f"Course:    [bold]{repo.count_content(ContentVariant.COURSE):,}[/] items  "
        f"([dim]{stats.by_variant.get(ContentVariant.COURSE, 0):,} embedded[/])",
        f"Forum:     [bold]{repo.count_content(ContentVariant.FORUM):,}[/] posts  "
        f"([dim]{stats.by_variant.get(ContentVariant.FORUM, 0):,} embedded[/])",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Knowledge Base[/]", expand=False))


def _show_metrics_panel(repo: Repository) -> None:
    m = OutcomeLogger(repo).metrics()
    if not m.total_questions:
        body = "[dim]No questions answered yet.[/]"
    else:
        body = "\n".join(
            [
                f"Questions:     [bold]{m.total_questions:,}[/]  (today {m.questions_today:,})",
                f"Success rate:  [bold]{m.success_rate:.1%}[/]",
                f"Avg response:  {m.avg_response_time:.2f}s",
            ]
        )
    console.print(Panel(body, title="[bold]Questions[/]", expand=False))


def _truncate(text: str, width: int = 60) -> str:
    return text if len(text) <= width else text[: width - 1] + "…"
