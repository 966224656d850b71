"""Tests for virtual-ta reindex."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from virtual_ta.cli.main import app
from virtual_ta.db.connection import Database
from virtual_ta.db.repository import Repository
from virtual_ta.errors import ReindexInProgressError

runner = CliRunner()


def test_reindex_without_db(project: Path) -> None:
    result = runner.invoke(app, ["reindex", "--db", str(project / "ta.db")])
    assert result.exit_code == 1
    assert "No database found" in result.output


def test_reindex_rebuilds_all(project: Path, records_file: Path) -> None:
    db_path = project / "ta.db"
    runner.invoke(app, ["load", "--source", str(records_file), "--db", str(db_path)])
    with Database(db_path) as conn:
        before = {e.id for e in Repository(conn).list_embeddings()}

    result = runner.invoke(app, ["reindex", "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "Reindexed 2 item(s)" in result.output
    with Database(db_path) as conn:
        after = Repository(conn).list_embeddings()
    assert len(after) == 2
    assert before.isdisjoint({e.id for e in after})


def test_reindex_in_progress(project: Path, records_file: Path) -> None:
    db_path = project / "ta.db"
    runner.invoke(app, ["load", "--source", str(records_file), "--db", str(db_path)])

    with patch(
        "virtual_ta.cli.reindex.EmbeddingIndex.reindex",
        side_effect=ReindexInProgressError("A reindex is already running"),
    ):
        result = runner.invoke(app, ["reindex", "--db", str(db_path)])

    assert result.exit_code == 1
    assert "already running" in result.output
