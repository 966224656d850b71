"""Shared pytest fixtures."""

from __future__ import annotations

import json

import pytest

from virtual_ta.db.connection import Database
from virtual_ta.db.memory import MemoryStore
from virtual_ta.db.repository import Repository
from virtual_ta.db.schema import initialize


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".virtual_ta.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture(params=["sqlite", "memory"])
def store(request, tmp_path):
    """Each Store implementation in turn."""
    if request.param == "memory":
        yield MemoryStore()
        return
    conn = Database(tmp_path / "store.db").connect()
    initialize(conn)
    yield Repository(conn)
    conn.close()


@pytest.fixture(autouse=True)
def _no_provider_keys(monkeypatch):
    """Tests never see real credentials unless they set them explicitly."""
    for var in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GEMINI_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.delenv("VIRTUAL_TA_GENERATION_MODEL", raising=False)
    monkeypatch.delenv("VIRTUAL_TA_EMBEDDING_MODEL", raising=False)


@pytest.fixture(autouse=True)
def _no_global_config(monkeypatch, tmp_path):
    """Keep ~/.virtual_ta/config.yaml out of every test."""
    monkeypatch.setattr("virtual_ta.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global" / "config.yaml")


@pytest.fixture
def project(tmp_path, monkeypatch):
    """CWD set to a project dir whose config uses offline hash embeddings."""
    (tmp_path / "virtual_ta.yaml").write_text(
        "embedding:\n  provider: hash\n  dimensions: 64\n", encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def records_file(tmp_path):
    """A JSON record file with one course page and one forum post."""
    path = tmp_path / "records.json"
    path.write_text(
        json.dumps(
            [
                {
                    "type": "course",
                    "title": "Docker basics",
                    "url": "https://tds.example.edu/docker",
                    "body": "Containers package an app with its dependencies.",
                },
                {
                    "type": "forum",
                    "title": "Docker setup on Windows",
                    "url": "https://discourse.example.edu/t/docker-setup/42",
                    "body": "To fix the docker setup error, enable WSL2 first.",
                    "post_id": 42,
                },
            ]
        ),
        encoding="utf-8",
    )
    return path
