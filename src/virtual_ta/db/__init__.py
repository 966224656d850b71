"""virtual-ta storage layer."""

from virtual_ta.db.base import Store
from virtual_ta.db.connection import Database
from virtual_ta.db.memory import MemoryStore
from virtual_ta.db.migrations import MIGRATIONS, run_migrations
from virtual_ta.db.repository import Repository
from virtual_ta.db.schema import initialize

__all__ = [
    "Database",
    "MemoryStore",
    "Repository",
    "Store",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
]
