"""SQLite schema migrations."""
from __future__ import annotations

from typing import Iterable

from .sqlite import connect

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS interviews (
  id TEXT PRIMARY KEY,
  role TEXT NOT NULL,
  resume TEXT NOT NULL,
  started_at TEXT NOT NULL,
  ended_at TEXT NOT NULL,
  summary TEXT NOT NULL,
  recommendation TEXT NOT NULL,
  score INTEGER NOT NULL,
  key_points TEXT NOT NULL,
  created_at TEXT NOT NULL
);
""",
    """
CREATE INDEX IF NOT EXISTS idx_interviews_created_at ON interviews (created_at);
""",
]


def migrate(db_path: str = "data/interview.db") -> None:
    """Apply schema migrations to the SQLite database."""

    with connect(db_path) as conn:
        for stmt in SCHEMA:
            conn.execute(stmt)


if __name__ == "__main__":
    from config.settings import settings

    migrate(settings.DB_PATH)
