"""Persistence adapters for ledger state."""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Dict, Iterable, List

from .models import Consequence

logger = logging.getLogger(__name__)

_DB_SCHEMA = """
CREATE TABLE IF NOT EXISTS consequences (
    story_id TEXT NOT NULL,
    id TEXT NOT NULL,
    chapter_origin INTEGER NOT NULL,
    status TEXT NOT NULL,
    payload TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (story_id, id)
);
CREATE INDEX IF NOT EXISTS idx_consequences_story_status
    ON consequences (story_id, status);
"""


class ConsequenceStore:
    """Load/save contract for the full ledger state of one story."""

    def load(self, story_id: str) -> List[Consequence]:
        raise NotImplementedError

    def save(self, story_id: str, consequence: Consequence) -> None:
        raise NotImplementedError

    def save_all(self, story_id: str, consequences: Iterable[Consequence]) -> None:
        for consequence in consequences:
            self.save(story_id, consequence)


class InMemoryConsequenceStore(ConsequenceStore):
    """Keeps serialized snapshots in process memory."""

    def __init__(self) -> None:
        self._stories: Dict[str, Dict[str, Dict[str, object]]] = {}

    def load(self, story_id: str) -> List[Consequence]:
        records = self._stories.get(story_id, {})
        return [Consequence.from_dict(payload) for payload in records.values()]

    def save(self, story_id: str, consequence: Consequence) -> None:
        # Round-trip through JSON so callers never share state with the store.
        payload = json.loads(json.dumps(consequence.to_dict()))
        self._stories.setdefault(story_id, {})[consequence.id] = payload


class SqliteConsequenceStore(ConsequenceStore):
    """Durable store backed by a local SQLite database."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._ensure_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _ensure_schema(self) -> None:
        with closing(sqlite3.connect(self._db_path)) as conn:
            conn.executescript(_DB_SCHEMA)
            conn.commit()

    def load(self, story_id: str) -> List[Consequence]:
        with closing(sqlite3.connect(self._db_path)) as conn:
            rows = conn.execute(
                "SELECT payload FROM consequences WHERE story_id = ? "
                "ORDER BY chapter_origin, created_at",
                (story_id,),
            ).fetchall()
        consequences = [Consequence.from_dict(json.loads(row[0])) for row in rows]
        logger.debug("Loaded %d consequences for story %s", len(consequences), story_id)
        return consequences

    def save(self, story_id: str, consequence: Consequence) -> None:
        self.save_all(story_id, [consequence])

    def save_all(self, story_id: str, consequences: Iterable[Consequence]) -> None:
        with closing(sqlite3.connect(self._db_path)) as conn:
            for consequence in consequences:
                conn.execute(
                    "REPLACE INTO consequences "
                    "(story_id, id, chapter_origin, status, payload, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        story_id,
                        consequence.id,
                        consequence.chapter_origin,
                        consequence.status.value,
                        json.dumps(consequence.to_dict()),
                        consequence.created_at.isoformat(),
                        consequence.updated_at.isoformat(),
                    ),
                )
            conn.commit()

    def status_counts(self, story_id: str) -> Dict[str, int]:
        with closing(sqlite3.connect(self._db_path)) as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) FROM consequences WHERE story_id = ? GROUP BY status",
                (story_id,),
            ).fetchall()
        return {status: int(count) for status, count in rows}


__all__ = ["ConsequenceStore", "InMemoryConsequenceStore", "SqliteConsequenceStore"]
