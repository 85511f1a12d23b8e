"""SQLite-backed block definition store with WAL mode."""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from .models.blocks import StoredBlock

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS blocks (
    position INTEGER NOT NULL,
    block_id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    payload TEXT NOT NULL
);
"""


class BlockDB:
    """Synchronous SQLite persistence for the block library.

    The library is saved as a whole list: ``save`` replaces every row in one
    transaction, ``load`` returns records in their saved order.
    """

    def __init__(self, db_path: str) -> None:
        path = Path(db_path).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.executescript(_SCHEMA)

    def load(self) -> list[StoredBlock]:
        rows = self._conn.execute("SELECT block_id, payload FROM blocks ORDER BY position").fetchall()
        blocks: list[StoredBlock] = []
        for block_id, payload in rows:
            try:
                blocks.append(StoredBlock.model_validate(json.loads(payload)))
            except ValueError:
                logger.warning("Skipping unreadable stored block %s", block_id)
        return blocks

    def save(self, blocks: list[StoredBlock]) -> None:
        rows = [
            (i, b.id, b.definition.name, b.model_dump_json(by_alias=True))
            for i, b in enumerate(blocks)
        ]
        with self._conn:
            self._conn.execute("DELETE FROM blocks")
            self._conn.executemany(
                "INSERT INTO blocks (position, block_id, name, payload) VALUES (?, ?, ?, ?)",
                rows,
            )

    def close(self) -> None:
        self._conn.close()
