"""
Schema for the document database.

Maps, nodes, edges and reports all live in one ``documents`` table keyed by
(collection path, document id), with JSON bodies. ``created_at`` is the
commit stamp of the first write and orders one-shot collection reads.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from mapdiary.observability.logging import get_logger

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (collection, doc_id)
);

CREATE INDEX IF NOT EXISTS idx_documents_collection_created
ON documents(collection, created_at);
"""

REQUIRED_TABLES = frozenset({"documents"})


def validate_schema(conn: sqlite3.Connection) -> None:
    """
    Raises:
        RuntimeError: If a required table is missing
    """
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    missing = REQUIRED_TABLES - {row[0] for row in rows}
    if missing:
        raise RuntimeError(f"Database missing tables: {sorted(missing)}")


def init_database(db_path: Path) -> None:
    """Create the database file and schema if needed, then verify it."""
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(SCHEMA)
        conn.commit()
        validate_schema(conn)
    finally:
        conn.close()

    logger.info("Document schema ready at %s", db_path)
