"""SQLite-backed document store and the per-user graph adapter."""

from __future__ import annotations

from mapdiary.store.documents import (
    SERVER_TIMESTAMP,
    Document,
    DocumentStore,
    Snapshot,
    Subscription,
    WriteBatch,
    collection_path,
    new_document_id,
)
from mapdiary.store.graph_store import GraphStore

__all__ = [
    "SERVER_TIMESTAMP",
    "Document",
    "DocumentStore",
    "GraphStore",
    "Snapshot",
    "Subscription",
    "WriteBatch",
    "collection_path",
    "new_document_id",
]
