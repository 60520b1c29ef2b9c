"""
Hierarchical document store backed by the shared SQLite database.

Collections are addressed by slash paths such as ``users/u1/maps/m1/nodes``.
Each document is a JSON object with a store-assigned id. The store offers
single-document writes, atomic multi-document batches, one-shot collection
reads and live subscriptions that push a full collection snapshot after every
committed write touching that collection.

Snapshots are per collection: a batch that touches nodes and edges notifies
the nodes listeners and the edges listeners separately, in no guaranteed
order relative to each other.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from threading import RLock
from typing import Any

from mapdiary.errors import DocumentNotFoundError, StoreError
from mapdiary.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from mapdiary.observability.logging import get_logger
from mapdiary.observability.telemetry import counter, time_block
from mapdiary.utils.dates import utc_now

logger = get_logger(__name__)


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


# Replaced by the store clock at commit time.
SERVER_TIMESTAMP = _ServerTimestamp()


def collection_path(*segments: str) -> str:
    """Join path segments, rejecting empty ones and embedded slashes."""
    for segment in segments:
        if not segment or "/" in segment:
            raise ValueError(f"Invalid collection path segment: {segment!r}")
    return "/".join(segments)


def new_document_id() -> str:
    return uuid.uuid4().hex[:20]


def _encode_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _resolve(value: Any, now: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        return _encode_timestamp(now)
    if isinstance(value, datetime):
        return _encode_timestamp(value)
    if isinstance(value, dict):
        return {k: _resolve(v, now) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_resolve(v, now) for v in value]
    return value


@dataclass(frozen=True)
class Document:
    """One stored document. ``id`` is the store-assigned id."""

    id: str
    data: dict[str, Any]

    def to_record(self) -> dict[str, Any]:
        """Flatten into a plain dict; the store id wins over any ``id`` field."""
        return {**self.data, "id": self.id}


@dataclass(frozen=True)
class Snapshot:
    collection: str
    documents: tuple[Document, ...]

    def records(self) -> list[dict[str, Any]]:
        return [doc.to_record() for doc in self.documents]


SnapshotListener = Callable[[Snapshot], None]


class Subscription:
    """Handle for a live collection subscription. ``cancel()`` is idempotent."""

    def __init__(self, store: DocumentStore, collection: str, listener: SnapshotListener):
        self.store = store
        self.collection = collection
        self.listener = listener
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self.store._remove_subscription(self)


@dataclass
class _WriteOp:
    kind: str  # "set" | "update" | "delete"
    collection: str
    doc_id: str
    data: dict[str, Any] = field(default_factory=dict)
    merge: bool = False


class WriteBatch:
    """
    Collects writes and commits them in one SQLite transaction.

    Either every operation lands or none does; an ``update`` on a missing
    document fails the whole batch.
    """

    def __init__(self, store: DocumentStore):
        self._store = store
        self._ops: list[_WriteOp] = []
        self._committed = False

    def __len__(self) -> int:
        return len(self._ops)

    def set(
        self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False
    ) -> WriteBatch:
        self._ops.append(_WriteOp("set", collection, doc_id, dict(data), merge))
        return self

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> WriteBatch:
        self._ops.append(_WriteOp("update", collection, doc_id, dict(fields)))
        return self

    def delete(self, collection: str, doc_id: str) -> WriteBatch:
        self._ops.append(_WriteOp("delete", collection, doc_id))
        return self

    def commit(self) -> None:
        if self._committed:
            raise StoreError("WriteBatch already committed")
        self._committed = True
        if self._ops:
            self._store._commit(self._ops)


class DocumentStore:
    """
    Per-process handle on the document database.

    Args:
        clock: Source of SERVER_TIMESTAMP values (UTC). Tests inject a
            deterministic clock.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._lock = RLock()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, collection: str, data: dict[str, Any]) -> str:
        """Create a document with a fresh id and return the id."""
        doc_id = new_document_id()
        self._commit([_WriteOp("set", collection, doc_id, dict(data))])
        return doc_id

    def set(
        self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False
    ) -> None:
        self._commit([_WriteOp("set", collection, doc_id, dict(data), merge)])

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Merge top-level fields into an existing document."""
        self._commit([_WriteOp("update", collection, doc_id, dict(fields))])

    def delete(self, collection: str, doc_id: str) -> None:
        self._commit([_WriteOp("delete", collection, doc_id)])

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, collection: str, doc_id: str) -> Document | None:
        try:
            with get_db_connection() as conn:
                row = conn.execute(
                    "SELECT doc_id, data FROM documents WHERE collection = ? AND doc_id = ?",
                    (collection, doc_id),
                ).fetchone()
        except (sqlite3.Error, FileNotFoundError) as e:
            raise StoreError(f"Failed to read {collection}/{doc_id}: {e}") from e

        if row is None:
            return None
        return Document(id=row["doc_id"], data=json.loads(row["data"]))

    def fetch(
        self,
        collection: str,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Document]:
        """
        One-shot read of a whole collection.

        Without ``order_by`` documents come back in creation order.
        Documents missing the ``order_by`` field sort first (last when
        descending).
        """
        try:
            with get_db_connection() as conn:
                rows = conn.execute(
                    "SELECT doc_id, data FROM documents WHERE collection = ? "
                    "ORDER BY created_at, rowid",
                    (collection,),
                ).fetchall()
        except (sqlite3.Error, FileNotFoundError) as e:
            raise StoreError(f"Failed to read collection {collection}: {e}") from e

        docs = [Document(id=row["doc_id"], data=json.loads(row["data"])) for row in rows]
        if order_by is not None:
            docs.sort(
                key=lambda d: (d.data.get(order_by) is not None, d.data.get(order_by) or ""),
                reverse=descending,
            )
        return docs

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, collection: str, listener: SnapshotListener) -> Subscription:
        """
        Register a listener and deliver the current snapshot immediately.

        Afterwards the listener receives a fresh full snapshot after every
        committed write that touches ``collection``.
        """
        subscription = Subscription(self, collection, listener)
        with self._lock:
            self._subscriptions.setdefault(collection, []).append(subscription)
        self._deliver(subscription, self._snapshot(collection))
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(subscription.collection, [])
            if subscription in subs:
                subs.remove(subscription)
            if not subs:
                self._subscriptions.pop(subscription.collection, None)

    def _snapshot(self, collection: str) -> Snapshot:
        return Snapshot(collection=collection, documents=tuple(self.fetch(collection)))

    def _deliver(self, subscription: Subscription, snapshot: Snapshot) -> None:
        if not subscription.active:
            return
        try:
            subscription.listener(snapshot)
        except Exception:
            # The write has already committed.
            counter("store.listener_error")
            logger.exception("Snapshot listener failed for %s", snapshot.collection)

    def _notify(self, collections: Iterable[str]) -> None:
        for collection in collections:
            with self._lock:
                subs = list(self._subscriptions.get(collection, []))
            if not subs:
                continue
            snapshot = self._snapshot(collection)
            for subscription in subs:
                self._deliver(subscription, snapshot)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def _commit(self, ops: list[_WriteOp]) -> None:
        now = self.clock()
        stamp = _encode_timestamp(now)

        with time_block("store.commit.latency"):
            try:
                self._apply(ops, now, stamp)
            except DocumentNotFoundError:
                counter("store.commit.not_found")
                raise
            except (sqlite3.Error, FileNotFoundError, TypeError, ValueError) as e:
                counter("store.commit.error")
                logger.error("Store batch of %d ops failed: %s", len(ops), e)
                raise StoreError(f"Store write failed: {e}") from e

        counter("store.commit")
        touched: list[str] = []
        for op in ops:
            if op.collection not in touched:
                touched.append(op.collection)
        self._notify(touched)

    @retry_on_db_lock()
    def _apply(self, ops: list[_WriteOp], now: datetime, stamp: str) -> None:
        with db_transaction() as conn:
            for op in ops:
                if op.kind == "delete":
                    conn.execute(
                        "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                        (op.collection, op.doc_id),
                    )
                    continue

                existing = conn.execute(
                    "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
                    (op.collection, op.doc_id),
                ).fetchone()
                fields = _resolve(op.data, now)

                if op.kind == "update":
                    if existing is None:
                        raise DocumentNotFoundError(op.collection, op.doc_id)
                    data = {**json.loads(existing["data"]), **fields}
                elif op.merge and existing is not None:
                    data = {**json.loads(existing["data"]), **fields}
                else:
                    data = fields

                conn.execute(
                    """
                    INSERT INTO documents (collection, doc_id, data, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(collection, doc_id)
                    DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
                    """,
                    (op.collection, op.doc_id, json.dumps(data, ensure_ascii=False), stamp, stamp),
                )
