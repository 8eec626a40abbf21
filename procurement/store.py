"""
SQLite-backed document store.

Every entity (BOM, project document, purchase order, settings, vendor) is a
JSON document addressed by (collection, id), in one database file
(output/procurement.db by default).  The store offers what the domain
layer needs and nothing more:

  get / query          read one document, or filter by top-level fields
  add / set / update   write (auto id, replace-or-merge, field update)
  delete
  increment            atomic numeric bump inside a single UPDATE
  subscribe            in-process live view of a collection

There are no cross-document transactions.  Each method is one SQLite
transaction, so a single document write is atomic and a crash between two
calls leaves both writes independent.

Writes go through clean_document(), the one place where model data is
turned into storage shape (None dropped, Decimal -> str, dates -> ISO).
"""
import json
import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import BaseModel

from .errors import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection  TEXT NOT NULL,
    id          TEXT NOT NULL,
    data        TEXT NOT NULL,      -- JSON object, id not included
    created_at  TEXT NOT NULL,      -- ISO-8601 UTC
    updated_at  TEXT NOT NULL,
    PRIMARY KEY (collection, id)
);

CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents (collection, updated_at DESC);

CREATE TABLE IF NOT EXISTS audit_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    entity      TEXT    NOT NULL,   -- "<collection>/<id>"
    timestamp   TEXT    NOT NULL,   -- ISO-8601 UTC
    action      TEXT    NOT NULL,   -- po_created | po_sent | po_status_changed |
                                    -- items_status_changed | document_linked | document_deleted
    actor       TEXT    NOT NULL DEFAULT 'system',
    detail      TEXT                -- optional JSON blob with action-specific context
);

CREATE INDEX IF NOT EXISTS idx_audit_entity    ON audit_log (entity);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp DESC);
"""

_OPERATORS = {"==": "=", "!=": "!=", "<": "<", "<=": "<=", ">": ">", ">=": ">="}

# (field, operator, value), e.g. ("status", "==", "draft")
Filter = tuple[str, str, Any]
Snapshot = list[dict]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Serialization boundary
# ---------------------------------------------------------------------------

def clean_document(value: Any) -> Any:
    """
    Normalise data for storage: drop None values (recursively, in dicts),
    turn Decimal into str and date/datetime into ISO strings.
    """
    if isinstance(value, dict):
        return {k: clean_document(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [clean_document(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return to_document(value)
    return value


def to_document(model: BaseModel) -> dict:
    """Storage shape of a model.  The id lives in the key, not the body."""
    return clean_document(model.model_dump(mode="json", exclude={"id"}))


def _json_path(field: str) -> str:
    return f"$.{field}"


class DocumentStore:
    """JSON documents in SQLite with in-process change subscriptions."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._subscribers: dict[str, list[tuple[Callable[[Snapshot], None], Optional[list[Filter]]]]] = {}
        self._lock = threading.Lock()
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self, immediate: bool = False):
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=30)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open document store {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            if immediate:
                # write lock held from the first read until commit
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Document store ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        """Return the document (with its id injected) or None."""
        with self._conn() as conn:
            row = conn.execute(
                "SELECT id, data FROM documents WHERE collection=? AND id=?",
                (collection, doc_id),
            ).fetchone()
        return self._row_to_doc(row) if row else None

    def query(
        self,
        collection: str,
        filters: Optional[list[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """
        Return documents in a collection matching every filter.

        Filters compare a top-level field with ==, !=, <, <=, > or >=.
        Without order_by, documents come back in insertion order.
        """
        clauses = ["collection = ?"]
        params: list = [collection]
        for field, op, value in filters or []:
            if op not in _OPERATORS:
                raise ValueError(f"Invalid filter operator {op!r}. Must be one of {list(_OPERATORS)}")
            clauses.append(f"json_extract(data, ?) {_OPERATORS[op]} ?")
            params.extend([_json_path(field), clean_document(value)])

        sql = f"SELECT id, data FROM documents WHERE {' AND '.join(clauses)}"
        if order_by:
            sql += f" ORDER BY json_extract(data, ?) {'DESC' if descending else 'ASC'}, rowid"
            params.append(_json_path(order_by))
        else:
            sql += " ORDER BY rowid"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        with self._conn() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_doc(r) for r in rows]

    @staticmethod
    def _row_to_doc(row: sqlite3.Row) -> dict:
        return {**json.loads(row["data"]), "id": row["id"]}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, collection: str, data: dict) -> str:
        """Insert a new document under a generated id and return the id."""
        doc_id = uuid.uuid4().hex
        body = clean_document({k: v for k, v in data.items() if k != "id"})
        now = _now()
        with self._conn() as conn:
            conn.execute(
                "INSERT INTO documents (collection, id, data, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (collection, doc_id, json.dumps(body), now, now),
            )
        logger.debug("Added %s/%s", collection, doc_id)
        self._notify(collection)
        return doc_id

    def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        """Create or replace a document.  With merge=True, top-level fields are merged in."""
        body = clean_document({k: v for k, v in data.items() if k != "id"})
        now = _now()
        with self._conn(immediate=merge) as conn:
            if merge:
                row = conn.execute(
                    "SELECT data FROM documents WHERE collection=? AND id=?",
                    (collection, doc_id),
                ).fetchone()
                if row:
                    body = {**json.loads(row["data"]), **body}
            conn.execute(
                """
                INSERT INTO documents (collection, id, data, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(collection, id) DO UPDATE SET
                    data       = excluded.data,
                    updated_at = excluded.updated_at
                """,
                (collection, doc_id, json.dumps(body), now, now),
            )
        self._notify(collection)

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        """
        Update top-level fields of an existing document.
        A None value removes the field.  Raises NotFoundError if the
        document does not exist.
        """
        with self._conn(immediate=True) as conn:
            row = conn.execute(
                "SELECT data FROM documents WHERE collection=? AND id=?",
                (collection, doc_id),
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Document not found: {collection}/{doc_id}")
            body = json.loads(row["data"])
            for key, value in fields.items():
                if value is None:
                    body.pop(key, None)
                else:
                    body[key] = clean_document(value)
            conn.execute(
                "UPDATE documents SET data=?, updated_at=? WHERE collection=? AND id=?",
                (json.dumps(body), _now(), collection, doc_id),
            )
        self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document.  Returns True if a row was deleted."""
        with self._conn() as conn:
            cur = conn.execute(
                "DELETE FROM documents WHERE collection=? AND id=?",
                (collection, doc_id),
            )
            deleted = cur.rowcount > 0
        if deleted:
            self._notify(collection)
        return deleted

    def increment(self, collection: str, doc_id: str, field: str, amount: int = 1) -> int:
        """
        Atomically add amount to a numeric field (missing counts as 0) and
        return the new value.  One UPDATE statement, so concurrent callers
        on the same database file never lose an increment.
        """
        path = _json_path(field)
        with self._conn() as conn:
            cur = conn.execute(
                """
                UPDATE documents
                SET data = json_set(data, ?, COALESCE(json_extract(data, ?), 0) + ?),
                    updated_at = ?
                WHERE collection=? AND id=?
                """,
                (path, path, amount, _now(), collection, doc_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Document not found: {collection}/{doc_id}")
            row = conn.execute(
                "SELECT json_extract(data, ?) AS value FROM documents WHERE collection=? AND id=?",
                (path, collection, doc_id),
            ).fetchone()
        self._notify(collection)
        return int(row["value"])

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self,
        collection: str,
        callback: Callable[[Snapshot], None],
        filters: Optional[list[Filter]] = None,
    ) -> Callable[[], None]:
        """
        Call callback with the matching snapshot now and after every write
        to the collection.  Returns an unsubscribe function.

        Subscribers always receive the full latest snapshot, never a diff,
        so a repeated or late notification is harmless.
        """
        entry = (callback, filters)
        with self._lock:
            self._subscribers.setdefault(collection, []).append(entry)
        self._deliver(collection, entry)

        def unsubscribe() -> None:
            with self._lock:
                subs = self._subscribers.get(collection, [])
                if entry in subs:
                    subs.remove(entry)

        return unsubscribe

    def _notify(self, collection: str) -> None:
        with self._lock:
            subs = list(self._subscribers.get(collection, []))
        for entry in subs:
            self._deliver(collection, entry)

    def _deliver(self, collection: str, entry) -> None:
        callback, filters = entry
        try:
            callback(self.query(collection, filters))
        except Exception as e:
            # A broken listener must not fail the write that triggered it
            logger.error("Subscriber for %s failed: %s", collection, e, exc_info=True)

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def log_audit(
        self,
        entity: str,
        action: str,
        actor: str = "system",
        detail: Optional[dict] = None,
    ) -> None:
        """Append one entry to the audit log."""
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO audit_log (entity, timestamp, action, actor, detail)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    entity,
                    _now(),
                    action,
                    actor or "system",
                    json.dumps(clean_document(detail)) if detail is not None else None,
                ),
            )

    def get_audit_log(self, entity: Optional[str] = None, limit: int = 200) -> list[dict]:
        """Audit entries, for one entity oldest first, or across all entities newest first."""
        with self._conn() as conn:
            if entity:
                rows = conn.execute(
                    """SELECT id, entity, timestamp, action, actor, detail
                       FROM audit_log WHERE entity = ?
                       ORDER BY timestamp ASC, id ASC LIMIT ?""",
                    (entity, limit),
                ).fetchall()
            else:
                rows = conn.execute(
                    """SELECT id, entity, timestamp, action, actor, detail
                       FROM audit_log
                       ORDER BY timestamp DESC, id DESC LIMIT ?""",
                    (limit,),
                ).fetchall()
        return [dict(r) for r in rows]
