"""
SQLite persistence for per-order document collections.

Each (kind, order_id) pair owns one row holding the whole collection as a
JSON array of wire-format records, mirroring how the dashboard kept one
storage key per order ("invoices_<orderId>", "purchaseOrders_<orderId>").

The presence of the row is what distinguishes an order with no documents
yet (row absent, load returns None) from one whose collection is empty
(row present with "[]").
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS collections (
    kind            TEXT NOT NULL,   -- purchase_order | sales_invoice | shipping_invoice
    order_id        TEXT NOT NULL,

    -- JSON array of documents, serialised with wire (camelCase) field names
    documents       TEXT NOT NULL DEFAULT '[]',
    document_count  INTEGER NOT NULL DEFAULT 0,

    updated_at      TEXT NOT NULL,   -- ISO-8601 UTC

    PRIMARY KEY (kind, order_id)
);

CREATE INDEX IF NOT EXISTS idx_collections_order ON collections (order_id);
"""


class Database:
    """Thin wrapper around an SQLite database file for document collections."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Database schema ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def save_collection(self, kind: str, order_id: str, records: list[dict]) -> None:
        """Insert or replace the whole collection for one order."""
        with self._conn() as conn:
            self._upsert(conn, kind, order_id, records)
        logger.debug("DB saved %s collection for order %s (%d records)", kind, order_id, len(records))

    def update_collection(
        self,
        kind: str,
        order_id: str,
        fn: Callable[[Optional[list[dict]]], tuple[Optional[list[dict]], Any]],
    ) -> Any:
        """
        Read, change, and write one collection inside a single write transaction.

        *fn* receives the stored records (None if never saved) and returns
        (records to store, result).  Returning None as the records skips the
        write.  BEGIN IMMEDIATE takes the write lock before the read, so a
        concurrent writer waits instead of overwriting this change.
        """
        with self._conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT documents FROM collections WHERE kind = ? AND order_id = ?",
                (kind, order_id),
            ).fetchone()
            records, result = fn(None if row is None else json.loads(row["documents"]))
            if records is not None:
                self._upsert(conn, kind, order_id, records)
                logger.debug("DB updated %s collection for order %s (%d records)", kind, order_id, len(records))
        return result

    @staticmethod
    def _upsert(conn: sqlite3.Connection, kind: str, order_id: str, records: list[dict]) -> None:
        conn.execute(
            """
            INSERT INTO collections (kind, order_id, documents, document_count, updated_at)
            VALUES (:kind, :order_id, :documents, :document_count, :updated_at)
            ON CONFLICT(kind, order_id) DO UPDATE SET
                documents      = excluded.documents,
                document_count = excluded.document_count,
                updated_at     = excluded.updated_at
            """,
            {
                "kind":           kind,
                "order_id":       order_id,
                "documents":      json.dumps(records),
                "document_count": len(records),
                "updated_at":     datetime.now(timezone.utc).isoformat(),
            },
        )

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def load_collection(self, kind: str, order_id: str) -> Optional[list[dict]]:
        """Return the stored records, or None if the collection was never saved."""
        with self._conn() as conn:
            row = conn.execute(
                "SELECT documents FROM collections WHERE kind = ? AND order_id = ?",
                (kind, order_id),
            ).fetchone()
        if row is None:
            return None
        return json.loads(row["documents"])

    def list_order_ids(self, kind: Optional[str] = None) -> list[str]:
        """Return the ids of orders that have at least one collection, sorted."""
        with self._conn() as conn:
            if kind:
                rows = conn.execute(
                    "SELECT DISTINCT order_id FROM collections WHERE kind = ? ORDER BY order_id",
                    (kind,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT DISTINCT order_id FROM collections ORDER BY order_id"
                ).fetchall()
        return [r["order_id"] for r in rows]

