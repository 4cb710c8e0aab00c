"""
store.py - Local durable submission store.

The store owns the only authoritative copy of a submission until the
remote endpoint acknowledges it. Writes never touch the network.

Every public operation is a single atomic unit against SQLite. Sync
passes call into the store from an executor thread, so access to the
shared connection is serialized with a lock.
"""

import json
import logging
import math
import sqlite3
import threading
from typing import Any, Mapping

from po_sync.db.connection import create_connection, execute_in_transaction, verify_integrity
from po_sync.db.migrations import initialize_tables
from po_sync.errors import StorageError
from po_sync.models import Submission
from po_sync.schedule import apply_line
from po_sync.scope import normalize_scope_line
from po_sync.utils.coerce import coerce_number, to_int
from po_sync.utils.timeutil import now_millis, parse_iso_date, utc_now_iso

logger = logging.getLogger(__name__)

_SELECT_COLUMNS = "id, body, created_at, timestamp, user_id, sent, sent_at"

# Statuses accepted by search(); anything else means no status filter
STATUS_SENT = "sent"
STATUS_PENDING = "pending"


class SubmissionStore:
    """
    SQLite-backed store of Submission records.

    Usage:
        with SubmissionStore("po.db") as store:
            store.initialize()
            sub_id = store.save(submission)
            store.mark_sent(sub_id)
    """

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._initialized = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = create_connection(self._db_path)
        return self._conn

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def is_available(self) -> bool:
        return self._initialized and self._conn is not None

    def initialize(self) -> int:
        """Create tables if needed; returns the schema version."""
        with self._lock:
            version = initialize_tables(self.connection)
            self._initialized = True
        logger.info(f"Local store ready at {self._db_path} (schema v{version})")
        return version

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            self._initialized = False

    def check_integrity(self) -> bool:
        """True when the store is open and SQLite reports no corruption."""
        if not self.is_available:
            return False
        with self._lock:
            return verify_integrity(self._conn)

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def save(self, submission: Submission | Mapping[str, Any]) -> int:
        """
        Persist a new submission and return its id.

        Derived schedule fields are recomputed, scope flags normalized,
        creation timestamps filled in when absent and the delivery state
        reset to pending. A caller-supplied id is kept; if it is already
        taken the save fails with StorageError.
        """
        if not isinstance(submission, Submission):
            submission = Submission.from_dict(submission)

        record = submission.copy(
            schedule=[apply_line(line) for line in submission.schedule],
            scope=[normalize_scope_line(line) for line in submission.scope],
            created_at=submission.created_at or utc_now_iso(),
            timestamp=submission.timestamp or now_millis(),
            sent=False,
            sent_at="",
        )
        body = json.dumps(record.body_dict())

        def do_insert(conn: sqlite3.Connection) -> int:
            if record.id is None:
                cursor = conn.execute(
                    "INSERT INTO submissions (body, created_at, timestamp, user_id, sent, sent_at) "
                    "VALUES (?, ?, ?, ?, 0, '')",
                    (body, record.created_at, record.timestamp, record.user_id),
                )
            else:
                cursor = conn.execute(
                    "INSERT INTO submissions (id, body, created_at, timestamp, user_id, sent, sent_at) "
                    "VALUES (?, ?, ?, ?, ?, 0, '')",
                    (record.id, body, record.created_at, record.timestamp, record.user_id),
                )
            return cursor.lastrowid

        with self._lock:
            new_id = execute_in_transaction(self.connection, do_insert)
        logger.info(f"Saved locally with id: {new_id}")
        return new_id

    def get_all(self) -> list[Submission]:
        rows = self._fetch(
            f"SELECT {_SELECT_COLUMNS} FROM submissions ORDER BY timestamp, id",
            (),
            operation="get_all",
        )
        return [_row_to_submission(row) for row in rows]

    def get_pending(self) -> list[Submission]:
        """Submissions with sent == False, served by the partial pending index."""
        rows = self._fetch(
            f"SELECT {_SELECT_COLUMNS} FROM submissions WHERE sent = 0 ORDER BY timestamp, id",
            (),
            operation="get_pending",
        )
        return [_row_to_submission(row) for row in rows]

    def get_by_id(self, submission_id: int) -> Submission | None:
        rows = self._fetch(
            f"SELECT {_SELECT_COLUMNS} FROM submissions WHERE id = ?",
            (to_int(submission_id),),
            operation="get_by_id",
        )
        return _row_to_submission(rows[0]) if rows else None

    def mark_sent(self, submission_id: int) -> bool:
        """
        Record a successful delivery.

        Idempotent: the first acknowledgment sets sent_at and later ones
        leave it alone. A missing id (concurrently deleted) is a no-op.

        Returns:
            True if this call transitioned the record from pending to sent
        """
        cursor = self._execute(
            "UPDATE submissions SET sent = 1, sent_at = ? WHERE id = ? AND sent = 0",
            (utc_now_iso(), to_int(submission_id)),
            operation="mark_sent",
        )
        return cursor.rowcount > 0

    def delete(self, submission_id: int) -> bool:
        cursor = self._execute(
            "DELETE FROM submissions WHERE id = ?",
            (to_int(submission_id),),
            operation="delete",
        )
        return cursor.rowcount > 0

    def count(self, sent: bool | None = None) -> int:
        if sent is None:
            rows = self._fetch("SELECT COUNT(*) FROM submissions", (), operation="count")
        else:
            rows = self._fetch(
                "SELECT COUNT(*) FROM submissions WHERE sent = ?",
                (1 if sent else 0,),
                operation="count",
            )
        return rows[0][0]

    # ------------------------------------------------------------------
    # Listing, search and statistics
    # ------------------------------------------------------------------

    def search(
        self,
        query: str = "",
        filters: Mapping[str, Any] | None = None,
        user_id: str | None = None,
    ) -> list[Submission]:
        """
        Filter submissions for admin and tracking views.

        Filters: status ("sent"/"pending"), date_from, date_to (inclusive,
        YYYY-MM-DD), min_amount, max_amount, contractor, user_id.
        Results are newest first.
        """
        filters = filters or {}
        items = self.get_all()

        owner = user_id or filters.get("user_id")
        if owner:
            items = [s for s in items if s.user_id == str(owner)]

        if query:
            needle = query.lower()
            items = [
                s for s in items
                if needle in s.meta.project_name.lower()
                or needle in s.meta.company_name.lower()
                or needle in s.meta.general_contractor.lower()
                or needle in s.meta.contact_name.lower()
                or needle in str(s.id)
            ]

        status = filters.get("status")
        if status == STATUS_SENT:
            items = [s for s in items if s.sent]
        elif status == STATUS_PENDING:
            items = [s for s in items if not s.sent]

        date_from = parse_iso_date(filters.get("date_from") or "")
        if date_from is not None:
            items = [s for s in items if (parse_iso_date(s.created_at) or date_from) >= date_from]

        date_to = parse_iso_date(filters.get("date_to") or "")
        if date_to is not None:
            items = [s for s in items if (parse_iso_date(s.created_at) or date_to) <= date_to]

        if filters.get("min_amount") not in (None, ""):
            minimum = coerce_number(filters["min_amount"])
            items = [s for s in items if s.meta.contract_amount >= minimum]

        if filters.get("max_amount") not in (None, ""):
            maximum = coerce_number(filters["max_amount"])
            items = [s for s in items if s.meta.contract_amount <= maximum]

        contractor = filters.get("contractor")
        if contractor:
            needle = contractor.lower()
            items = [s for s in items if needle in s.meta.general_contractor.lower()]

        items.sort(key=lambda s: (s.timestamp, s.id or 0), reverse=True)
        return items

    @staticmethod
    def paginate(items: list[Any], page: int = 1, limit: int = 10) -> dict[str, Any]:
        page = max(page, 1)
        limit = max(limit, 1)
        offset = (page - 1) * limit
        total_pages = math.ceil(len(items) / limit)
        return {
            "items": items[offset:offset + limit],
            "currentPage": page,
            "totalPages": total_pages,
            "totalItems": len(items),
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        }

    def stats(self, user_id: str | None = None) -> dict[str, Any]:
        items = self.search(user_id=user_id)
        total_value = sum(s.meta.contract_amount for s in items)
        sent = sum(1 for s in items if s.sent)
        return {
            "total": len(items),
            "sent": sent,
            "pending": len(items) - sent,
            "totalValue": total_value,
            "avgValue": total_value / len(items) if items else 0,
        }

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_data(self) -> dict[str, Any]:
        return {
            "timestamp": utc_now_iso(),
            "version": "1.0",
            "pos": [s.to_dict() for s in self.get_all()],
        }

    def import_data(self, data: Mapping[str, Any]) -> int:
        """
        Restore exported submissions, keeping ids and delivery state.

        Records whose id already exists are skipped. Returns the number
        of records inserted.
        """
        pos = data.get("pos")
        if not isinstance(pos, list):
            return 0

        records = []
        for raw in pos:
            if not isinstance(raw, Mapping):
                continue
            sub = Submission.from_dict(raw)
            sub = sub.copy(
                schedule=[apply_line(line) for line in sub.schedule],
                scope=[normalize_scope_line(line) for line in sub.scope],
                created_at=sub.created_at or utc_now_iso(),
                timestamp=sub.timestamp or now_millis(),
            )
            records.append(sub)

        def do_import(conn: sqlite3.Connection) -> int:
            inserted = 0
            for sub in records:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO submissions "
                    "(id, body, created_at, timestamp, user_id, sent, sent_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        sub.id,
                        json.dumps(sub.body_dict()),
                        sub.created_at,
                        sub.timestamp,
                        sub.user_id,
                        1 if sub.sent else 0,
                        sub.sent_at,
                    ),
                )
                inserted += cursor.rowcount
            return inserted

        with self._lock:
            inserted = execute_in_transaction(self.connection, do_import)
        logger.info(f"Imported {inserted}/{len(records)} submissions")
        return inserted

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fetch(self, sql: str, params: tuple, operation: str) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self.connection.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"{operation} failed: {e}", operation=operation, sql=sql) from e

    def _execute(self, sql: str, params: tuple, operation: str) -> sqlite3.Cursor:
        with self._lock:
            try:
                return self.connection.execute(sql, params)
            except sqlite3.Error as e:
                raise StorageError(f"{operation} failed: {e}", operation=operation, sql=sql) from e


def _row_to_submission(row: sqlite3.Row) -> Submission:
    body = json.loads(row["body"])
    body.update({
        "id": row["id"],
        "createdAt": row["created_at"],
        "timestamp": row["timestamp"],
        "userId": row["user_id"],
        "sent": bool(row["sent"]),
        "sentAt": row["sent_at"],
    })
    sub = Submission.from_dict(body)
    # Never trust stored derived values
    return sub.copy(schedule=[apply_line(line) for line in sub.schedule])
