"""
bugs/store.py -- SQLAlchemy-backed persistence layer for bug reports.

Uses SQLAlchemy Core (not ORM) so the dataclasses in bugs/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. BugStore is the repository; _row_to_bug
is the mapper. The lifecycle manager and route handlers never touch SQL.

Absence vs. failure: get_bug() returns None for an unknown id; the mutating
methods return False when no row matched. Every SQLAlchemy error surfaces as
core.errors.StorageFailure with the original chained.

Each method is a single statement in its own connection. A read followed by
a write (as in BugLifecycle.update_status) is not one transaction, so two
concurrent writers on the same bug can lose an update. That is accepted.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = BugStore()                                # SQLite default
    store = BugStore("postgresql://user:pw@host/db")  # PostgreSQL
    bug_id = store.create_bug(bug)
    store.update_status(bug_id, Status.resolved)
    store.close()
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from bugs.models import Bug, Priority, Status
from core.errors import StorageFailure

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'bugtracker_bugs.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_bugs = Table(
    "bugs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("description", Text, nullable=False),
    Column("status", String(20), nullable=False, server_default=Status.open.value),
    Column("priority", String(20), nullable=False),
    Column("reported_by", Integer, nullable=False),
    Column("assigned_to", Integer),  # NULL until assigned
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_bugs_assigned_to", "assigned_to"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL (Write-Ahead Logging) allows readers to proceed without blocking
    during writes. Set per-connection because SQLite PRAGMAs are not
    inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


# SQLite INTEGER is a signed 64-bit value. Larger Python ints make the driver
# raise OverflowError, so such ids are treated as matching no row.
_MAX_ROW_ID = 2**63 - 1


def _storable_id(value: int) -> bool:
    return -_MAX_ROW_ID - 1 <= value <= _MAX_ROW_ID


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Re-raise SQLAlchemy errors as StorageFailure, keeping the cause chained."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise StorageFailure(f"Bug store failed during {operation}.") from exc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class BugStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # SQLite requires check_same_thread=False when route handlers run
            # in FastAPI's threadpool and share the engine's connections.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_bug(self, bug_id: int) -> Optional[Bug]:
        """Fetch a single bug by ID. Returns None if not found."""
        if not _storable_id(bug_id):
            return None
        with _storage_errors("get_bug"), self.engine.connect() as conn:
            row = conn.execute(_bugs.select().where(_bugs.c.id == bug_id)).fetchone()
        return _row_to_bug(row) if row is not None else None

    def list_bugs(self) -> list[Bug]:
        """Return every bug, newest first."""
        with _storage_errors("list_bugs"), self.engine.connect() as conn:
            rows = conn.execute(_bugs.select().order_by(_bugs.c.id.desc())).fetchall()
        return [_row_to_bug(r) for r in rows]

    def list_by_assignee(self, developer_id: int) -> list[Bug]:
        """Return the bugs assigned to one developer, newest first."""
        if not _storable_id(developer_id):
            return []
        with _storage_errors("list_by_assignee"), self.engine.connect() as conn:
            rows = conn.execute(
                _bugs.select().where(_bugs.c.assigned_to == developer_id).order_by(_bugs.c.id.desc())
            ).fetchall()
        return [_row_to_bug(r) for r in rows]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_bug(self, bug: Bug) -> int:
        """Insert a new bug and return its assigned database ID.

        created_at and updated_at are both set to now.
        """
        now = _now_iso()
        with _storage_errors("create_bug"), self.engine.connect() as conn:
            result = conn.execute(
                _bugs.insert().values(
                    title=bug.title,
                    description=bug.description,
                    status=Status(bug.status).value,
                    priority=Priority(bug.priority).value,
                    reported_by=bug.reported_by,
                    assigned_to=bug.assigned_to,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_status(self, bug_id: int, status: Status) -> bool:
        """Set a bug's status and restamp updated_at.

        Returns True if a row was updated, False if bug_id was not found.
        """
        if not _storable_id(bug_id):
            return False
        with _storage_errors("update_status"), self.engine.connect() as conn:
            result = conn.execute(
                _bugs.update()
                .where(_bugs.c.id == bug_id)
                .values(status=Status(status).value, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def update_bug(self, bug: Bug) -> bool:
        """Replace every mutable field of a stored bug with the given values.

        reported_by and created_at are never written here. updated_at is
        restamped and copied back onto the passed-in dataclass.

        Returns True if a row was updated, False if bug.id was not found.
        """
        if bug.id is None or not _storable_id(bug.id):
            return False
        now = _now_iso()
        with _storage_errors("update_bug"), self.engine.connect() as conn:
            result = conn.execute(
                _bugs.update()
                .where(_bugs.c.id == bug.id)
                .values(
                    title=bug.title,
                    description=bug.description,
                    status=Status(bug.status).value,
                    priority=Priority(bug.priority).value,
                    assigned_to=bug.assigned_to,
                    updated_at=now,
                )
            )
            conn.commit()
        if result.rowcount > 0:
            bug.updated_at = now
            return True
        return False

    def delete_bug(self, bug_id: int) -> bool:
        """Permanently delete a bug. Returns True if deleted, False if not found."""
        if not _storable_id(bug_id):
            return False
        with _storage_errors("delete_bug"), self.engine.connect() as conn:
            result = conn.execute(_bugs.delete().where(_bugs.c.id == bug_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_bug(row) -> Bug:
    return Bug(
        id=row.id,
        title=row.title,
        description=row.description,
        status=Status(row.status),
        priority=Priority(row.priority),
        reported_by=row.reported_by,
        assigned_to=row.assigned_to,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
