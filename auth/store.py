"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper (same as bugs/store.py).
UserStore is the repository; _row_to_user is the mapper.
Service and route code never touches SQL directly.

Absence vs. failure:
  Lookups return None (or an empty list) when nothing matches -- that is a
  normal outcome, not an error. Any SQLAlchemy error is re-raised as
  core.errors.StorageFailure with the original chained, so callers can tell
  "no such user" apart from "the database is down".

Security:
  All queries use bound parameters. No f-strings in SQL.
  The email column carries a UNIQUE constraint; create_user() converts the
  resulting IntegrityError into EmailAlreadyExists so a registration race
  between two concurrent requests still yields the domain error.

DB path: auth/bugtracker_auth.db unless DATABASE_URL is configured.

Layer rule: no imports from api/ or bugs/.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import Role, User
from core.errors import EmailAlreadyExists, StorageFailure

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'bugtracker_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default=Role.developer.value),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Fields update_user() accepts. Anything else is a programming error.
_MUTABLE_FIELDS = {"name", "email", "role", "hashed_password"}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
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
        raise StorageFailure(f"User store failed during {operation}.") from exc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///:memory:")
        uid = store.create_user(User(name="Ada", email="ada@example.com", role=Role.developer,
                                     hashed_password=hash_password("secret")))
        user = store.get_by_email("ada@example.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        """Return True if at least one user record exists."""
        with _storage_errors("has_users"), self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return (result or 0) > 0

    def count_users(self) -> int:
        with _storage_errors("count_users"), self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return result or 0

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with _storage_errors("get_by_email"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        if not _storable_id(user_id):
            return None
        with _storage_errors("get_by_id"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_by_role(self, role: Role) -> list[User]:
        """Return all users holding the given role, ordered by name."""
        with _storage_errors("list_by_role"), self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().where(_users.c.role == Role(role).value).order_by(_users.c.name, _users.c.id)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises EmailAlreadyExists if the UNIQUE(email) constraint fires.
        """
        now = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        name=user.name,
                        email=user.email,
                        hashed_password=user.hashed_password,
                        role=Role(user.role).value,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise EmailAlreadyExists() from exc
        except SQLAlchemyError as exc:
            raise StorageFailure("User store failed during create_user.") from exc

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user (profile update).

        Accepted fields: name, email, role, hashed_password. updated_at is
        stamped automatically. Unknown fields raise ValueError.

        Returns True if a row was updated, False if user_id was not found.
        Raises EmailAlreadyExists if the new email belongs to another user.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if not _storable_id(user_id):
            return False
        if "role" in fields:
            fields["role"] = Role(fields["role"]).value
        fields["updated_at"] = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
                conn.commit()
        except IntegrityError as exc:
            raise EmailAlreadyExists() from exc
        except SQLAlchemyError as exc:
            raise StorageFailure("User store failed during update_user.") from exc
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Not reachable from the HTTP surface -- account removal is an operator
        task. Bugs that reference the user keep the dangling id, which
        bugs/projection.py reports as an IntegrityViolation.
        """
        if not _storable_id(user_id):
            return False
        with _storage_errors("delete_user"), self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        role=Role(row.role),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
