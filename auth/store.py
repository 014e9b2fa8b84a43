"""
auth/store.py -- Storage backends for User records.

Pattern: Repository + Data Mapper. UserRepository is the capability set the
Credential Store depends on (create, find_by_email, find_by_id, list, update).
Two implementations ship:

  MemoryUserRepository -- process-lifetime list: data
      is gone on restart. Default when DATABASE_URL is empty.

  SqlUserRepository -- SQLAlchemy Core. _row_to_user is the mapper. Swapping
      SQLite for PostgreSQL is a connection string change.

Neither backend normalizes email or checks uniqueness on its own terms; the
Credential Store does both under its lock. The SQL table still carries a
UNIQUE constraint on email as a second line.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Boolean, Column, DateTime, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from auth.models import User

# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class UserRepository(Protocol):
    """Storage capability set required by CredentialStore."""

    def create(self, user: User) -> int: ...

    def find_by_email(self, email: str) -> User | None: ...

    def find_by_id(self, user_id: int) -> User | None: ...

    def list(self) -> list[User]: ...

    def update(self, user_id: int, **fields) -> bool: ...

    def close(self) -> None: ...


# Fields callers may change after creation. id, email and created_at are fixed.
_MUTABLE_FIELDS = frozenset(
    {
        "full_name",
        "phone",
        "user_type",
        "hashed_password",
        "verified",
        "profile_complete",
        "last_login",
        "verification_code",
    }
)


def _check_fields(fields: dict) -> None:
    unknown = set(fields) - _MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown or immutable user fields: {unknown!r}")


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class MemoryUserRepository:
    """List-backed repository. ids are assigned 1, 2, 3, ... in insert order.

    Records are copied on the way in and out so callers cannot mutate stored
    state by holding on to a returned User.
    """

    def __init__(self) -> None:
        self._users: list[User] = []
        self._next_id = 1
        self._lock = threading.Lock()

    def create(self, user: User) -> int:
        with self._lock:
            user_id = self._next_id
            self._next_id += 1
            self._users.append(replace(user, id=user_id, created_at=user.created_at or _now()))
            return user_id

    def find_by_email(self, email: str) -> User | None:
        with self._lock:
            for user in self._users:
                if user.email == email:
                    return replace(user)
        return None

    def find_by_id(self, user_id: int) -> User | None:
        with self._lock:
            for user in self._users:
                if user.id == user_id:
                    return replace(user)
        return None

    def list(self) -> list[User]:
        with self._lock:
            return [replace(u) for u in self._users]

    def update(self, user_id: int, **fields) -> bool:
        _check_fields(fields)
        with self._lock:
            for index, user in enumerate(self._users):
                if user.id == user_id:
                    self._users[index] = replace(user, **fields)
                    return True
        return False

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# SQL backend -- schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("full_name", String(255), nullable=False),
    Column("email", String(320), nullable=False, unique=True),  # stored normalized
    Column("phone", String(20), nullable=False),
    Column("user_type", String(50), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("verified", Boolean, nullable=False, default=False),
    Column("profile_complete", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("last_login", DateTime(timezone=True)),
    Column("verification_code", String(16)),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety on file-backed SQLite."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _is_sqlite_memory(db_url: str) -> bool:
    return db_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in db_url


# ---------------------------------------------------------------------------
# SQL backend -- repository
# ---------------------------------------------------------------------------


class SqlUserRepository:
    """SQLAlchemy Core repository for User records.

    Usage:
        repo = SqlUserRepository("sqlite:///condoswift.db")
        user_id = repo.create(User(...))
        user = repo.find_by_email("a@b.com")
        repo.close()

    Plain in-memory SQLite URLs are bound to a StaticPool so every thread in
    FastAPI's worker pool sees the same database instead of a blank one per
    connection.
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        engine_kwargs: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            if _is_sqlite_memory(db_url):
                engine_kwargs["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
        if db_url.startswith("sqlite") and not _is_sqlite_memory(db_url):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def create(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    full_name=user.full_name,
                    email=user.email,
                    phone=user.phone,
                    user_type=user.user_type,
                    hashed_password=user.hashed_password,
                    verified=user.verified,
                    profile_complete=user.profile_complete,
                    created_at=user.created_at or _now(),
                    last_login=user.last_login,
                    verification_code=user.verification_code,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact (already normalized) email."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list(self) -> list[User]:
        """Return all users in id order."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update(self, user_id: int, **fields) -> bool:
        """Update mutable fields. Returns False if user_id was not found."""
        _check_fields(fields)
        if not fields:
            return self.find_by_id(user_id) is not None
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back; every timestamp here is written in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        full_name=row.full_name,
        email=row.email,
        phone=row.phone,
        user_type=row.user_type,
        hashed_password=row.hashed_password,
        verified=bool(row.verified),
        profile_complete=bool(row.profile_complete),
        created_at=_as_utc(row.created_at),
        last_login=_as_utc(row.last_login),
        verification_code=row.verification_code,
    )


def build_user_repository(db_url: str) -> UserRepository:
    """Pick the backend for a DATABASE_URL value. Empty means in-memory."""
    if not db_url:
        return MemoryUserRepository()
    return SqlUserRepository(db_url)
