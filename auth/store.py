"""
auth/store.py -- SQLAlchemy Core persistence layer for user identities.

Pattern: Repository + Data Mapper (same as metrics/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and dependency code never touches SQL directly.

Contract:
  - username and email are each UNIQUE at the schema level. create_user()
    raises sqlalchemy.exc.IntegrityError on a duplicate; the store never
    pre-checks, so concurrent registrations are decided by the database.
  - Users are never deleted. There is no cascade policy for metrics because
    there is no user removal path.
  - Every update is a single UPDATE statement keyed on id, atomic per row.

Security:
  All queries use bound parameters. No f-strings in SQL.
  hashed_password is returned on the User dataclass so login can verify it;
  the API layer is responsible for never serializing it.

Layer rule: no imports from api/, metrics/, or realtime/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, or_
from sqlalchemy.engine import Engine

from auth.models import User

_DEFAULT_DB_URL = "sqlite:///./metricboard.db"

# Columns a caller may change through update_user(). Anything else is rejected
# before it reaches SQL.
_UPDATABLE_FIELDS = frozenset({"full_name", "date_of_birth", "profile_pic"})

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("full_name", String(255), nullable=False),
    Column("date_of_birth", String(64), nullable=False),
    Column("profile_pic", Text),  # relative path, e.g. "uploads/1700000000000.png"
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block behind writers.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///./metricboard.db")
        user_id = store.create_user(User(username="ana", email="ana@example.com", ...))
        user = store.get_by_login("ana@example.com")
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
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> str:
        """Insert a new user and return its generated id.

        Raises sqlalchemy.exc.IntegrityError if the username or email is
        already taken, or if a required field is missing.
        """
        user_id = _new_id()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    username=user.username,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    full_name=user.full_name,
                    date_of_birth=user.date_of_birth,
                    profile_pic=user.profile_pic,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
        return user_id

    def update_user(self, user_id: str, **fields) -> User | None:
        """Update profile fields and return the fresh record.

        Accepted fields: full_name, date_of_birth, profile_pic. Fields whose
        value is None are skipped, so a partial update leaves the others alone.

        Returns None if user_id does not exist.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        values = {k: v for k, v in fields.items() if v is not None}
        if values:
            with self.engine.connect() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
                conn.commit()
            if result.rowcount == 0:
                return None
        return self.get_by_id(user_id)

    def set_profile_pic(self, user_id: str, path: str) -> User | None:
        """Record the relative path of a freshly uploaded picture. Returns None if not found."""
        return self.update_user(user_id, profile_pic=path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_login(self, login: str) -> User | None:
        """Look up a user whose username OR email equals login.

        Both columns are unique, but a username may equal someone else's
        email. In that case the username match wins.
        """
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().where(or_(_users.c.username == login, _users.c.email == login))
            ).fetchall()
        if not rows:
            return None
        for row in rows:
            if row.username == login:
                return _row_to_user(row)
        return _row_to_user(rows[0])

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        full_name=row.full_name,
        date_of_birth=row.date_of_birth,
        profile_pic=row.profile_pic,
        created_at=row.created_at,
    )
