"""
metrics/store.py -- SQLAlchemy-backed persistence layer for dashboard metrics.

Uses SQLAlchemy Core (not ORM) so the dataclass in metrics/models.py remains
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. MetricStore is the repository;
_row_to_metric is the mapper. Route handlers never touch SQL directly.

Ownership contract:
  Every mutation takes both the metric id and the owner id, and both go into
  the same WHERE clause. A metric that exists but belongs to someone else is
  indistinguishable from one that does not exist: update_value() returns None
  and delete() returns False in both cases. Routes surface that as 404.

  Each mutation is a single UPDATE or DELETE statement, so it is atomic per
  row. There is no cross-statement ordering: a concurrent update and delete
  on the same row race and the last statement wins.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = MetricStore("sqlite:///./metricboard.db")
    metric = store.create_metric(Metric(user_id=uid, title="Followers", value="120", category="twitter"))
    store.list_by_owner(uid)
    store.update_value(metric.id, uid, "125")
    store.delete(metric.id, uid)
    store.close()
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Index, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from metrics.models import Metric

_DEFAULT_DB_URL = "sqlite:///./metricboard.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_metrics = Table(
    "metrics",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("user_id", String(32), nullable=False),
    Column("title", String(255), nullable=False),
    Column("value", Text, nullable=False),
    Column("category", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),  # ISO 8601, list ordering only
    Index("ix_metrics_user_id", "user_id"),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class MetricStore:
    """Repository for Metric entities, always scoped by owner."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def create_metric(self, metric: Metric) -> Metric:
        """Insert a metric and return it with its generated id.

        Raises sqlalchemy.exc.IntegrityError if a required field is None.
        """
        metric_id = uuid.uuid4().hex
        with self.engine.connect() as conn:
            conn.execute(
                _metrics.insert().values(
                    id=metric_id,
                    user_id=metric.user_id,
                    title=metric.title,
                    value=metric.value,
                    category=metric.category,
                    created_at=datetime.now(timezone.utc).isoformat(),
                )
            )
            conn.commit()
        return Metric(
            id=metric_id,
            user_id=metric.user_id,
            title=metric.title,
            value=metric.value,
            category=metric.category,
        )

    def get_metric(self, metric_id: str, owner_id: str) -> Optional[Metric]:
        """Return the metric if it exists AND belongs to owner_id, else None."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _metrics.select().where((_metrics.c.id == metric_id) & (_metrics.c.user_id == owner_id))
            ).fetchone()
        return _row_to_metric(row) if row is not None else None

    def list_by_owner(self, owner_id: str) -> list[Metric]:
        """Return every metric owned by owner_id, in insertion order."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _metrics.select().where(_metrics.c.user_id == owner_id).order_by(_metrics.c.created_at, _metrics.c.id)
            ).fetchall()
        return [_row_to_metric(r) for r in rows]

    def update_value(self, metric_id: str, owner_id: str, value: str) -> Optional[Metric]:
        """Set the value of an owned metric and return the updated record.

        Only value changes; title and category are immutable after creation.
        Returns None if the metric is missing or owned by someone else.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _metrics.update()
                .where((_metrics.c.id == metric_id) & (_metrics.c.user_id == owner_id))
                .values(value=value)
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_metric(metric_id, owner_id)

    def delete(self, metric_id: str, owner_id: str) -> bool:
        """Delete an owned metric. Returns False if missing or owned by someone else."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _metrics.delete().where((_metrics.c.id == metric_id) & (_metrics.c.user_id == owner_id))
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_metric(row) -> Metric:
    return Metric(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        value=row.value,
        category=row.category,
    )
