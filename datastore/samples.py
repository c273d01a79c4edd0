from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    MetaData,
    Table,
    create_engine,
    insert,
    select,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from app.schemas import Sample
from settings import database_url_env_names, get_settings

metadata = MetaData()

samples_table = Table(
    "occupancy_samples",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("timestamp", DateTime(timezone=True), nullable=False, index=True),
    Column("occupancy", Integer, nullable=False),
    CheckConstraint("occupancy >= 0", name="ck_occupancy_samples_non_negative"),
)


class StoreFailure(RuntimeError):
    """A persistence call failed; the sample it carried is lost."""


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def create_store_engine(database_url: str) -> Engine:
    url = make_url(database_url)
    kwargs: dict = {"pool_pre_ping": True}
    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        # one shared connection, otherwise every thread gets its own empty database
        kwargs = {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return create_engine(url, **kwargs)


class SampleStore:
    """Append-only occupancy history backed by a SQL database."""

    def __init__(self, engine: Engine, create_schema: bool = True) -> None:
        self.engine = engine
        if create_schema:
            metadata.create_all(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "SampleStore":
        return cls(create_store_engine(database_url))

    def append(self, timestamp: datetime, occupancy: int) -> Sample:
        """Insert one sample in its own transaction and return it with its id."""
        if isinstance(occupancy, bool) or not isinstance(occupancy, int) or occupancy < 0:
            raise ValueError(f"Occupancy must be a non-negative integer, got {occupancy!r}.")
        captured_at = _as_utc(timestamp)

        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    insert(samples_table).values(timestamp=captured_at, occupancy=occupancy)
                )
                sample_id = result.inserted_primary_key[0]
        except (SQLAlchemyError, OverflowError) as exc:
            raise StoreFailure(f"Could not store occupancy sample: {exc}") from exc

        return Sample(id=sample_id, timestamp=captured_at, occupancy=occupancy)

    def list_samples(self) -> list[Sample]:
        """Return the full history, newest first."""
        query = select(samples_table).order_by(
            samples_table.c.timestamp.desc(), samples_table.c.id.desc()
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).mappings().all()
        except SQLAlchemyError as exc:
            raise StoreFailure(f"Could not read occupancy samples: {exc}") from exc

        return [
            Sample(id=row["id"], timestamp=_as_utc(row["timestamp"]), occupancy=row["occupancy"])
            for row in rows
        ]

    def dispose(self) -> None:
        self.engine.dispose()


@lru_cache
def build_default_store(database_url: Optional[str] = None) -> SampleStore:
    url = database_url or get_settings().database_url
    if not url:
        raise RuntimeError(
            "No database connection string configured "
            f"(checked: {', '.join(database_url_env_names())})."
        )
    return SampleStore.from_url(url)
