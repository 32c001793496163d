"""SQLModel database engine construction and schema management."""

import logging
from pathlib import Path

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from riskledger.models import trade_record  # noqa: F401  (registers table metadata)

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite gets check_same_thread=False, in-memory SQLite a shared pool."""
    url = make_url(database_url)
    kwargs = {"echo": False}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, **kwargs)


def _ensure_timestamp_index(engine: Engine):
    """Guarantee the trade.timestamp index exists, even on a trade table created outside create_all."""
    inspector = inspect(engine)

    if "trade" not in inspector.get_table_names():
        return

    existing_indexes = {idx["name"] for idx in inspector.get_indexes("trade")}
    if not any(name and "timestamp" in name for name in existing_indexes):
        logger.info("Adding missing index on trade.timestamp")
        with engine.connect() as conn:
            conn.execute(text("CREATE INDEX ix_trade_timestamp ON trade (timestamp)"))
            conn.commit()


def create_db_and_tables(engine: Engine):
    """Create any missing tables, then make sure range queries are indexed."""
    SQLModel.metadata.create_all(engine)
    _ensure_timestamp_index(engine)
