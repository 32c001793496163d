"""Relational storage engine: trades and settings in SQL tables via SQLModel."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.engine import Engine
from sqlmodel import Session, col, func, select

from riskledger.config import settings
from riskledger.database import build_engine, create_db_and_tables
from riskledger.errors import NotFoundError, storage_operation
from riskledger.models.risk_policy import RiskPolicy
from riskledger.models.trade import Trade
from riskledger.models.trade_record import AppSetting, TradeRecord
from riskledger.storage.base import ConfigStorage, TradeStorage
from riskledger.storage.records import decode_policy, encode_policy, imported_record, new_record
from riskledger.utils.constants import APP_VERSION_KEY, RISK_SETTINGS_KEY
from riskledger.utils.result import Result
from riskledger.utils.timeutils import to_iso, utcnow

logger = logging.getLogger(__name__)


def _to_trade(row: TradeRecord) -> Trade:
    return Trade.from_record(row.to_record())


class _SqlEngineMixin:
    """Lazy, idempotent engine + schema initialisation shared by both SQL stores."""

    _engine: Engine | None
    _database_url: str
    _initialized: bool

    def _init_engine(self, database_url: str | None, engine: Engine | None):
        self._database_url = database_url or settings.database_url
        self._engine = engine
        self._initialized = False

    async def initialize(self):
        if self._initialized:
            return
        async with storage_operation(type(self).__name__, "initialize database"):
            if self._engine is None:
                self._engine = build_engine(self._database_url)
            create_db_and_tables(self._engine)
            self._initialized = True
            logger.info(f"{type(self).__name__} ready on {self._engine.url.render_as_string(hide_password=True)}")

    async def _session(self) -> Session:
        await self.initialize()
        return Session(self._engine)

    async def close(self):
        if self._engine is not None:
            self._engine.dispose()
        self._initialized = False


class SqlTradeStorage(_SqlEngineMixin, TradeStorage):
    name = "sql"

    def __init__(self, database_url: str | None = None, engine: Engine | None = None):
        self._init_engine(database_url, engine)

    async def get_all(self) -> list[Trade]:
        async with storage_operation("SqlTradeStorage", "get all trades"):
            with await self._session() as session:
                stmt = select(TradeRecord).order_by(TradeRecord.timestamp, TradeRecord.id)
                return [_to_trade(row) for row in session.exec(stmt).all()]

    async def save(self, trade: Trade) -> Trade:
        async with storage_operation("SqlTradeStorage", "save trade"):
            with await self._session() as session:
                row = TradeRecord(**new_record(trade))
                session.add(row)
                session.commit()
                session.refresh(row)
                return trade.copy_with(id=row.id)

    async def update(self, trade: Trade) -> Trade:
        async with storage_operation("SqlTradeStorage", "update trade"):
            with await self._session() as session:
                row = session.get(TradeRecord, trade.id) if trade.id is not None else None
                if row is None:
                    raise NotFoundError(f"Trade with id {trade.id} not found", context="SqlTradeStorage")
                row.result = float(trade.result)
                row.timestamp = to_iso(trade.timestamp)
                row.updated_at = to_iso(utcnow())
                session.add(row)
                session.commit()
                return trade

    async def delete(self, trade_id: int):
        async with storage_operation("SqlTradeStorage", "delete trade"):
            with await self._session() as session:
                row = session.get(TradeRecord, trade_id)
                if row is None:
                    raise NotFoundError(f"Trade with id {trade_id} not found", context="SqlTradeStorage")
                session.delete(row)
                session.commit()

    async def get_by_id(self, trade_id: int) -> Trade | None:
        async with storage_operation("SqlTradeStorage", "get trade by id"):
            with await self._session() as session:
                row = session.get(TradeRecord, trade_id)
                return _to_trade(row) if row else None

    async def clear_all(self):
        async with storage_operation("SqlTradeStorage", "clear all trades"):
            with await self._session() as session:
                for row in session.exec(select(TradeRecord)).all():
                    session.delete(row)
                session.commit()

    async def get_by_date_range(self, start: datetime, end: datetime) -> list[Trade]:
        async with storage_operation("SqlTradeStorage", "get trades by date range"):
            with await self._session() as session:
                stmt = (
                    select(TradeRecord)
                    .where(col(TradeRecord.timestamp) >= to_iso(start))
                    .where(col(TradeRecord.timestamp) <= to_iso(end))
                    .order_by(TradeRecord.timestamp, TradeRecord.id)
                )
                return [_to_trade(row) for row in session.exec(stmt).all()]

    async def count(self) -> int:
        async with storage_operation("SqlTradeStorage", "count trades"):
            with await self._session() as session:
                return session.exec(select(func.count()).select_from(TradeRecord)).one()

    async def get_recent(self, limit: int = 10) -> list[Trade]:
        async with storage_operation("SqlTradeStorage", "get recent trades"):
            with await self._session() as session:
                stmt = (
                    select(TradeRecord)
                    .order_by(col(TradeRecord.timestamp).desc(), col(TradeRecord.id).desc())
                    .limit(limit)
                )
                return [_to_trade(row) for row in session.exec(stmt).all()]

    async def export(self) -> list[dict[str, Any]]:
        async with storage_operation("SqlTradeStorage", "export trades"):
            with await self._session() as session:
                stmt = select(TradeRecord).order_by(TradeRecord.timestamp, TradeRecord.id)
                return [row.to_record() for row in session.exec(stmt).all()]

    async def import_records(self, records: list[dict[str, Any]]):
        async with storage_operation("SqlTradeStorage", "import trades"):
            with await self._session() as session:
                for raw in records:
                    session.add(TradeRecord(**imported_record(raw)))
                session.commit()
            logger.info(f"Imported {len(records)} trades into SQL storage")

    async def replace_all(self, records: list[dict[str, Any]]):
        async with storage_operation("SqlTradeStorage", "replace trades"):
            with await self._session() as session:
                for row in session.exec(select(TradeRecord)).all():
                    session.delete(row)
                for raw in records:
                    session.add(TradeRecord(**imported_record(raw)))
                session.commit()
            logger.info(f"Replaced SQL trades with {len(records)} imported trades")


class SqlConfigStorage(_SqlEngineMixin, ConfigStorage):
    name = "sql"

    def __init__(self, database_url: str | None = None, engine: Engine | None = None, app_version: str | None = None):
        self._init_engine(database_url, engine)
        self._app_version = app_version or settings.app_version

    def _put(self, session: Session, key: str, value: str):
        row = session.get(AppSetting, key)
        now = to_iso(utcnow())
        if row is None:
            row = AppSetting(key=key, value=value, updated_at=now)
        else:
            row.value = value
            row.updated_at = now
        session.add(row)

    async def _get(self, key: str) -> str | None:
        with await self._session() as session:
            row = session.get(AppSetting, key)
            return row.value if row else None

    async def save(self, policy: RiskPolicy):
        async with storage_operation("SqlConfigStorage", "save risk settings"):
            with await self._session() as session:
                self._put(session, RISK_SETTINGS_KEY, encode_policy(policy))
                self._put(session, APP_VERSION_KEY, self._app_version)
                session.commit()

    async def load(self) -> Result[RiskPolicy]:
        try:
            raw = await self._get(RISK_SETTINGS_KEY)
        except Exception as e:
            logger.warning(f"[SqlConfigStorage] Failed to read risk settings: {e}")
            return Result.failed(e)
        return decode_policy(raw, "SqlConfigStorage")

    async def clear(self):
        async with storage_operation("SqlConfigStorage", "clear risk settings"):
            with await self._session() as session:
                stmt = select(AppSetting).where(col(AppSetting.key).in_([RISK_SETTINGS_KEY, APP_VERSION_KEY]))
                for row in session.exec(stmt).all():
                    session.delete(row)
                session.commit()

    async def has_stored(self) -> bool:
        async with storage_operation("SqlConfigStorage", "probe risk settings"):
            return await self._get(RISK_SETTINGS_KEY) is not None

    async def stored_app_version(self) -> str | None:
        async with storage_operation("SqlConfigStorage", "read app version"):
            return await self._get(APP_VERSION_KEY)

    async def migrate_if_needed(self) -> bool:
        stored = await self.stored_app_version()
        if stored is None or stored == self._app_version:
            return False
        async with storage_operation("SqlConfigStorage", "migrate settings"):
            with await self._session() as session:
                self._put(session, APP_VERSION_KEY, self._app_version)
                session.commit()
        logger.info(f"Migrated stored settings from {stored} to {self._app_version}")
        return True
