"""Preference storage engine: a flat string key/value file.

Mirrors a platform preference store: every value is a string, and the whole
map is rewritten atomically on each change. Trades live as one JSON array
under ``trades``; the id counter under ``trades_next_id`` only grows.
"""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

from riskledger.config import settings
from riskledger.errors import NotFoundError, storage_operation
from riskledger.models.risk_policy import RiskPolicy
from riskledger.models.trade import Trade
from riskledger.storage.base import ConfigStorage, TradeStorage
from riskledger.storage.records import (
    decode_policy,
    encode_policy,
    imported_record,
    new_record,
    sort_key,
    updated_record,
)
from riskledger.utils.constants import APP_VERSION_KEY, RISK_SETTINGS_KEY, TRADES_KEY, TRADES_NEXT_ID_KEY
from riskledger.utils.result import Result
from riskledger.utils.timeutils import to_iso

logger = logging.getLogger(__name__)


class PreferenceFile:
    """String map persisted as a JSON object. Loaded once, written on every change."""

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path or settings.preferences_path)
        self._values: dict[str, str] | None = None

    def load(self):
        if self._values is not None:
            return
        if self.path.exists():
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            if not isinstance(data, dict):
                raise ValueError(f"{self.path} does not hold a key/value object")
            self._values = {str(k): str(v) for k, v in data.items()}
        else:
            self._values = {}
        logger.debug(f"Preferences loaded from {self.path} ({len(self._values)} keys)")

    def _commit(self, values: dict[str, str]):
        """Write ``values`` atomically, then adopt them as the in-memory map."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".prefs-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(values, fh, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        self._values = values

    def get(self, key: str) -> str | None:
        self.load()
        return self._values.get(key)

    def contains(self, key: str) -> bool:
        self.load()
        return key in self._values

    def keys(self) -> set[str]:
        self.load()
        return set(self._values)

    def set_many(self, values: dict[str, str]):
        self.load()
        self._commit({**self._values, **values})

    def remove(self, *keys: str):
        self.load()
        self._commit({k: v for k, v in self._values.items() if k not in keys})

    def unload(self):
        self._values = None


class PreferenceTradeStorage(TradeStorage):
    name = "preferences"

    def __init__(self, prefs: PreferenceFile | None = None):
        self._prefs = prefs or PreferenceFile()
        self._initialized = False

    async def initialize(self):
        if self._initialized:
            return
        async with storage_operation("PreferenceTradeStorage", "open preference file"):
            self._prefs.load()
            self._initialized = True

    async def _records(self) -> list[dict[str, Any]]:
        await self.initialize()
        raw = self._prefs.get(TRADES_KEY)
        return json.loads(raw) if raw else []

    def _store(self, records: list[dict[str, Any]], next_id: int | None = None):
        values = {TRADES_KEY: json.dumps(sorted(records, key=sort_key))}
        if next_id is not None:
            values[TRADES_NEXT_ID_KEY] = str(next_id)
        self._prefs.set_many(values)

    def _allocate_id(self, records: list[dict[str, Any]]) -> int:
        stored = self._prefs.get(TRADES_NEXT_ID_KEY)
        next_id = int(stored) if stored else 1
        highest = max((r["id"] for r in records), default=0)
        return max(next_id, highest + 1)

    def _find(self, records: list[dict[str, Any]], trade_id: int | None) -> int:
        for index, record in enumerate(records):
            if record["id"] == trade_id:
                return index
        raise NotFoundError(f"Trade with id {trade_id} not found", context="PreferenceTradeStorage")

    async def get_all(self) -> list[Trade]:
        async with storage_operation("PreferenceTradeStorage", "get all trades"):
            return [Trade.from_record(r) for r in sorted(await self._records(), key=sort_key)]

    async def save(self, trade: Trade) -> Trade:
        async with storage_operation("PreferenceTradeStorage", "save trade"):
            records = await self._records()
            trade_id = self._allocate_id(records)
            records.append(new_record(trade, trade_id))
            self._store(records, next_id=trade_id + 1)
            return trade.copy_with(id=trade_id)

    async def update(self, trade: Trade) -> Trade:
        async with storage_operation("PreferenceTradeStorage", "update trade"):
            records = await self._records()
            index = self._find(records, trade.id)
            records[index] = updated_record(records[index], trade)
            self._store(records)
            return trade

    async def delete(self, trade_id: int):
        async with storage_operation("PreferenceTradeStorage", "delete trade"):
            records = await self._records()
            del records[self._find(records, trade_id)]
            self._store(records)

    async def get_by_id(self, trade_id: int) -> Trade | None:
        async with storage_operation("PreferenceTradeStorage", "get trade by id"):
            for record in await self._records():
                if record["id"] == trade_id:
                    return Trade.from_record(record)
            return None

    async def clear_all(self):
        async with storage_operation("PreferenceTradeStorage", "clear all trades"):
            await self.initialize()
            self._store([])

    async def get_by_date_range(self, start: datetime, end: datetime) -> list[Trade]:
        async with storage_operation("PreferenceTradeStorage", "get trades by date range"):
            low, high = to_iso(start), to_iso(end)
            records = sorted(await self._records(), key=sort_key)
            return [Trade.from_record(r) for r in records if low <= r["timestamp"] <= high]

    async def count(self) -> int:
        async with storage_operation("PreferenceTradeStorage", "count trades"):
            return len(await self._records())

    async def get_recent(self, limit: int = 10) -> list[Trade]:
        async with storage_operation("PreferenceTradeStorage", "get recent trades"):
            records = sorted(await self._records(), key=sort_key, reverse=True)
            return [Trade.from_record(r) for r in records[: max(limit, 0)]]

    async def export(self) -> list[dict[str, Any]]:
        async with storage_operation("PreferenceTradeStorage", "export trades"):
            return sorted(await self._records(), key=sort_key)

    async def import_records(self, records: list[dict[str, Any]]):
        async with storage_operation("PreferenceTradeStorage", "import trades"):
            existing = await self._records()
            next_id = self._allocate_id(existing)
            for raw in records:
                existing.append(imported_record(raw, next_id))
                next_id += 1
            self._store(existing, next_id=next_id)
            logger.info(f"Imported {len(records)} trades into preference storage")

    async def replace_all(self, records: list[dict[str, Any]]):
        async with storage_operation("PreferenceTradeStorage", "replace trades"):
            existing = await self._records()
            next_id = self._allocate_id(existing)
            replaced = []
            for raw in records:
                replaced.append(imported_record(raw, next_id))
                next_id += 1
            self._store(replaced, next_id=next_id)
            logger.info(f"Replaced preference trades with {len(records)} imported trades")

    async def close(self):
        self._prefs.unload()
        self._initialized = False


class PreferenceConfigStorage(ConfigStorage):
    name = "preferences"

    def __init__(self, prefs: PreferenceFile | None = None, app_version: str | None = None):
        self._prefs = prefs or PreferenceFile()
        self._app_version = app_version or settings.app_version

    async def save(self, policy: RiskPolicy):
        async with storage_operation("PreferenceConfigStorage", "save risk settings"):
            self._prefs.set_many({RISK_SETTINGS_KEY: encode_policy(policy), APP_VERSION_KEY: self._app_version})

    async def load(self) -> Result[RiskPolicy]:
        try:
            raw = self._prefs.get(RISK_SETTINGS_KEY)
        except Exception as e:
            logger.warning(f"[PreferenceConfigStorage] Failed to read preferences: {e}")
            return Result.failed(e)
        return decode_policy(raw, "PreferenceConfigStorage")

    async def clear(self):
        async with storage_operation("PreferenceConfigStorage", "clear risk settings"):
            self._prefs.remove(RISK_SETTINGS_KEY, APP_VERSION_KEY)

    async def has_stored(self) -> bool:
        async with storage_operation("PreferenceConfigStorage", "probe risk settings"):
            return self._prefs.contains(RISK_SETTINGS_KEY)

    async def stored_app_version(self) -> str | None:
        async with storage_operation("PreferenceConfigStorage", "read app version"):
            return self._prefs.get(APP_VERSION_KEY)

    async def migrate_if_needed(self) -> bool:
        stored = await self.stored_app_version()
        if stored is None or stored == self._app_version:
            return False
        async with storage_operation("PreferenceConfigStorage", "migrate settings"):
            self._prefs.set_many({APP_VERSION_KEY: self._app_version})
        logger.info(f"Migrated stored settings from {stored} to {self._app_version}")
        return True
