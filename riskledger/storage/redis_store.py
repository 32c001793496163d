"""Document storage engine: trades as JSON documents in Redis.

Keys (``{p}`` is the configured prefix):

- ``{p}:trades`` -> hash, trade id -> JSON record
- ``{p}:trades:by_time`` -> sorted set, member trade id, score epoch seconds
- ``{p}:trades:next_id`` -> counter; INCR never hands out an id twice
- ``{p}:risk_settings`` / ``{p}:app_version`` -> config strings
"""

import json
import logging
from datetime import datetime
from typing import Any

import redis.asyncio as redis

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
from riskledger.utils.constants import APP_VERSION_KEY, RISK_SETTINGS_KEY
from riskledger.utils.result import Result
from riskledger.utils.timeutils import ensure_utc, from_iso, to_iso

logger = logging.getLogger(__name__)


class _RedisConnection:
    """Lazily connected client; closes only the clients it created itself."""

    def __init__(self, url: str | None, client: redis.Redis | None):
        self._url = url or settings.redis_url
        self._client = client
        self._owns_client = client is None
        self._ready = False

    async def get(self) -> redis.Redis:
        if not self._ready:
            if self._client is None:
                self._client = redis.from_url(self._url, encoding="utf-8", decode_responses=True)
            await self._client.ping()
            self._ready = True
        return self._client

    async def close(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        self._ready = False


def _score(timestamp: str) -> float:
    return from_iso(timestamp).timestamp()


class RedisTradeStorage(TradeStorage):
    name = "redis"

    def __init__(self, url: str | None = None, client: redis.Redis | None = None, prefix: str | None = None):
        self._conn = _RedisConnection(url, client)
        prefix = prefix or settings.redis_key_prefix
        self._records_key = f"{prefix}:trades"
        self._index_key = f"{prefix}:trades:by_time"
        self._next_id_key = f"{prefix}:trades:next_id"

    async def initialize(self):
        async with storage_operation("RedisTradeStorage", "connect to redis"):
            await self._conn.get()

    async def _client(self) -> redis.Redis:
        await self.initialize()
        return await self._conn.get()

    async def _load(self, ids: list[str]) -> list[dict[str, Any]]:
        if not ids:
            return []
        client = await self._client()
        raw = await client.hmget(self._records_key, ids)
        records = [json.loads(doc) for doc in raw if doc is not None]
        return sorted(records, key=sort_key)

    async def _all_records(self) -> list[dict[str, Any]]:
        client = await self._client()
        docs = await client.hvals(self._records_key)
        return sorted((json.loads(doc) for doc in docs), key=sort_key)

    async def _write(self, record: dict[str, Any]):
        client = await self._client()
        async with client.pipeline(transaction=True) as pipe:
            pipe.hset(self._records_key, str(record["id"]), json.dumps(record))
            pipe.zadd(self._index_key, {str(record["id"]): _score(record["timestamp"])})
            await pipe.execute()

    async def get_all(self) -> list[Trade]:
        async with storage_operation("RedisTradeStorage", "get all trades"):
            return [Trade.from_record(r) for r in await self._all_records()]

    async def save(self, trade: Trade) -> Trade:
        async with storage_operation("RedisTradeStorage", "save trade"):
            client = await self._client()
            trade_id = int(await client.incr(self._next_id_key))
            await self._write(new_record(trade, trade_id))
            return trade.copy_with(id=trade_id)

    async def _existing(self, trade_id: int | None) -> dict[str, Any]:
        client = await self._client()
        doc = await client.hget(self._records_key, str(trade_id)) if trade_id is not None else None
        if doc is None:
            raise NotFoundError(f"Trade with id {trade_id} not found", context="RedisTradeStorage")
        return json.loads(doc)

    async def update(self, trade: Trade) -> Trade:
        async with storage_operation("RedisTradeStorage", "update trade"):
            existing = await self._existing(trade.id)
            await self._write(updated_record(existing, trade))
            return trade

    async def delete(self, trade_id: int):
        async with storage_operation("RedisTradeStorage", "delete trade"):
            await self._existing(trade_id)
            client = await self._client()
            async with client.pipeline(transaction=True) as pipe:
                pipe.hdel(self._records_key, str(trade_id))
                pipe.zrem(self._index_key, str(trade_id))
                await pipe.execute()

    async def get_by_id(self, trade_id: int) -> Trade | None:
        async with storage_operation("RedisTradeStorage", "get trade by id"):
            client = await self._client()
            doc = await client.hget(self._records_key, str(trade_id))
            return Trade.from_record(json.loads(doc)) if doc else None

    async def clear_all(self):
        # next_id survives so ids are never reused
        async with storage_operation("RedisTradeStorage", "clear all trades"):
            client = await self._client()
            await client.delete(self._records_key, self._index_key)

    async def get_by_date_range(self, start: datetime, end: datetime) -> list[Trade]:
        async with storage_operation("RedisTradeStorage", "get trades by date range"):
            client = await self._client()
            low, high = to_iso(start), to_iso(end)
            # Scores are floats; widen by a millisecond and filter exactly on the ISO strings
            ids = await client.zrangebyscore(
                self._index_key,
                ensure_utc(start).timestamp() - 1e-3,
                ensure_utc(end).timestamp() + 1e-3,
            )
            records = await self._load(ids)
            return [Trade.from_record(r) for r in records if low <= r["timestamp"] <= high]

    async def count(self) -> int:
        async with storage_operation("RedisTradeStorage", "count trades"):
            client = await self._client()
            return int(await client.hlen(self._records_key))

    async def get_recent(self, limit: int = 10) -> list[Trade]:
        async with storage_operation("RedisTradeStorage", "get recent trades"):
            if limit <= 0:
                return []
            client = await self._client()
            ids = await client.zrevrange(self._index_key, 0, limit - 1)
            records = await self._load(ids)
            return [Trade.from_record(r) for r in reversed(records)]

    async def export(self) -> list[dict[str, Any]]:
        async with storage_operation("RedisTradeStorage", "export trades"):
            return await self._all_records()

    async def import_records(self, records: list[dict[str, Any]]):
        async with storage_operation("RedisTradeStorage", "import trades"):
            client = await self._client()
            for raw in records:
                trade_id = int(await client.incr(self._next_id_key))
                await self._write(imported_record(raw, trade_id))
            logger.info(f"Imported {len(records)} trades into redis storage")

    async def replace_all(self, records: list[dict[str, Any]]):
        async with storage_operation("RedisTradeStorage", "replace trades"):
            client = await self._client()
            first_id = 1
            if records:
                first_id = int(await client.incrby(self._next_id_key, len(records))) - len(records) + 1
            async with client.pipeline(transaction=True) as pipe:
                pipe.delete(self._records_key, self._index_key)
                for trade_id, raw in enumerate(records, start=first_id):
                    record = imported_record(raw, trade_id)
                    pipe.hset(self._records_key, str(trade_id), json.dumps(record))
                    pipe.zadd(self._index_key, {str(trade_id): _score(record["timestamp"])})
                await pipe.execute()
            logger.info(f"Replaced redis trades with {len(records)} imported trades")

    async def close(self):
        await self._conn.close()


class RedisConfigStorage(ConfigStorage):
    name = "redis"

    def __init__(
        self,
        url: str | None = None,
        client: redis.Redis | None = None,
        prefix: str | None = None,
        app_version: str | None = None,
    ):
        self._conn = _RedisConnection(url, client)
        prefix = prefix or settings.redis_key_prefix
        self._settings_key = f"{prefix}:{RISK_SETTINGS_KEY}"
        self._version_key = f"{prefix}:{APP_VERSION_KEY}"
        self._app_version = app_version or settings.app_version

    async def save(self, policy: RiskPolicy):
        async with storage_operation("RedisConfigStorage", "save risk settings"):
            client = await self._conn.get()
            await client.mset({self._settings_key: encode_policy(policy), self._version_key: self._app_version})

    async def load(self) -> Result[RiskPolicy]:
        try:
            client = await self._conn.get()
            raw = await client.get(self._settings_key)
        except Exception as e:
            logger.warning(f"[RedisConfigStorage] Failed to read risk settings: {e}")
            return Result.failed(e)
        return decode_policy(raw, "RedisConfigStorage")

    async def clear(self):
        async with storage_operation("RedisConfigStorage", "clear risk settings"):
            client = await self._conn.get()
            await client.delete(self._settings_key, self._version_key)

    async def has_stored(self) -> bool:
        async with storage_operation("RedisConfigStorage", "probe risk settings"):
            client = await self._conn.get()
            return bool(await client.exists(self._settings_key))

    async def stored_app_version(self) -> str | None:
        async with storage_operation("RedisConfigStorage", "read app version"):
            client = await self._conn.get()
            return await client.get(self._version_key)

    async def migrate_if_needed(self) -> bool:
        stored = await self.stored_app_version()
        if stored is None or stored == self._app_version:
            return False
        async with storage_operation("RedisConfigStorage", "migrate settings"):
            client = await self._conn.get()
            await client.set(self._version_key, self._app_version)
        logger.info(f"Migrated stored settings from {stored} to {self._app_version}")
        return True

    async def close(self):
        await self._conn.close()
