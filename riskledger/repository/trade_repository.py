"""Trade repository: domain-facing adapter over a TradeStorage engine.

Keeps an in-memory copy of all trades after the first full read; writes keep
it in step, and ``clear_all_trades`` / ``import_trades`` drop it.
"""

import logging
from datetime import datetime
from typing import Any

from riskledger.errors import repository_operation
from riskledger.models.trade import Trade
from riskledger.storage.base import TradeStorage
from riskledger.storage.records import normalise_import

logger = logging.getLogger(__name__)


class TradeRepository:
    def __init__(self, storage: TradeStorage):
        self._storage = storage
        self._cache: list[Trade] | None = None
        self._initialized = False

    @property
    def storage(self) -> TradeStorage:
        return self._storage

    async def _ensure_initialized(self):
        if not self._initialized:
            await self._storage.initialize()
            self._initialized = True

    def _invalidate(self):
        self._cache = None

    async def get_all_trades(self) -> list[Trade]:
        await self._ensure_initialized()
        if self._cache is None:
            async with repository_operation("TradeRepository", "get all trades"):
                self._cache = await self._storage.get_all()
        return list(self._cache)

    async def add_trade(self, trade: Trade) -> Trade:
        await self._ensure_initialized()
        async with repository_operation("TradeRepository", "add trade"):
            saved = await self._storage.save(trade)
        if self._cache is not None:
            self._cache.append(saved)
            self._cache.sort(key=lambda t: (t.timestamp, t.id or 0))
        logger.debug(f"Stored trade {saved.id}: {saved.result:+.2f}")
        return saved

    async def update_trade(self, trade: Trade) -> Trade:
        await self._ensure_initialized()
        async with repository_operation("TradeRepository", "update trade"):
            updated = await self._storage.update(trade)
        if self._cache is not None:
            self._cache = sorted(
                (updated if t.id == updated.id else t for t in self._cache),
                key=lambda t: (t.timestamp, t.id or 0),
            )
        return updated

    async def delete_trade(self, trade_id: int):
        await self._ensure_initialized()
        async with repository_operation("TradeRepository", "delete trade"):
            await self._storage.delete(trade_id)
        if self._cache is not None:
            self._cache = [t for t in self._cache if t.id != trade_id]

    async def get_trade_by_id(self, trade_id: int) -> Trade | None:
        await self._ensure_initialized()
        if self._cache is not None:
            return next((t for t in self._cache if t.id == trade_id), None)
        async with repository_operation("TradeRepository", "get trade by id"):
            return await self._storage.get_by_id(trade_id)

    async def clear_all_trades(self):
        await self._ensure_initialized()
        async with repository_operation("TradeRepository", "clear all trades"):
            await self._storage.clear_all()
        self._invalidate()

    async def get_trades_by_date_range(self, start: datetime, end: datetime) -> list[Trade]:
        await self._ensure_initialized()
        async with repository_operation("TradeRepository", "get trades by date range"):
            return await self._storage.get_by_date_range(start, end)

    async def get_total_pnl(self) -> float:
        return sum(t.result for t in await self.get_all_trades())

    async def get_trades_count(self) -> int:
        await self._ensure_initialized()
        if self._cache is not None:
            return len(self._cache)
        async with repository_operation("TradeRepository", "count trades"):
            return await self._storage.count()

    async def get_recent_trades(self, limit: int = 10) -> list[Trade]:
        await self._ensure_initialized()
        async with repository_operation("TradeRepository", "get recent trades"):
            return await self._storage.get_recent(limit)

    async def export_trades(self) -> list[dict[str, Any]]:
        await self._ensure_initialized()
        async with repository_operation("TradeRepository", "export trades"):
            return await self._storage.export()

    async def import_trades(self, records: list[dict[str, Any]]):
        """Replace all stored trades with the given records (fresh ids). Nothing changes if one is invalid."""
        normalised = normalise_import(records)
        await self._ensure_initialized()
        async with repository_operation("TradeRepository", "import trades"):
            self._invalidate()
            await self._storage.replace_all(normalised)

    async def refresh_cache(self) -> list[Trade]:
        self._invalidate()
        return await self.get_all_trades()

    async def close(self):
        await self._storage.close()
        self._invalidate()
        self._initialized = False
