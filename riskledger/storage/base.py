"""Storage contracts shared by all engines.

Every engine must behave identically from the outside:

- ``save`` assigns a unique, never reused, backend-generated id.
- ``update`` / ``delete`` of an unknown id raise ``NotFoundError``.
- Reads are ordered by timestamp ascending, except ``get_recent``.
- ``initialize`` is lazy and idempotent; ``close`` is idempotent and safe
  when the engine was never opened.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from riskledger.models.risk_policy import RiskPolicy
from riskledger.models.trade import Trade
from riskledger.utils.result import Result


class TradeStorage(ABC):
    name: str = "abstract"

    @abstractmethod
    async def initialize(self): ...

    @abstractmethod
    async def get_all(self) -> list[Trade]: ...

    @abstractmethod
    async def save(self, trade: Trade) -> Trade:
        """Persist a new trade and return it with its assigned id."""

    @abstractmethod
    async def update(self, trade: Trade) -> Trade: ...

    @abstractmethod
    async def delete(self, trade_id: int): ...

    @abstractmethod
    async def get_by_id(self, trade_id: int) -> Trade | None: ...

    @abstractmethod
    async def clear_all(self): ...

    @abstractmethod
    async def get_by_date_range(self, start: datetime, end: datetime) -> list[Trade]:
        """Trades with start <= timestamp <= end, ascending."""

    @abstractmethod
    async def count(self) -> int: ...

    @abstractmethod
    async def get_recent(self, limit: int = 10) -> list[Trade]:
        """Newest first."""

    @abstractmethod
    async def export(self) -> list[dict[str, Any]]:
        """Raw records (id, result, timestamp, created_at, updated_at), ascending."""

    @abstractmethod
    async def import_records(self, records: list[dict[str, Any]]):
        """Append records with fresh ids and bookkeeping stamps."""

    async def replace_all(self, records: list[dict[str, Any]]):
        """Swap every stored trade for ``records``. Engines override this to do it in one write."""
        await self.clear_all()
        if records:
            await self.import_records(records)

    @abstractmethod
    async def close(self): ...


class ConfigStorage(ABC):
    name: str = "abstract"

    @abstractmethod
    async def save(self, policy: RiskPolicy): ...

    @abstractmethod
    async def load(self) -> Result[RiskPolicy]:
        """OK with the policy, ABSENT when nothing is stored, ERROR when corrupt."""

    @abstractmethod
    async def clear(self): ...

    @abstractmethod
    async def has_stored(self) -> bool: ...

    @abstractmethod
    async def stored_app_version(self) -> str | None: ...

    @abstractmethod
    async def migrate_if_needed(self) -> bool:
        """Stamp the current app version when a different one is stored."""

    async def close(self):
        return None
