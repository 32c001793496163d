"""AppStorage: one explicitly owned pair of config + trade storage."""

import logging
from typing import Any, Awaitable, Callable

from riskledger.config import settings
from riskledger.errors import StorageError, storage_operation
from riskledger.models.risk_policy import RiskPolicy
from riskledger.schemas.export import ExportBundle, ExportMetadata
from riskledger.storage.base import ConfigStorage, TradeStorage
from riskledger.storage.records import imported_policy, normalise_import
from riskledger.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class AppStorage:
    """Owns the storage engine chosen at startup.

    Use as ``async with AppStorage(...) as storage:`` to guarantee ``close``.
    """

    def __init__(
        self,
        config: ConfigStorage,
        trades: TradeStorage,
        app_version: str | None = None,
        on_close: Callable[[], Awaitable[Any]] | None = None,
    ):
        self.config = config
        self.trades = trades
        self.app_version = app_version or settings.app_version
        self._on_close = on_close  # releases handles shared by both stores

    @property
    def platform(self) -> str:
        return self.trades.name

    async def initialize(self):
        async with storage_operation("AppStorage", "initialize app storage"):
            await self.trades.initialize()
            await self.config.migrate_if_needed()
        logger.info(f"App storage initialized ({self.platform})")

    async def close(self):
        async with storage_operation("AppStorage", "close app storage"):
            await self.trades.close()
            await self.config.close()
            if self._on_close is not None:
                on_close, self._on_close = self._on_close, None
                await on_close()

    async def __aenter__(self) -> "AppStorage":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def clear_all_data(self):
        async with storage_operation("AppStorage", "clear all data"):
            await self.trades.clear_all()
            await self.config.clear()

    async def has_stored_data(self) -> bool:
        """Startup probe: is there anything worth recovering?"""
        try:
            return await self.config.has_stored() or await self.trades.count() > 0
        except StorageError as e:
            logger.warning(f"Stored data probe failed: {e}")
            return False

    async def get_storage_info(self) -> dict[str, Any]:
        loaded = await self.config.load()
        return {
            "platform": self.platform,
            "has_config": loaded.is_ok,
            "config_status": loaded.status.value,
            "trades_count": await self.trades.count(),
            "app_version": await self.config.stored_app_version(),
        }

    async def export_all_data(self) -> ExportBundle:
        async with storage_operation("AppStorage", "export data"):
            loaded = await self.config.load()
            if loaded.is_error:
                raise StorageError("Stored risk settings are corrupt", cause=loaded.error, context="AppStorage")
            records = await self.trades.export()
            return ExportBundle(
                version=self.app_version,
                export_date=utcnow(),
                risk_settings=loaded.value.to_json() if loaded.is_ok else None,
                trades=records,
                metadata=ExportMetadata(platform=self.platform, trade_count=len(records)),
            )

    async def import_all_data(self, bundle: ExportBundle) -> RiskPolicy | None:
        """Replace everything stored with the bundle's contents.

        The whole bundle is validated before anything is touched, so a bad
        record or out-of-bounds settings leave the current data in place.
        """
        policy = imported_policy(bundle.risk_settings)
        records = normalise_import(bundle.trades)
        async with storage_operation("AppStorage", "import data"):
            await self.trades.replace_all(records)
            await self.config.clear()
            if policy is not None:
                await self.config.save(policy)
            logger.info(f"Imported {len(records)} trades (settings: {'yes' if policy else 'no'})")
            return policy
