"""Builds the one storage engine a process uses, from settings."""

import logging

from riskledger.config import Settings, settings as default_settings
from riskledger.errors import ValidationError
from riskledger.storage.app_storage import AppStorage

logger = logging.getLogger(__name__)


def create_app_storage(config: Settings | None = None) -> AppStorage:
    config = config or default_settings
    backend = config.storage_backend

    if backend == "sql":
        from riskledger.database import build_engine
        from riskledger.storage.sql import SqlConfigStorage, SqlTradeStorage

        engine = build_engine(config.database_url)
        storage = AppStorage(
            config=SqlConfigStorage(engine=engine, app_version=config.app_version),
            trades=SqlTradeStorage(engine=engine),
            app_version=config.app_version,
        )
    elif backend == "redis":
        import redis.asyncio as redis

        from riskledger.storage.redis_store import RedisConfigStorage, RedisTradeStorage

        client = redis.from_url(config.redis_url, encoding="utf-8", decode_responses=True)
        storage = AppStorage(
            config=RedisConfigStorage(client=client, prefix=config.redis_key_prefix, app_version=config.app_version),
            trades=RedisTradeStorage(client=client, prefix=config.redis_key_prefix),
            app_version=config.app_version,
            on_close=client.aclose,
        )
    elif backend == "preferences":
        from riskledger.storage.preferences import (
            PreferenceConfigStorage,
            PreferenceFile,
            PreferenceTradeStorage,
        )

        prefs = PreferenceFile(config.preferences_path)
        storage = AppStorage(
            config=PreferenceConfigStorage(prefs, app_version=config.app_version),
            trades=PreferenceTradeStorage(prefs),
            app_version=config.app_version,
        )
    else:
        raise ValidationError(f"Unknown storage backend: {backend}", code="INVALID_BACKEND")

    logger.info(f"Selected storage backend: {backend}")
    return storage
