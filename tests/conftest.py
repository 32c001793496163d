"""Shared fixtures: one AppStorage per engine, all backed by throwaway stores."""

import fakeredis
import pytest
import pytest_asyncio

from riskledger.database import build_engine
from riskledger.models.risk_policy import RiskPolicy
from riskledger.repository.trade_repository import TradeRepository
from riskledger.services.risk_service import RiskManagementService
from riskledger.storage.app_storage import AppStorage
from riskledger.storage.preferences import PreferenceConfigStorage, PreferenceFile, PreferenceTradeStorage
from riskledger.storage.redis_store import RedisConfigStorage, RedisTradeStorage
from riskledger.storage.sql import SqlConfigStorage, SqlTradeStorage

ENGINES = ["sql", "redis", "preferences"]


def make_sql_storage() -> AppStorage:
    engine = build_engine("sqlite://")
    return AppStorage(
        config=SqlConfigStorage(engine=engine, app_version="1.0.0"),
        trades=SqlTradeStorage(engine=engine),
        app_version="1.0.0",
    )


def make_redis_storage() -> AppStorage:
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    return AppStorage(
        config=RedisConfigStorage(client=client, prefix="test", app_version="1.0.0"),
        trades=RedisTradeStorage(client=client, prefix="test"),
        app_version="1.0.0",
        on_close=client.aclose,
    )


def make_preference_storage(path) -> AppStorage:
    prefs = PreferenceFile(path)
    return AppStorage(
        config=PreferenceConfigStorage(prefs, app_version="1.0.0"),
        trades=PreferenceTradeStorage(prefs),
        app_version="1.0.0",
    )


def make_storage(engine: str, tmp_path) -> AppStorage:
    if engine == "sql":
        return make_sql_storage()
    if engine == "redis":
        return make_redis_storage()
    return make_preference_storage(tmp_path / "preferences.json")


@pytest.fixture
def storage_factory(tmp_path):
    """Build an uninitialized AppStorage for the named engine."""

    def build(engine: str) -> AppStorage:
        return make_storage(engine, tmp_path)

    return build


@pytest_asyncio.fixture(params=ENGINES)
async def storage(request, tmp_path):
    """Initialized AppStorage, once per engine."""
    app_storage = make_storage(request.param, tmp_path)
    await app_storage.initialize()
    yield app_storage
    await app_storage.close()


@pytest_asyncio.fixture
async def sql_storage():
    app_storage = make_sql_storage()
    await app_storage.initialize()
    yield app_storage
    await app_storage.close()


@pytest.fixture
def policy() -> RiskPolicy:
    return RiskPolicy.create(account_balance=10000, max_drawdown=500, loss_per_trade_percentage=0.02)


@pytest.fixture
def dynamic_policy() -> RiskPolicy:
    return RiskPolicy.create(
        account_balance=10000,
        max_drawdown=500,
        loss_per_trade_percentage=0.02,
        is_dynamic_max_drawdown=True,
    )


@pytest_asyncio.fixture
async def service(sql_storage, policy):
    return RiskManagementService(TradeRepository(sql_storage.trades), policy, sql_storage.config)
