"""Tests for the preference file: writes are atomic and memory follows disk."""

import json
from unittest.mock import patch

import pytest

from riskledger.errors import StorageError
from riskledger.models.trade import Trade
from riskledger.repository.trade_repository import TradeRepository
from riskledger.services.risk_service import RiskManagementService
from riskledger.storage.preferences import PreferenceFile, PreferenceTradeStorage


def _failing_replace(*args, **kwargs):
    raise OSError("disk full")


class TestPreferenceFile:
    def test_set_and_remove_persist(self, tmp_path):
        prefs = PreferenceFile(tmp_path / "prefs.json")
        prefs.set_many({"a": "1", "b": "2"})
        prefs.remove("a")
        assert json.loads((tmp_path / "prefs.json").read_text()) == {"b": "2"}
        assert prefs.keys() == {"b"}

    def test_failed_write_leaves_memory_and_disk_alone(self, tmp_path):
        path = tmp_path / "prefs.json"
        prefs = PreferenceFile(path)
        prefs.set_many({"a": "1"})

        with patch("riskledger.storage.preferences.os.replace", side_effect=_failing_replace):
            with pytest.raises(OSError):
                prefs.set_many({"b": "2"})
            with pytest.raises(OSError):
                prefs.remove("a")

        assert prefs.keys() == {"a"}
        assert json.loads(path.read_text()) == {"a": "1"}
        assert [p.name for p in tmp_path.iterdir()] == ["prefs.json"]


class TestFailedSave:
    @pytest.mark.asyncio
    async def test_trade_storage_count_unchanged(self, tmp_path):
        trades = PreferenceTradeStorage(PreferenceFile(tmp_path / "prefs.json"))
        await trades.save(Trade(result=5))

        with patch("riskledger.storage.preferences.os.replace", side_effect=_failing_replace):
            with pytest.raises(StorageError):
                await trades.save(Trade(result=100))

        assert await trades.count() == 1
        assert [t.result for t in await trades.get_all()] == [5]

    @pytest.mark.asyncio
    async def test_service_state_unchanged(self, storage_factory, policy):
        async with storage_factory("preferences") as storage:
            service = RiskManagementService(TradeRepository(storage.trades), policy, storage.config)

            with patch("riskledger.storage.preferences.os.replace", side_effect=_failing_replace):
                with pytest.raises(StorageError):
                    await service.add_trade(100)

            assert service.policy.current_balance == 10000
            assert await storage.trades.count() == 0
            assert await service.get_all_trades() == []
