"""HTTP API tests through FastAPI's TestClient, backed by in-memory SQLite."""

import json

import pytest
from fastapi.testclient import TestClient

from riskledger.main import create_app


@pytest.fixture
def client(storage_factory):
    with TestClient(create_app(storage=storage_factory("sql"))) as test_client:
        yield test_client


def _configure(client, **overrides):
    body = {
        "account_balance": 10000,
        "max_drawdown": 500,
        "loss_per_trade_percentage": 0.02,
        "is_dynamic_max_drawdown": False,
        **overrides,
    }
    return client.put("/api/risk/settings", json=body)


# ---------------------------------------------------------------------------
# 1. Trades
# ---------------------------------------------------------------------------

class TestTrades:
    def test_add_and_list(self, client):
        _configure(client)
        resp = client.post("/api/trades", json={"result": 150})
        assert resp.status_code == 201
        trade = resp.json()
        assert trade["result"] == 150
        assert trade["id"] is not None

        listed = client.get("/api/trades").json()
        assert [t["id"] for t in listed] == [trade["id"]]
        assert client.get(f"/api/trades/{trade['id']}").json()["result"] == 150

    def test_oversize_loss_is_conflict(self, client):
        _configure(client)
        resp = client.post("/api/trades", json={"result": -250})
        assert resp.status_code == 409
        body = resp.json()
        assert body["code"] == "RISK_LIMIT_EXCEEDED"
        assert body["limit"] == "max_loss_per_trade"
        assert body["bound"] == 200
        assert client.get("/api/trades").json() == []

    def test_huge_result_is_unprocessable(self, client):
        resp = client.post("/api/trades", json={"result": 1e13})
        assert resp.status_code == 422
        assert resp.json()["code"] == "VALUE_TOO_HIGH"

    def test_non_numeric_result_rejected_by_schema(self, client):
        assert client.post("/api/trades", json={"result": "lots"}).status_code == 422

    def test_missing_trade(self, client):
        assert client.get("/api/trades/999").status_code == 404
        assert client.delete("/api/trades/999").status_code == 404

    def test_delete(self, client):
        trade_id = client.post("/api/trades", json={"result": 10}).json()["id"]
        assert client.delete(f"/api/trades/{trade_id}").status_code == 204
        assert client.get("/api/trades").json() == []

    def test_date_range_and_recent(self, client):
        for day, result in ((1, 10), (2, 20), (3, 30)):
            client.post("/api/trades", json={"result": result, "timestamp": f"2024-02-0{day}T12:00:00Z"})
        ranged = client.get(
            "/api/trades",
            params={"start": "2024-02-02T00:00:00Z", "end": "2024-02-03T23:59:59Z"},
        ).json()
        assert [t["result"] for t in ranged] == [20, 30]
        recent = client.get("/api/trades/recent", params={"limit": 2}).json()
        assert [t["result"] for t in recent] == [30, 20]

    def test_half_open_range_rejected(self, client):
        assert client.get("/api/trades", params={"start": "2024-02-02T00:00:00Z"}).status_code == 422


# ---------------------------------------------------------------------------
# 2. Risk
# ---------------------------------------------------------------------------

class TestRisk:
    def test_settings_round_trip(self, client):
        resp = _configure(client, account_balance=20000, max_drawdown=1000, is_dynamic_max_drawdown=True)
        assert resp.status_code == 200
        data = client.get("/api/risk/settings").json()
        assert data["account_balance"] == 20000
        assert data["max_loss_per_trade"] == 400
        assert data["current_drawdown_threshold"] == -1000
        assert data["is_dynamic_max_drawdown"] is True

    def test_settings_bounds_enforced(self, client):
        assert _configure(client, max_drawdown=20000).status_code == 422
        assert _configure(client, loss_per_trade_percentage=0).status_code == 422
        assert _configure(client, account_balance=-5).status_code == 422

    def test_status_moves_with_losses(self, client):
        _configure(client)
        assert client.get("/api/risk/status").json()["status"] == "low"
        client.post("/api/trades", json={"result": -150})
        client.post("/api/trades", json={"result": -150})
        status = client.get("/api/risk/status").json()
        assert status["status"] == "medium"
        assert status["drawdown_distance"] == pytest.approx(200)

    def test_statistics_are_json_safe(self, client):
        _configure(client)
        client.post("/api/trades", json={"result": 50})
        stats = client.get("/api/risk/statistics").json()
        assert stats["total_trades"] == 1
        assert stats["profit_factor"] is None  # infinite without losses
        assert stats["risk_status"] == "low"

    def test_position_size(self, client):
        _configure(client)
        body = client.post("/api/risk/position-size", json={"entry_price": 100, "stop_loss": 98}).json()
        assert body["position_size"] == pytest.approx(100)
        flat = client.post("/api/risk/position-size", json={"entry_price": 100, "stop_loss": 100}).json()
        assert flat["position_size"] is None

    def test_drawdown_series_and_clear(self, client):
        _configure(client)
        client.post("/api/trades", json={"result": 600})
        series = client.get("/api/risk/drawdown").json()
        assert series[0]["threshold"] == 0
        assert client.post("/api/risk/clear").json() == {"status": "ok"}
        assert client.get("/api/trades").json() == []
        assert client.get("/api/risk/settings").json()["current_balance"] == 10000


# ---------------------------------------------------------------------------
# 3. System
# ---------------------------------------------------------------------------

class TestSystem:
    def test_health(self, client):
        assert client.get("/api/system/health").json() == {"status": "ok"}

    def test_storage_info(self, client):
        client.post("/api/trades", json={"result": 5})
        info = client.get("/api/system/storage").json()
        assert info["platform"] == "sql"
        assert info["trades_count"] == 1
        assert info["has_config"] is True

    def test_export_then_import_into_other_engine(self, client, storage_factory):
        _configure(client)
        client.post("/api/trades", json={"result": 75, "timestamp": "2024-03-01T09:00:00Z"})
        resp = client.get("/api/system/export")
        assert resp.status_code == 200
        assert "risk_management_backup_" in resp.headers["content-disposition"]
        payload = resp.content
        assert json.loads(payload)["metadata"]["tradeCount"] == 1

        with TestClient(create_app(storage=storage_factory("redis"))) as other:
            result = other.post("/api/system/import", content=payload).json()
            assert result == {"status": "ok", "trades_imported": 1, "risk_settings_imported": True}
            trades = other.get("/api/trades").json()
            assert [t["result"] for t in trades] == [75]
            assert other.get("/api/risk/settings").json()["current_balance"] == 10075

    def test_import_rejects_garbage(self, client):
        resp = client.post("/api/system/import", content=b'{"version": "1.0.0", "trades": [{"result": 1}]}')
        assert resp.status_code == 422

    def test_import_with_bad_timestamp_keeps_trades(self, client):
        _configure(client)
        client.post("/api/trades", json={"result": 40})
        client.post("/api/trades", json={"result": -10})
        payload = {"version": "1.0.0", "trades": [{"result": 1.0, "timestamp": "not-a-date"}]}
        resp = client.post("/api/system/import", content=json.dumps(payload))
        assert resp.status_code == 422
        assert resp.json()["code"] == "INVALID_FORMAT"
        assert [t["result"] for t in client.get("/api/trades").json()] == [40, -10]
        assert client.get("/api/risk/settings").json()["current_balance"] == 10030

    def test_export_preview(self, client):
        client.post("/api/trades", json={"result": 5})
        preview = client.get("/api/system/export/preview").json()
        assert preview["trade_count"] == 1
        assert preview["platform"] == "sql"
