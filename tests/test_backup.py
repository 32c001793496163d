"""Tests for the backup codec and a full export/import cycle between engines."""

import json
from datetime import date, datetime, timezone

import pytest

from riskledger.errors import ValidationError
from riskledger.models.trade import Trade
from riskledger.schemas.export import ExportBundle, ExportMetadata
from riskledger.services.backup import (
    decode_bundle,
    encode_bundle,
    export_file_name,
    export_preview,
    parse_bundle,
    validate_import_data,
)

SAMPLE = {
    "version": "1.0.0",
    "exportDate": "2024-06-01T12:00:00+00:00",
    "riskSettings": {"maxDrawdown": 500, "lossPerTradePercentage": 0.02, "accountBalance": 10000},
    "trades": [
        {"id": 1, "result": 120.5, "timestamp": "2024-05-30T10:00:00+00:00"},
        {"id": 2, "result": -40, "timestamp": "2024-05-31T10:00:00+00:00"},
    ],
    "metadata": {"platform": "sql", "tradeCount": 2},
}


class TestCodec:
    def test_parse_valid_bundle(self):
        parsed = parse_bundle(json.dumps(SAMPLE).encode())
        assert parsed.is_ok
        bundle = parsed.value
        assert bundle.metadata.platform == "sql"
        assert bundle.export_date == datetime(2024, 6, 1, 12, tzinfo=timezone.utc)

    def test_encode_uses_camel_case(self):
        bundle = decode_bundle(json.dumps(SAMPLE))
        data = json.loads(encode_bundle(bundle))
        assert set(data) == {"version", "exportDate", "riskSettings", "trades", "metadata"}
        assert data["metadata"]["tradeCount"] == 2

    def test_not_json(self):
        parsed = parse_bundle(b"{not json")
        assert parsed.is_error
        assert isinstance(parsed.error, ValidationError)
        assert validate_import_data(b"{not json") is False

    def test_root_must_be_object(self):
        assert validate_import_data(b"[]") is False

    def test_trade_missing_timestamp(self):
        broken = {**SAMPLE, "trades": [{"result": 1}]}
        assert validate_import_data(json.dumps(broken)) is False

    def test_risk_settings_missing_key(self):
        broken = {**SAMPLE, "riskSettings": {"maxDrawdown": 500, "accountBalance": 10000}}
        with pytest.raises(ValidationError):
            decode_bundle(json.dumps(broken))

    def test_null_risk_settings_allowed(self):
        assert validate_import_data(json.dumps({**SAMPLE, "riskSettings": None})) is True

    @pytest.mark.parametrize(
        "trade",
        [
            {"result": 1, "timestamp": "not-a-date"},
            {"result": "lots", "timestamp": "2024-05-30T10:00:00+00:00"},
            {"result": 1e13, "timestamp": "2024-05-30T10:00:00+00:00"},
        ],
    )
    def test_bad_trade_values_rejected(self, trade):
        parsed = parse_bundle(json.dumps({**SAMPLE, "trades": [SAMPLE["trades"][0], trade]}))
        assert parsed.is_error
        assert parsed.error.code == "INVALID_FORMAT"
        assert "Trade record 1" in parsed.error.message

    def test_out_of_bounds_risk_settings_rejected(self):
        broken = {**SAMPLE, "riskSettings": {**SAMPLE["riskSettings"], "lossPerTradePercentage": 5}}
        with pytest.raises(ValidationError, match="risk settings"):
            decode_bundle(json.dumps(broken))


class TestFileNameAndPreview:
    def test_file_name(self):
        assert export_file_name(date(2024, 6, 1)) == "risk_management_backup_2024-06-01.json"
        assert export_file_name(datetime(2024, 12, 31, 23, 59)) == "risk_management_backup_2024-12-31.json"

    def test_preview(self):
        preview = export_preview(decode_bundle(json.dumps(SAMPLE)))
        assert preview.trade_count == 2
        assert preview.has_risk_settings is True
        assert preview.platform == "sql"
        assert preview.estimated_size.endswith("B")

    def test_preview_of_empty_bundle(self):
        preview = export_preview(ExportBundle(version="1.0.0", metadata=ExportMetadata(platform="redis")))
        assert preview.trade_count == 0
        assert preview.has_risk_settings is False


class TestRoundTrip:
    @pytest.mark.asyncio
    async def test_sql_to_preferences(self, storage_factory, policy):
        stamps = [datetime(2024, 1, d, 8, tzinfo=timezone.utc) for d in (1, 2, 3)]
        async with storage_factory("sql") as source:
            await source.config.save(policy.apply_trade(50))
            for stamp, result in zip(stamps, (50, -20, 5.5)):
                await source.trades.save(Trade(result=result, timestamp=stamp))
            payload = encode_bundle(await source.export_all_data())

        async with storage_factory("preferences") as target:
            restored = await target.import_all_data(decode_bundle(payload))
            trades = await target.trades.get_all()

        assert restored.current_balance == pytest.approx(10050)
        assert [(t.result, t.timestamp) for t in trades] == list(zip((50, -20, 5.5), stamps))
