"""Pydantic schemas for the export/import bundle."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from riskledger.utils.timeutils import utcnow

REQUIRED_TRADE_KEYS = ("result", "timestamp")
REQUIRED_RISK_KEYS = ("maxDrawdown", "lossPerTradePercentage", "accountBalance")


class ExportMetadata(BaseModel):
    platform: str = "unknown"
    trade_count: int = Field(default=0, ge=0)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class ExportBundle(BaseModel):
    version: str = Field(min_length=1)
    export_date: datetime = Field(default_factory=utcnow)
    risk_settings: dict[str, Any] | None = None
    trades: list[dict[str, Any]] = Field(default_factory=list)
    metadata: ExportMetadata = Field(default_factory=ExportMetadata)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("trades")
    @classmethod
    def _validate_trades(cls, value: list[dict[str, Any]]) -> list[dict[str, Any]]:
        for index, trade in enumerate(value):
            missing = [key for key in REQUIRED_TRADE_KEYS if key not in trade]
            if missing:
                raise ValueError(f"trade #{index} missing {', '.join(missing)}")
        return value

    @field_validator("risk_settings")
    @classmethod
    def _validate_risk_settings(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        if value is None:
            return None
        missing = [key for key in REQUIRED_RISK_KEYS if key not in value]
        if missing:
            raise ValueError(f"riskSettings missing {', '.join(missing)}")
        return value

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ExportPreview(BaseModel):
    version: str
    export_date: datetime
    has_risk_settings: bool
    trade_count: int
    platform: str
    estimated_size: str
