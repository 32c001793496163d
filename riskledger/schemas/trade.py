"""Pydantic schemas for the trade API."""

from datetime import datetime

from pydantic import BaseModel, field_validator

from riskledger.models.trade import Trade
from riskledger.utils.timeutils import ensure_utc


class TradeCreate(BaseModel):
    result: float  # finiteness and magnitude are checked by the service
    timestamp: datetime | None = None

    @field_validator("timestamp")
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


class TradeRead(BaseModel):
    id: int
    result: float
    timestamp: datetime

    @classmethod
    def from_trade(cls, trade: Trade) -> "TradeRead":
        return cls(id=trade.id, result=trade.result, timestamp=trade.timestamp)
