"""Trade: immutable value for one closed trade outcome."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from riskledger.utils.timeutils import ensure_utc, from_iso, to_iso, utcnow


class Trade(BaseModel):
    id: int | None = None  # assigned by storage on first save
    result: float  # signed P&L in account currency
    timestamp: datetime = Field(default_factory=utcnow)

    model_config = {"frozen": True}

    @field_validator("timestamp")
    @classmethod
    def _normalise_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def copy_with(self, **changes: Any) -> "Trade":
        """Full replacement with selected fields changed (re-validated)."""
        return Trade.model_validate({**self.model_dump(), **changes})

    def to_json(self) -> dict[str, Any]:
        return {"id": self.id, "result": self.result, "timestamp": to_iso(self.timestamp)}

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Trade":
        """Build from a storage record; bookkeeping fields are ignored."""
        timestamp = record["timestamp"]
        if isinstance(timestamp, str):
            timestamp = from_iso(timestamp)
        return cls(id=record.get("id"), result=float(record["result"]), timestamp=timestamp)
