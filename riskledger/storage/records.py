"""Record and policy encoding shared by the storage engines."""

import json
import logging
from typing import Any

from riskledger.errors import ValidationError
from riskledger.models.risk_policy import RiskPolicy
from riskledger.models.trade import Trade
from riskledger.utils.result import Result
from riskledger.utils.timeutils import from_iso, stamp_record, to_iso, utcnow
from riskledger.validation import validate_trade_result

logger = logging.getLogger(__name__)


def new_record(trade: Trade, trade_id: int | None = None) -> dict[str, Any]:
    return {
        "id": trade_id,
        "result": float(trade.result),
        "timestamp": to_iso(trade.timestamp),
        **stamp_record(),
    }


def updated_record(existing: dict[str, Any], trade: Trade) -> dict[str, Any]:
    return {
        "id": existing["id"],
        "result": float(trade.result),
        "timestamp": to_iso(trade.timestamp),
        "created_at": existing.get("created_at") or to_iso(utcnow()),
        "updated_at": to_iso(utcnow()),
    }


def imported_record(raw: dict[str, Any], trade_id: int | None = None) -> dict[str, Any]:
    """Normalise an imported record; only result and timestamp survive."""
    timestamp = raw["timestamp"]
    timestamp = to_iso(from_iso(timestamp) if isinstance(timestamp, str) else timestamp)
    return {"id": trade_id, "result": float(raw["result"]), "timestamp": timestamp, **stamp_record()}


def normalise_import(records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Normalise every imported record up front. Raises ValidationError naming the first bad one."""
    normalised = []
    for index, raw in enumerate(records):
        try:
            record = imported_record(raw)
            validate_trade_result(record["result"])
        except ValidationError as e:
            raise ValidationError(f"Trade record {index}: {e.message}", code="INVALID_FORMAT", cause=e) from e
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ValidationError(f"Trade record {index} is invalid: {e}", code="INVALID_FORMAT", cause=e) from e
        normalised.append(record)
    return normalised


def imported_policy(raw: dict[str, Any] | None) -> RiskPolicy | None:
    """Policy from an import bundle, bounds included. Raises ValidationError."""
    if not raw:
        return None
    try:
        return RiskPolicy.from_json(raw)
    except ValidationError as e:
        raise ValidationError(f"Imported risk settings are invalid: {e.message}", code="INVALID_FORMAT", cause=e) from e
    except (ValueError, TypeError) as e:
        raise ValidationError(f"Imported risk settings are invalid: {e}", code="INVALID_FORMAT", cause=e) from e


def sort_key(record: dict[str, Any]) -> tuple[str, int]:
    return record["timestamp"], record["id"] or 0


def encode_policy(policy: RiskPolicy) -> str:
    return json.dumps(policy.to_json())


def decode_policy(raw: str | None, source: str) -> Result[RiskPolicy]:
    """Decode a stored policy, separating 'nothing stored' from 'stored but corrupt'."""
    if raw is None:
        return Result.absent()
    try:
        return Result.ok(RiskPolicy.from_json(json.loads(raw)))
    except (ValueError, TypeError, KeyError, ValidationError) as e:
        # pydantic's ValidationError subclasses ValueError
        logger.warning(f"[{source}] Stored risk settings are unreadable: {e}")
        return Result.failed(e)
