"""Backup codec: export bundles to and from JSON bytes."""

import json
import logging
from datetime import date, datetime

from pydantic import ValidationError as PydanticValidationError

from riskledger.errors import ValidationError
from riskledger.schemas.export import ExportBundle, ExportPreview
from riskledger.storage.records import imported_policy, normalise_import
from riskledger.utils.constants import EXPORT_FILE_PREFIX
from riskledger.utils.result import Result
from riskledger.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


def encode_bundle(bundle: ExportBundle) -> bytes:
    return json.dumps(bundle.to_json(), indent=2).encode("utf-8")


def parse_bundle(data: bytes | str) -> Result[ExportBundle]:
    try:
        raw = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Backup is not valid JSON: {e}")
        return Result.failed(ValidationError("Backup file is not valid JSON", code="INVALID_FORMAT", cause=e))
    if not isinstance(raw, dict):
        return Result.failed(ValidationError("Backup root must be an object", code="INVALID_FORMAT"))
    try:
        bundle = ExportBundle.model_validate(raw)
    except PydanticValidationError as e:
        logger.warning(f"Backup failed validation: {e.error_count()} error(s)")
        return Result.failed(ValidationError(f"Invalid backup data: {e}", code="INVALID_FORMAT", cause=e))
    try:
        imported_policy(bundle.risk_settings)
        normalise_import(bundle.trades)
    except ValidationError as e:
        logger.warning(f"Backup content rejected: {e.message}")
        return Result.failed(e)
    return Result.ok(bundle)


def decode_bundle(data: bytes | str) -> ExportBundle:
    """Like ``parse_bundle`` but raises ValidationError."""
    return parse_bundle(data).unwrap()


def validate_import_data(data: bytes | str) -> bool:
    return parse_bundle(data).is_ok


def export_file_name(day: date | datetime | None = None) -> str:
    day = day or utcnow()
    if isinstance(day, datetime):
        day = day.date()
    return f"{EXPORT_FILE_PREFIX}{day.isoformat()}.json"


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def export_preview(bundle: ExportBundle) -> ExportPreview:
    return ExportPreview(
        version=bundle.version,
        export_date=bundle.export_date,
        has_risk_settings=bundle.risk_settings is not None,
        trade_count=len(bundle.trades),
        platform=bundle.metadata.platform,
        estimated_size=_format_size(len(encode_bundle(bundle))),
    )
