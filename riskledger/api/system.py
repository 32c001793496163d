"""System API: health check, storage info, backup export and import."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from riskledger.api.deps import get_service, get_storage
from riskledger.errors import StorageError
from riskledger.schemas.export import ExportPreview
from riskledger.services.backup import encode_bundle, export_file_name, export_preview, parse_bundle
from riskledger.services.risk_service import RiskManagementService
from riskledger.storage.app_storage import AppStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.get("/storage")
async def storage_info(storage: AppStorage = Depends(get_storage)):
    return await storage.get_storage_info()


@router.get("/export")
async def export_data(storage: AppStorage = Depends(get_storage)):
    """Download everything stored as a JSON backup file."""
    bundle = await storage.export_all_data()
    return Response(
        content=encode_bundle(bundle),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{export_file_name(bundle.export_date)}"'},
    )


@router.get("/export/preview", response_model=ExportPreview)
async def preview_export(storage: AppStorage = Depends(get_storage)):
    return export_preview(await storage.export_all_data())


@router.post("/import")
async def import_data(
    request: Request,
    storage: AppStorage = Depends(get_storage),
    service: RiskManagementService = Depends(get_service),
):
    """Replace all stored data with the uploaded backup."""
    parsed = parse_bundle(await request.body())
    if parsed.is_error:
        raise parsed.error
    bundle = parsed.value

    try:
        policy = await storage.import_all_data(bundle)
    except StorageError:
        loaded = await storage.config.load()
        await service.reload(loaded.value if loaded.is_ok else None)
        raise
    await service.reload(policy)
    if policy is None:
        await service.persist_risk_settings()
    logger.info(f"Backup imported from {bundle.metadata.platform} ({len(bundle.trades)} trades)")
    return {"status": "ok", "trades_imported": len(bundle.trades), "risk_settings_imported": policy is not None}
