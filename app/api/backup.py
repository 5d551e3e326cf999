"""API endpoints for backup export/import and data cleanup."""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from app.services.backup_service import BackupService
from app.services.dependencies import get_record_store
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/backup", tags=["backup"])


@router.get("/export")
async def export_backup(store: RecordStore = Depends(get_record_store)):
    """Download the whole diary as one JSON document."""
    filename = BackupService.backup_filename()
    return Response(
        content=BackupService(store).export_json(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import")
async def import_backup(request: Request, store: RecordStore = Depends(get_record_store)):
    """
    Replace the diary with the contents of a backup document.

    The raw request body is the document. BackupImportError is turned into
    a 400 by the application's exception handler.
    """
    body = await request.body()
    result = BackupService(store).import_json(body)
    return {
        "imported": {
            "userProfiles": result.profiles,
            "foodEntries": result.food_entries,
            "symptomEntries": result.symptom_entries,
            "appSettings": result.app_settings_restored,
        },
        "warnings": result.warnings,
    }


@router.post("/clean")
async def clean_data(store: RecordStore = Depends(get_record_store)):
    """Drop references to deleted profiles."""
    removed = store.prune_orphans()
    logger.info("Cleaned orphaned data: %s", removed)
    return {
        "foodRefsRemoved": removed["food_refs_removed"],
        "symptomsRemoved": removed["symptoms_removed"],
    }
