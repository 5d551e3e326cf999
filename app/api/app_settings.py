"""API endpoints for app-wide settings used in report headers."""
from fastapi import APIRouter, Depends

from app.services.dependencies import get_record_store
from app.services.record_schemas import AppSettings
from app.services.record_store import RecordStore

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=AppSettings)
async def get_app_settings(store: RecordStore = Depends(get_record_store)):
    return store.get_app_settings()


@router.put("", response_model=AppSettings)
async def save_app_settings(
    data: AppSettings, store: RecordStore = Depends(get_record_store)
):
    store.save_app_settings(data)
    return data
