"""API endpoints for symptom logging and management."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from app.services.dependencies import get_record_store
from app.services.record_schemas import (
    SYMPTOM_CATEGORIES,
    SymptomEntry,
    SymptomEntryCreate,
    SymptomEntryUpdate,
)
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/symptoms", tags=["symptoms"])


def _check_references(
    store: RecordStore,
    profile_id: Optional[str],
    linked_food_entry_id: Optional[str],
) -> None:
    if profile_id is not None and not store.profiles.get_by_id(profile_id):
        raise HTTPException(status_code=422, detail=f"Unknown profile id: {profile_id}")
    if linked_food_entry_id and not store.food_entries.get_by_id(linked_food_entry_id):
        raise HTTPException(
            status_code=422, detail=f"Unknown food entry id: {linked_food_entry_id}"
        )


@router.get("/categories")
async def list_categories():
    """Symptom categories for the log form."""
    return {"categories": list(SYMPTOM_CATEGORIES)}


@router.get("", response_model=List[SymptomEntry])
async def list_symptoms(
    profile_id: Optional[str] = Query(None),
    store: RecordStore = Depends(get_record_store),
):
    """List symptom entries by onset, newest first, optionally for one profile."""
    entries = store.symptom_entries.get_all()
    if profile_id:
        entries = [e for e in entries if e.profile_id == profile_id]
    return sorted(entries, key=lambda e: e.start_time, reverse=True)


@router.post("", response_model=SymptomEntry, status_code=201)
async def create_symptom(
    data: SymptomEntryCreate, store: RecordStore = Depends(get_record_store)
):
    """Log a symptom episode for one profile."""
    _check_references(store, data.profile_id, data.linked_food_entry_id)
    entry = store.symptom_entries.add(data)
    logger.info("Logged symptom entry %s for profile %s", entry.id, entry.profile_id)
    return entry


@router.get("/{entry_id}", response_model=SymptomEntry)
async def get_symptom(entry_id: str, store: RecordStore = Depends(get_record_store)):
    """Get a single symptom entry."""
    entry = store.symptom_entries.get_by_id(entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Symptom not found")
    return entry


@router.put("/{entry_id}", response_model=SymptomEntry)
async def update_symptom(
    entry_id: str,
    data: SymptomEntryUpdate,
    store: RecordStore = Depends(get_record_store),
):
    """Update a symptom entry. The logged-at timestamp can't be changed."""
    _check_references(store, data.profile_id, data.linked_food_entry_id)

    entry = store.symptom_entries.update(entry_id, data)
    if not entry:
        raise HTTPException(status_code=404, detail="Symptom not found")
    return entry


@router.delete("/{entry_id}", status_code=204)
async def delete_symptom(entry_id: str, store: RecordStore = Depends(get_record_store)):
    """Delete a symptom entry."""
    if not store.symptom_entries.get_by_id(entry_id):
        raise HTTPException(status_code=404, detail="Symptom not found")
    store.symptom_entries.remove(entry_id)
    return Response(status_code=204)
