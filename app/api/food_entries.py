"""API endpoints for food (meal) logging."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from app.services.dependencies import get_record_store
from app.services.record_schemas import FoodEntry, FoodEntryCreate, FoodEntryUpdate
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/food-entries", tags=["food-entries"])


def _check_profiles(store: RecordStore, profile_ids: List[str]) -> None:
    """A meal must belong to at least one existing profile."""
    if not profile_ids:
        raise HTTPException(status_code=422, detail="Select at least one profile")

    known = {p.id for p in store.profiles.get_all()}
    unknown = [pid for pid in profile_ids if pid not in known]
    if unknown:
        raise HTTPException(
            status_code=422, detail=f"Unknown profile ids: {', '.join(unknown)}"
        )


@router.get("", response_model=List[FoodEntry])
async def list_food_entries(
    profile_id: Optional[str] = Query(None),
    store: RecordStore = Depends(get_record_store),
):
    """List food entries, newest first, optionally for one profile."""
    entries = store.food_entries.get_all()
    if profile_id:
        entries = [e for e in entries if profile_id in e.profile_ids]
    return sorted(entries, key=lambda e: e.timestamp, reverse=True)


@router.post("", response_model=FoodEntry, status_code=201)
async def create_food_entry(
    data: FoodEntryCreate, store: RecordStore = Depends(get_record_store)
):
    """Log a meal."""
    _check_profiles(store, data.profile_ids)
    entry = store.food_entries.add(data)
    logger.info("Logged food entry %s for %d profile(s)", entry.id, len(entry.profile_ids))
    return entry


@router.get("/{entry_id}", response_model=FoodEntry)
async def get_food_entry(entry_id: str, store: RecordStore = Depends(get_record_store)):
    """Get a single food entry."""
    entry = store.food_entries.get_by_id(entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Food entry not found")
    return entry


@router.put("/{entry_id}", response_model=FoodEntry)
async def update_food_entry(
    entry_id: str,
    data: FoodEntryUpdate,
    store: RecordStore = Depends(get_record_store),
):
    """Update a food entry. The logged timestamp can't be changed."""
    if data.profile_ids is not None:
        _check_profiles(store, data.profile_ids)

    entry = store.food_entries.update(entry_id, data)
    if not entry:
        raise HTTPException(status_code=404, detail="Food entry not found")
    return entry


@router.delete("/{entry_id}", status_code=204)
async def delete_food_entry(
    entry_id: str, store: RecordStore = Depends(get_record_store)
):
    """Delete a food entry."""
    if not store.food_entries.get_by_id(entry_id):
        raise HTTPException(status_code=404, detail="Food entry not found")
    store.food_entries.remove(entry_id)
    return Response(status_code=204)
