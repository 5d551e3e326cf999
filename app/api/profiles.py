"""API endpoints for household member profiles."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from app.services.dependencies import get_record_store
from app.services.record_schemas import Profile, ProfileCreate, ProfileUpdate
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("", response_model=List[Profile])
async def list_profiles(store: RecordStore = Depends(get_record_store)):
    """List all profiles."""
    return store.profiles.get_all()


@router.post("", response_model=Profile, status_code=201)
async def create_profile(
    data: ProfileCreate, store: RecordStore = Depends(get_record_store)
):
    """Create a profile."""
    profile = store.profiles.add(data)
    logger.info("Created profile %s", profile.id)
    return profile


@router.get("/{profile_id}", response_model=Profile)
async def get_profile(profile_id: str, store: RecordStore = Depends(get_record_store)):
    """Get a single profile."""
    profile = store.profiles.get_by_id(profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.put("/{profile_id}", response_model=Profile)
async def update_profile(
    profile_id: str,
    data: ProfileUpdate,
    store: RecordStore = Depends(get_record_store),
):
    """Update the supplied profile fields."""
    profile = store.profiles.update(profile_id, data)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.delete("/{profile_id}", status_code=204)
async def delete_profile(
    profile_id: str, store: RecordStore = Depends(get_record_store)
):
    """
    Delete a profile.

    Also removes the profile from every food entry and deletes every symptom
    entry it owns.
    """
    if not store.delete_profile(profile_id):
        raise HTTPException(status_code=404, detail="Profile not found")
    return Response(status_code=204)
