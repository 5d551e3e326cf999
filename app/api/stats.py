"""API endpoint for the dashboard quick stats."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends

from app.services.dependencies import get_record_store
from app.services.record_schemas import RecordModel
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stats", tags=["stats"])

RECENT_WINDOW = timedelta(days=7)


class QuickStats(RecordModel):
    total_meals: int
    total_symptoms: int
    total_profiles: int
    recent_meals: int
    recent_symptoms: int
    last_activity: Optional[datetime] = None


@router.get("", response_model=QuickStats)
async def get_stats(store: RecordStore = Depends(get_record_store)):
    """
    Record totals plus meals and symptoms from the last 7 days.

    Meals count by their timestamp, symptoms by their start time.
    """
    since = datetime.now(timezone.utc) - RECENT_WINDOW
    food_entries = store.food_entries.get_all()
    symptom_entries = store.symptom_entries.get_all()

    return QuickStats(
        total_meals=len(food_entries),
        total_symptoms=len(symptom_entries),
        total_profiles=len(store.profiles.get_all()),
        recent_meals=sum(1 for e in food_entries if e.timestamp >= since),
        recent_symptoms=sum(1 for s in symptom_entries if s.start_time >= since),
        last_activity=store.get_last_activity(),
    )
