"""API endpoints for trigger analysis and the advisory summary."""
import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import Field

from app.config import settings
from app.services.advisory_service import AdvisorySummarizer
from app.services.dependencies import get_record_store
from app.services.prompts import ADVISORY_DISCLAIMER
from app.services.record_schemas import (
    AdvisorySuggestion,
    RecordModel,
    TriggerCandidate,
)
from app.services.record_store import RecordStore, StoreWriteError
from app.services.trigger_analyzer import (
    AdvisoryOutcome,
    AdvisoryStatus,
    AnalysisFilters,
    TriggerAnalyzer,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])

# Shared across requests; tests patch this attribute
advisory_summarizer = AdvisorySummarizer()


class TriggerAnalysisRequest(RecordModel):
    profile_id: Optional[str] = None
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    min_severity: Optional[int] = Field(default=None, ge=1, le=10)
    include_advisory: bool = True


class TriggerAnalysisResponse(RecordModel):
    triggers: List[TriggerCandidate]
    food_entries_analyzed: int
    symptom_entries_analyzed: int
    advisory: Optional[AdvisoryOutcome] = None
    disclaimer: str = ADVISORY_DISCLAIMER


@router.post("/triggers", response_model=TriggerAnalysisResponse)
async def analyze_triggers(
    request: TriggerAnalysisRequest,
    store: RecordStore = Depends(get_record_store),
):
    """
    Rank foods that precede symptoms, with an optional advisory narrative.

    The ranking is always returned. The advisory block reports its own
    status; a failed or timed-out summary leaves the ranking untouched.
    """
    if request.date_start and request.date_end and request.date_start > request.date_end:
        raise HTTPException(status_code=422, detail="dateStart must not be after dateEnd")

    analyzer = TriggerAnalyzer(store)
    report = analyzer.analyze(
        AnalysisFilters(
            profile_id=request.profile_id,
            date_start=request.date_start,
            date_end=request.date_end,
            min_severity=request.min_severity,
        )
    )

    advisory = None
    if request.include_advisory:
        task = analyzer.request_advisory(report, advisory_summarizer)
        if task is not None:
            advisory = await task.wait(
                timeout=settings.advisory_timeout + settings.advisory_connect_timeout
            )
            if advisory.status is AdvisoryStatus.SUCCEEDED:
                _remember_suggestion(store, advisory)

    return TriggerAnalysisResponse(
        triggers=report.triggers,
        food_entries_analyzed=report.food_entries_analyzed,
        symptom_entries_analyzed=report.symptom_entries_analyzed,
        advisory=advisory,
    )


def _remember_suggestion(store: RecordStore, advisory: AdvisoryOutcome) -> None:
    suggestion = AdvisorySuggestion(
        possible_triggers=advisory.possible_triggers,
        explanation=advisory.explanation,
        illustrative=advisory.illustrative,
        generated_at=datetime.now(timezone.utc),
    )
    try:
        store.save_ai_suggestion(suggestion)
    except StoreWriteError as e:
        logger.warning("Could not cache advisory suggestion: %s", e)


@router.get("/suggestion", response_model=AdvisorySuggestion)
async def get_suggestion(store: RecordStore = Depends(get_record_store)):
    """Most recent advisory narrative."""
    suggestion = store.get_ai_suggestion()
    if suggestion is None:
        raise HTTPException(status_code=404, detail="No suggestion available")
    return suggestion


@router.delete("/suggestion", status_code=204)
async def clear_suggestion(store: RecordStore = Depends(get_record_store)):
    store.clear_ai_suggestion()
    return Response(status_code=204)
