"""Trigger analyzer ranking foods that tend to precede logged symptoms."""

import asyncio
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Awaitable, Dict, List, Optional

from app.services.record_schemas import (
    FoodEntry,
    RecordModel,
    SeverityStats,
    SymptomEntry,
    TimePattern,
    TriggerCandidate,
)
from app.services.record_store import RecordStore


logger = logging.getLogger(__name__)

# Splits free-text food descriptions into individual food names
FOOD_DELIMITERS = re.compile(r"[,;/\n]|\s+(?:and|&)\s+", re.IGNORECASE)


def _round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for positive values (2.5 -> 3, not 2)."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def split_food_items(food_items: str) -> List[str]:
    """
    Split a free-text food description into normalized food names.

    "Milk, Bread and Butter" -> ["milk", "bread", "butter"]. Names are
    lower-cased with inner whitespace collapsed; duplicates are dropped.
    """
    names = []
    for part in FOOD_DELIMITERS.split(food_items or ""):
        name = " ".join(part.split()).lower()
        if name and name not in names:
            names.append(name)
    return names


@dataclass
class AnalysisFilters:
    """Filters applied to both collections before pairing."""

    profile_id: Optional[str] = None
    date_start: Optional[date] = None  # inclusive, from start of day
    date_end: Optional[date] = None  # inclusive, through end of day
    min_severity: Optional[int] = None

    def window(self) -> tuple[Optional[datetime], Optional[datetime]]:
        start = (
            datetime.combine(self.date_start, time.min, tzinfo=timezone.utc)
            if self.date_start
            else None
        )
        end = (
            datetime.combine(self.date_end, time.max, tzinfo=timezone.utc)
            if self.date_end
            else None
        )
        return start, end


@dataclass
class TriggerReport:
    triggers: List[TriggerCandidate]
    food_entries_analyzed: int
    symptom_entries_analyzed: int
    food_names: List[str] = field(default_factory=list)
    symptom_descriptions: List[str] = field(default_factory=list)


@dataclass
class _FoodStats:
    occurrences: int = 0
    symptoms: List[str] = field(default_factory=list)
    onset_minutes: List[float] = field(default_factory=list)
    severities: List[int] = field(default_factory=list)
    last_occurrence: Optional[datetime] = None


class TriggerAnalyzer:
    """
    Pairs meals with the symptoms that follow them and scores each food.

    A food entry is paired with a symptom when it precedes the symptom onset
    by more than zero and at most WINDOW_HOURS. Confidence mixes how often a
    food shows up before symptoms (60%) with how consistent its onset delay
    is (40%).
    """

    WINDOW_HOURS = 24
    FREQUENCY_WEIGHT = 0.6
    CONSISTENCY_WEIGHT = 0.4

    def __init__(self, store: RecordStore):
        self.store = store

    def filter_entries(
        self, filters: AnalysisFilters
    ) -> tuple[List[FoodEntry], List[SymptomEntry]]:
        """Load both collections from the store and apply the filters."""
        start, end = filters.window()

        def in_range(moment: datetime) -> bool:
            if start and moment < start:
                return False
            if end and moment > end:
                return False
            return True

        food_entries = [
            entry
            for entry in self.store.food_entries.get_all()
            if in_range(entry.timestamp)
            and (filters.profile_id is None or filters.profile_id in entry.profile_ids)
        ]
        symptom_entries = [
            entry
            for entry in self.store.symptom_entries.get_all()
            if in_range(entry.start_time)
            and (filters.profile_id is None or entry.profile_id == filters.profile_id)
            and (filters.min_severity is None or entry.severity >= filters.min_severity)
        ]
        return food_entries, symptom_entries

    def analyze(self, filters: Optional[AnalysisFilters] = None) -> TriggerReport:
        """Run the ranking on the store's current contents."""
        food_entries, symptom_entries = self.filter_entries(filters or AnalysisFilters())
        triggers = self.rank_triggers(food_entries, symptom_entries)

        logger.info(
            "Trigger analysis: %d food entries, %d symptom entries, %d candidates",
            len(food_entries),
            len(symptom_entries),
            len(triggers),
        )

        return TriggerReport(
            triggers=triggers,
            food_entries_analyzed=len(food_entries),
            symptom_entries_analyzed=len(symptom_entries),
            food_names=[
                name for entry in food_entries for name in split_food_items(entry.food_items)
            ],
            symptom_descriptions=[entry.symptom for entry in symptom_entries],
        )

    def rank_triggers(
        self, food_entries: List[FoodEntry], symptom_entries: List[SymptomEntry]
    ) -> List[TriggerCandidate]:
        """
        Score every food that preceded a symptom within the window.

        Deterministic for identical inputs; returns [] when either list is
        empty. Ties keep first-seen order.
        """
        if not food_entries or not symptom_entries:
            return []

        window = timedelta(hours=self.WINDOW_HOURS)
        stats: Dict[str, _FoodStats] = {}

        for symptom in symptom_entries:
            symptom_time = symptom.start_time

            for food_entry in food_entries:
                delay = symptom_time - food_entry.timestamp
                if not (timedelta(0) < delay <= window):
                    continue

                onset_minutes = delay.total_seconds() / 60
                for name in split_food_items(food_entry.food_items):
                    entry_stats = stats.setdefault(name, _FoodStats())
                    entry_stats.occurrences += 1
                    entry_stats.symptoms.append(symptom.symptom)
                    entry_stats.onset_minutes.append(onset_minutes)
                    entry_stats.severities.append(symptom.severity)
                    if (
                        entry_stats.last_occurrence is None
                        or symptom_time > entry_stats.last_occurrence
                    ):
                        entry_stats.last_occurrence = symptom_time

        total_symptoms = len(symptom_entries)
        candidates = [
            self._score(name, entry_stats, total_symptoms)
            for name, entry_stats in stats.items()
        ]
        # sorted() is stable, so equal confidences keep insertion order
        return sorted(candidates, key=lambda c: c.confidence, reverse=True)

    def _score(
        self, food: str, entry_stats: _FoodStats, total_symptoms: int
    ) -> TriggerCandidate:
        onsets = entry_stats.onset_minutes
        severities = entry_stats.severities

        average_onset = sum(onsets) / len(onsets)
        average_severity = sum(severities) / len(severities)

        frequency = entry_stats.occurrences / total_symptoms
        consistency = 1 - (max(onsets) - min(onsets)) / (self.WINDOW_HOURS * 60)
        confidence = min(
            100,
            (frequency * self.FREQUENCY_WEIGHT + consistency * self.CONSISTENCY_WEIGHT)
            * 100,
        )

        return TriggerCandidate(
            food=food,
            confidence=int(_round_half_up(confidence)),
            occurrences=entry_stats.occurrences,
            last_occurrence=entry_stats.last_occurrence,
            symptoms=list(dict.fromkeys(entry_stats.symptoms)),
            time_pattern=TimePattern(
                average_onset_time=int(_round_half_up(average_onset)),
                consistency_score=_round_half_up(consistency, 2),
            ),
            severity=SeverityStats(
                average=_round_half_up(average_severity, 1),
                range=(min(severities), max(severities)),
            ),
        )

    def request_advisory(
        self, report: TriggerReport, summarizer
    ) -> Optional["AdvisoryTask"]:
        """
        Start the optional narrative for a report.

        Returns None when there is nothing to summarize. Must be called from
        a running event loop.
        """
        if not report.food_names or not report.symptom_descriptions:
            return None
        return AdvisoryTask(
            summarizer.summarize_correlations(
                report.food_names, report.symptom_descriptions
            )
        )


# =============================================================================
# Advisory task
# =============================================================================


class AdvisoryStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class AdvisoryOutcome(RecordModel):
    status: AdvisoryStatus
    possible_triggers: List[str] = []
    explanation: str = ""
    illustrative: bool = False
    degraded: bool = False
    error: Optional[str] = None


class AdvisoryTask:
    """
    Best-effort summarizer call running alongside the numeric ranking.

    ``status`` can be polled at any time; ``wait`` never raises, failures
    and timeouts come back as a FAILED outcome.
    """

    def __init__(self, coro: Awaitable[dict]):
        self._task = asyncio.ensure_future(coro)

    @property
    def status(self) -> AdvisoryStatus:
        if not self._task.done():
            return AdvisoryStatus.PENDING
        if self._task.cancelled() or self._task.exception() is not None:
            return AdvisoryStatus.FAILED
        return AdvisoryStatus.SUCCEEDED

    async def wait(self, timeout: Optional[float] = None) -> AdvisoryOutcome:
        done, _pending = await asyncio.wait({self._task}, timeout=timeout)
        if not done:
            self._task.cancel()
            logger.warning("Advisory summary timed out after %ss", timeout)
            return AdvisoryOutcome(
                status=AdvisoryStatus.FAILED, error="Advisory summary timed out"
            )
        return self.outcome()

    def outcome(self) -> AdvisoryOutcome:
        status = self.status
        if status is AdvisoryStatus.PENDING:
            return AdvisoryOutcome(status=status)
        if status is AdvisoryStatus.FAILED:
            error = (
                "Advisory summary was cancelled"
                if self._task.cancelled()
                else str(self._task.exception())
            )
            logger.warning("Advisory summary unavailable: %s", error)
            return AdvisoryOutcome(status=status, error=error)

        result = self._task.result()
        return AdvisoryOutcome(
            status=status,
            possible_triggers=result.get("possible_triggers", []),
            explanation=result.get("explanation", ""),
            illustrative=result.get("illustrative", False),
            degraded=result.get("degraded", False),
        )
