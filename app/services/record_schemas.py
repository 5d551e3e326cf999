"""
Pydantic models for the records kept in the record store.

Fields are snake_case in Python and camelCase in storage, API payloads and
backup documents (``foodItems``, ``profileIds``, ``loggedAt``, ...). Input is
accepted in either form.
"""

from datetime import date, datetime, timezone
from typing import Annotated, Literal, Optional, get_args

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]

SymptomCategory = Literal["skin", "digestive", "respiratory", "general"]
SYMPTOM_CATEGORIES: tuple[str, ...] = get_args(SymptomCategory)

# Canonical severity scale
SEVERITY_MIN = 1
SEVERITY_MAX = 10
Severity = Annotated[int, Field(ge=SEVERITY_MIN, le=SEVERITY_MAX)]


class RecordModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_storage(self) -> dict:
        """JSON-compatible dict with camelCase keys, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Profiles ---


class ProfileFields(RecordModel):
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    weight: Optional[float] = None  # kg
    height: Optional[float] = None  # cm
    known_allergies: list[str] = Field(default_factory=list)
    chronic_conditions: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)
    dietary_preferences: list[str] = Field(default_factory=list)
    activity_level: Optional[str] = None
    smoking_status: Optional[str] = None
    alcohol_consumption: Optional[str] = None
    stress_level: Optional[str] = None
    sleep_quality: Optional[str] = None


class Profile(ProfileFields):
    """One tracked household member."""

    id: str
    name: str
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class ProfileCreate(ProfileFields):
    name: str = Field(min_length=1)


class ProfileUpdate(RecordModel):
    name: Optional[str] = Field(default=None, min_length=1)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    weight: Optional[float] = None
    height: Optional[float] = None
    known_allergies: Optional[list[str]] = None
    chronic_conditions: Optional[list[str]] = None
    medications: Optional[list[str]] = None
    dietary_preferences: Optional[list[str]] = None
    activity_level: Optional[str] = None
    smoking_status: Optional[str] = None
    alcohol_consumption: Optional[str] = None
    stress_level: Optional[str] = None
    sleep_quality: Optional[str] = None


# --- Food entries ---


class FoodEntry(RecordModel):
    """One logged meal or snack."""

    id: str
    timestamp: UtcDatetime
    food_items: str  # free text, e.g. "Milk, Bread"
    photo: Optional[str] = None  # data URI
    profile_ids: list[str]


class FoodEntryCreate(RecordModel):
    food_items: str = Field(min_length=1)
    photo: Optional[str] = None
    profile_ids: list[str] = Field(default_factory=list)
    timestamp: Optional[UtcDatetime] = None  # defaults to now


class FoodEntryUpdate(RecordModel):
    food_items: Optional[str] = Field(default=None, min_length=1)
    photo: Optional[str] = None
    profile_ids: Optional[list[str]] = None


# --- Symptom entries ---


class SymptomEntry(RecordModel):
    """One logged symptom episode, owned by exactly one profile."""

    id: str
    logged_at: UtcDatetime
    symptom: str
    category: SymptomCategory
    severity: Severity
    start_time: UtcDatetime
    duration: str  # free text, e.g. "30 minutes"
    linked_food_entry_id: Optional[str] = None
    profile_id: str


class SymptomEntryCreate(RecordModel):
    symptom: str = Field(min_length=1)
    category: SymptomCategory
    severity: Severity
    start_time: Optional[UtcDatetime] = None  # defaults to now
    duration: str = ""
    linked_food_entry_id: Optional[str] = None
    profile_id: str


class SymptomEntryUpdate(RecordModel):
    symptom: Optional[str] = Field(default=None, min_length=1)
    category: Optional[SymptomCategory] = None
    severity: Optional[Severity] = None
    start_time: Optional[UtcDatetime] = None
    duration: Optional[str] = None
    linked_food_entry_id: Optional[str] = None
    profile_id: Optional[str] = None


# --- Singletons ---


class AppSettings(RecordModel):
    """Display name and notes used in report headers."""

    name: Optional[str] = ""
    notes: Optional[str] = ""


class AdvisorySuggestion(RecordModel):
    """Last narrative returned by the advisory summarizer."""

    possible_triggers: list[str] = Field(default_factory=list)
    explanation: str = ""
    illustrative: bool = False
    generated_at: Optional[UtcDatetime] = None


# --- Trigger analysis (derived, never stored) ---


class TimePattern(RecordModel):
    average_onset_time: int  # minutes
    consistency_score: float  # 0-1


class SeverityStats(RecordModel):
    average: float
    range: tuple[int, int]


class TriggerCandidate(RecordModel):
    food: str
    confidence: int  # 0-100
    occurrences: int
    last_occurrence: UtcDatetime
    symptoms: list[str]
    time_pattern: TimePattern
    severity: SeverityStats
