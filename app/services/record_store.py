"""
Key-value record store for profiles, food entries, symptom entries and settings.

Each logical key holds one JSON document: an array for the three record
collections, an object for the singletons. Every write also refreshes the
last-activity timestamp. Consumers depend on ``RecordStore``; the concrete
backend is either the SQLAlchemy table or the in-memory fake.
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.store_entry import StoreEntry
from app.services.record_schemas import (
    AdvisorySuggestion,
    AppSettings,
    FoodEntry,
    Profile,
    RecordModel,
    SymptomEntry,
)


logger = logging.getLogger(__name__)

USER_PROFILES_KEY = "ALLERGYCARE_USER_PROFILES"
FOOD_LOG_KEY = "ALLERGYCARE_FOOD_LOGS"
SYMPTOM_LOG_KEY = "ALLERGYCARE_SYMPTOM_LOGS"
APP_SETTINGS_KEY = "ALLERGYCARE_APP_SETTINGS"
AI_SUGGESTIONS_KEY = "ALLERGYCARE_AI_SUGGESTIONS"
LAST_ACTIVITY_KEY = "ALLERGYCARE_LAST_ACTIVITY"

T = TypeVar("T", bound=RecordModel)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _to_json(value: Any) -> Any:
    if isinstance(value, RecordModel):
        return value.to_storage()
    if isinstance(value, list):
        return [_to_json(item) for item in value]
    return value


# =============================================================================
# Collections
# =============================================================================


class RecordCollection(ABC, Generic[T]):
    """get_all / add / update / remove / get_by_id over one stored array."""

    def __init__(self, store: "RecordStore", key: str, model: type[T]):
        self._store = store
        self.key = key
        self.model = model

    def get_all(self) -> list[T]:
        """All stored records; empty when unset or unreadable. Never raises."""
        raw = self._store._read(self.key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.error("Stored value under %s is not an array, ignoring it", self.key)
            return []

        records = []
        for index, item in enumerate(raw):
            try:
                records.append(self.model.model_validate(item))
            except ValidationError as e:
                logger.error(
                    "Skipping invalid record %d under %s: %s", index, self.key, e
                )
        return records

    def load_for_write(self) -> list[T]:
        """
        All stored records, for a read-modify-write.

        Unlike ``get_all`` this refuses to guess: an unreadable key, a
        non-array value or any invalid record raises StoreWriteError so the
        caller aborts before anything is persisted.
        """
        raw = self._store._read_strict(self.key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise StoreWriteError(f"Stored value under {self.key} is not an array")

        try:
            return [self.model.model_validate(item) for item in raw]
        except ValidationError as e:
            logger.error("Refusing to rewrite %s with invalid records: %s", self.key, e)
            raise StoreWriteError(f"Stored records under {self.key} are invalid") from e

    def get_by_id(self, record_id: str) -> Optional[T]:
        return next((r for r in self.get_all() if r.id == record_id), None)

    def add(self, data: BaseModel) -> T:
        """Create a record with a fresh id and creation timestamp, then persist it."""
        record = self._build(data.model_dump())
        records = self.load_for_write()
        records.append(record)
        self._store._write({self.key: records})
        return record

    def update(self, record_id: str, data: BaseModel) -> Optional[T]:
        """
        Merge the supplied fields into an existing record.

        Only fields explicitly set on ``data`` are applied. Returns None when
        no record has ``record_id``.
        """
        records = self.load_for_write()
        for index, record in enumerate(records):
            if record.id != record_id:
                continue

            changes = {
                name: value
                for name, value in data.model_dump(exclude_unset=True).items()
                if value is not None or not self.model.model_fields[name].is_required()
            }
            self._on_update(changes)
            updated = self.model.model_validate({**record.model_dump(), **changes})
            records[index] = updated
            self._store._write({self.key: records})
            return updated

        return None

    def remove(self, record_id: str) -> None:
        """Delete a record; no-op when absent."""
        records = self.load_for_write()
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) != len(records):
            self._store._write({self.key: remaining})

    @abstractmethod
    def _build(self, fields: dict) -> T:
        pass

    def _on_update(self, changes: dict) -> None:
        pass


class ProfileCollection(RecordCollection[Profile]):
    def _build(self, fields: dict) -> Profile:
        now = _utcnow()
        return Profile(id=_new_id(), created_at=now, updated_at=now, **fields)

    def _on_update(self, changes: dict) -> None:
        changes["updated_at"] = _utcnow()

    def remove(self, record_id: str) -> None:
        """Delete a profile together with everything that depends on it."""
        self._store.delete_profile(record_id)


class FoodEntryCollection(RecordCollection[FoodEntry]):
    def _build(self, fields: dict) -> FoodEntry:
        timestamp = fields.pop("timestamp", None) or _utcnow()
        return FoodEntry(id=_new_id(), timestamp=timestamp, **fields)


class SymptomEntryCollection(RecordCollection[SymptomEntry]):
    def _build(self, fields: dict) -> SymptomEntry:
        now = _utcnow()
        start_time = fields.pop("start_time", None) or now
        return SymptomEntry(id=_new_id(), logged_at=now, start_time=start_time, **fields)


# =============================================================================
# Store
# =============================================================================


class RecordStore(ABC):
    """
    Abstract record store.

    Backends implement raw key access (``_load`` / ``_persist``); everything
    else, including JSON decoding, model validation and the profile cascade,
    lives here so all backends behave the same.
    """

    def __init__(self):
        self.profiles = ProfileCollection(self, USER_PROFILES_KEY, Profile)
        self.food_entries = FoodEntryCollection(self, FOOD_LOG_KEY, FoodEntry)
        self.symptom_entries = SymptomEntryCollection(
            self, SYMPTOM_LOG_KEY, SymptomEntry
        )

    @abstractmethod
    def _load(self, key: str) -> Optional[str]:
        """
        Return the raw JSON text stored under key, or None.

        Raises StoreUnavailableError when the backend can't be reached.
        """
        pass

    @abstractmethod
    def _persist(self, changes: dict[str, Optional[str]]) -> None:
        """
        Apply all changes as one unit (None deletes the key).

        Raises StoreWriteError and leaves the store untouched on failure.
        """
        pass

    def _read(self, key: str) -> Any:
        try:
            text = self._load(key)
        except StoreUnavailableError as e:
            logger.warning("Record store unavailable while reading %s: %s", key, e)
            return None

        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.error("Corrupt JSON stored under %s: %s", key, e)
            return None

    def _read_strict(self, key: str) -> Any:
        """Like ``_read`` but raises StoreWriteError instead of degrading."""
        try:
            text = self._load(key)
        except StoreUnavailableError as e:
            logger.warning("Record store unavailable while reading %s: %s", key, e)
            raise StoreWriteError("Could not load data") from e

        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.error("Corrupt JSON stored under %s: %s", key, e)
            raise StoreWriteError(f"Stored data under {key} is corrupt") from e

    def _write(self, values: dict[str, Any], touch: bool = True) -> None:
        changes = {
            key: None if value is None else json.dumps(_to_json(value))
            for key, value in values.items()
        }
        if touch:
            changes[LAST_ACTIVITY_KEY] = json.dumps(_utcnow().isoformat())
        self._persist(changes)

    # -------------------------------------------------------------------------
    # Profiles cascade
    # -------------------------------------------------------------------------

    def delete_profile(self, profile_id: str) -> bool:
        """
        Delete a profile, strip it from food entries and drop its symptoms.

        All three collections are written in a single unit. Returns False if
        the profile did not exist.
        """
        profiles = self.profiles.load_for_write()
        remaining = [p for p in profiles if p.id != profile_id]
        if len(remaining) == len(profiles):
            return False

        food_entries = self.food_entries.load_for_write()
        for entry in food_entries:
            if profile_id in entry.profile_ids:
                entry.profile_ids = [pid for pid in entry.profile_ids if pid != profile_id]

        symptom_entries = [
            s for s in self.symptom_entries.load_for_write() if s.profile_id != profile_id
        ]

        self._write(
            {
                USER_PROFILES_KEY: remaining,
                FOOD_LOG_KEY: food_entries,
                SYMPTOM_LOG_KEY: symptom_entries,
            }
        )
        logger.info("Deleted profile %s and its dependent records", profile_id)
        return True

    def prune_orphans(self) -> dict[str, int]:
        """
        Remove references to profiles that no longer exist.

        Returns {"food_refs_removed": int, "symptoms_removed": int}.
        """
        known = {p.id for p in self.profiles.load_for_write()}

        refs_removed = 0
        food_entries = self.food_entries.load_for_write()
        for entry in food_entries:
            kept = [pid for pid in entry.profile_ids if pid in known]
            refs_removed += len(entry.profile_ids) - len(kept)
            entry.profile_ids = kept

        symptom_entries = self.symptom_entries.load_for_write()
        kept_symptoms = [s for s in symptom_entries if s.profile_id in known]
        symptoms_removed = len(symptom_entries) - len(kept_symptoms)

        if refs_removed or symptoms_removed:
            self._write({FOOD_LOG_KEY: food_entries, SYMPTOM_LOG_KEY: kept_symptoms})

        return {"food_refs_removed": refs_removed, "symptoms_removed": symptoms_removed}

    # -------------------------------------------------------------------------
    # Singletons
    # -------------------------------------------------------------------------

    def get_app_settings(self) -> AppSettings:
        raw = self._read(APP_SETTINGS_KEY)
        if not isinstance(raw, dict):
            return AppSettings()
        try:
            return AppSettings.model_validate(raw)
        except ValidationError as e:
            logger.error("Stored app settings are invalid: %s", e)
            return AppSettings()

    def save_app_settings(self, app_settings: AppSettings) -> None:
        self._write({APP_SETTINGS_KEY: app_settings})

    def get_ai_suggestion(self) -> Optional[AdvisorySuggestion]:
        raw = self._read(AI_SUGGESTIONS_KEY)
        if raw is None:
            return None
        try:
            return AdvisorySuggestion.model_validate(raw)
        except ValidationError as e:
            logger.error("Stored AI suggestion is invalid: %s", e)
            return None

    def save_ai_suggestion(self, suggestion: AdvisorySuggestion) -> None:
        self._write({AI_SUGGESTIONS_KEY: suggestion})

    def clear_ai_suggestion(self) -> None:
        self._write({AI_SUGGESTIONS_KEY: None}, touch=False)

    def get_last_activity(self) -> Optional[datetime]:
        raw = self._read(LAST_ACTIVITY_KEY)
        if not isinstance(raw, str):
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            logger.error("Stored last activity timestamp is invalid: %r", raw)
            return None

    # -------------------------------------------------------------------------
    # Bulk
    # -------------------------------------------------------------------------

    def replace_all(
        self,
        profiles: list[Profile],
        food_entries: list[FoodEntry],
        symptom_entries: list[SymptomEntry],
        app_settings: Optional[AppSettings] = None,
    ) -> None:
        """Overwrite every collection in one unit (settings only if given)."""
        values: dict[str, Any] = {
            USER_PROFILES_KEY: profiles,
            FOOD_LOG_KEY: food_entries,
            SYMPTOM_LOG_KEY: symptom_entries,
        }
        if app_settings is not None:
            values[APP_SETTINGS_KEY] = app_settings
        self._write(values)


class SqlRecordStore(RecordStore):
    """Record store backed by the ``store_entries`` table."""

    def __init__(self, db: Session):
        super().__init__()
        self.db = db

    def _load(self, key: str) -> Optional[str]:
        try:
            entry = self.db.get(StoreEntry, key)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailableError(str(e)) from e
        return entry.value if entry else None

    def _persist(self, changes: dict[str, Optional[str]]) -> None:
        try:
            for key, value in changes.items():
                entry = self.db.get(StoreEntry, key)
                if value is None:
                    if entry is not None:
                        self.db.delete(entry)
                elif entry is None:
                    self.db.add(StoreEntry(key=key, value=value))
                else:
                    entry.value = value
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Record store write failed for %s: %s", sorted(changes), e)
            raise StoreWriteError("Could not save data") from e


class InMemoryRecordStore(RecordStore):
    """Dict-backed record store, for tests and one-off tooling."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        super().__init__()
        self.data: dict[str, str] = dict(initial or {})

    def _load(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def _persist(self, changes: dict[str, Optional[str]]) -> None:
        updated = dict(self.data)
        for key, value in changes.items():
            if value is None:
                updated.pop(key, None)
            else:
                updated[key] = value
        self.data = updated


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class StoreUnavailableError(Exception):
    """Persistence backend can't be reached."""

    pass


class StoreWriteError(Exception):
    """A write failed and was rolled back."""

    pass
