"""Backup codec: export the whole record store as one JSON document and restore it."""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, List, Optional

from pydantic import ValidationError

from app.config import settings
from app.services.record_schemas import (
    AppSettings,
    FoodEntry,
    Profile,
    RecordModel,
    SymptomEntry,
)
from app.services.record_store import RecordStore


logger = logging.getLogger(__name__)

REQUIRED_COLLECTIONS = ("foodEntries", "symptomEntries", "userProfiles")

# Older backups stored severities and categories as labels
LEGACY_SEVERITY_LEVELS = {
    "mild": 3,
    "moderate": 6,
    "severe": 9,
    "leicht": 3,
    "mittel": 6,
    "schwer": 9,
}
LEGACY_CATEGORIES = {
    "hautreaktionen": "skin",
    "skin reactions": "skin",
    "magen-darm": "digestive",
    "atmung": "respiratory",
    "allgemeinzustand": "general",
}


def _normalize_legacy_severity(document: dict) -> dict:
    for entry in document["symptomEntries"]:
        if isinstance(entry, dict) and isinstance(entry.get("severity"), str):
            level = LEGACY_SEVERITY_LEVELS.get(entry["severity"].strip().lower())
            if level is not None:
                entry["severity"] = level
    return document


def _normalize_legacy_category(document: dict) -> dict:
    for entry in document["symptomEntries"]:
        if isinstance(entry, dict) and isinstance(entry.get("category"), str):
            category = LEGACY_CATEGORIES.get(entry["category"].strip().lower())
            if category is not None:
                entry["category"] = category
    return document


# Applied in order to every imported document before validation. Each step
# must be idempotent, documents of the current version pass through unchanged.
DOCUMENT_UPGRADES: List[Callable[[dict], dict]] = [
    _normalize_legacy_severity,
    _normalize_legacy_category,
]


@dataclass
class ImportResult:
    profiles: int
    food_entries: int
    symptom_entries: int
    app_settings_restored: bool
    warnings: List[str] = field(default_factory=list)


class BackupService:
    """Snapshots and restores the record store as a whole."""

    def __init__(self, store: RecordStore):
        self.store = store

    # =========================================================================
    # EXPORT
    # =========================================================================

    def export_document(self) -> dict:
        """Current store contents wrapped with exportDate and version."""
        return {
            "foodEntries": [e.to_storage() for e in self.store.food_entries.get_all()],
            "symptomEntries": [
                e.to_storage() for e in self.store.symptom_entries.get_all()
            ],
            "userProfiles": [p.to_storage() for p in self.store.profiles.get_all()],
            "appSettings": self.store.get_app_settings().to_storage(),
            "exportDate": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "version": settings.backup_version,
        }

    def export_json(self) -> str:
        return json.dumps(self.export_document(), indent=2, ensure_ascii=False)

    @staticmethod
    def backup_filename(today: Optional[date] = None) -> str:
        today = today or datetime.now(timezone.utc).date()
        return f"allergycare-backup-{today.isoformat()}.json"

    # =========================================================================
    # IMPORT
    # =========================================================================

    def import_json(self, text: str | bytes) -> ImportResult:
        """
        Validate a backup document and overwrite the store with it.

        Nothing is written unless the whole document validates.

        Raises:
            MalformedDocumentError: text is not JSON
            InvalidSchemaError: JSON, but not a backup document
            InvalidRecordShapeError: a backup with a malformed record
            StoreWriteError: the final write failed (store left unchanged)
        """
        try:
            document = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedDocumentError("The file is not valid JSON.") from e

        if not isinstance(document, dict):
            raise InvalidSchemaError("The file is JSON but not an AllergyCare backup.")

        missing = [
            name for name in REQUIRED_COLLECTIONS if not isinstance(document.get(name), list)
        ]
        if missing:
            raise InvalidSchemaError(
                "The file is JSON but not an AllergyCare backup "
                f"(missing or invalid: {', '.join(missing)})."
            )

        warnings: List[str] = []
        version = document.get("version")
        if version != settings.backup_version:
            message = (
                f"Backup version {version!r} differs from current version "
                f"{settings.backup_version!r}; imported as-is."
            )
            logger.warning(message)
            warnings.append(message)

        for upgrade in DOCUMENT_UPGRADES:
            document = upgrade(document)

        profiles = self._validate_records(document, "userProfiles", Profile)
        food_entries = self._validate_records(document, "foodEntries", FoodEntry)
        symptom_entries = self._validate_records(document, "symptomEntries", SymptomEntry)

        app_settings = None
        if document.get("appSettings") is not None:
            try:
                app_settings = AppSettings.model_validate(document["appSettings"])
            except ValidationError as e:
                raise InvalidRecordShapeError(
                    f"The backup's appSettings are malformed: {_first_error(e)}",
                    collection="appSettings",
                ) from e

        profile_ids = {p.id for p in profiles}
        orphans = sum(1 for s in symptom_entries if s.profile_id not in profile_ids)
        if orphans:
            warnings.append(
                f"{orphans} symptom entries reference profiles missing from the backup."
            )

        self.store.replace_all(profiles, food_entries, symptom_entries, app_settings)

        logger.info(
            "Imported backup: %d profiles, %d food entries, %d symptom entries",
            len(profiles),
            len(food_entries),
            len(symptom_entries),
        )

        return ImportResult(
            profiles=len(profiles),
            food_entries=len(food_entries),
            symptom_entries=len(symptom_entries),
            app_settings_restored=app_settings is not None,
            warnings=warnings,
        )

    def _validate_records(
        self, document: dict, collection: str, model: type[RecordModel]
    ) -> list:
        records = []
        for index, item in enumerate(document[collection]):
            try:
                records.append(model.model_validate(item))
            except ValidationError as e:
                raise InvalidRecordShapeError(
                    f"Record {index} in {collection} is malformed: {_first_error(e)}",
                    collection=collection,
                    index=index,
                ) from e
        return records


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "record"
    return f"{location}: {first['msg']}"


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class BackupImportError(Exception):
    """Import aborted; the store was not modified."""

    kind = "import_failed"


class MalformedDocumentError(BackupImportError):
    """The file isn't JSON."""

    kind = "malformed_document"


class InvalidSchemaError(BackupImportError):
    """The file is JSON but not a backup document."""

    kind = "invalid_schema"


class InvalidRecordShapeError(BackupImportError):
    """The file is a backup but one of its records is malformed."""

    kind = "invalid_record_shape"

    def __init__(self, message: str, collection: str, index: Optional[int] = None):
        super().__init__(message)
        self.collection = collection
        self.index = index
