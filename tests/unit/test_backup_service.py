"""
Unit tests for the backup codec.

Tests export shape, import validation, atomicity and legacy upgrades.
"""
import json
from datetime import date

import pytest

from app.services.backup_service import (
    BackupService,
    InvalidRecordShapeError,
    InvalidSchemaError,
    MalformedDocumentError,
)
from app.services.record_schemas import AppSettings
from app.services.record_store import InMemoryRecordStore
from tests.factories import (
    backup_document,
    create_food_entry,
    create_profile,
    create_symptom_entry,
)


def _populated_store() -> InMemoryRecordStore:
    store = InMemoryRecordStore()
    alex = create_profile(store, "Alex", known_allergies=["peanut"])
    sam = create_profile(store, "Sam")
    food = create_food_entry(store, [alex, sam], food_items="Milk, Bread")
    create_symptom_entry(store, alex, linked_food_entry_id=food.id)
    store.save_app_settings(AppSettings(name="Household", notes="Spring"))
    return store


def _snapshot(store: InMemoryRecordStore) -> dict:
    return {
        "profiles": [p.to_storage() for p in store.profiles.get_all()],
        "food": [e.to_storage() for e in store.food_entries.get_all()],
        "symptoms": [s.to_storage() for s in store.symptom_entries.get_all()],
        "settings": store.get_app_settings().to_storage(),
    }


class TestExport:
    """Tests for export_document / export_json."""

    def test_document_shape(self):
        store = _populated_store()

        document = BackupService(store).export_document()

        assert set(document) == {
            "foodEntries",
            "symptomEntries",
            "userProfiles",
            "appSettings",
            "exportDate",
            "version",
        }
        assert document["version"] == "1.0"
        assert document["exportDate"].endswith("Z")
        assert document["appSettings"] == {"name": "Household", "notes": "Spring"}
        assert document["foodEntries"][0]["foodItems"] == "Milk, Bread"
        assert len(document["foodEntries"][0]["profileIds"]) == 2
        assert "linkedFoodEntryId" in document["symptomEntries"][0]
        assert document["userProfiles"][0]["knownAllergies"] == ["peanut"]

    def test_export_is_pure(self):
        store = _populated_store()
        before = dict(store.data)

        BackupService(store).export_json()

        assert store.data == before

    def test_backup_filename(self):
        assert (
            BackupService.backup_filename(date(2024, 3, 9))
            == "allergycare-backup-2024-03-09.json"
        )


class TestImport:
    """Tests for import_json."""

    def test_round_trip(self):
        """Importing an export into an empty store reproduces the same records."""
        source = _populated_store()
        exported = BackupService(source).export_json()

        target = InMemoryRecordStore()
        result = BackupService(target).import_json(exported)

        assert _snapshot(target) == _snapshot(source)
        assert result.profiles == 2
        assert result.food_entries == 1
        assert result.symptom_entries == 1
        assert result.app_settings_restored is True
        assert result.warnings == []

    def test_import_overwrites_existing_data(self):
        store = _populated_store()

        BackupService(store).import_json(json.dumps(backup_document()))

        assert [p.id for p in store.profiles.get_all()] == ["p1"]
        assert [e.id for e in store.food_entries.get_all()] == ["f1"]
        assert [s.id for s in store.symptom_entries.get_all()] == ["s1"]
        assert store.get_app_settings().notes == "Pollen season"
        assert store.get_last_activity() is not None

    def test_accepts_bytes(self):
        store = InMemoryRecordStore()

        BackupService(store).import_json(json.dumps(backup_document()).encode("utf-8"))

        assert len(store.profiles.get_all()) == 1

    def test_missing_app_settings_keeps_current(self):
        store = _populated_store()
        document = backup_document()
        del document["appSettings"]

        result = BackupService(store).import_json(json.dumps(document))

        assert result.app_settings_restored is False
        assert store.get_app_settings().name == "Household"

    def test_older_version_imports_with_warning(self):
        store = InMemoryRecordStore()

        result = BackupService(store).import_json(json.dumps(backup_document(version="0.9")))

        assert len(result.warnings) == 1
        assert "0.9" in result.warnings[0]
        assert len(store.symptom_entries.get_all()) == 1

    def test_orphan_symptoms_warned(self):
        document = backup_document()
        document["symptomEntries"][0]["profileId"] = "gone"

        result = BackupService(InMemoryRecordStore()).import_json(json.dumps(document))

        assert any("reference profiles" in w for w in result.warnings)

    @pytest.mark.parametrize(
        "label, level", [("mild", 3), ("Moderate", 6), ("severe", 9), ("schwer", 9)]
    )
    def test_legacy_severity_labels_upgraded(self, label, level):
        document = backup_document()
        document["symptomEntries"][0]["severity"] = label

        store = InMemoryRecordStore()
        BackupService(store).import_json(json.dumps(document))

        assert store.symptom_entries.get_all()[0].severity == level

    def test_legacy_category_labels_upgraded(self):
        document = backup_document()
        document["symptomEntries"][0]["category"] = "Hautreaktionen"

        store = InMemoryRecordStore()
        BackupService(store).import_json(json.dumps(document))

        assert store.symptom_entries.get_all()[0].category == "skin"


class TestImportErrors:
    """Every failed import leaves the store exactly as it was."""

    def _assert_unchanged(self, store, before):
        assert store.data == before

    def test_not_json(self):
        store = _populated_store()
        before = dict(store.data)

        with pytest.raises(MalformedDocumentError) as exc_info:
            BackupService(store).import_json("this is not json {")

        assert exc_info.value.kind == "malformed_document"
        self._assert_unchanged(store, before)

    def test_not_an_object(self):
        store = _populated_store()
        before = dict(store.data)

        with pytest.raises(InvalidSchemaError):
            BackupService(store).import_json("[1, 2, 3]")

        self._assert_unchanged(store, before)

    def test_missing_user_profiles(self):
        """A document missing userProfiles leaves the store completely unmodified."""
        store = _populated_store()
        before = dict(store.data)
        document = backup_document()
        del document["userProfiles"]

        with pytest.raises(InvalidSchemaError) as exc_info:
            BackupService(store).import_json(json.dumps(document))

        assert "userProfiles" in str(exc_info.value)
        assert exc_info.value.kind == "invalid_schema"
        self._assert_unchanged(store, before)

    def test_collection_not_an_array(self):
        store = _populated_store()

        with pytest.raises(InvalidSchemaError):
            BackupService(store).import_json(
                json.dumps(backup_document(foodEntries={"id": "f1"}))
            )

    def test_malformed_record(self):
        store = _populated_store()
        before = dict(store.data)
        document = backup_document()
        del document["foodEntries"][0]["foodItems"]

        with pytest.raises(InvalidRecordShapeError) as exc_info:
            BackupService(store).import_json(json.dumps(document))

        assert exc_info.value.kind == "invalid_record_shape"
        assert exc_info.value.collection == "foodEntries"
        assert exc_info.value.index == 0
        assert "foodEntries" in str(exc_info.value)
        self._assert_unchanged(store, before)

    def test_unknown_severity_label_rejected(self):
        document = backup_document()
        document["symptomEntries"][0]["severity"] = "unbearable"

        with pytest.raises(InvalidRecordShapeError) as exc_info:
            BackupService(InMemoryRecordStore()).import_json(json.dumps(document))

        assert exc_info.value.collection == "symptomEntries"

    def test_malformed_app_settings(self):
        store = _populated_store()

        with pytest.raises(InvalidRecordShapeError) as exc_info:
            BackupService(store).import_json(
                json.dumps(backup_document(appSettings={"name": ["not", "a", "string"]}))
            )

        assert exc_info.value.collection == "appSettings"
        assert store.get_app_settings().name == "Household"
