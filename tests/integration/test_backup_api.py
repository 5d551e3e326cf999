"""
Integration tests for the backup API.

Tests export download, import error reporting and orphan cleanup.
"""
import json

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.services.record_store import SqlRecordStore
from tests.factories import backup_document, create_profile, create_symptom_entry


class TestExport:
    def test_export_download(self, client: TestClient):
        client.post("/profiles", json={"name": "Alex"})

        response = client.get("/backup/export")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="allergycare-backup-')
        assert disposition.endswith('.json"')
        document = response.json()
        assert document["version"] == "1.0"
        assert [p["name"] for p in document["userProfiles"]] == ["Alex"]


class TestImport:
    """Tests for POST /backup/import."""

    def test_import_replaces_data(self, client: TestClient):
        client.post("/profiles", json={"name": "Someone else"})

        response = client.post("/backup/import", content=json.dumps(backup_document()))

        assert response.status_code == 200
        data = response.json()
        assert data["imported"] == {
            "userProfiles": 1,
            "foodEntries": 1,
            "symptomEntries": 1,
            "appSettings": True,
        }
        assert data["warnings"] == []
        assert [p["id"] for p in client.get("/profiles").json()] == ["p1"]

    def test_export_then_import_round_trip(self, client: TestClient):
        client.post("/backup/import", content=json.dumps(backup_document()))
        exported = client.get("/backup/export").json()

        client.post("/backup/import", content=json.dumps(exported))
        again = client.get("/backup/export").json()

        for collection in ("userProfiles", "foodEntries", "symptomEntries", "appSettings"):
            assert again[collection] == exported[collection]

    def test_version_mismatch_is_a_warning(self, client: TestClient):
        response = client.post(
            "/backup/import", content=json.dumps(backup_document(version="0.9"))
        )

        assert response.status_code == 200
        assert len(response.json()["warnings"]) == 1

    def test_not_json(self, client: TestClient):
        response = client.post("/backup/import", content="definitely not json")

        assert response.status_code == 400
        assert response.json()["error"] == "malformed_document"

    def test_not_a_backup(self, client: TestClient):
        client.post("/profiles", json={"name": "Alex"})

        response = client.post("/backup/import", content=json.dumps({"foodEntries": []}))

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_schema"
        assert [p["name"] for p in client.get("/profiles").json()] == ["Alex"]

    def test_malformed_record(self, client: TestClient):
        document = backup_document()
        document["userProfiles"][0].pop("name")

        response = client.post("/backup/import", content=json.dumps(document))

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_record_shape"
        assert "userProfiles" in response.json()["detail"]


class TestClean:
    def test_clean_removes_orphans(self, client: TestClient, db: Session):
        store = SqlRecordStore(db)
        profile = create_profile(store)
        create_symptom_entry(store, profile)
        # Drop the profile without the cascade
        store.replace_all([], store.food_entries.get_all(), store.symptom_entries.get_all())

        response = client.post("/backup/clean")

        assert response.status_code == 200
        assert response.json() == {"foodRefsRemoved": 0, "symptomsRemoved": 1}
        assert client.get("/symptoms").json() == []
