"""
Integration tests for the quick stats API.
"""
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.services.record_store import SqlRecordStore
from tests.factories import create_food_entry, create_profile, create_symptom_entry


class TestQuickStats:
    def test_empty_store(self, client: TestClient):
        response = client.get("/stats")

        assert response.status_code == 200
        assert response.json() == {
            "totalMeals": 0,
            "totalSymptoms": 0,
            "totalProfiles": 0,
            "recentMeals": 0,
            "recentSymptoms": 0,
            "lastActivity": None,
        }

    def test_totals_and_last_seven_days(self, client: TestClient, db: Session):
        store = SqlRecordStore(db)
        now = datetime.now(timezone.utc)
        alex = create_profile(store, "Alex")
        create_profile(store, "Sam")
        create_food_entry(store, [alex], timestamp=now - timedelta(days=1))
        create_food_entry(store, [alex], timestamp=now - timedelta(days=6))
        create_food_entry(store, [alex], timestamp=now - timedelta(days=10))
        create_symptom_entry(store, alex, start_time=now - timedelta(hours=3))
        create_symptom_entry(store, alex, start_time=now - timedelta(days=30))

        data = client.get("/stats").json()

        assert data["totalMeals"] == 3
        assert data["totalSymptoms"] == 2
        assert data["totalProfiles"] == 2
        assert data["recentMeals"] == 2
        assert data["recentSymptoms"] == 1

    def test_last_activity_follows_writes(self, client: TestClient):
        before = datetime.now(timezone.utc)
        client.post("/profiles", json={"name": "Alex"})

        raw = client.get("/stats").json()["lastActivity"]
        last_activity = datetime.fromisoformat(raw.replace("Z", "+00:00"))

        assert last_activity >= before
