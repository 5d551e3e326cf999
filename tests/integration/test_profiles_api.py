"""
Integration tests for Profiles API.

Tests profile CRUD and the cascade on delete.
"""
from fastapi.testclient import TestClient


def _create_profile(client: TestClient, name: str = "Alex", **fields) -> dict:
    response = client.post("/profiles", json={"name": name, **fields})
    assert response.status_code == 201
    return response.json()


class TestProfileCrud:
    """Tests for create / read / update."""

    def test_create_profile(self, client: TestClient):
        response = client.post(
            "/profiles",
            json={"name": "Alex", "knownAllergies": ["peanut"], "dateOfBirth": "1990-05-01"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Alex"
        assert data["knownAllergies"] == ["peanut"]
        assert data["dateOfBirth"] == "1990-05-01"
        assert data["id"]
        assert data["createdAt"] == data["updatedAt"]

    def test_create_accepts_snake_case(self, client: TestClient):
        data = _create_profile(client, known_allergies=["milk"])

        assert data["knownAllergies"] == ["milk"]

    def test_create_requires_name(self, client: TestClient):
        response = client.post("/profiles", json={"name": ""})

        assert response.status_code == 422

    def test_list_profiles(self, client: TestClient):
        _create_profile(client, "Alex")
        _create_profile(client, "Sam")

        response = client.get("/profiles")

        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["Alex", "Sam"]

    def test_get_profile(self, client: TestClient):
        profile = _create_profile(client)

        response = client.get(f"/profiles/{profile['id']}")

        assert response.status_code == 200
        assert response.json()["id"] == profile["id"]

    def test_get_unknown_profile(self, client: TestClient):
        response = client.get("/profiles/does-not-exist")

        assert response.status_code == 404

    def test_update_profile_partial(self, client: TestClient):
        profile = _create_profile(client, "Alex", gender="male")

        response = client.put(f"/profiles/{profile['id']}", json={"weight": 72.5})

        assert response.status_code == 200
        data = response.json()
        assert data["weight"] == 72.5
        assert data["gender"] == "male"
        assert data["createdAt"] == profile["createdAt"]

    def test_update_unknown_profile(self, client: TestClient):
        response = client.put("/profiles/does-not-exist", json={"name": "X"})

        assert response.status_code == 404


class TestProfileDelete:
    """Deleting a profile cascades to food and symptom entries."""

    def test_delete_cascades(self, client: TestClient):
        alex = _create_profile(client, "Alex")
        sam = _create_profile(client, "Sam")
        meal = client.post(
            "/food-entries",
            json={"foodItems": "Milk", "profileIds": [alex["id"], sam["id"]]},
        ).json()
        client.post(
            "/symptoms",
            json={
                "symptom": "Hives",
                "category": "skin",
                "severity": 5,
                "profileId": alex["id"],
            },
        )

        response = client.delete(f"/profiles/{alex['id']}")

        assert response.status_code == 204
        assert client.get(f"/profiles/{alex['id']}").status_code == 404
        assert client.get(f"/food-entries/{meal['id']}").json()["profileIds"] == [sam["id"]]
        assert client.get("/symptoms").json() == []

    def test_delete_unknown_profile(self, client: TestClient):
        response = client.delete("/profiles/does-not-exist")

        assert response.status_code == 404
