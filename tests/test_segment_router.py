"""
Tests des routes /api/v1/segments (TestClient, base SQLite de test).
"""
from unittest.mock import patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from segmentiq.auth.jwt import jwt_manager
from segmentiq.core.database import get_session
from segmentiq.domain.entities.user import User
from segmentiq.domain.exceptions import StorageFailure
from segmentiq.domain.services import segment_analysis_service
from segmentiq.main import app
from tests.synthetic_rides import climb_ride_streams


@pytest.fixture
def client(session):
    def _override_session():
        yield session

    app.dependency_overrides[get_session] = _override_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(user) -> dict:
    token = jwt_manager.create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def analyzed(client, user, make_activity):
    """Activite montee analysee : 3 segments dans la bibliotheque."""
    activity = make_activity(climb_ride_streams(), distance=2600)
    response = client.post(f"/api/v1/segments/analyze/{activity.id}", headers=_auth(user))
    assert response.status_code == 200
    return activity


# ============================================================
# Sante et authentification
# ============================================================

class TestHealthAndAuth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_missing_token(self, client):
        response = client.get("/api/v1/segments")
        assert response.status_code == 401

    def test_invalid_token(self, client):
        response = client.get("/api/v1/segments", headers={"Authorization": "Bearer pas-un-jwt"})
        assert response.status_code == 401


# ============================================================
# Analyse
# ============================================================

class TestAnalyzeRoutes:
    def test_analyze_activity(self, client, user, make_activity):
        activity = make_activity(climb_ride_streams(), distance=2600)
        response = client.post(f"/api/v1/segments/analyze/{activity.id}", headers=_auth(user))
        assert response.status_code == 200
        data = response.json()
        assert data["activity_id"] == str(activity.id)
        assert data["success"] is True
        assert data["new_segments"] == 3

    def test_analyze_unknown_activity(self, client, user):
        response = client.post(f"/api/v1/segments/analyze/{uuid4()}", headers=_auth(user))
        assert response.status_code == 404
        assert response.json()["detail"] == "Activite non trouvee"

    def test_analyze_too_short_is_not_an_http_error(self, client, user, make_activity):
        activity = make_activity(climb_ride_streams(), distance=1000)
        response = client.post(f"/api/v1/segments/analyze/{activity.id}", headers=_auth(user))
        assert response.status_code == 200
        assert response.json()["error"] == "Activity too short"

    def test_storage_failure(self, client, user, make_activity):
        activity = make_activity(climb_ride_streams(), distance=2600)
        with patch.object(segment_analysis_service, "analyze_activity", side_effect=StorageFailure("boom")):
            response = client.post(f"/api/v1/segments/analyze/{activity.id}", headers=_auth(user))
        assert response.status_code == 500

    def test_backlog(self, client, user, make_activity):
        make_activity(climb_ride_streams(), distance=2600)
        response = client.post("/api/v1/segments/analyze", headers=_auth(user))
        assert response.status_code == 200
        data = response.json()
        assert data["processed"] == 1
        assert data["new_segments"] == 3

    @pytest.mark.parametrize("query,expected_limit", [("", 20), ("?limit=5", 5), ("?limit=500", 50)])
    def test_backlog_limit_clamped(self, client, user, query, expected_limit):
        with patch.object(segment_analysis_service, "analyze_backlog", return_value={"success": True}) as mock_backlog:
            response = client.post(f"/api/v1/segments/analyze{query}", headers=_auth(user))
        assert response.status_code == 200
        assert mock_backlog.call_args.args[2] == expected_limit


# ============================================================
# Bibliotheque
# ============================================================

class TestLibraryRoutes:
    def test_list(self, client, user, analyzed):
        response = client.get("/api/v1/segments", headers=_auth(user))
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 3
        for segment in data["segments"]:
            assert segment["display_name"] == segment["auto_name"]
            assert segment["profile"] is not None

    def test_list_filter_and_sort(self, client, user, analyzed):
        climbs = client.get("/api/v1/segments?terrain_type=climb", headers=_auth(user)).json()
        assert climbs["count"] == 1
        assert climbs["segments"][0]["terrain_type"] == "climb"

        by_distance = client.get("/api/v1/segments?sort_by=distance", headers=_auth(user)).json()
        distances = [s["distance_meters"] for s in by_distance["segments"]]
        assert distances == sorted(distances, reverse=True)

    def test_list_invalid_limit(self, client, user):
        response = client.get("/api/v1/segments?limit=0", headers=_auth(user))
        assert response.status_code == 422

    def test_detail(self, client, user, analyzed):
        segment_id = client.get("/api/v1/segments", headers=_auth(user)).json()["segments"][0]["id"]
        response = client.get(f"/api/v1/segments/{segment_id}", headers=_auth(user))
        assert response.status_code == 200
        data = response.json()
        assert data["geojson"]["type"] == "LineString"
        assert len(data["rides"]) == 1
        assert data["rides"][0]["activity_id"] == str(analyzed.id)

    def test_detail_unknown(self, client, user):
        response = client.get(f"/api/v1/segments/{uuid4()}", headers=_auth(user))
        assert response.status_code == 404

    def test_rename(self, client, user, analyzed):
        segment_id = client.get("/api/v1/segments", headers=_auth(user)).json()["segments"][0]["id"]
        response = client.patch(
            f"/api/v1/segments/{segment_id}/name",
            json={"custom_name": "Col du matin"},
            headers=_auth(user),
        )
        assert response.status_code == 200
        assert response.json()["display_name"] == "Col du matin"

    def test_rename_foreign_segment(self, client, session, user, analyzed):
        other = User(email="other@example.com", full_name="Other Rider")
        session.add(other)
        session.commit()
        segment_id = client.get("/api/v1/segments", headers=_auth(user)).json()["segments"][0]["id"]

        response = client.patch(
            f"/api/v1/segments/{segment_id}/name",
            json={"custom_name": "Pas a moi"},
            headers=_auth(other),
        )
        assert response.status_code == 404
