import pytest
from fastapi.testclient import TestClient

from meetpoint.errors import ProviderAuthenticationError
from meetpoint.main import create_app
from meetpoint.schemas.meeting_points import FindOptimalLocationsRequest, LocationInput
from meetpoint.services.providers import HaversineMatrixProvider


class FailingProvider:
    async def fetch_travel_times(self, origins, destinations, mode):
        raise ProviderAuthenticationError("rejected")


@pytest.fixture
def api_client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    from meetpoint.services.meeting_points import service as meeting_points_service

    monkeypatch.setattr(meeting_points_service, "build_matrix_provider", lambda: HaversineMatrixProvider())
    return TestClient(create_app())


def _request(**overrides) -> dict:
    request = FindOptimalLocationsRequest(
        locations=[
            LocationInput(name="Alice", latitude=52.52, longitude=13.40),
            LocationInput(name="Bob", latitude=52.48, longitude=13.30),
            LocationInput(name="Carol", latitude=52.45, longitude=13.46, id="carol"),
        ],
    )
    payload = request.model_dump(mode="json")
    payload.update(overrides)
    return payload


def test_health(api_client: TestClient):
    response = api_client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_provider_health_reports_configuration(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    from meetpoint.config import settings

    monkeypatch.setattr(settings, "openroute_api_key", None)
    response = api_client.get("/api/health/provider", params={"probe": True})
    assert response.status_code == 200
    payload = response.json()
    assert payload["provider"] == "haversine"
    assert payload["api_key_configured"] is False
    assert payload["healthy"] is True


def test_find_optimal_points(api_client: TestClient):
    response = api_client.post("/api/meeting-points/optimal", json=_request(top_m=2, grid_size=4))

    assert response.status_code == 200
    payload = response.json()
    assert [point["rank"] for point in payload["optimal_points"]] == [1, 2]
    best = payload["optimal_points"][0]
    assert best["phase"] == "FINAL_OUTPUT"
    assert best["score"] == best["travel_time_metrics"]["max_travel_time"]
    assert payload["total_hypothesis_points"] == 8 + 16
    assert len(payload["debug_points"]) == payload["total_hypothesis_points"]
    assert payload["matrix_api_calls"] == 1
    statuses = {point["status"] for point in payload["debug_points"]}
    assert statuses <= {"scored", "unscored", "merged"}


def test_goal_aliases_are_accepted(api_client: TestClient):
    response = api_client.post(
        "/api/meeting-points/optimal",
        json=_request(optimization_goal="MINIMIZE_VARIANCE", grid_size=3),
    )
    assert response.status_code == 200
    best = response.json()["optimal_points"][0]
    assert best["score"] == pytest.approx(best["travel_time_metrics"]["variance"])


def test_local_refinement_over_http(api_client: TestClient):
    response = api_client.post(
        "/api/meeting-points/optimal",
        json=_request(grid_size=3, enable_local_refinement=True, refinement_top_k=1),
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["total_hypothesis_points"] == 8 + 9 + 9
    assert payload["matrix_api_calls"] == 2


def test_validation_errors_map_to_400(api_client: TestClient):
    payload = _request()
    payload["locations"] = payload["locations"][:1]
    response = api_client.post("/api/meeting-points/optimal", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INSUFFICIENT_LOCATIONS"

    response = api_client.post("/api/meeting-points/optimal", json=_request(grid_size=50))
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_CONFIGURATION"


def test_provider_failure_maps_to_502(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    from meetpoint.services.meeting_points import service as meeting_points_service

    monkeypatch.setattr(meeting_points_service, "build_matrix_provider", lambda: FailingProvider())
    response = api_client.post("/api/meeting-points/optimal", json=_request())
    assert response.status_code == 502
    detail = response.json()["detail"]
    assert detail["code"] == "MATRIX_ACQUISITION_FAILED"
    assert detail["user_message"] == ProviderAuthenticationError.default_user_message


def test_parse_coordinates_endpoint(api_client: TestClient):
    response = api_client.get("/api/meeting-points/coordinates/parse", params={"text": " 40.712776, -74.005974 "})
    assert response.status_code == 200
    assert response.json() == {
        "valid": True,
        "coordinate": {"latitude": 40.712776, "longitude": -74.005974},
        "formatted": "40.7128, -74.0060",
    }

    response = api_client.get("/api/meeting-points/coordinates/parse", params={"text": "91,0"})
    assert response.json() == {"valid": False, "coordinate": None, "formatted": None}
