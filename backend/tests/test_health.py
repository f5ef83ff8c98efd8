from app.api.routes import scheduling
from app.core.config import Settings


def test_health_endpoints(client):
    assert client.get("/api/health").json() == {"status": "ok"}

    live = client.get("/api/health/live")
    assert live.status_code == 200
    assert live.json()["status"] == "ok"

    ready = client.get("/api/health/ready")
    assert ready.status_code == 200
    payload = ready.json()
    assert payload["scheduler"]["ok"] is True
    assert payload["scheduler"]["heuristic_section_threshold"] == 10


def test_ready_degrades_on_invalid_scheduler_config(client, monkeypatch):
    monkeypatch.setattr(
        scheduling,
        "get_settings",
        lambda: Settings(scheduler_population_size=5, scheduler_elite_count=5),
    )
    ready = client.get("/api/health/ready")

    assert ready.status_code == 503
    payload = ready.json()
    assert payload["status"] == "degraded"
    assert "Invalid scheduler configuration" in payload["scheduler"]["error"]


def test_invalid_scheduler_config_surfaces_as_app_error(client, monkeypatch):
    monkeypatch.setattr(
        scheduling,
        "get_settings",
        lambda: Settings(scheduler_tournament_size=0),
    )
    response = client.get("/api/scheduling/settings")

    assert response.status_code == 500
    assert "Invalid scheduler configuration" in response.json()["message"]
