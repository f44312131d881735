from fastapi.testclient import TestClient

from briefgate.app.core.config import settings
from briefgate.app.main import create_app
from briefgate.app.providers import MockProvider, OpenAIProvider, set_provider


def test_health():
    set_provider(MockProvider(min_delay=0.0, max_delay=0.0))
    client = TestClient(create_app())

    resp = client.get("/health")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["components"]["gate_store"] == {"status": "ok", "type": "memory"}
    assert data["components"]["provider"] == {"status": "ok", "name": "mock"}


def test_health_degraded_without_api_key():
    set_provider(OpenAIProvider(base_url="https://api.openai.test/v1", api_key=""))
    client = TestClient(create_app())

    data = client.get("/health").json()

    assert data["status"] == "degraded"
    assert data["components"]["provider"]["status"] == "error"


def test_lifespan_opens_and_releases_resources(monkeypatch):
    monkeypatch.setattr(settings, "mock_provider", True)

    with TestClient(create_app()) as client:
        data = client.get("/health").json()
        assert data["components"]["provider"]["name"] == "mock"
