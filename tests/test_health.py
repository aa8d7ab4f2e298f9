import pytest

pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from eduassess.main import app
from eduassess.settings import settings


@pytest.mark.parametrize(
    ("api_key", "expected_gemini_configured"),
    [("test-key", True), ("   ", False), ("", False)],
)
def test_health_returns_gemini_configuration_status(monkeypatch, api_key: str, expected_gemini_configured: bool) -> None:
    monkeypatch.setattr(settings, "gemini_api_key", api_key)

    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 200

    payload = response.json()
    assert payload["ok"] is True
    assert payload["gemini_configured"] is expected_gemini_configured
