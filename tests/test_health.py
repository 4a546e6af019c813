# tests/test_health.py
from typing import Any


def test_health(client: Any) -> None:
    """The health endpoint answers without authentication."""
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_root_describes_service(client: Any) -> None:
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["name"] == "Threadline"


def test_unknown_route_uses_error_shape(client: Any) -> None:
    r = client.get("/api/nowhere")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}
