from fastapi.testclient import TestClient

from conftest import InMemoryGateway
from cronbeat.main import app, get_gateway

client = TestClient(app)


def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_list_user_crons(gateway):
    app.dependency_overrides[get_gateway] = lambda: gateway
    try:
        resp = client.get("/crons/www-data")
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 200
    body = resp.json()
    assert body[0]["command"] == "/usr/bin/backup.sh"
    assert body[0]["period_seconds"] == 600
    assert len(body[0]["next_runs"]) == 3
    assert body[2]["monitored"] is True


def test_list_user_crons_errors():
    app.dependency_overrides[get_gateway] = lambda: InMemoryGateway()
    try:
        assert client.get("/crons/ab").status_code == 422
        assert client.get("/crons/nobody").status_code == 404
    finally:
        app.dependency_overrides.clear()
