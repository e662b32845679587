import time

from fastapi.testclient import TestClient


def test_server_time_is_epoch_ms(client: TestClient) -> None:
    before = int(time.time() * 1000)
    response = client.get("/api/server-time")
    after = int(time.time() * 1000)

    assert response.status_code == 200
    assert before - 1 <= response.json()["serverTime"] <= after + 1


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_root(client: TestClient) -> None:
    body = client.get("/").json()

    assert body["name"] == "QR Presence"
    assert body["docs"] == "/docs"
