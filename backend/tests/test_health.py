from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from rescue_app.db.session import get_async_db_session
from rescue_app.main import app

client = TestClient(app)


class FakeSession:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail

    async def execute(self, statement):  # noqa: ARG002
        if self.fail:
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))
        return None


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_healthz_reports_connected_database():
    app.dependency_overrides[get_async_db_session] = lambda: FakeSession()
    try:
        response = client.get("/healthz")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    body = response.json()
    assert body["checks"] == {"database": "connected", "redis": "not_configured"}


def test_healthz_degraded_when_database_unreachable():
    app.dependency_overrides[get_async_db_session] = lambda: FakeSession(fail=True)
    try:
        response = client.get("/healthz")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"
