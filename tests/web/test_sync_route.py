"""Tests for the /sync endpoint."""

from fastapi.testclient import TestClient

from src.web.app import create_app
from src.web.state import get_app_state


class RecordingScheduler:
    """Counts manual pass requests."""

    def __init__(self) -> None:
        self.triggered = 0

    async def trigger_sync(self) -> None:
        self.triggered += 1


def test_sync_runs_a_pass():
    """Test that a manual sync request runs one pass through the scheduler."""
    scheduler = RecordingScheduler()
    get_app_state().set_scheduler(scheduler)
    client = TestClient(create_app())

    response = client.post("/sync")

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert scheduler.triggered == 1


def test_sync_without_scheduler_returns_503():
    """Test that a sync request before startup reports the missing scheduler."""
    client = TestClient(create_app())

    response = client.post("/sync")

    assert response.status_code == 503
    body = response.json()
    assert body["error"] == "SchedulerNotInitializedError"
    assert body["detail"] == "Scheduler not available"
    assert body["path"] == "/sync"
