"""Tests for the global AppState helper."""

from datetime import UTC, datetime, timedelta

from src.web.state import AppState, AppStatus, ComponentStatus, get_app_state


def test_get_app_state_is_a_singleton_using_the_sync_interval():
    """The cached state is shared and picks up the configured interval."""
    state = get_app_state()

    assert get_app_state() is state
    assert state.sync_interval == 60


def test_fresh_state_is_healthy():
    state = AppState(sync_interval=60)

    snapshot = state.health()

    assert snapshot.healthy
    assert snapshot.app_status == AppStatus.IDLE
    assert snapshot.last_run is None
    assert snapshot.components == {}


def test_state_goes_stale_without_a_completed_run():
    """Staleness is measured from start-up until the first pass completes."""
    state = AppState(sync_interval=60)
    start = state.started_at

    assert not state.is_stale(start + timedelta(minutes=64))
    assert state.is_stale(start + timedelta(minutes=66))
    assert not state.health(start + timedelta(minutes=66)).healthy


def test_completed_run_resets_staleness_and_status():
    state = AppState(sync_interval=10)
    state.set_status(AppStatus.SYNCING)

    state.mark_run_complete()

    assert state.status == AppStatus.IDLE
    assert state.last_run is not None
    assert not state.is_stale(state.last_run + timedelta(minutes=14))
    assert state.is_stale(state.last_run + timedelta(minutes=16))


def test_component_errors_make_the_service_unhealthy():
    state = AppState()
    state.set_component_health("radarr", ComponentStatus.OK)
    state.set_component_health("sonarr", ComponentStatus.DISABLED)
    assert state.health().healthy

    state.set_component_health("radarr", ComponentStatus.ERROR, "HTTP 401")

    snapshot = state.health()
    assert not snapshot.healthy
    assert snapshot.components["radarr"].message == "HTTP 401"
    assert snapshot.components["radarr"].last_check is not None


def test_uptime_is_reported_in_seconds():
    state = AppState()
    state.started_at = datetime.now(UTC) - timedelta(seconds=90)

    assert state.health().uptime_seconds >= 90
