"""Tests for full synchronization passes across targets."""

from typing import cast

import pytest

from src.config.settings import (
    PlexTargetConfig,
    RadarrConfig,
    RetryConfig,
    SonarrConfig,
    WatchlistBridgeConfig,
)
from src.core.bridge import BridgeClient
from src.core.factory import CollectorRegistry
from src.core.reconcile import (
    ItemOutcome,
    PlexLabelSyncer,
    RadarrReconciler,
    SonarrReconciler,
)
from src.core.targets import PlexClient, RadarrClient, SonarrClient
from src.exceptions import SourceFetchError
from src.models.items import SourceResult
from src.web.state import AppState, AppStatus, ComponentStatus
from tests.core.fakes import (
    FakeArrClient,
    FakeCollector,
    FakePlexClient,
    FakeSonarrClient,
    desired,
    list_config,
)

NO_RETRY = RetryConfig(attempts=1, delay=0)


class FakeRegistry:
    """Hands the same fake collector out for every list."""

    def __init__(self, collector: FakeCollector) -> None:
        self.collector = collector
        self.closed = False

    def __call__(self, _list_config) -> FakeCollector:
        return self.collector

    async def close(self) -> None:
        self.closed = True


def make_config(**kwargs) -> WatchlistBridgeConfig:
    kwargs.setdefault("movie_lists", [list_config("trending", ("trending",))])
    return WatchlistBridgeConfig(**kwargs)


def make_radarr(
    client: FakeArrClient, quality_profile: str = "Any"
) -> RadarrReconciler:
    return RadarrReconciler(
        cast(RadarrClient, client),
        RadarrConfig(
            url="http://radarr:7878", api_key="key", quality_profile=quality_profile
        ),
        retry=NO_RETRY,
    )


def make_bridge(
    config: WatchlistBridgeConfig,
    collector: FakeCollector,
    state: AppState,
    **targets,
) -> BridgeClient:
    return BridgeClient(
        config,
        state,
        registry=cast(CollectorRegistry, FakeRegistry(collector)),
        **targets,
    )


@pytest.mark.asyncio
async def test_sync_runs_radarr_and_reports_health():
    state = AppState()
    radarr_client = FakeArrClient()
    collector = FakeCollector(
        {"trending": SourceResult(items=[desired(1, tags=("trending",))])}
    )
    bridge = make_bridge(
        make_config(), collector, state, radarr=make_radarr(radarr_client)
    )

    stats = await bridge.sync()

    assert stats["radarr"][ItemOutcome.ADDED] == 1
    assert state.status == AppStatus.IDLE
    assert state.last_run is not None
    assert state.components["radarr"].status == ComponentStatus.OK
    assert state.components["movie_lists"].status == ComponentStatus.OK
    assert state.components["sonarr"].status == ComponentStatus.DISABLED
    assert state.health().healthy


@pytest.mark.asyncio
async def test_empty_lists_skip_the_target():
    """No items at all never reaches the reconciler, so nothing can be removed."""
    state = AppState()
    radarr_client = FakeArrClient(
        tags={1: "watchlistbridge"},
        items=[{"id": 10, "tmdbId": 5, "title": "Owned", "tags": [1]}],
    )
    collector = FakeCollector({"trending": SourceResult(items=[])})
    bridge = make_bridge(
        make_config(remove_missing_items=True),
        collector,
        state,
        radarr=make_radarr(radarr_client),
    )

    stats = await bridge.sync()

    assert stats == {}
    assert radarr_client.calls == []
    assert state.components["radarr"].status == ComponentStatus.OK


@pytest.mark.asyncio
async def test_failed_list_is_reported_unhealthy():
    state = AppState()
    collector = FakeCollector(
        {
            "trending": SourceResult(items=[desired(1, tags=("trending",))]),
            "broken": SourceFetchError("HTTP 500"),
        }
    )
    config = make_config(
        movie_lists=[
            list_config("trending", ("trending",)),
            list_config("broken", ("broken",)),
        ]
    )
    bridge = make_bridge(config, collector, state, radarr=make_radarr(FakeArrClient()))

    await bridge.sync()

    lists_health = state.components["movie_lists"]
    assert lists_health.status == ComponentStatus.ERROR
    assert "broken" in (lists_health.message or "")
    assert not state.health().healthy


@pytest.mark.asyncio
async def test_failing_target_does_not_stop_other_targets():
    state = AppState()
    sonarr_client = FakeSonarrClient()
    sonarr_client.catalog[1399] = {"title": "Show", "tvdbId": 121361}
    collector = FakeCollector(
        {
            "trending": SourceResult(items=[desired(1)]),
            "shows": SourceResult(items=[desired(1399, "Show")]),
        }
    )
    config = make_config(series_lists=[list_config("shows")])
    sonarr = SonarrReconciler(
        cast(SonarrClient, sonarr_client),
        SonarrConfig(url="http://sonarr:8989", api_key="key"),
        retry=NO_RETRY,
    )
    bridge = make_bridge(
        config,
        collector,
        state,
        radarr=make_radarr(FakeArrClient(), quality_profile="Missing"),
        sonarr=sonarr,
    )

    stats = await bridge.sync()

    assert "radarr" not in stats
    assert stats["sonarr"][ItemOutcome.ADDED] == 1
    assert state.components["radarr"].status == ComponentStatus.ERROR
    assert "Missing" in (state.components["radarr"].message or "")
    assert state.components["sonarr"].status == ComponentStatus.OK


@pytest.mark.asyncio
async def test_plex_receives_tags_of_movie_and_series_lists():
    state = AppState()
    plex_client = FakePlexClient({1: {"Kids"}, 1399: set()})
    collector = FakeCollector(
        {
            "trending": SourceResult(items=[desired(1, tags=("trending",))]),
            "shows": SourceResult(items=[desired(1399, "Show", tags=("binge",))]),
        }
    )
    config = make_config(series_lists=[list_config("shows", ("binge",))])
    plex = PlexLabelSyncer(
        cast(PlexClient, plex_client),
        PlexTargetConfig(url="http://plex:32400", token="token"),
        retry=NO_RETRY,
    )
    bridge = make_bridge(
        config, collector, state, radarr=make_radarr(FakeArrClient()), plex=plex
    )

    stats = await bridge.sync()

    assert stats["plex"][ItemOutcome.UPDATED] == 2
    assert plex_client.library == {1: {"Kids", "trending"}, 1399: {"binge"}}
    assert state.components["plex"].status == ComponentStatus.OK


@pytest.mark.asyncio
async def test_close_releases_targets_and_collectors():
    radarr_client = FakeArrClient()
    registry = FakeRegistry(FakeCollector({}))
    bridge = BridgeClient(
        make_config(),
        AppState(),
        radarr=make_radarr(radarr_client),
        registry=cast(CollectorRegistry, registry),
    )

    async with bridge:
        pass

    assert ("close", None) in radarr_client.calls
    assert registry.closed is True
