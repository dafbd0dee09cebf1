"""Tests for Plex label mirroring."""

from typing import cast

import pytest

from src.config.settings import PlexTargetConfig, RetryConfig
from src.core.reconcile import ItemOutcome, PlexLabelSyncer
from src.core.targets.plex import PlexClient
from tests.core.fakes import FakePlexClient, desired


def make_syncer(
    client: FakePlexClient, tags: list[str] | None = None, dry_run: bool = False
) -> PlexLabelSyncer:
    """Build a label syncer around a fake Plex client."""
    return PlexLabelSyncer(
        cast(PlexClient, client),
        PlexTargetConfig(url="http://plex:32400", token="token", tags=tags or []),
        dry_run=dry_run,
        retry=RetryConfig(attempts=1, delay=0),
    )


@pytest.mark.asyncio
async def test_labels_are_mirrored_and_user_labels_kept():
    client = FakePlexClient({1: {"Favorites", "Horror"}, 2: set()})
    syncer = make_syncer(client, tags=["Watchlist"])

    stats = await syncer.run(
        [desired(1, tags=("trending",))],
        [desired(2, tags=("horror",))],
        {"trending", "horror"},
    )

    assert stats[ItemOutcome.UPDATED] == 2
    assert client.library[1] == {"Favorites", "trending", "Watchlist"}
    assert client.library[2] == {"horror", "Watchlist"}
    assert {(tmdb_id, kind) for tmdb_id, _, kind in client.writes} == {
        (1, "movie"),
        (2, "show"),
    }


@pytest.mark.asyncio
async def test_matching_labels_differing_only_by_case_are_unchanged():
    client = FakePlexClient({1: {"TRENDING"}})
    syncer = make_syncer(client)

    stats = await syncer.run([desired(1, tags=("trending",))], [], {"trending"})

    assert stats[ItemOutcome.UNCHANGED] == 1
    assert client.writes == []


@pytest.mark.asyncio
async def test_items_missing_from_library_or_without_id():
    client = FakePlexClient()
    syncer = make_syncer(client)

    stats = await syncer.run([desired(1), desired(None, "No id")], [], set())

    assert stats[ItemOutcome.NOT_FOUND] == 1
    assert stats[ItemOutcome.SKIPPED] == 1
    assert client.lookups == [(1, "movie")]


@pytest.mark.asyncio
async def test_dry_run_writes_no_labels():
    client = FakePlexClient({1: set()})
    syncer = make_syncer(client, dry_run=True)

    stats = await syncer.run([desired(1, tags=("trending",))], [], {"trending"})

    assert stats[ItemOutcome.UPDATED] == 1
    assert client.writes == []
    assert client.library[1] == set()
