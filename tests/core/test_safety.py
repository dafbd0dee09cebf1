"""Tests for the safety lock that guards cleanup."""

from datetime import date
from typing import cast

import pytest

from src.config.settings import ListFilters
from src.core.safety import SafetyLock, apply_filters, merge_items
from src.core.sources.base import SourceCollector
from src.exceptions import SourceFetchError
from src.models.items import SourceResult
from tests.core.fakes import FakeCollector, desired, list_config

TODAY = date(2024, 6, 15)


def _lock(collector: FakeCollector) -> SafetyLock:
    return SafetyLock(lambda _: cast(SourceCollector, collector), today=TODAY)


@pytest.mark.asyncio
async def test_all_lists_succeed():
    """Items from every list are merged and every tag stays managed."""
    collector = FakeCollector(
        {
            "trending": SourceResult(items=[desired(1, tags=("trending",))]),
            "horror": SourceResult(items=[desired(2, tags=("horror",))]),
        }
    )

    result = await _lock(collector).process(
        [list_config("trending", ("trending",)), list_config("horror", ("horror",))]
    )

    assert [i.external_id for i in result.items] == [1, 2]
    assert result.managed_tags == {"trending", "horror"}
    assert result.unsafe_tags == set()
    assert result.abort_cleanup is False
    assert result.failed_lists == []


@pytest.mark.asyncio
async def test_failed_untagged_list_aborts_cleanup():
    """Without tags there is no way to scope the damage, so cleanup stops."""
    collector = FakeCollector(
        {
            "good": SourceResult(items=[desired(1, tags=("good",))]),
            "plain": SourceFetchError("HTTP 503"),
        }
    )

    result = await _lock(collector).process(
        [list_config("good", ("good",)), list_config("plain")]
    )

    assert result.abort_cleanup is True
    assert result.failed_lists == ["plain"]
    assert result.items_found == 1


@pytest.mark.asyncio
async def test_failed_tagged_list_marks_its_tags_unsafe():
    """A tagged failure only shields its own tags and leaves them unmanaged."""
    collector = FakeCollector(
        {
            "trending": SourceResult(items=[desired(1, tags=("trending",))]),
            "horror": SourceFetchError("timeout"),
        }
    )

    result = await _lock(collector).process(
        [list_config("trending", ("trending",)), list_config("horror", ("horror",))]
    )

    assert result.abort_cleanup is False
    assert result.unsafe_tags == {"horror"}
    assert result.managed_tags == {"trending"}


@pytest.mark.asyncio
async def test_item_without_id_makes_list_unsafe():
    """Test that a list with no usable ids is treated like a failed fetch."""
    collector = FakeCollector(
        {
            "mixed": SourceResult(
                items=[desired(1, tags=("mixed",)), desired(None, "Unknown")]
            )
        }
    )

    result = await _lock(collector).process([list_config("mixed", ("mixed",))])

    assert result.unsafe_tags == {"mixed"}
    assert [i.external_id for i in result.items] == [1]
    assert result.lists[0].item_count == 1


@pytest.mark.asyncio
async def test_partial_fetch_makes_list_unsafe():
    """Test that a partially fetched list marks its tags unsafe."""
    collector = FakeCollector(
        {"partial": SourceResult(items=[desired(1)], has_errors=True)}
    )

    result = await _lock(collector).process([list_config("partial")])

    assert result.abort_cleanup is True
    assert result.items_found == 1


@pytest.mark.asyncio
async def test_inactive_list_is_skipped_but_its_tags_stay_managed():
    """Out of season lists are not fetched and their tags get stripped."""
    collector = FakeCollector({"always": SourceResult(items=[desired(1)])})

    result = await _lock(collector).process(
        [
            list_config("always"),
            list_config(
                "halloween",
                ("halloween",),
                active_from="10-01",
                active_until="10-31",
            ),
        ]
    )

    assert collector.fetched == ["always"]
    assert "halloween" in result.managed_tags
    assert result.unsafe_tags == set()
    assert result.failed_lists == []


@pytest.mark.asyncio
async def test_filters_are_applied_per_list():
    """Test that each list's filters only apply to its own items."""
    collector = FakeCollector(
        {
            "rated": SourceResult(
                items=[
                    desired(1, rating=8.1, year=2020),
                    desired(2, rating=5.0, year=2021),
                    desired(3, year=2022),
                ]
            )
        }
    )

    result = await _lock(collector).process(
        [list_config("rated", filters=ListFilters(min_rating=7))]
    )

    assert [i.external_id for i in result.items] == [1]


def test_merge_items_unions_tags_and_keeps_first_overrides():
    """Test that merging unions tags and keeps the first quality override."""
    items = [
        desired(1, tags=("a",), quality_override="HD-1080p"),
        desired(2, tags=("b",)),
        desired(1, tags=("c",), quality_override="Ultra-HD", year=2001),
        desired(None, "No id"),
    ]

    merged = merge_items(items)

    assert [i.external_id for i in merged] == [1, 2]
    assert merged[0].tags == frozenset({"a", "c"})
    assert merged[0].quality_override == "HD-1080p"
    assert merged[0].year == 2001


def test_merge_items_keeps_first_season_selector():
    """Test that merging keeps the first season selector."""
    merged = merge_items(
        [
            desired(7, season_selector=frozenset({1})),
            desired(7, season_selector=frozenset({2, 3})),
        ]
    )

    assert merged[0].season_selector == frozenset({1})


def test_apply_filters_excludes_unknown_values():
    """Test that items missing a filtered field are excluded."""
    items = [desired(1, year=1999), desired(2, year=2010), desired(3)]

    kept = apply_filters(items, ListFilters(min_year=2000, max_year=2020))

    assert [i.external_id for i in kept] == [2]
    assert apply_filters(items, ListFilters()) == items
