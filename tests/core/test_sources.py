"""Tests for the MDBList and Serializd collectors."""

import json
from pathlib import Path
from typing import Any

import pytest

from src.config.settings import SourceListConfig
from src.core.sources import MDBListCollector, SerializdCollector, apply_take
from src.exceptions import SourceFetchError
from tests.core.fakes import desired, list_config


class JsonResponses:
    """Stands in for ``_get_json`` with canned documents per URL."""

    def __init__(self, documents: dict[str, Any]) -> None:
        self.documents = documents
        self.requests: list[tuple[str, dict[str, str] | None]] = []

    async def __call__(self, url: str, params: dict[str, str] | None = None) -> Any:
        self.requests.append((url, params))
        if url not in self.documents:
            raise SourceFetchError(f"GET {url} returned HTTP 404")
        return self.documents[url]


def serializd_list(**kwargs) -> SourceListConfig:
    return SourceListConfig(
        source="serializd",
        id="watchlist",
        url="https://www.serializd.com/user/alice/watchlist",
        **kwargs,
    )


@pytest.mark.asyncio
async def test_mdblist_parses_entries():
    collector = MDBListCollector()
    responses = JsonResponses(
        {
            "https://mdblist.com/lists/user/trending/json": [
                {"id": 603, "title": "The Matrix", "release_year": 1999, "score": 87},
                {"tmdb_id": "27205", "title": "Inception", "imdbrating": 8.8},
                {"id": None, "title": "Mystery"},
            ]
        }
    )
    collector._get_json = responses

    result = await collector.fetch(
        list_config("trending", ("trending",), quality_profile="HD-1080p")
    )

    assert not result.has_errors
    matrix, inception, mystery = result.items
    assert matrix.external_id == 603
    assert matrix.year == 1999
    assert matrix.rating == pytest.approx(8.7)
    assert matrix.tags == frozenset({"trending"})
    assert matrix.quality_override == "HD-1080p"
    assert inception.external_id == 27205
    assert inception.rating == pytest.approx(8.8)
    assert mystery.external_id is None


@pytest.mark.asyncio
async def test_mdblist_rejects_non_list_documents():
    collector = MDBListCollector()
    collector._get_json = JsonResponses(
        {"https://mdblist.com/lists/user/trending/json": {"error": "private"}}
    )

    with pytest.raises(SourceFetchError):
        await collector.fetch(list_config("trending"))


@pytest.mark.asyncio
async def test_mdblist_flags_malformed_entries():
    collector = MDBListCollector()
    collector._get_json = JsonResponses(
        {"https://mdblist.com/lists/user/trending/json": [{"id": 1}, "garbage"]}
    )

    result = await collector.fetch(list_config("trending"))

    assert result.has_errors
    assert [i.external_id for i in result.items] == [1]


def test_apply_take_keeps_requested_end():
    items = [desired(n) for n in range(1, 6)]

    newest = apply_take(items, list_config("l", take_amount=2))
    oldest = apply_take(items, list_config("l", take_amount=2, take_strategy="oldest"))

    assert [i.external_id for i in newest] == [1, 2]
    assert [i.external_id for i in oldest] == [4, 5]
    assert apply_take(items, list_config("l")) == items


def test_serializd_username_from_url():
    assert (
        SerializdCollector.username_from_url(
            "https://www.serializd.com/user/alice/watchlist"
        )
        == "alice"
    )
    with pytest.raises(SourceFetchError):
        SerializdCollector.username_from_url("https://www.serializd.com/show/1")


@pytest.mark.asyncio
async def test_serializd_pages_and_resolves_seasons(tmp_path: Path):
    collector = SerializdCollector(tmp_path, page_delay=0, show_delay=0)
    base = "https://www.serializd.com/api/user/alice/watchlistpage_v2"
    responses = JsonResponses(
        {
            f"{base}/1": {
                "totalPages": 2,
                "items": [
                    {"showId": 1399, "showName": "Game of Thrones", "seasonIds": []},
                ],
            },
            f"{base}/2": {
                "totalPages": 2,
                "items": [
                    {"showId": 95396, "showName": "Severance", "seasonIds": [501]},
                ],
            },
            "https://www.serializd.com/api/show/95396": {
                "seasons": [
                    {"id": 500, "seasonNumber": 1},
                    {"id": 501, "seasonNumber": 2},
                ]
            },
        }
    )
    collector._get_json = responses

    result = await collector.fetch(serializd_list(tags=["binge"]))

    assert not result.has_errors
    got, severance = result.items
    assert got.external_id == 1399
    assert got.season_selector is None
    assert severance.season_selector == frozenset({2})
    assert severance.tags == frozenset({"binge"})
    assert responses.requests[0][1] == {"sort_by": "date_added_desc"}

    cache = json.loads((tmp_path / "serializd_cache.json").read_text())
    assert cache == {"500": 1, "501": 2}


@pytest.mark.asyncio
async def test_serializd_uses_cached_season_numbers(tmp_path: Path):
    (tmp_path / "serializd_cache.json").write_text(json.dumps({"501": 2}))
    collector = SerializdCollector(tmp_path, page_delay=0, show_delay=0)
    responses = JsonResponses(
        {
            "https://www.serializd.com/api/user/alice/watchlistpage_v2/1": {
                "items": [
                    {"showId": 95396, "showName": "Severance", "seasonIds": [501]}
                ]
            }
        }
    )
    collector._get_json = responses

    result = await collector.fetch(serializd_list())

    assert result.items[0].season_selector == frozenset({2})
    assert len(responses.requests) == 1


@pytest.mark.asyncio
async def test_serializd_unresolvable_seasons_flag_errors(tmp_path: Path):
    collector = SerializdCollector(tmp_path, page_delay=0, show_delay=0)
    collector._get_json = JsonResponses(
        {
            "https://www.serializd.com/api/user/alice/watchlistpage_v2/1": {
                "items": [{"showId": 42, "showName": "Gone", "seasonIds": [9]}]
            }
        }
    )

    result = await collector.fetch(serializd_list())

    assert result.has_errors
    assert result.items[0].external_id == 42
    assert result.items[0].season_selector is None
