"""Sonarr client."""

import re
from typing import Any

from src import log
from src.core.targets.base import ArrClient
from src.models.items import ManagedItem, SeasonState

__all__ = ["SonarrClient", "normalize_title"]

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_title(title: str) -> str:
    """Reduce a title to lowercase alphanumerics for exact-match comparisons."""
    return _NON_ALNUM.sub("", title.lower())


def parse_seasons(raw_seasons: list[dict[str, Any]] | None) -> list[SeasonState]:
    """Convert Sonarr season records into ``SeasonState`` instances."""
    seasons = []
    for season in raw_seasons or []:
        statistics = season.get("statistics")
        seasons.append(
            SeasonState(
                number=season["seasonNumber"],
                monitored=bool(season.get("monitored", False)),
                episode_count=statistics.get("episodeCount") if statistics else None,
            )
        )
    return seasons


class SonarrClient(ArrClient):
    """Client for the Sonarr v3 API.

    Series are keyed by TVDB id in Sonarr while sources speak TMDB, so adds go
    through the lookup endpoint first.
    """

    ITEM_ENDPOINT = "series"
    ALREADY_EXISTS_MARKERS = (
        "this series has already been added",
        "seriesexistsvalidator",
    )

    def to_managed(self, raw: dict[str, Any]) -> ManagedItem[int]:
        """Convert a Sonarr series record into a ``ManagedItem``."""
        return ManagedItem(
            local_id=raw["id"],
            external_id=raw.get("tmdbId") or None,
            secondary_id=raw.get("tvdbId") or None,
            title=raw.get("title", ""),
            tags=frozenset(raw.get("tags") or ()),
            monitored=raw.get("monitored", True),
            seasons=parse_seasons(raw.get("seasons")),
            raw=raw,
        )

    async def lookup_tmdb(self, tmdb_id: int) -> dict[str, Any] | None:
        """Look up a series by TMDB id.

        Args:
            tmdb_id (int): TMDB id of the series.

        Returns:
            dict[str, Any] | None: The first lookup result, if any.
        """
        results = await self._request(
            "GET", "series/lookup", params={"term": f"tmdb:{tmdb_id}"}
        )
        return results[0] if results else None

    async def lookup_title(self, title: str) -> dict[str, Any] | None:
        """Look up a series by title, accepting only an exact normalized match.

        Args:
            title (str): Title to search for.

        Returns:
            dict[str, Any] | None: The matching lookup result, if any.
        """
        results = await self._request("GET", "series/lookup", params={"term": title})
        target = normalize_title(title)
        for candidate in results or []:
            if normalize_title(candidate.get("title", "")) == target:
                return candidate

        if results:
            log.debug(
                f"{self.name}: no exact title match for $$'{title}'$$, candidates: "
                f"{[c.get('title') for c in results[:5]]}"
            )
        return None

    async def list_episode_files(self, series_id: int) -> list[dict[str, Any]]:
        """Return the episode files of a series."""
        return (
            await self._request(
                "GET", "episodefile", params={"seriesId": str(series_id)}
            )
            or []
        )

    async def delete_episode_files(self, file_ids: list[int]) -> None:
        """Delete several episode files at once."""
        await self._request(
            "DELETE", "episodefile/bulk", json={"episodeFileIds": file_ids}
        )
