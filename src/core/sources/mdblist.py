"""MDBList JSON list collector."""

from typing import Any

from src import log
from src.config.settings import SourceListConfig
from src.core.sources.base import BaseCollector, apply_take
from src.exceptions import SourceFetchError
from src.models.items import DesiredItem, SourceResult

__all__ = ["MDBListCollector"]


def _to_int(value: Any) -> int | None:
    try:
        return int(value) if value not in (None, "", 0, "0") else None
    except (TypeError, ValueError):
        return None


def _to_rating(entry: dict[str, Any]) -> float | None:
    """Pick a 0-10 rating, preferring IMDb's over MDBList's 0-100 score."""
    for key, scale in (("imdbrating", 1.0), ("score", 10.0)):
        value = entry.get(key)
        if value in (None, ""):
            continue
        try:
            return float(value) / scale
        except (TypeError, ValueError):
            continue
    return None


class MDBListCollector(BaseCollector):
    """Reads public MDBList lists through their ``/json`` export.

    Entries carry the TMDB id in ``id`` (``tmdb_id`` in some exports). An entry
    without one is kept with no external id so the safety lock can see that the
    list was not fully usable.
    """

    def _json_url(self, url: str) -> str:
        url = url.rstrip("/")
        return url if url.endswith("/json") else f"{url}/json"

    def _parse_entry(
        self, entry: dict[str, Any], list_config: SourceListConfig
    ) -> DesiredItem:
        return DesiredItem(
            external_id=_to_int(entry.get("tmdb_id", entry.get("id"))),
            title=entry.get("title") or "Unknown",
            tags=frozenset(list_config.tags),
            quality_override=list_config.quality_profile,
            year=_to_int(entry.get("release_year") or entry.get("year")),
            rating=_to_rating(entry),
        )

    async def fetch(self, list_config: SourceListConfig) -> SourceResult:
        """Fetch an MDBList list.

        Args:
            list_config (SourceListConfig): The list to fetch.

        Returns:
            SourceResult: Items in list order.

        Raises:
            SourceFetchError: If the list cannot be downloaded or is not a list.
        """
        data = await self._get_json(self._json_url(list_config.url))
        if not isinstance(data, list):
            raise SourceFetchError(
                f"MDBList list '{list_config.id}' did not return a JSON array"
            )

        items: list[DesiredItem] = []
        has_errors = False
        for entry in data:
            if not isinstance(entry, dict):
                has_errors = True
                continue
            items.append(self._parse_entry(entry, list_config))

        log.debug(f"Fetched {len(items)} item(s) from MDBList $$'{list_config.id}'$$")
        return SourceResult(items=apply_take(items, list_config), has_errors=has_errors)
