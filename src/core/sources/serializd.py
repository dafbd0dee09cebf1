"""Serializd watchlist collector."""

import asyncio
import json
import re
from pathlib import Path
from typing import Any

from src import log
from src.config.settings import SourceListConfig
from src.core.sources.base import BaseCollector, apply_take
from src.exceptions import SourceFetchError
from src.models.items import DesiredItem, SourceResult

__all__ = ["SerializdCollector"]

_USER_PATTERN = re.compile(r"/user/([^/]+)/watchlist")


class SerializdCollector(BaseCollector):
    """Reads Serializd watchlists through the site's JSON API.

    Watchlist entries reference seasons by Serializd season id; those are mapped
    to season numbers through the show endpoint. The mapping never changes, so
    it is kept in ``serializd_cache.json`` in the data path across runs.
    """

    API_URL = "https://www.serializd.com/api"
    HEADERS = {"X-Requested-With": "serializd_vercel"}

    def __init__(
        self,
        data_path: Path,
        timeout: float = 30.0,
        page_delay: float = 0.5,
        show_delay: float = 0.2,
    ) -> None:
        """Initialize the collector.

        Args:
            data_path (Path): Directory holding the season id cache.
            timeout (float): Hard timeout in seconds for each request.
            page_delay (float): Seconds to wait between watchlist pages.
            show_delay (float): Seconds to wait before each show lookup.
        """
        super().__init__(timeout=timeout)
        self.cache_path = data_path / "serializd_cache.json"
        self.page_delay = page_delay
        self.show_delay = show_delay
        self._season_numbers: dict[str, int] = self._load_cache()

    def _load_cache(self) -> dict[str, int]:
        if not self.cache_path.is_file():
            return {}
        try:
            data = json.loads(self.cache_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            log.warning(
                f"Failed to read $$'{self.cache_path}'$$, starting with an empty "
                "season cache",
                exc_info=True,
            )
            return {}
        return {str(k): int(v) for k, v in data.items()}

    def _save_cache(self) -> None:
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            self.cache_path.write_text(
                json.dumps(self._season_numbers, indent=2, sort_keys=True),
                encoding="utf-8",
            )
        except OSError:
            log.error(f"Failed to write $$'{self.cache_path}'$$", exc_info=True)

    @staticmethod
    def username_from_url(url: str) -> str:
        """Extract the username from a ``.../user/<name>/watchlist`` URL.

        Raises:
            SourceFetchError: If the URL does not point at a watchlist.
        """
        match = _USER_PATTERN.search(url)
        if not match:
            raise SourceFetchError(
                f"Invalid Serializd watchlist URL '{url}', expected "
                ".../user/<username>/watchlist"
            )
        return match.group(1)

    async def _resolve_seasons(
        self, show_id: int, season_ids: list[int]
    ) -> frozenset[int] | None:
        """Map Serializd season ids to season numbers.

        Returns:
            frozenset[int] | None: Season numbers, or None if some ids could not
                be resolved.
        """
        if any(str(sid) not in self._season_numbers for sid in season_ids):
            await asyncio.sleep(self.show_delay)
            details = await self._get_json(f"{self.API_URL}/show/{show_id}")
            for season in details.get("seasons") or []:
                self._season_numbers[str(season["id"])] = int(season["seasonNumber"])
            self._save_cache()

        numbers = [self._season_numbers.get(str(sid)) for sid in season_ids]
        if any(number is None for number in numbers):
            return None
        return frozenset(numbers)

    async def _parse_entry(
        self, entry: dict[str, Any], list_config: SourceListConfig
    ) -> tuple[DesiredItem, bool]:
        title = entry.get("showName") or "Unknown"
        show_id = entry.get("showId")
        selector: frozenset[int] | None = None
        failed = False

        season_ids = [int(sid) for sid in entry.get("seasonIds") or []]
        if show_id and season_ids:
            try:
                selector = await self._resolve_seasons(int(show_id), season_ids)
            except Exception:
                log.error(
                    f"Failed to resolve seasons of $$'{title}'$$ "
                    f"$${{show_id: {show_id}}}$$",
                    exc_info=True,
                )
                selector = None
            failed = selector is None

        item = DesiredItem(
            external_id=int(show_id) if show_id else None,
            title=title,
            tags=frozenset(list_config.tags),
            quality_override=list_config.quality_profile,
            season_selector=selector or None,
        )
        return item, failed

    async def fetch(self, list_config: SourceListConfig) -> SourceResult:
        """Fetch every page of a Serializd watchlist, newest additions first.

        Args:
            list_config (SourceListConfig): The list to fetch.

        Returns:
            SourceResult: The watchlist's shows.

        Raises:
            SourceFetchError: If the URL is invalid or a page cannot be fetched.
        """
        username = self.username_from_url(list_config.url)
        base_url = f"{self.API_URL}/user/{username}/watchlistpage_v2"

        items: list[DesiredItem] = []
        has_errors = False
        page, total_pages = 1, 1
        while page <= total_pages:
            if page > 1:
                await asyncio.sleep(self.page_delay)
            data = await self._get_json(
                f"{base_url}/{page}", params={"sort_by": "date_added_desc"}
            )
            total_pages = int(data.get("totalPages") or 1)

            for entry in data.get("items") or []:
                item, failed = await self._parse_entry(entry, list_config)
                has_errors = has_errors or failed
                items.append(item)
            page += 1

        log.debug(
            f"Fetched {len(items)} show(s) across {total_pages} page(s) from "
            f"Serializd $$'{list_config.id}'$$"
        )
        return SourceResult(items=apply_take(items, list_config), has_errors=has_errors)
