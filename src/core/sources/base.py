"""Source collector interface and shared helpers."""

from typing import Any, Protocol

import aiohttp

from src import __version__
from src.config.settings import SourceListConfig, TakeStrategy
from src.exceptions import SourceFetchError
from src.models.items import DesiredItem, SourceResult

__all__ = ["BaseCollector", "SourceCollector", "apply_take"]


class SourceCollector(Protocol):
    """Produces the desired items of one source list.

    ``fetch`` must not raise for problems with individual entries; those set
    ``has_errors`` and drop or degrade the entry. It may raise when the whole
    list cannot be read.
    """

    async def fetch(self, list_config: SourceListConfig) -> SourceResult:
        """Fetch the items of a list."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...


def apply_take(
    items: list[DesiredItem], list_config: SourceListConfig
) -> list[DesiredItem]:
    """Keep only ``take_amount`` items from the configured end of a list.

    Collectors return items newest first.
    """
    if not list_config.take_amount:
        return items
    if list_config.take_strategy == TakeStrategy.OLDEST:
        return items[-list_config.take_amount :]
    return items[: list_config.take_amount]


class BaseCollector:
    """aiohttp session handling shared by the JSON collectors."""

    HEADERS: dict[str, str] = {}

    def __init__(self, timeout: float = 30.0) -> None:
        """Initialize the collector.

        Args:
            timeout (float): Hard timeout in seconds for each request.
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "Accept": "application/json",
                    "User-Agent": f"WatchlistBridge/{__version__}",
                    **self.HEADERS,
                },
                timeout=self._timeout,
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _get_json(self, url: str, params: dict[str, str] | None = None) -> Any:
        """GET a JSON document.

        Raises:
            SourceFetchError: If the response is not a success.
        """
        session = await self._get_session()
        async with session.get(url, params=params) as response:
            if response.status >= 400:
                raise SourceFetchError(f"GET {url} returned HTTP {response.status}")
            return await response.json(content_type=None)
