"""Shared HTTP plumbing and interfaces for target clients."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Protocol

import aiohttp
from limiter import Limiter

from src import __version__, log
from src.exceptions import TargetAlreadyExistsError, TargetRequestError
from src.models.items import ManagedItem, Tag, TagIdT

__all__ = ["ArrClient", "TargetClient", "arr_limiter"]

# Radarr and Sonarr have no published rate limit; keep bursts small so a large
# first sync does not starve the *arr UI
arr_limiter = Limiter(rate=10, capacity=10, jitter=False)


class TargetClient(Protocol[TagIdT]):
    """Operations a reconciler needs from a media-library manager."""

    name: str

    async def list_all(self) -> list[ManagedItem[TagIdT]]:
        """Return the target's full inventory."""
        ...

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create an item. Raises ``TargetAlreadyExistsError`` for duplicates."""
        ...

    async def update(self, item: ManagedItem[TagIdT], payload: dict[str, Any]) -> Any:
        """Replace an item's record with ``payload``."""
        ...

    async def delete(self, item: ManagedItem[TagIdT]) -> None:
        """Delete an item together with its files."""
        ...

    async def list_tags(self) -> list[Tag[TagIdT]]:
        """Return every tag defined on the target."""
        ...

    async def create_tag(self, name: str) -> Tag[TagIdT]:
        """Create a tag."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...


class ArrClient(ABC):
    """Base client for the Radarr/Sonarr v3 REST API.

    Subclasses set ``ITEM_ENDPOINT`` and convert the raw inventory records into
    ``ManagedItem`` instances. Non-success responses raise ``TargetRequestError``;
    a create rejected because the item exists raises
    ``TargetAlreadyExistsError`` instead.
    """

    API_PREFIX: ClassVar[str] = "/api/v3"
    ITEM_ENDPOINT: ClassVar[str] = ""
    ALREADY_EXISTS_MARKERS: ClassVar[tuple[str, ...]] = ()

    def __init__(self, name: str, url: str, api_key: str, timeout: float = 30.0):
        """Initialize the client.

        Args:
            name (str): Label used in log messages, e.g. ``radarr``.
            url (str): Base URL of the instance.
            api_key (str): API key sent in the ``X-Api-Key`` header.
            timeout (float): Hard timeout in seconds for every request.
        """
        self.name = name
        self.url = url.rstrip("/")
        self._api_key = api_key
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "X-Api-Key": self._api_key,
                    "Accept": "application/json",
                    "User-Agent": f"WatchlistBridge/{__version__}",
                },
                timeout=self._timeout,
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _is_already_exists(self, status: int, body: str) -> bool:
        if status not in (400, 409):
            return False
        lowered = body.lower()
        return any(marker in lowered for marker in self.ALREADY_EXISTS_MARKERS)

    @arr_limiter()
    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Make a rate-limited request against the v3 API.

        Args:
            method (str): HTTP method.
            path (str): Path below ``/api/v3``.
            params (dict[str, Any] | None): Query parameters.
            json (Any): JSON body.

        Returns:
            Any: Decoded JSON response, or None for empty responses.

        Raises:
            TargetAlreadyExistsError: If a create was rejected as a duplicate.
            TargetRequestError: For any other non-success status.
        """
        session = await self._get_session()
        url = f"{self.url}{self.API_PREFIX}/{path.lstrip('/')}"

        async with session.request(method, url, params=params, json=json) as response:
            if response.status >= 400:
                body = await response.text()
                if self._is_already_exists(response.status, body):
                    raise TargetAlreadyExistsError(method, url, response.status, body)
                log.debug(f"{method} {url} failed with HTTP {response.status}: {body}")
                raise TargetRequestError(method, url, response.status, body)

            if response.status == 204:
                return None
            text = await response.text()
            if not text:
                return None
            return await response.json(content_type=None)

    async def list_tags(self) -> list[Tag[int]]:
        """Return every tag defined on the instance."""
        data = await self._request("GET", "tag")
        return [Tag(name=t["label"], id=int(t["id"])) for t in data or []]

    async def create_tag(self, name: str) -> Tag[int]:
        """Create a tag and return it with its id."""
        data = await self._request("POST", "tag", json={"label": name})
        return Tag(name=data["label"], id=int(data["id"]))

    async def list_quality_profiles(self) -> list[dict[str, Any]]:
        """Return all quality profiles."""
        return await self._request("GET", "qualityprofile") or []

    async def list_root_folders(self) -> list[dict[str, Any]]:
        """Return all root folders."""
        return await self._request("GET", "rootfolder") or []

    @abstractmethod
    def to_managed(self, raw: dict[str, Any]) -> ManagedItem[int]:
        """Convert a raw inventory record into a ``ManagedItem``."""

    async def list_all(self) -> list[ManagedItem[int]]:
        """Return the full inventory."""
        data = await self._request("GET", self.ITEM_ENDPOINT)
        return [self.to_managed(raw) for raw in data or []]

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Add an item."""
        return await self._request("POST", self.ITEM_ENDPOINT, json=payload)

    async def update(self, item: ManagedItem[int], payload: dict[str, Any]) -> Any:
        """Replace an item's record."""
        return await self._request(
            "PUT", f"{self.ITEM_ENDPOINT}/{item.local_id}", json=payload
        )

    async def delete(self, item: ManagedItem[int]) -> None:
        """Delete an item and its files without adding an import exclusion."""
        await self._request(
            "DELETE",
            f"{self.ITEM_ENDPOINT}/{item.local_id}",
            params={"deleteFiles": "true", "addImportExclusion": "false"},
        )
