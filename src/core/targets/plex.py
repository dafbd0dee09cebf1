"""Plex label client."""

import asyncio
from collections.abc import Callable
from typing import Literal, TypeVar

import plexapi.utils
from limiter import Limiter
from plexapi.server import PlexServer
from plexapi.video import Movie, Show

from src import log
from src.models.items import ManagedItem

__all__ = ["PlexClient"]

plex_limiter = Limiter(rate=20, capacity=20, jitter=False)

PlexKind = Literal["movie", "show"]
PlexItem = Movie | Show

T = TypeVar("T")


class PlexClient:
    """Minimal Plex Media Server client for reading and writing item labels.

    Plex has no notion of ownership or creation here: items are only looked up
    by TMDB id and their labels rewritten. ``plexapi`` is blocking, so every
    call runs in a worker thread.
    """

    def __init__(self, url: str, token: str, timeout: float = 30.0) -> None:
        """Initialize the client.

        Args:
            url (str): Plex server URL.
            token (str): Plex authentication token.
            timeout (float): Timeout in seconds for every request.
        """
        self.name = "plex"
        self.url = url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._admin_client: PlexServer | None = None

    def _server(self) -> PlexServer:
        # Connecting hits the server, so it waits for the first lookup
        if self._admin_client is None:
            self._admin_client = PlexServer(
                self.url, self._token, timeout=self._timeout
            )
        return self._admin_client

    async def close(self) -> None:
        """Forget the server connection."""
        self._admin_client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @plex_limiter()
    async def _call(self, fn: Callable[..., T], *args, **kwargs) -> T:
        """Run a blocking ``plexapi`` call off the event loop."""
        return await asyncio.to_thread(fn, *args, **kwargs)

    @staticmethod
    def _labels(item: PlexItem) -> frozenset[str]:
        return frozenset(label.tag for label in item.labels or () if label.tag)

    def _to_managed(self, item: PlexItem, tmdb_id: int) -> ManagedItem[str]:
        return ManagedItem(
            local_id=str(item.ratingKey),
            external_id=tmdb_id,
            title=item.title or "",
            tags=self._labels(item),
        )

    def _search_guid(self, guid: str) -> PlexItem | None:
        items = self._server().fetchItems(
            f"/library/all{plexapi.utils.joinArgs({'guid': guid})}"
        )
        return items[0] if items else None

    def _search_title(
        self, title: str, tmdb_id: int, kind: PlexKind, year: int | None
    ) -> PlexItem | None:
        args = {
            "title": title,
            "includeGuids": 1,
            "type": plexapi.utils.searchType(kind),
        }
        if year:
            args["year"] = year
        items = self._server().fetchItems(
            f"/library/all{plexapi.utils.joinArgs(args)}"
        )

        wanted = f"tmdb://{tmdb_id}"
        for item in items:
            if any(guid.id == wanted for guid in item.guids or ()):
                return item
        return None

    def _find(
        self, tmdb_id: int, title: str, kind: PlexKind, year: int | None
    ) -> PlexItem | None:
        item = self._search_guid(
            f"com.plexapp.agents.themoviedb://{tmdb_id}?lang=en"
        )
        if item is None:
            item = self._search_guid(f"plex://{kind}/tmdb/{tmdb_id}")
        if item is None and title:
            log.debug(f"GUID lookup failed for $$'{title}'$$, searching by title")
            item = self._search_title(title, tmdb_id, kind, year)
        return item

    async def find_item(
        self, tmdb_id: int, title: str, kind: PlexKind, year: int | None = None
    ) -> ManagedItem[str] | None:
        """Find a library item by TMDB id.

        Tries the legacy TMDB agent GUID, then the ``plex://`` TMDB GUID, then a
        title search whose results are verified against their ``tmdb://`` GUIDs.

        Args:
            tmdb_id (int): TMDB id of the item.
            title (str): Title used for the fallback search.
            kind (PlexKind): ``movie`` or ``show``.
            year (int | None): Release year narrowing the title search.

        Returns:
            ManagedItem[str] | None: The item with its current labels as tags.
        """
        item = await self._call(self._find, tmdb_id, title, kind, year)
        if item is None:
            return None
        return self._to_managed(item, tmdb_id)

    def _edit_labels(
        self, rating_key: str, add: list[str], remove: list[str]
    ) -> None:
        item = self._server().fetchItem(int(rating_key))
        if add:
            item.addLabel(add, locked=True)
        if remove:
            item.removeLabel(remove, locked=True)

    async def set_labels(
        self, item: ManagedItem[str], labels: set[str], kind: PlexKind
    ) -> None:
        """Replace an item's labels.

        Args:
            item (ManagedItem[str]): The Plex item, as returned by ``find_item``.
            labels (set[str]): The complete set of labels the item should carry.
            kind (PlexKind): ``movie`` or ``show``.
        """
        current = {label.casefold() for label in item.tags}
        wanted = {label.casefold() for label in labels}
        added = sorted(label for label in labels if label.casefold() not in current)
        removed = sorted(
            label for label in item.tags if label.casefold() not in wanted
        )

        log.debug(f"Setting Plex {kind} labels of {item!r} to {sorted(labels)}")
        await self._call(self._edit_labels, item.local_id, added, removed)
