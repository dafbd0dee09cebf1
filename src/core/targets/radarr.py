"""Radarr client."""

from typing import Any

from src.core.targets.base import ArrClient
from src.models.items import ManagedItem

__all__ = ["RadarrClient"]


class RadarrClient(ArrClient):
    """Client for the Radarr v3 API."""

    ITEM_ENDPOINT = "movie"
    ALREADY_EXISTS_MARKERS = (
        "this movie has already been added",
        "movieexistsvalidator",
    )

    def to_managed(self, raw: dict[str, Any]) -> ManagedItem[int]:
        """Convert a Radarr movie record into a ``ManagedItem``."""
        return ManagedItem(
            local_id=raw["id"],
            external_id=raw.get("tmdbId") or None,
            title=raw.get("title", ""),
            tags=frozenset(raw.get("tags") or ()),
            monitored=raw.get("monitored", True),
            raw=raw,
        )
