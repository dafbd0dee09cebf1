"""Radarr reconciliation."""

from typing import Any

from src.config.settings import RadarrConfig
from src.core.reconcile.base import BaseReconciler, ItemMatch, SyncContext
from src.core.targets.radarr import RadarrClient
from src.models.items import DesiredItem

__all__ = ["RadarrReconciler"]


class RadarrReconciler(BaseReconciler[RadarrClient]):
    """Keeps Radarr's movies in line with the movie lists.

    Radarr keys movies by TMDB id, so identity is a plain inventory lookup.
    """

    ITEM_NOUN = "movie"
    config: RadarrConfig

    def build_add_payload(
        self, item: DesiredItem, match: ItemMatch, ctx: SyncContext
    ) -> dict[str, Any] | None:
        if item.external_id is None:
            return None
        payload: dict[str, Any] = {
            "title": item.title,
            "tmdbId": item.external_id,
            "qualityProfileId": ctx.quality_profile_for(item),
            "rootFolderPath": ctx.root_folder_path,
            "monitored": not self.config.add_unmonitored,
            "minimumAvailability": self.config.minimum_availability,
            "tags": sorted(self.desired_tag_ids(item, ctx)),
            "addOptions": {"searchForMovie": self.config.search_on_add},
        }
        if item.year:
            payload["year"] = item.year
        return payload
