"""Sonarr reconciliation."""

from collections.abc import Sequence
from functools import partial
from typing import Any

from src import log
from src.config.settings import SeasonMonitoring, SonarrConfig
from src.core.reconcile.base import BaseReconciler, ItemMatch, SyncContext
from src.core.reconcile.stats import ItemOutcome
from src.core.targets.sonarr import SonarrClient, parse_seasons
from src.models.items import DesiredItem, ManagedItem, SeasonState

__all__ = ["SonarrReconciler", "season_flags"]


def season_flags(
    seasons: Sequence[SeasonState],
    selector: frozenset[int] | None,
    strategy: SeasonMonitoring = SeasonMonitoring.ALL,
) -> list[dict[str, Any]]:
    """Decide which seasons of a series are monitored.

    An explicit selector always wins. Without one the strategy decides:
    ``latest`` picks the highest season number and ``future`` picks seasons
    that have no episodes yet (or no statistics at all).

    Args:
        seasons (Sequence[SeasonState]): Seasons known to Sonarr.
        selector (frozenset[int] | None): Season numbers requested by a list.
        strategy (SeasonMonitoring): Fallback strategy.

    Returns:
        list[dict[str, Any]]: ``seasonNumber``/``monitored`` pairs for the API.
    """
    if selector:
        return [
            {"seasonNumber": s.number, "monitored": s.number in selector}
            for s in seasons
        ]

    latest = max((s.number for s in seasons), default=None)
    flags = []
    for season in seasons:
        match strategy:
            case SeasonMonitoring.ALL:
                monitored = True
            case SeasonMonitoring.FIRST:
                monitored = season.number == 1
            case SeasonMonitoring.LATEST:
                monitored = season.number == latest
            case SeasonMonitoring.FUTURE:
                monitored = not season.episode_count
            case _:
                monitored = False
        flags.append({"seasonNumber": season.number, "monitored": monitored})
    return flags


class SonarrReconciler(BaseReconciler[SonarrClient]):
    """Keeps Sonarr's series in line with the series lists.

    Sonarr stores series by TVDB id. A series missing from the TMDB index of the
    inventory is looked up by TMDB id, then by exact title, and the lookup's TVDB
    id is checked against the inventory before anything is added.
    """

    ITEM_NOUN = "series"
    config: SonarrConfig

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._by_tvdb: dict[int, ManagedItem[int]] = {}

    def index_inventory(
        self, inventory: Sequence[ManagedItem[int]]
    ) -> dict[int, ManagedItem[int]]:
        self._by_tvdb = {
            item.secondary_id: item for item in inventory if item.secondary_id
        }
        return super().index_inventory(inventory)

    async def match(
        self, item: DesiredItem, index: dict[int, ManagedItem[int]]
    ) -> ItemMatch:
        existing = index.get(item.external_id)
        if existing is not None:
            return ItemMatch(existing=existing)

        candidate = await self._call(
            partial(self.client.lookup_tmdb, item.external_id),
            f"look up {item.title}",
        )
        if candidate is None:
            log.debug(f"TMDB lookup found nothing for {item!r}, trying title search")
            candidate = await self._call(
                partial(self.client.lookup_title, item.title),
                f"search {item.title}",
            )
            if candidate is not None:
                log.info(
                    f"Matched {item!r} by title to $$'{candidate.get('title')}'$$ "
                    f"$${{tvdb_id: {candidate.get('tvdbId')}}}$$"
                )
        if candidate is None:
            return ItemMatch()

        existing = self._by_tvdb.get(candidate.get("tvdbId"))
        if existing is not None:
            log.debug(f"{item!r} is already in Sonarr as {existing!r}")
        return ItemMatch(existing=existing, candidate=candidate)

    def build_add_payload(
        self, item: DesiredItem, match: ItemMatch, ctx: SyncContext
    ) -> dict[str, Any] | None:
        candidate = match.candidate
        if not candidate or not candidate.get("tvdbId"):
            return None
        return {
            "title": candidate.get("title") or item.title,
            "tvdbId": candidate["tvdbId"],
            "qualityProfileId": ctx.quality_profile_for(item),
            "rootFolderPath": ctx.root_folder_path,
            "monitored": not self.config.add_unmonitored,
            "seasonFolder": True,
            "tags": sorted(self.desired_tag_ids(item, ctx)),
            "seasons": season_flags(
                parse_seasons(candidate.get("seasons")),
                item.season_selector,
                self.config.season_monitoring,
            ),
            "addOptions": {"searchForMissingEpisodes": self.config.search_on_add},
        }

    def build_update(
        self, item: DesiredItem, existing: ManagedItem[int], ctx: SyncContext
    ) -> dict[str, Any]:
        changes = super().build_update(item, existing, ctx)
        if not item.season_selector:
            return changes

        current = {s.number: s.monitored for s in existing.seasons}
        wanted = {
            f["seasonNumber"]: f["monitored"]
            for f in season_flags(existing.seasons, item.season_selector)
        }
        if wanted != current:
            changes["seasons"] = [
                {**raw, "monitored": wanted.get(raw["seasonNumber"], False)}
                for raw in existing.raw.get("seasons") or []
            ]
        return changes

    async def update(
        self, item: DesiredItem, existing: ManagedItem[int], ctx: SyncContext
    ) -> ItemOutcome:
        outcome = await super().update(item, existing, ctx)
        if outcome != ItemOutcome.NOT_OWNED:
            await self.prune_seasons(item, existing, ctx)
        return outcome

    async def prune_seasons(
        self, item: DesiredItem, existing: ManagedItem[int], ctx: SyncContext
    ) -> int:
        """Delete episode files of seasons the item's list no longer selects.

        Runs only when enabled, removals are allowed, cleanup was not aborted and
        the series is owned and carries no unsafe tag.

        Returns:
            int: Number of episode files deleted (or that would be).
        """
        if not (
            self.config.prune_unmonitored_seasons
            and self.remove_missing_items
            and not self._abort_cleanup
            and item.season_selector
            and self.is_owned(existing, ctx)
            and not existing.tags & ctx.tags.unsafe_ids
        ):
            return 0

        unselected = {
            s.number for s in existing.seasons if s.number not in item.season_selector
        }
        if not unselected:
            return 0

        files = await self._call(
            partial(self.client.list_episode_files, int(existing.local_id)),
            f"fetch episode files of {existing.title}",
        )
        file_ids = [f["id"] for f in files if f.get("seasonNumber") in unselected]
        if not file_ids:
            return 0

        if self.dry_run:
            log.info(
                f"[DRY RUN] Would delete {len(file_ids)} episode file(s) of "
                f"{existing!r} $${{seasons: {sorted(unselected)}}}$$"
            )
            return len(file_ids)

        await self._call(
            partial(self.client.delete_episode_files, file_ids),
            f"delete episode files of {existing.title}",
        )
        log.success(
            f"Deleted {len(file_ids)} episode file(s) of {existing!r} "
            f"$${{seasons: {sorted(unselected)}}}$$"
        )
        return len(file_ids)
