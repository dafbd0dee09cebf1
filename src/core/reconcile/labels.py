"""Plex label mirroring."""

import asyncio
from collections.abc import Iterable, Sequence
from functools import partial

from src import log
from src.config.settings import ConcurrencyConfig, PlexTargetConfig, RetryConfig
from src.core.reconcile.stats import ItemOutcome, ReconcileStats
from src.core.tags import next_labels, same_tags
from src.core.targets.plex import PlexClient, PlexKind
from src.models.items import DesiredItem
from src.utils.logging import log_scope
from src.utils.queue import AdaptiveTaskQueue
from src.utils.retry import retry_operation

__all__ = ["PlexLabelSyncer"]


class PlexLabelSyncer:
    """Mirrors list tags onto Plex items as labels.

    Plex is never asked to add or remove media, and there is no ownership tag:
    any matched item gets its managed labels rewritten while every other label
    is left alone. Labels compare case-insensitively.
    """

    def __init__(
        self,
        client: PlexClient,
        plex_config: PlexTargetConfig,
        *,
        dry_run: bool = False,
        retry: RetryConfig | None = None,
        concurrency: ConcurrencyConfig | None = None,
    ) -> None:
        self.client = client
        self.config = plex_config
        self.dry_run = dry_run
        self.retry = retry or RetryConfig()
        self.concurrency = concurrency or ConcurrencyConfig()

    @property
    def name(self) -> str:
        return self.client.name

    async def sync_item(
        self,
        item: DesiredItem,
        kind: PlexKind,
        managed_labels: set[str],
    ) -> ItemOutcome:
        """Bring one item's labels in line with its desired tags."""
        if item.external_id is None:
            return ItemOutcome.SKIPPED

        found = await retry_operation(
            partial(
                self.client.find_item, item.external_id, item.title, kind, item.year
            ),
            f"find {item.title} in Plex",
            retries=self.retry.attempts,
            delay=self.retry.delay,
            backoff=self.retry.backoff,
        )
        if found is None:
            log.debug(f"{item!r} is not in the Plex library")
            return ItemOutcome.NOT_FOUND

        labels = next_labels(
            found.tags, managed_labels, set(item.tags) | set(self.config.tags)
        )
        if same_tags(labels, found.tags, key=str.casefold):
            return ItemOutcome.UNCHANGED

        if self.dry_run:
            log.info(f"[DRY RUN] Would set labels of {found!r} to {sorted(labels)}")
            return ItemOutcome.UPDATED

        await retry_operation(
            partial(self.client.set_labels, found, labels, kind),
            f"label {item.title}",
            retries=self.retry.attempts,
            delay=self.retry.delay,
            backoff=self.retry.backoff,
        )
        log.info(f"Updated labels of {found!r} to {sorted(labels)}")
        return ItemOutcome.UPDATED

    async def run(
        self,
        movies: Sequence[DesiredItem],
        series: Sequence[DesiredItem],
        managed_tags: Iterable[str],
    ) -> ReconcileStats:
        """Mirror labels for every desired movie and series.

        Args:
            movies (Sequence[DesiredItem]): Desired movies.
            series (Sequence[DesiredItem]): Desired series.
            managed_tags (Iterable[str]): Source tags this pass may add or remove.

        Returns:
            ReconcileStats: Outcome counters for the pass.
        """
        with log_scope(self.name):
            stats = ReconcileStats(target=self.name, dry_run=self.dry_run)
            managed = set(managed_tags) | set(self.config.tags)
            queue = AdaptiveTaskQueue(
                name=self.name,
                initial_concurrency=self.concurrency.initial,
                min_concurrency=self.concurrency.minimum,
                max_concurrency=self.concurrency.maximum,
                ramp_up_after=self.concurrency.ramp_up_after,
            )

            async def _sync(item: DesiredItem, kind: PlexKind) -> None:
                try:
                    outcome = await queue.add(
                        partial(self.sync_item, item, kind, managed)
                    )
                except Exception:
                    log.error(f"Failed to label {item!r}", exc_info=True)
                    outcome = ItemOutcome.FAILED
                stats.track(outcome)

            await asyncio.gather(
                *(_sync(item, "movie") for item in movies),
                *(_sync(item, "show") for item in series),
            )

            log.success(f"Label sync finished {stats.summary()}")
            return stats
