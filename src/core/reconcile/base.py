"""Base reconciler for Radarr/Sonarr style targets."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Any, ClassVar, Generic, TypeVar

from src import log
from src.config.settings import ArrTargetConfig, ConcurrencyConfig, RetryConfig
from src.core.reconcile.stats import ItemOutcome, ReconcileStats
from src.core.tag_resolver import TagContext, TagResolver
from src.core.tags import next_tags
from src.core.targets.base import ArrClient
from src.exceptions import TargetAlreadyExistsError, TargetConfigError
from src.models.items import DesiredItem, ManagedItem
from src.utils.logging import log_scope
from src.utils.queue import AdaptiveTaskQueue
from src.utils.retry import retry_operation

__all__ = ["BaseReconciler", "ItemMatch", "SyncContext"]

T = TypeVar("T")
ClientT = TypeVar("ClientT", bound=ArrClient)


@dataclass(slots=True)
class SyncContext:
    """Everything resolved once per pass before items are touched."""

    tags: TagContext[int]
    quality_profile_id: int
    root_folder_path: str
    quality_overrides: dict[str, int] = field(default_factory=dict)

    def quality_profile_for(self, item: DesiredItem) -> int:
        """The item's override profile if it resolved, else the default."""
        if item.quality_override:
            return self.quality_overrides.get(
                item.quality_override, self.quality_profile_id
            )
        return self.quality_profile_id


@dataclass(slots=True)
class ItemMatch:
    """Result of matching a desired item against the inventory.

    ``candidate`` carries target lookup data needed to add the item, if any.
    """

    existing: ManagedItem[int] | None = None
    candidate: dict[str, Any] | None = None


class BaseReconciler(ABC, Generic[ClientT]):
    """Reconciles one target's inventory with the desired items of a pass.

    A pass resolves the quality profile, root folder and tags, reads the
    inventory once, then adds or updates every desired item through an adaptive
    queue. Only after all of them finished, owned items that are no longer
    desired are deleted from the start-of-pass snapshot, unless the safety lock
    aborted cleanup or the item carries an unsafe tag.
    """

    ITEM_NOUN: ClassVar[str] = "item"

    def __init__(
        self,
        client: ClientT,
        target_config: ArrTargetConfig,
        *,
        dry_run: bool = False,
        override_tags: bool = False,
        remove_missing_items: bool = False,
        retry: RetryConfig | None = None,
        concurrency: ConcurrencyConfig | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            client (ClientT): Target client.
            target_config (ArrTargetConfig): The target's settings.
            dry_run (bool): Log mutations instead of performing them.
            override_tags (bool): Manage tags on items without the ownership tag.
            remove_missing_items (bool): Allow the cleanup phase to delete items.
            retry (RetryConfig | None): Retry policy for network calls.
            concurrency (ConcurrencyConfig | None): Adaptive queue bounds.
        """
        self.client = client
        self.config = target_config
        self.dry_run = dry_run
        self.override_tags = override_tags
        self.remove_missing_items = remove_missing_items
        self.retry = retry or RetryConfig()
        self.concurrency = concurrency or ConcurrencyConfig()
        self.resolver: TagResolver[int] = TagResolver(
            client, dry_run=dry_run, retry=self.retry
        )

        self._identity_failures = 0
        self._abort_cleanup = False

    @property
    def name(self) -> str:
        return self.client.name

    async def _call(self, operation: Callable[[], Awaitable[T]], name: str) -> T:
        """Run a network call under the retry policy."""
        return await retry_operation(
            operation,
            name,
            retries=self.retry.attempts,
            delay=self.retry.delay,
            backoff=self.retry.backoff,
        )

    def _new_queue(self) -> AdaptiveTaskQueue:
        return AdaptiveTaskQueue(
            name=self.name,
            initial_concurrency=self.concurrency.initial,
            min_concurrency=self.concurrency.minimum,
            max_concurrency=self.concurrency.maximum,
            ramp_up_after=self.concurrency.ramp_up_after,
        )

    # Pass setup

    async def _resolve_quality_profiles(
        self, items: Sequence[DesiredItem]
    ) -> tuple[int, dict[str, int]]:
        profiles = await self._call(
            self.client.list_quality_profiles, "fetch quality profiles"
        )
        by_name = {p["name"].casefold(): int(p["id"]) for p in profiles}

        default_id = by_name.get(self.config.quality_profile.casefold())
        if default_id is None:
            raise TargetConfigError(
                f"{self.name}: quality profile '{self.config.quality_profile}' "
                f"not found, available: {sorted(p['name'] for p in profiles)}"
            )

        overrides: dict[str, int] = {}
        for name in {i.quality_override for i in items if i.quality_override}:
            profile_id = by_name.get(name.casefold())
            if profile_id is None:
                log.warning(
                    f"Quality profile override $$'{name}'$$ not found, using "
                    f"$$'{self.config.quality_profile}'$$"
                )
                continue
            overrides[name] = profile_id
        return default_id, overrides

    async def _resolve_root_folder(self) -> str:
        configured = self.config.root_folder.strip()
        if configured.startswith("/"):
            return configured

        folders = await self._call(self.client.list_root_folders, "fetch root folders")
        if not configured:
            if not folders:
                raise TargetConfigError(f"{self.name}: no root folders are configured")
            return folders[0]["path"]

        for folder in folders:
            if str(folder.get("id")) == configured:
                return folder["path"]
        raise TargetConfigError(
            f"{self.name}: root folder '{configured}' not found, available: "
            f"{[(f.get('id'), f.get('path')) for f in folders]}"
        )

    async def prepare(
        self,
        items: Sequence[DesiredItem],
        managed_tags: Iterable[str],
        unsafe_tags: Iterable[str],
    ) -> SyncContext:
        """Resolve everything the pass needs before touching any item.

        Raises:
            TargetConfigError: If the quality profile or root folder is missing.
        """
        quality_profile_id, overrides = await self._resolve_quality_profiles(items)
        root_folder_path = await self._resolve_root_folder()
        tags = await self.resolver.build_context(
            item_tags={tag for item in items for tag in item.tags},
            managed_tags=managed_tags,
            system_tags=self.config.tags,
            unsafe_tags=unsafe_tags,
        )
        if tags.ownership_id is None:
            log.warning(
                f"Ownership tag $$'{self.config.ownership_tag}'$$ is unavailable; "
                "tag updates and cleanup are limited this pass"
            )
        return SyncContext(
            tags=tags,
            quality_profile_id=quality_profile_id,
            root_folder_path=root_folder_path,
            quality_overrides=overrides,
        )

    # Identity

    def index_inventory(
        self, inventory: Sequence[ManagedItem[int]]
    ) -> dict[int, ManagedItem[int]]:
        """Index the inventory by external id."""
        return {item.external_id: item for item in inventory if item.external_id}

    async def match(
        self, item: DesiredItem, index: dict[int, ManagedItem[int]]
    ) -> ItemMatch:
        """Find the inventory record of a desired item."""
        return ItemMatch(existing=index.get(item.external_id))

    # Add

    @abstractmethod
    def build_add_payload(
        self, item: DesiredItem, match: ItemMatch, ctx: SyncContext
    ) -> dict[str, Any] | None:
        """Build the create payload, or None if the item cannot be added."""

    def desired_tag_ids(self, item: DesiredItem, ctx: SyncContext) -> set[int]:
        """System tags plus the item's own tags, dropping unresolved names."""
        return set(ctx.tags.system_ids) | ctx.tags.ids_for(item.tags)

    async def add(
        self, item: DesiredItem, match: ItemMatch, ctx: SyncContext
    ) -> ItemOutcome:
        payload = self.build_add_payload(item, match, ctx)
        if payload is None:
            log.warning(f"Could not find {item!r}, skipping")
            return ItemOutcome.NOT_FOUND

        if self.dry_run:
            log.info(f"[DRY RUN] Would add {self.ITEM_NOUN} {item!r}")
            return ItemOutcome.ADDED

        try:
            await self._call(
                partial(self.client.create, payload), f"add {item.title}"
            )
        except TargetAlreadyExistsError:
            log.debug(f"{item!r} already exists, nothing to add")
            return ItemOutcome.EXISTS

        log.success(f"Added {self.ITEM_NOUN} {item!r}")
        return ItemOutcome.ADDED

    # Update

    def is_owned(self, existing: ManagedItem[int], ctx: SyncContext) -> bool:
        return ctx.tags.ownership_id is not None and (
            ctx.tags.ownership_id in existing.tags
        )

    def build_update(
        self, item: DesiredItem, existing: ManagedItem[int], ctx: SyncContext
    ) -> dict[str, Any]:
        """Compute the fields of ``existing`` that need to change.

        Returns:
            dict[str, Any]: Changed fields, empty when the item is in sync.
        """
        new_tags = next_tags(
            existing.tags, ctx.tags.managed_ids, self.desired_tag_ids(item, ctx)
        )
        if new_tags != existing.tags:
            return {"tags": sorted(new_tags)}
        return {}

    async def update(
        self, item: DesiredItem, existing: ManagedItem[int], ctx: SyncContext
    ) -> ItemOutcome:
        if not (self.is_owned(existing, ctx) or self.override_tags):
            log.debug(f"{existing!r} is not managed by WatchlistBridge, skipping")
            return ItemOutcome.NOT_OWNED

        changes = self.build_update(item, existing, ctx)
        if not changes:
            return ItemOutcome.UNCHANGED

        if self.dry_run:
            log.info(
                f"[DRY RUN] Would update {self.ITEM_NOUN} {existing!r} "
                f"$${{{', '.join(f'{k}: {v}' for k, v in changes.items())}}}$$"
            )
            return ItemOutcome.UPDATED

        await self._call(
            partial(self.client.update, existing, {**existing.raw, **changes}),
            f"update {existing.title}",
        )
        log.info(f"Updated {self.ITEM_NOUN} {existing!r} $${{{', '.join(changes)}}}$$")
        return ItemOutcome.UPDATED

    async def process_item(
        self,
        item: DesiredItem,
        index: dict[int, ManagedItem[int]],
        ctx: SyncContext,
        keep: set[int | str],
    ) -> ItemOutcome:
        """Add or update a single desired item.

        The matched inventory record goes into ``keep`` before any mutation, so
        a failed update never leaves a listed item open to cleanup.

        Args:
            item (DesiredItem): The listed item.
            index (dict[int, ManagedItem[int]]): Inventory keyed by TMDB id.
            ctx (SyncContext): Resolved pass context.
            keep (set[int | str]): Local ids cleanup must leave alone.

        Returns:
            ItemOutcome: What happened to the item.
        """
        if item.external_id is None:
            log.info(f"{item!r} has no TMDB id and cannot be synced, skipping")
            return ItemOutcome.SKIPPED

        try:
            match = await self.match(item, index)
        except Exception:
            self._identity_failures += 1
            raise

        if match.existing is None:
            return await self.add(item, match, ctx)
        keep.add(match.existing.local_id)
        return await self.update(item, match.existing, ctx)

    # Cleanup

    def cleanup_candidates(
        self,
        inventory: Sequence[ManagedItem[int]],
        desired_ids: set[int],
        keep: set[int | str],
        ctx: SyncContext,
        stats: ReconcileStats,
    ) -> list[ManagedItem[int]]:
        """Select owned items that no desired item accounts for."""
        candidates = []
        for existing in inventory:
            if not self.is_owned(existing, ctx):
                continue
            if existing.local_id in keep or existing.external_id in desired_ids:
                continue
            if existing.tags & ctx.tags.unsafe_ids:
                log.info(
                    f"Keeping {existing!r}: it carries a tag of a list that did "
                    "not sync completely"
                )
                stats.track(ItemOutcome.PROTECTED)
                continue
            if existing.external_id is None and self._identity_failures:
                log.info(
                    f"Keeping {existing!r}: it has no TMDB id and some lookups "
                    "failed this pass"
                )
                stats.track(ItemOutcome.PROTECTED)
                continue
            candidates.append(existing)
        return candidates

    async def delete(self, existing: ManagedItem[int]) -> ItemOutcome:
        if self.dry_run:
            log.info(f"[DRY RUN] Would delete {self.ITEM_NOUN} {existing!r}")
            return ItemOutcome.DELETED

        await self._call(
            partial(self.client.delete, existing), f"delete {existing.title}"
        )
        log.success(f"Deleted {self.ITEM_NOUN} {existing!r}")
        return ItemOutcome.DELETED

    async def cleanup(
        self,
        inventory: Sequence[ManagedItem[int]],
        desired_ids: set[int],
        keep: set[int | str],
        ctx: SyncContext,
        stats: ReconcileStats,
        abort_cleanup: bool,
    ) -> None:
        if not self.remove_missing_items:
            log.debug("Removal of missing items is disabled, skipping cleanup")
            return
        if abort_cleanup:
            log.warning(
                "Cleanup aborted: a list without tags failed to sync, so no "
                f"{self.ITEM_NOUN} can safely be removed this pass"
            )
            return
        if ctx.tags.ownership_id is None:
            log.warning("Cleanup skipped: the ownership tag could not be resolved")
            return

        stats.cleanup_ran = True
        candidates = self.cleanup_candidates(inventory, desired_ids, keep, ctx, stats)
        if not candidates:
            log.info(f"No {self.ITEM_NOUN}s to remove")
            return

        log.info(f"Removing {len(candidates)} {self.ITEM_NOUN}(s) no longer listed")
        queue = self._new_queue()

        async def _delete(existing: ManagedItem[int]) -> None:
            try:
                stats.track(await queue.add(partial(self.delete, existing)))
            except Exception:
                log.error(f"Failed to delete {existing!r}", exc_info=True)
                stats.track(ItemOutcome.FAILED)

        await asyncio.gather(*(_delete(existing) for existing in candidates))

    # Pass

    async def run(
        self,
        desired: Sequence[DesiredItem],
        managed_tags: Iterable[str],
        unsafe_tags: Iterable[str] = (),
        abort_cleanup: bool = False,
    ) -> ReconcileStats:
        """Run one reconciliation pass.

        Args:
            desired (Sequence[DesiredItem]): Items that should be on the target.
            managed_tags (Iterable[str]): Source tags this pass may add or remove.
            unsafe_tags (Iterable[str]): Tags of lists that failed this pass;
                items carrying them are never deleted.
            abort_cleanup (bool): Skip the deletion phase entirely.

        Returns:
            ReconcileStats: Outcome counters for the pass.

        Raises:
            TargetConfigError: If the target's configuration cannot be resolved.
            Exception: If the inventory cannot be read after retries.
        """
        with log_scope(self.name):
            stats = ReconcileStats(target=self.name, dry_run=self.dry_run)
            self._identity_failures = 0
            self._abort_cleanup = abort_cleanup

            ctx = await self.prepare(desired, managed_tags, unsafe_tags)

            inventory = await self._call(self.client.list_all, "fetch inventory")
            index = self.index_inventory(inventory)
            log.info(
                f"Processing {len(desired)} listed {self.ITEM_NOUN}(s) against "
                f"{len(inventory)} existing"
            )

            queue = self._new_queue()
            keep: set[int | str] = set()

            async def _process(item: DesiredItem) -> None:
                try:
                    outcome = await queue.add(
                        partial(self.process_item, item, index, ctx, keep)
                    )
                except Exception:
                    log.error(f"Failed to sync {item!r}", exc_info=True)
                    stats.track(ItemOutcome.FAILED)
                    return
                stats.track(outcome)

            await asyncio.gather(*(_process(item) for item in desired))

            desired_ids = {i.external_id for i in desired if i.external_id is not None}
            await self.cleanup(inventory, desired_ids, keep, ctx, stats, abort_cleanup)

            log.success(f"Reconciliation finished {stats.summary()}")
            return stats
