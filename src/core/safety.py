"""Safety lock aggregation over the source lists feeding one target."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date

from src import log
from src.config.settings import ListFilters, SourceListConfig
from src.core.sources.base import SourceCollector
from src.models.items import DesiredItem, SourceResult
from src.utils.queue import map_concurrency
from src.utils.schedule import is_active

__all__ = [
    "ListOutcome",
    "SafetyLock",
    "SafetyResult",
    "apply_filters",
    "merge_items",
]


@dataclass(slots=True)
class ListOutcome:
    """How one source list fared this pass."""

    list_id: str
    tags: frozenset[str]
    active: bool = True
    succeeded: bool = True
    complete: bool = True
    item_count: int = 0

    @property
    def safe(self) -> bool:
        """Whether the list's output can justify deletions."""
        return not self.active or (self.succeeded and self.complete)


@dataclass(slots=True)
class SafetyResult:
    """Desired items of one target plus the safety signals for its cleanup."""

    items: list[DesiredItem] = field(default_factory=list)
    managed_tags: set[str] = field(default_factory=set)
    unsafe_tags: set[str] = field(default_factory=set)
    abort_cleanup: bool = False
    lists: list[ListOutcome] = field(default_factory=list)

    @property
    def items_found(self) -> int:
        """Number of unique items that carry a primary identifier."""
        return sum(1 for item in self.items if item.external_id is not None)

    @property
    def failed_lists(self) -> list[str]:
        return [outcome.list_id for outcome in self.lists if not outcome.safe]


def _passes(item: DesiredItem, filters: ListFilters) -> bool:
    if filters.min_rating is not None and (
        item.rating is None or item.rating < filters.min_rating
    ):
        return False
    if filters.min_year is not None and (
        item.year is None or item.year < filters.min_year
    ):
        return False
    if filters.max_year is not None and (
        item.year is None or item.year > filters.max_year
    ):
        return False
    return True


def apply_filters(
    items: Sequence[DesiredItem], filters: ListFilters
) -> list[DesiredItem]:
    """Drop items outside a list's rating and year bounds.

    An item with an unknown rating or year is excluded by any filter on that
    field.
    """
    if filters.is_empty():
        return list(items)
    return [item for item in items if _passes(item, filters)]


def merge_items(items: Sequence[DesiredItem]) -> list[DesiredItem]:
    """Merge items that several lists declare, keyed by external id.

    Tags are unioned. The first quality override and the first season selector
    seen win. Items without an external id cannot be merged or synced and are
    dropped.

    Args:
        items (Sequence[DesiredItem]): Items in list order.

    Returns:
        list[DesiredItem]: One item per external id, in first-seen order.
    """
    merged: dict[int, DesiredItem] = {}
    for item in items:
        if item.external_id is None:
            continue
        seen = merged.get(item.external_id)
        if seen is None:
            merged[item.external_id] = item
            continue
        merged[item.external_id] = seen.model_copy(
            update={
                "tags": seen.tags | item.tags,
                "quality_override": seen.quality_override or item.quality_override,
                "season_selector": seen.season_selector or item.season_selector,
                "year": seen.year or item.year,
                "rating": seen.rating if seen.rating is not None else item.rating,
            }
        )
    return list(merged.values())


class SafetyLock:
    """Fetches a target's source lists and decides how much cleanup is safe.

    A list is unsafe when its fetch raised, when the collector reported errors,
    or when one of its entries lacks a primary identifier. A tagged unsafe list
    puts its tags in the unsafe set, which shields the items carrying them from
    deletion. An untagged unsafe list has no tag to scope the damage to, so it
    aborts cleanup for the whole target.
    """

    def __init__(
        self,
        collector_for: Callable[[SourceListConfig], SourceCollector],
        today: date | None = None,
    ) -> None:
        """Initialize the safety lock.

        Args:
            collector_for (Callable[[SourceListConfig], SourceCollector]): Returns
                the collector that can fetch a given list.
            today (date | None): Reference date for activity windows.
        """
        self.collector_for = collector_for
        self.today = today

    async def _fetch(self, list_config: SourceListConfig) -> SourceResult | None:
        try:
            return await self.collector_for(list_config).fetch(list_config)
        except Exception:
            log.error(f"Failed to fetch list $$'{list_config.id}'$$", exc_info=True)
            return None

    async def process(self, lists: Sequence[SourceListConfig]) -> SafetyResult:
        """Fetch every active list and aggregate items and safety signals.

        Args:
            lists (Sequence[SourceListConfig]): The lists feeding one target.

        Returns:
            SafetyResult: Merged items, managed and unsafe tags, and the abort
                flag.
        """
        result = SafetyResult()
        active: list[SourceListConfig] = []
        for list_config in lists:
            # Inactive lists keep their tags managed so out of season tags are
            # stripped from items
            result.managed_tags.update(list_config.tags)
            if is_active(list_config.active_from, list_config.active_until, self.today):
                active.append(list_config)
                continue
            log.info(
                f"List $$'{list_config.id}'$$ is outside its active window "
                f"$${{from: {list_config.active_from}, "
                f"until: {list_config.active_until}}}$$, skipping"
            )
            result.lists.append(
                ListOutcome(
                    list_id=list_config.id,
                    tags=frozenset(list_config.tags),
                    active=False,
                )
            )

        fetched = await map_concurrency(active, self._fetch)

        collected: list[DesiredItem] = []
        for list_config, source in zip(active, fetched, strict=True):
            outcome = ListOutcome(
                list_id=list_config.id, tags=frozenset(list_config.tags)
            )
            result.lists.append(outcome)

            if source is None:
                outcome.succeeded = False
            else:
                missing = sum(1 for item in source.items if item.external_id is None)
                outcome.item_count = len(source.items) - missing
                outcome.complete = not source.has_errors and not missing
                if missing:
                    log.warning(
                        f"List $$'{list_config.id}'$$ has {missing} item(s) "
                        "without a TMDB id"
                    )
                elif source.has_errors:
                    log.warning(
                        f"List $$'{list_config.id}'$$ was only partially fetched"
                    )
                collected.extend(apply_filters(source.items, list_config.filters))

            if outcome.safe:
                continue
            if list_config.tags:
                result.unsafe_tags.update(list_config.tags)
                log.warning(
                    f"List $$'{list_config.id}'$$ is incomplete, items tagged "
                    f"{sorted(list_config.tags)} will not be removed this pass"
                )
            else:
                result.abort_cleanup = True
                log.warning(
                    f"Untagged list $$'{list_config.id}'$$ is incomplete, cleanup "
                    "is disabled for this pass"
                )

        result.managed_tags -= result.unsafe_tags
        result.items = merge_items(collected)

        log.info(
            f"Collected {result.items_found} unique item(s) from {len(active)} "
            f"active list(s)"
            + (f", failed: {result.failed_lists}" if result.failed_lists else "")
        )
        return result
