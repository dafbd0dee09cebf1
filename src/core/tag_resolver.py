"""Tag name to target tag id resolution."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import partial
from typing import Generic, Protocol

from src import log
from src.config.settings import RetryConfig
from src.models.items import Tag, TagIdT
from src.utils.retry import retry_operation

__all__ = ["TagClient", "TagContext", "TagResolver"]


class TagClient(Protocol[TagIdT]):
    """The tag endpoints of a target."""

    async def list_tags(self) -> list[Tag[TagIdT]]:
        """Return every tag defined on the target."""
        ...

    async def create_tag(self, name: str) -> Tag[TagIdT]:
        """Create a tag and return it with its new id."""
        ...


@dataclass(slots=True)
class TagContext(Generic[TagIdT]):
    """Tag ids resolved for one reconciliation pass."""

    tag_map: dict[str, TagIdT] = field(default_factory=dict)
    managed_ids: frozenset[TagIdT] = frozenset()
    system_ids: frozenset[TagIdT] = frozenset()
    unsafe_ids: frozenset[TagIdT] = frozenset()
    ownership_id: TagIdT | None = None

    def ids_for(self, names: Iterable[str]) -> set[TagIdT]:
        """Map tag names to ids, silently dropping names that did not resolve."""
        return {self.tag_map[name] for name in names if name in self.tag_map}


class TagResolver(Generic[TagIdT]):
    """Resolves tag names to ids, creating missing tags on demand.

    Nothing is cached between calls: each ``resolve`` reads the target's full tag
    list once. Names are matched case-insensitively because Radarr and Sonarr
    lowercase labels on creation.
    """

    def __init__(
        self,
        client: TagClient[TagIdT],
        *,
        dry_run: bool = False,
        retry: RetryConfig | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            client (TagClient[TagIdT]): Target exposing the tag endpoints.
            dry_run (bool): Log tag creations instead of performing them.
            retry (RetryConfig | None): Retry policy for tag calls.
        """
        self.client = client
        self.dry_run = dry_run
        self.retry = retry or RetryConfig()

    async def _run(self, operation, name: str):
        return await retry_operation(
            operation,
            name,
            retries=self.retry.attempts,
            delay=self.retry.delay,
            backoff=self.retry.backoff,
        )

    async def _fetch(self) -> dict[str, Tag[TagIdT]]:
        tags = await self._run(self.client.list_tags, "fetch tags")
        return {tag.name.casefold(): tag for tag in tags}

    async def resolve(
        self, names: Iterable[str], lookup_only: Iterable[str] = ()
    ) -> dict[str, TagIdT]:
        """Map names to ids, creating tags that do not exist yet.

        A tag that fails to be created is logged and left out of the result, so
        callers treat it as not applicable for this run.

        Args:
            names (Iterable[str]): Tag names to resolve, creating missing ones.
            lookup_only (Iterable[str]): Tag names to include only if they already
                exist.

        Returns:
            dict[str, TagIdT]: Ids for every name that exists or was created.
        """
        wanted = sorted(set(names))
        lookups = set(lookup_only) - set(wanted)
        if not wanted and not lookups:
            return {}

        log.debug(f"Resolving {len(wanted) + len(lookups)} tag(s)")
        existing = await self._fetch()

        resolved: dict[str, TagIdT] = {
            name: existing[name.casefold()].id
            for name in lookups
            if name.casefold() in existing
        }
        for name in wanted:
            tag = existing.get(name.casefold())
            if tag is not None:
                resolved[name] = tag.id
                continue

            if self.dry_run:
                log.info(f"[DRY RUN] Would create tag $$'{name}'$$")
                continue

            try:
                tag = await self._run(
                    partial(self.client.create_tag, name), f"create tag '{name}'"
                )
            except Exception:
                log.error(f"Failed to create tag $$'{name}'$$", exc_info=True)
                continue

            log.info(f"Created tag $$'{name}'$$ $${{id: {tag.id}}}$$")
            existing[name.casefold()] = tag
            resolved[name] = tag.id

        return resolved

    async def build_context(
        self,
        item_tags: Iterable[str],
        managed_tags: Iterable[str],
        system_tags: list[str],
        unsafe_tags: Iterable[str] = (),
    ) -> TagContext[TagIdT]:
        """Resolve every tag a pass needs and derive the id sets.

        Unsafe tags are only looked up: a tag that does not exist cannot be on
        any item, so there is nothing to protect.

        Args:
            item_tags (Iterable[str]): Tags declared by desired items.
            managed_tags (Iterable[str]): Tags this pass may add or remove.
            system_tags (list[str]): Tags applied to every item; the first one
                marks ownership.
            unsafe_tags (Iterable[str]): Tags of lists that failed this run.

        Returns:
            TagContext[TagIdT]: The resolved ids.
        """
        managed = set(managed_tags) | set(system_tags)
        unsafe = set(unsafe_tags)
        tag_map = await self.resolve(set(item_tags) | managed, lookup_only=unsafe)
        return TagContext(
            tag_map=tag_map,
            managed_ids=frozenset(tag_map[n] for n in managed if n in tag_map),
            system_ids=frozenset(tag_map[n] for n in system_tags if n in tag_map),
            unsafe_ids=frozenset(tag_map[n] for n in unsafe if n in tag_map),
            ownership_id=tag_map.get(system_tags[0]) if system_tags else None,
        )
