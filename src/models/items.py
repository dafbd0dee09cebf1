"""Items exchanged between sources, the safety lock and reconcilers."""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "DesiredItem",
    "ManagedItem",
    "SeasonState",
    "SourceResult",
    "Tag",
    "TagIdT",
]

TagIdT = TypeVar("TagIdT", int, str)


@dataclass(frozen=True, slots=True)
class Tag(Generic[TagIdT]):
    """A named tag as stored by a target.

    Radarr and Sonarr identify tags by numeric id, Plex identifies labels by their
    text, so for Plex ``id`` and ``name`` are the same string.
    """

    name: str
    id: TagIdT


class DesiredItem(BaseModel):
    """An item some source list wants present on a target for this run.

    ``external_id`` is the TMDB id. Items without one cannot be added to any
    target and mark their list as incomplete.
    """

    model_config = ConfigDict(frozen=True)

    external_id: int | None
    title: str
    tags: frozenset[str] = frozenset()
    quality_override: str | None = None
    season_selector: frozenset[int] | None = None
    year: int | None = None
    rating: float | None = None

    def __repr__(self) -> str:
        return f"$$'{self.title}'$$ $${{tmdb_id: {self.external_id}}}$$"


@dataclass(slots=True)
class SeasonState:
    """Monitoring state of one season of a series."""

    number: int
    monitored: bool
    episode_count: int | None = None


@dataclass(slots=True)
class ManagedItem(Generic[TagIdT]):
    """A target's current record for an item, read fresh every run.

    ``raw`` keeps the target's full payload so updates can echo back fields this
    service does not model.
    """

    local_id: int | str
    external_id: int | None
    title: str
    tags: frozenset[TagIdT] = frozenset()
    monitored: bool = True
    seasons: list[SeasonState] = field(default_factory=list)
    secondary_id: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    def __repr__(self) -> str:
        return f"$$'{self.title}'$$ $${{id: {self.local_id}}}$$"


class SourceResult(BaseModel):
    """Outcome of fetching one source list.

    ``has_errors`` is set when some entries could not be read completely; the
    list's items are still returned.
    """

    items: list[DesiredItem] = Field(default_factory=list)
    has_errors: bool = False
