"""WatchlistBridge Configuration Settings."""

import os
import re
from enum import StrEnum
from functools import cached_property, lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from src.utils.logging import _get_logger

__all__ = [
    "ArrTargetConfig",
    "ConcurrencyConfig",
    "ListFilters",
    "LogLevel",
    "PlexTargetConfig",
    "RadarrConfig",
    "RetryConfig",
    "SeasonMonitoring",
    "SonarrConfig",
    "SourceKind",
    "SourceListConfig",
    "TakeStrategy",
    "WatchlistBridgeConfig",
    "get_config",
]

_log = _get_logger(__name__)

DEFAULT_OWNERSHIP_TAG = "watchlistbridge"
_MONTH_DAY_PATTERN = re.compile(r"^(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])$")


def get_data_path() -> Path:
    """Resolve the data directory from ``WB_DATA_PATH`` (default ``./data``)."""
    return Path(os.getenv("WB_DATA_PATH", "./data")).resolve()


def find_yaml_config_file() -> Path:
    """Find the YAML configuration file in the data path.

    Returns:
        Path: The path to an existing YAML configuration file or the default location.
    """
    data_path = get_data_path()

    for ext in ("yaml", "yml"):
        yaml_file = data_path / f"config.{ext}"
        if yaml_file.exists():
            _log.debug(f"Using YAML config file: {yaml_file}")
            return yaml_file
    return data_path / "config.yaml"


class BaseStrEnum(StrEnum):
    """String enumeration with case-insensitive lookup."""

    @classmethod
    def _missing_(cls, value: object) -> "BaseStrEnum | None":
        value = value.lower() if isinstance(value, str) else value
        for member in cls:
            if member.lower() == value:
                return member
        return None

    def __repr__(self) -> str:
        return self.value

    def __str__(self) -> str:
        return repr(self)


class LogLevel(BaseStrEnum):
    """Enumeration of available logging levels.

    Note: SUCCESS is a custom level used by this application.
    """

    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class SeasonMonitoring(BaseStrEnum):
    """Which seasons of a newly added series are monitored.

    all: Every season
    first: Only season 1
    latest: Only the highest numbered season
    future: Seasons that have no episodes yet
    none: Nothing is monitored
    """

    ALL = "all"
    FIRST = "first"
    LATEST = "latest"
    FUTURE = "future"
    NONE = "none"


class SourceKind(BaseStrEnum):
    """Collectors that can produce desired items."""

    MDBLIST = "mdblist"
    SERIALIZD = "serializd"


class TakeStrategy(BaseStrEnum):
    """Which end of a list ``take_amount`` keeps."""

    NEWEST = "newest"
    OLDEST = "oldest"


class ListFilters(BaseModel):
    """Per-list item filters. Items with an unknown value never pass a set filter."""

    min_rating: float | None = Field(
        default=None, ge=0, le=10, description="Minimum rating on a 0-10 scale"
    )
    min_year: int | None = Field(default=None, description="Earliest release year")
    max_year: int | None = Field(default=None, description="Latest release year")

    def is_empty(self) -> bool:
        """Whether no filter is set."""
        return (
            self.min_rating is None and self.min_year is None and self.max_year is None
        )


class SourceListConfig(BaseModel):
    """A single watchlist feeding one target."""

    source: SourceKind = Field(description="Collector used to fetch the list")
    id: str = Field(description="Display name used in logs and health output")
    url: str = Field(description="List URL or user profile URL")
    tags: list[str] = Field(
        default_factory=list, description="Tags applied to every item of this list"
    )
    quality_profile: str | None = Field(
        default=None, description="Quality profile override for items of this list"
    )
    active_from: str | None = Field(
        default=None, description="Start of the yearly activity window (MM-DD)"
    )
    active_until: str | None = Field(
        default=None, description="End of the yearly activity window (MM-DD)"
    )
    take_amount: int | None = Field(
        default=None, ge=1, description="Only keep this many items of the list"
    )
    take_strategy: TakeStrategy = Field(
        default=TakeStrategy.NEWEST, description="Which end of the list to keep"
    )
    filters: ListFilters = Field(
        default_factory=ListFilters, description="Item filters"
    )

    @field_validator("active_from", "active_until")
    @classmethod
    def validate_month_day(cls, value: str | None) -> str | None:
        """Ensure activity window bounds look like ``MM-DD``."""
        if value is not None and not _MONTH_DAY_PATTERN.match(value):
            raise ValueError(f"'{value}' is not a valid MM-DD date")
        return value

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, value: list[str]) -> list[str]:
        """Drop blank tag names and surrounding whitespace."""
        return [tag.strip() for tag in value if tag.strip()]


class RetryConfig(BaseModel):
    """Retry policy for individual network calls."""

    attempts: int = Field(default=5, ge=1, description="Maximum attempts per call")
    delay: float = Field(
        default=2.0, ge=0, description="Seconds to wait before the first retry"
    )
    backoff: float = Field(
        default=1.0, ge=1, description="Multiplier applied to the delay per retry"
    )


class ConcurrencyConfig(BaseModel):
    """Adaptive concurrency bounds for item-level target calls."""

    initial: int = Field(default=2, ge=1)
    minimum: int = Field(default=1, ge=1)
    maximum: int = Field(default=20, ge=1)
    ramp_up_after: int = Field(
        default=5, ge=1, description="Consecutive successes needed to ramp up"
    )

    @model_validator(mode="after")
    def validate_bounds(self) -> "ConcurrencyConfig":
        """Ensure minimum <= initial <= maximum."""
        if not self.minimum <= self.initial <= self.maximum:
            raise ValueError("concurrency must satisfy minimum <= initial <= maximum")
        return self


class ArrTargetConfig(BaseModel):
    """Settings shared by Radarr and Sonarr targets."""

    url: str = Field(description="Base URL, e.g. http://radarr:7878")
    api_key: SecretStr = Field(description="API key sent as X-Api-Key")
    quality_profile: str = Field(
        default="Any", description="Default quality profile name"
    )
    root_folder: str = Field(
        default="",
        description="Root folder path (starting with '/') or id; empty uses the first",
    )
    tags: list[str] = Field(
        default_factory=lambda: [DEFAULT_OWNERSHIP_TAG],
        description="System tags applied to every item; the first marks ownership",
    )
    add_unmonitored: bool = Field(
        default=False, description="Add new items without monitoring them"
    )
    search_on_add: bool = Field(
        default=True, description="Trigger a search right after adding an item"
    )

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Normalize the base URL."""
        return value.rstrip("/")

    @field_validator("tags")
    @classmethod
    def ensure_ownership_tag(cls, value: list[str]) -> list[str]:
        """Fall back to the default ownership tag when no tags are configured."""
        tags = [tag.strip() for tag in value if tag.strip()]
        return tags or [DEFAULT_OWNERSHIP_TAG]

    @property
    def ownership_tag(self) -> str:
        """The system tag marking items as created by WatchlistBridge."""
        return self.tags[0]


class RadarrConfig(ArrTargetConfig):
    """Radarr target settings."""

    minimum_availability: str = Field(
        default="released",
        description="Radarr minimum availability (announced, inCinemas, released)",
    )


class SonarrConfig(ArrTargetConfig):
    """Sonarr target settings."""

    season_monitoring: SeasonMonitoring = Field(
        default=SeasonMonitoring.ALL,
        description="Season monitoring strategy for series added without a selector",
    )
    prune_unmonitored_seasons: bool = Field(
        default=False,
        description=(
            "Delete episode files of seasons a list no longer selects "
            "(requires remove_missing_items)"
        ),
    )


class PlexTargetConfig(BaseModel):
    """Plex label mirroring settings."""

    url: str = Field(description="Plex server URL, e.g. http://plex:32400")
    token: SecretStr = Field(description="Plex authentication token")
    tags: list[str] = Field(
        default_factory=list, description="Labels applied to every matched item"
    )

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Normalize the base URL."""
        return value.rstrip("/")


class WebConfig(BaseModel):
    """Configuration for the embedded health server."""

    enabled: bool = Field(default=True, description="Serve the /health endpoint")
    host: str = Field(default="0.0.0.0", description="Host for the web server")
    port: int = Field(default=4949, description="Port for the web server")


class WatchlistBridgeConfig(BaseSettings):
    """Application configuration.

    Configuration is sourced from init parameters, ``WB_``-prefixed environment
    variables (``__`` separates nested keys) and finally the YAML file in the
    data path.
    """

    log_level: LogLevel = Field(
        default=LogLevel.INFO, description="Logging level for the application"
    )
    dry_run: bool = Field(
        default=False, description="Log every change without applying it"
    )
    remove_missing_items: bool = Field(
        default=False,
        description="Delete owned items that no longer appear on any list",
    )
    override_tags: bool = Field(
        default=False,
        description="Manage tags on items that lack the ownership tag",
    )
    sync_interval: int = Field(
        default=60, ge=10, description="Minutes between synchronization passes"
    )
    run_once: bool = Field(
        default=False, description="Run a single pass and exit"
    )
    request_timeout: float = Field(
        default=30.0, gt=0, description="Hard timeout in seconds for each request"
    )
    retry: RetryConfig = Field(default_factory=RetryConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)

    radarr: RadarrConfig | None = Field(default=None, description="Radarr target")
    sonarr: SonarrConfig | None = Field(default=None, description="Sonarr target")
    plex: PlexTargetConfig | None = Field(
        default=None, description="Plex label target"
    )

    movie_lists: list[SourceListConfig] = Field(
        default_factory=list, description="Lists feeding Radarr"
    )
    series_lists: list[SourceListConfig] = Field(
        default_factory=list, description="Lists feeding Sonarr"
    )

    web: WebConfig = Field(
        default_factory=WebConfig, description="Embedded web server configuration"
    )

    @cached_property
    def data_path(self) -> Path:
        """Data directory holding the config, logs and source caches."""
        return get_data_path()

    @model_validator(mode="after")
    def validate_lists(self) -> "WatchlistBridgeConfig":
        """Warn about lists that can never be synchronized.

        Raises:
            ValueError: If a list id is used more than once for the same target.
        """
        for name, lists in (
            ("movie_lists", self.movie_lists),
            ("series_lists", self.series_lists),
        ):
            ids = [lst.id for lst in lists]
            duplicates = {i for i in ids if ids.count(i) > 1}
            if duplicates:
                raise ValueError(f"{name} has duplicate ids: {sorted(duplicates)}")

        if self.movie_lists and self.radarr is None and self.plex is None:
            _log.warning("movie_lists are configured but no movie target is set")
        if self.series_lists and self.sonarr is None and self.plex is None:
            _log.warning("series_lists are configured but no series target is set")
        if self.remove_missing_items and self.dry_run:
            _log.info("Dry run is enabled; removals will only be logged")
        return self

    def __str__(self) -> str:
        targets = [
            name
            for name, target in (
                ("radarr", self.radarr),
                ("sonarr", self.sonarr),
                ("plex", self.plex),
            )
            if target is not None
        ]
        return (
            f"WatchlistBridge Config: targets={targets or 'none'}, "
            f"movie_lists={len(self.movie_lists)}, "
            f"series_lists={len(self.series_lists)}, "
            f"DATA_PATH: {self.data_path}, LOG_LEVEL: {self.log_level}, "
            f"DRY_RUN: {self.dry_run}"
        )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the order of configuration sources."""
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=find_yaml_config_file()),
        )

    model_config = SettingsConfigDict(
        extra="ignore", env_prefix="WB_", env_nested_delimiter="__"
    )


@lru_cache(maxsize=1)
def get_config() -> "WatchlistBridgeConfig":
    """Get the singleton instance of WatchlistBridgeConfig."""
    return WatchlistBridgeConfig()
