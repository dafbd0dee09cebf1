"""Collector and reconciler factory helpers."""

from pathlib import Path

from src.config.settings import SourceKind, SourceListConfig, WatchlistBridgeConfig
from src.core.reconcile import PlexLabelSyncer, RadarrReconciler, SonarrReconciler
from src.core.sources import MDBListCollector, SerializdCollector, SourceCollector
from src.core.targets import PlexClient, RadarrClient, SonarrClient
from src.exceptions import UnsupportedSourceError

__all__ = [
    "CollectorRegistry",
    "build_plex_syncer",
    "build_radarr_reconciler",
    "build_sonarr_reconciler",
]


class CollectorRegistry:
    """Creates one collector per source kind and reuses it across lists."""

    def __init__(self, data_path: Path, timeout: float = 30.0) -> None:
        self.data_path = data_path
        self.timeout = timeout
        self._collectors: dict[SourceKind, SourceCollector] = {}

    def _build(self, kind: SourceKind) -> SourceCollector:
        match kind:
            case SourceKind.MDBLIST:
                return MDBListCollector(timeout=self.timeout)
            case SourceKind.SERIALIZD:
                return SerializdCollector(self.data_path, timeout=self.timeout)
        raise UnsupportedSourceError(f"Unsupported source '{kind}'")

    def __call__(self, list_config: SourceListConfig) -> SourceCollector:
        """Return the collector able to fetch ``list_config``."""
        collector = self._collectors.get(list_config.source)
        if collector is None:
            collector = self._build(list_config.source)
            self._collectors[list_config.source] = collector
        return collector

    async def close(self) -> None:
        """Close every collector created so far."""
        for collector in self._collectors.values():
            await collector.close()
        self._collectors.clear()


def build_radarr_reconciler(config: WatchlistBridgeConfig) -> RadarrReconciler | None:
    """Instantiate the Radarr reconciler if Radarr is configured."""
    if config.radarr is None:
        return None
    client = RadarrClient(
        "radarr",
        config.radarr.url,
        config.radarr.api_key.get_secret_value(),
        timeout=config.request_timeout,
    )
    return RadarrReconciler(
        client,
        config.radarr,
        dry_run=config.dry_run,
        override_tags=config.override_tags,
        remove_missing_items=config.remove_missing_items,
        retry=config.retry,
        concurrency=config.concurrency,
    )


def build_sonarr_reconciler(config: WatchlistBridgeConfig) -> SonarrReconciler | None:
    """Instantiate the Sonarr reconciler if Sonarr is configured."""
    if config.sonarr is None:
        return None
    client = SonarrClient(
        "sonarr",
        config.sonarr.url,
        config.sonarr.api_key.get_secret_value(),
        timeout=config.request_timeout,
    )
    return SonarrReconciler(
        client,
        config.sonarr,
        dry_run=config.dry_run,
        override_tags=config.override_tags,
        remove_missing_items=config.remove_missing_items,
        retry=config.retry,
        concurrency=config.concurrency,
    )


def build_plex_syncer(config: WatchlistBridgeConfig) -> PlexLabelSyncer | None:
    """Instantiate the Plex label syncer if Plex is configured."""
    if config.plex is None:
        return None
    client = PlexClient(
        config.plex.url,
        config.plex.token.get_secret_value(),
        timeout=config.request_timeout,
    )
    return PlexLabelSyncer(
        client,
        config.plex,
        dry_run=config.dry_run,
        retry=config.retry,
        concurrency=config.concurrency,
    )
