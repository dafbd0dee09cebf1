"""Bridge Client Module."""

from collections.abc import Sequence
from datetime import UTC, date, datetime

from src import log
from src.config.settings import SourceListConfig, WatchlistBridgeConfig
from src.core.factory import (
    CollectorRegistry,
    build_plex_syncer,
    build_radarr_reconciler,
    build_sonarr_reconciler,
)
from src.core.reconcile import (
    BaseReconciler,
    PlexLabelSyncer,
    RadarrReconciler,
    ReconcileStats,
    SonarrReconciler,
)
from src.core.safety import SafetyLock, SafetyResult
from src.exceptions import TargetConfigError
from src.web.state import AppState, AppStatus, ComponentStatus, get_app_state

__all__ = ["BridgeClient"]


class BridgeClient:
    """Runs synchronization passes across every configured target.

    Each pass feeds the movie lists to Radarr and the series lists to Sonarr
    through the safety lock, then mirrors the tags of both onto Plex labels. A
    failing target never stops the others; its component health is set to
    error instead.
    """

    def __init__(
        self,
        config: WatchlistBridgeConfig,
        state: AppState | None = None,
        *,
        radarr: RadarrReconciler | None = None,
        sonarr: SonarrReconciler | None = None,
        plex: PlexLabelSyncer | None = None,
        registry: CollectorRegistry | None = None,
    ) -> None:
        """Initialize the bridge client.

        Args:
            config (WatchlistBridgeConfig): The application configuration.
            state (AppState | None): State receiving status and component health.
            radarr (RadarrReconciler | None): Radarr reconciler, built from the
                configuration when omitted.
            sonarr (SonarrReconciler | None): Sonarr reconciler, built from the
                configuration when omitted.
            plex (PlexLabelSyncer | None): Plex label syncer, built from the
                configuration when omitted.
            registry (CollectorRegistry | None): Source collectors.
        """
        self.config = config
        self.state = state or get_app_state()
        self.radarr = radarr or build_radarr_reconciler(config)
        self.sonarr = sonarr or build_sonarr_reconciler(config)
        self.plex = plex or build_plex_syncer(config)
        self.registry = registry or CollectorRegistry(
            config.data_path, timeout=config.request_timeout
        )

        self.last_synced: datetime | None = None
        self.last_stats: dict[str, ReconcileStats] = {}

        for name, target in (
            ("radarr", self.radarr),
            ("sonarr", self.sonarr),
            ("plex", self.plex),
        ):
            if target is None:
                self.state.set_component_health(name, ComponentStatus.DISABLED)

    async def close(self) -> None:
        """Close all target and source connections."""
        log.debug("Closing bridge client")
        for target in (self.radarr, self.sonarr, self.plex):
            if target is not None:
                await target.client.close()
        await self.registry.close()

    async def __aenter__(self) -> "BridgeClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def _collect(
        self, kind: str, lists: Sequence[SourceListConfig], today: date | None
    ) -> SafetyResult:
        """Fetch a set of lists through the safety lock and report their health."""
        result = await SafetyLock(self.registry, today=today).process(lists)

        failed = result.failed_lists
        self.state.set_component_health(
            f"{kind}_lists",
            ComponentStatus.ERROR if failed else ComponentStatus.OK,
            f"Incomplete lists: {', '.join(failed)}" if failed else None,
        )
        return result

    async def _reconcile(
        self, reconciler: BaseReconciler, result: SafetyResult
    ) -> ReconcileStats | None:
        """Run one arr target and record its health."""
        name = reconciler.name
        if result.items_found == 0:
            log.warning(
                f"[{name}] No items were found in any list, skipping the pass so "
                "an empty fetch cannot remove anything"
            )
            self.state.set_component_health(
                name, ComponentStatus.OK, "No items found, pass skipped"
            )
            return None

        try:
            stats = await reconciler.run(
                result.items,
                result.managed_tags,
                result.unsafe_tags,
                result.abort_cleanup,
            )
        except TargetConfigError as e:
            log.error(f"[{name}] Configuration error, target skipped: {e}")
            self.state.set_component_health(name, ComponentStatus.ERROR, str(e))
            return None
        except Exception as e:
            log.error(f"[{name}] Reconciliation failed", exc_info=True)
            self.state.set_component_health(name, ComponentStatus.ERROR, str(e))
            return None

        self.state.set_component_health(name, ComponentStatus.OK)
        return stats

    async def sync(self, today: date | None = None) -> dict[str, ReconcileStats]:
        """Run one synchronization pass over every configured target.

        Args:
            today (date | None): Reference date for list activity windows.

        Returns:
            dict[str, ReconcileStats]: Outcome counters per target that ran.
        """
        log.info(
            f"Starting {'dry run ' if self.config.dry_run else ''}sync "
            f"{'with' if self.config.remove_missing_items else 'without'} removals"
        )
        sync_start_time = datetime.now(UTC)
        self.state.set_status(AppStatus.SYNCING)

        stats: dict[str, ReconcileStats] = {}
        try:
            movies: SafetyResult | None = None
            series: SafetyResult | None = None
            if self.config.movie_lists and (self.radarr or self.plex):
                movies = await self._collect("movie", self.config.movie_lists, today)
            if self.config.series_lists and (self.sonarr or self.plex):
                series = await self._collect("series", self.config.series_lists, today)

            for reconciler, result in ((self.radarr, movies), (self.sonarr, series)):
                if reconciler is None or result is None:
                    continue
                target_stats = await self._reconcile(reconciler, result)
                if target_stats is not None:
                    stats[reconciler.name] = target_stats

            if self.plex is not None and (movies is not None or series is not None):
                plex_stats = await self._sync_plex(self.plex, movies, series)
                if plex_stats is not None:
                    stats[self.plex.name] = plex_stats
        except Exception:
            self.state.set_status(AppStatus.ERROR)
            log.error("Sync failed", exc_info=True)
            raise

        self.last_synced = sync_start_time
        self.last_stats = stats
        self.state.mark_run_complete()

        duration = datetime.now(UTC) - sync_start_time
        log.success(
            f"Sync completed for {len(stats)} target(s) in "
            f"{duration.total_seconds():.2f} seconds"
        )
        return stats

    async def _sync_plex(
        self,
        plex: PlexLabelSyncer,
        movies: SafetyResult | None,
        series: SafetyResult | None,
    ) -> ReconcileStats | None:
        """Mirror the tags of both list kinds onto Plex labels."""
        managed: set[str] = set()
        for result in (movies, series):
            if result is not None:
                managed |= result.managed_tags

        try:
            stats = await plex.run(
                movies.items if movies else [],
                series.items if series else [],
                managed,
            )
        except Exception as e:
            log.error("[plex] Label sync failed", exc_info=True)
            self.state.set_component_health(plex.name, ComponentStatus.ERROR, str(e))
            return None

        self.state.set_component_health(plex.name, ComponentStatus.OK)
        return stats
