"""Application state shared by the scheduler and the health endpoint.

The scheduler and bridge report progress through the setters here; the web
layer only reads snapshots.
"""

from datetime import UTC, datetime, timedelta
from enum import StrEnum
from functools import lru_cache
from typing import TYPE_CHECKING

from pydantic import BaseModel

from src.config.settings import get_config

__all__ = [
    "AppState",
    "AppStatus",
    "ComponentHealth",
    "ComponentStatus",
    "HealthSnapshot",
    "get_app_state",
]

if TYPE_CHECKING:
    from src.core.sched import SchedulerClient

STALE_GRACE = timedelta(minutes=5)


class AppStatus(StrEnum):
    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


class ComponentStatus(StrEnum):
    OK = "ok"
    ERROR = "error"
    DISABLED = "disabled"


class ComponentHealth(BaseModel):
    """Last reported health of one target or source."""

    status: ComponentStatus = ComponentStatus.DISABLED
    last_check: datetime | None = None
    message: str | None = None


class HealthSnapshot(BaseModel):
    """Point-in-time health of the whole service."""

    status: ComponentStatus
    app_status: AppStatus
    last_run: datetime | None
    uptime_seconds: int
    is_stale: bool
    components: dict[str, ComponentHealth]

    @property
    def healthy(self) -> bool:
        return self.status == ComponentStatus.OK


class AppState:
    """Container for process-wide runtime state."""

    def __init__(self, sync_interval: int = 60) -> None:
        """Initialize empty state and record the process start time.

        Args:
            sync_interval (int): Minutes between passes, used for staleness.
        """
        self.sync_interval = sync_interval
        self.scheduler: "SchedulerClient | None" = None
        self.status: AppStatus = AppStatus.IDLE
        self.components: dict[str, ComponentHealth] = {}
        self.started_at: datetime = datetime.now(UTC)
        self.last_run: datetime | None = None

    def set_scheduler(self, scheduler: "SchedulerClient") -> None:
        """Set the scheduler client.

        Args:
            scheduler (SchedulerClient): The scheduler client instance to set.
        """
        self.scheduler = scheduler

    def set_status(self, status: AppStatus) -> None:
        self.status = status

    def set_component_health(
        self, name: str, status: ComponentStatus, message: str | None = None
    ) -> None:
        """Record the outcome of the latest check of a component.

        Args:
            name (str): Component name, e.g. ``radarr`` or a list id.
            status (ComponentStatus): Reported status.
            message (str | None): Optional detail shown in the health output.
        """
        self.components[name] = ComponentHealth(
            status=status, last_check=datetime.now(UTC), message=message
        )

    def mark_run_complete(self) -> None:
        """Record that a pass finished and return to idle."""
        self.last_run = datetime.now(UTC)
        self.status = AppStatus.IDLE

    def is_stale(self, now: datetime | None = None) -> bool:
        """Whether no pass completed within the sync interval plus a grace period.

        Before the first pass completes, the process start time is used instead.
        """
        now = now or datetime.now(UTC)
        reference = self.last_run or self.started_at
        return now - reference > timedelta(minutes=self.sync_interval) + STALE_GRACE

    def health(self, now: datetime | None = None) -> HealthSnapshot:
        """Build a health snapshot.

        Returns:
            HealthSnapshot: Healthy when not stale and no component reports an
                error.
        """
        now = now or datetime.now(UTC)
        stale = self.is_stale(now)
        failing = any(
            c.status == ComponentStatus.ERROR for c in self.components.values()
        )
        return HealthSnapshot(
            status=ComponentStatus.ERROR if stale or failing else ComponentStatus.OK,
            app_status=self.status,
            last_run=self.last_run,
            uptime_seconds=int((now - self.started_at).total_seconds()),
            is_stale=stale,
            components=dict(self.components),
        )


@lru_cache(maxsize=1)
def get_app_state() -> AppState:
    """Get the singleton application state instance.

    Returns:
        AppState: The application state instance.
    """
    return AppState(sync_interval=get_config().sync_interval)
