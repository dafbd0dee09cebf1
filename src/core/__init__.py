"""Core Module Initialization."""

from src.core.bridge import BridgeClient
from src.core.sched import SchedulerClient

__all__ = [
    "BridgeClient",
    "SchedulerClient",
]
