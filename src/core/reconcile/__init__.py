"""Reconcilers that apply desired items to targets."""

from src.core.reconcile.base import BaseReconciler, ItemMatch, SyncContext
from src.core.reconcile.labels import PlexLabelSyncer
from src.core.reconcile.movies import RadarrReconciler
from src.core.reconcile.series import SonarrReconciler, season_flags
from src.core.reconcile.stats import ItemOutcome, ReconcileStats

__all__ = [
    "BaseReconciler",
    "ItemMatch",
    "ItemOutcome",
    "PlexLabelSyncer",
    "RadarrReconciler",
    "ReconcileStats",
    "SonarrReconciler",
    "SyncContext",
    "season_flags",
]
