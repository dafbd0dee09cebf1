"""Reconciliation outcome tracking."""

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum

__all__ = ["ItemOutcome", "ReconcileStats"]


class ItemOutcome(StrEnum):
    """What happened to one item during a pass."""

    ADDED = "added"
    EXISTS = "exists"  # Create rejected as a duplicate
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    NOT_OWNED = "not_owned"
    SKIPPED = "skipped"  # No primary identifier
    NOT_FOUND = "not_found"
    FAILED = "failed"
    DELETED = "deleted"
    PROTECTED = "protected"  # Deletion blocked by an unsafe tag


@dataclass(slots=True)
class ReconcileStats:
    """Per-target outcome counters for one pass."""

    target: str
    dry_run: bool = False
    cleanup_ran: bool = False
    counts: Counter[ItemOutcome] = field(default_factory=Counter)

    def track(self, outcome: ItemOutcome) -> None:
        """Record one item outcome."""
        self.counts[outcome] += 1

    def __getitem__(self, outcome: ItemOutcome) -> int:
        return self.counts[outcome]

    @property
    def mutations(self) -> int:
        """Number of outcomes that changed (or would change) the target."""
        return (
            self.counts[ItemOutcome.ADDED]
            + self.counts[ItemOutcome.UPDATED]
            + self.counts[ItemOutcome.DELETED]
        )

    def summary(self) -> str:
        """One-line summary for logs."""
        parts = [f"{outcome.value}={count}" for outcome, count in self.counts.items()]
        prefix = "[DRY RUN] " if self.dry_run else ""
        return f"{prefix}$${{{', '.join(parts) or 'nothing to do'}}}$$"
