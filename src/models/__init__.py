"""Models Initialization Module."""

from src.models.items import DesiredItem, ManagedItem, SeasonState, SourceResult, Tag

__all__ = ["DesiredItem", "ManagedItem", "SeasonState", "SourceResult", "Tag"]
