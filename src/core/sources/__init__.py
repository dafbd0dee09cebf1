"""Source collectors producing desired items."""

from src.core.sources.base import BaseCollector, SourceCollector, apply_take
from src.core.sources.mdblist import MDBListCollector
from src.core.sources.serializd import SerializdCollector

__all__ = [
    "BaseCollector",
    "MDBListCollector",
    "SerializdCollector",
    "SourceCollector",
    "apply_take",
]
