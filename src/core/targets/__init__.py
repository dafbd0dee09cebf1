from src.core.targets.base import ArrClient, TargetClient
from src.core.targets.plex import PlexClient
from src.core.targets.radarr import RadarrClient
from src.core.targets.sonarr import SonarrClient

__all__ = ["ArrClient", "PlexClient", "RadarrClient", "SonarrClient", "TargetClient"]
