"""WatchlistBridge package."""

from src.utils.logging import Logger, get_logger
from src.utils.terminal import supports_utf8
from src.utils.version import get_docker_status, get_pyproject_version

__license__ = "MIT"
__version__ = get_pyproject_version()

_BANNER_WIDTH = 79


def _render_header(rows: list[str]) -> str:
    """Draw the startup banner around ``rows``, falling back to ASCII borders."""
    if supports_utf8():
        top, sep, bottom, side = "╔╗", "╠╣", "╚╝", "║"
        rule = "═"
    else:
        top = sep = bottom = "++"
        side, rule = "|", "-"

    def line(text: str = "") -> str:
        return f"{side}{text:<{_BANNER_WIDTH}}{side}"

    return "\n".join(
        [
            top[0] + rule * _BANNER_WIDTH + top[1],
            line("W A T C H L I S T B R I D G E".center(_BANNER_WIDTH)),
            sep[0] + rule * _BANNER_WIDTH + sep[1],
            line(),
            *(line(f"  {row}") for row in rows),
            line(),
            bottom[0] + rule * _BANNER_WIDTH + bottom[1],
        ]
    )


WATCHLISTBRIDGE_HEADER = _render_header(
    [
        f"Version: {__version__}",
        f"Docker: {'Yes' if get_docker_status() else 'No'}",
        f"License: {__license__}",
    ]
)

log: Logger = get_logger()
