"""WatchlistBridge Main Application."""

import asyncio
import signal
import sys

import uvicorn
from pydantic import ValidationError

from src import WATCHLISTBRIDGE_HEADER, log
from src.config.settings import WatchlistBridgeConfig, get_config
from src.core.sched import SchedulerClient
from src.web.app import create_app


def _install_signal_handlers(scheduler: SchedulerClient) -> None:
    """Route SIGINT and SIGTERM to a graceful scheduler shutdown."""
    loop = asyncio.get_running_loop()

    def _shutdown(signum: int) -> None:
        log.info(
            f"WatchlistBridge: {signal.Signals(signum).name} received, "
            "shutting down gracefully"
        )
        scheduler.request_shutdown()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, _shutdown, signum)
        except NotImplementedError:
            # Windows event loops lack add_signal_handler
            signal.signal(signum, lambda s, _frame: _shutdown(s))


def load_configuration() -> WatchlistBridgeConfig | None:
    """Load the configuration and log a summary of what will be synced.

    Returns:
        WatchlistBridgeConfig | None: The configuration, or None when it is
            invalid or has nothing to do.
    """
    try:
        config = get_config()
    except (ValidationError, ValueError) as e:
        log.error(f"WatchlistBridge: Invalid configuration: {e}")
        return None
    except OSError as e:
        log.error(f"WatchlistBridge: Could not read the configuration: {e}")
        return None

    targets = [
        name
        for name, target in (
            ("radarr", config.radarr),
            ("sonarr", config.sonarr),
            ("plex", config.plex),
        )
        if target is not None
    ]
    if not targets:
        log.error("WatchlistBridge: Configure at least one of radarr, sonarr or plex")
        return None
    if not config.movie_lists and not config.series_lists:
        log.error("WatchlistBridge: Configure at least one movie or series list")
        return None

    log.info(f"WatchlistBridge: Targets $$'{', '.join(targets)}'$$")
    for list_config in (*config.movie_lists, *config.series_lists):
        log.info(
            f"WatchlistBridge: List $$'{list_config.id}'$$ "
            f"$${{source: {list_config.source}, tags: {list_config.tags}}}$$"
        )
    return config


async def _serve_until_done(
    config: WatchlistBridgeConfig, scheduler: SchedulerClient
) -> None:
    """Run the health server next to the scheduler until the scheduler finishes."""
    server = uvicorn.Server(
        uvicorn.Config(
            create_app(scheduler),
            host=config.web.host,
            port=config.web.port,
            log_config=None,
            loop="asyncio",
        )
    )
    # `_serve()` leaves signal handling to us
    server_task = asyncio.create_task(server._serve())
    log.success(
        "WatchlistBridge: Health checks served on "
        f"$$'http://{config.web.host}:{config.web.port}/health'$$"
    )
    try:
        await scheduler.wait_for_completion()
    finally:
        server.should_exit = True
        await server_task


async def run() -> int:
    """Start the scheduler and keep it running until it is told to stop.

    Returns:
        int: Process exit code, 0 on a clean shutdown and 1 on failure.
    """
    log.info("\n" + WATCHLISTBRIDGE_HEADER)

    config = load_configuration()
    if config is None:
        return 1

    scheduler = SchedulerClient(config)
    exit_code = 0
    try:
        await scheduler.initialize()
        await scheduler.start()
        _install_signal_handlers(scheduler)

        if config.web.enabled and not config.run_once:
            await _serve_until_done(config, scheduler)
        else:
            await scheduler.wait_for_completion()
    except asyncio.CancelledError:
        log.info("WatchlistBridge: Cancelled")
    except Exception as e:
        log.error(f"WatchlistBridge: Unexpected error: {e}", exc_info=True)
        exit_code = 1
    finally:
        log.info("WatchlistBridge: Shutting down")
        try:
            await scheduler.stop()
        except Exception as e:
            log.error(f"WatchlistBridge: Error during shutdown: {e}", exc_info=True)
            exit_code = 1
        else:
            log.success("WatchlistBridge: Shutdown complete")
    return exit_code


def main() -> int:
    """Process entry point.

    Returns:
        int: Process exit code.
    """
    try:
        return asyncio.run(run())
    except KeyboardInterrupt:
        log.info("WatchlistBridge: Interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
