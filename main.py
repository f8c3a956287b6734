"""Metachan Main Application."""

import asyncio
import signal
import sys

from pydantic import ValidationError

from metachan import __version__, log
from metachan.config.database import db
from metachan.config.settings import get_config
from metachan.core.anime import AnimeService
from metachan.core.tasks import MappingSync, TaskManager
from metachan.exceptions import DataPathError


def _setup_signal_handlers(manager: TaskManager, stop_event: asyncio.Event) -> None:
    """Install SIGINT/SIGTERM handlers that stop every task and request shutdown."""
    loop = asyncio.get_running_loop()

    def _on_signal(sig: int) -> None:
        log.info(f"Received {signal.Signals(sig).name} signal, shutting down...")
        manager.stop_all_tasks()
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
        except NotImplementedError:
            signal.signal(sig, lambda s, _f: loop.call_soon_threadsafe(_on_signal, s))


async def run() -> int:
    """Run the background tasks until a shutdown signal is received.

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    try:
        config = get_config()
    except ValidationError as e:
        log.error(f"Configuration validation error: {e}")
        return 1

    log.info(f"Metachan v{__version__}: {config}")

    try:
        db()
    except (DataPathError, OSError) as e:
        log.error(f"Could not open the database: {e}")
        return 1

    manager = TaskManager()
    mapping_sync = MappingSync(config.mappings_url)
    service = AnimeService.from_config(config)
    stop_event = asyncio.Event()

    ret = 0
    try:
        manager.register_task(mapping_sync.as_task())
        _setup_signal_handlers(manager, stop_event)
        await manager.start_all_tasks()
        log.success("Metachan started (ctrl+c to stop)")
        await stop_event.wait()
    except asyncio.CancelledError:
        log.info("Application cancelled")
    except Exception as e:
        log.error(f"Unexpected application error: {e}", exc_info=True)
        ret = 1
    finally:
        log.info("Shutting down application...")
        manager.stop_all_tasks()
        await manager.wait_for_executions()
        await mapping_sync.close()
        await service.close()
        log.success("Application shutdown complete")
    return ret


def main() -> int:
    """Main entry point.

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    try:
        return asyncio.run(run())
    except KeyboardInterrupt:
        log.info("Application interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
