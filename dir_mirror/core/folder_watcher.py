"""Folder watcher that turns watchdog notifications into change events."""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Set

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from dir_mirror.core.mirror_engine import MirrorEngine
from dir_mirror.models.change_event import (
    ChangeEvent,
    Created,
    Deleted,
    Modified,
    Renamed,
    WatchedPair,
    WatchError,
)
from dir_mirror.models.mirror_config import MirrorConfig


logger = logging.getLogger(__name__)


class MirrorEventHandler(FileSystemEventHandler):
    """Handles file system events for the single watched folder."""

    def __init__(self, pair: WatchedPair, engine: MirrorEngine, event_loop: asyncio.AbstractEventLoop):
        """Initialize mirror event handler.

        Args:
            pair: Source and destination folders
            engine: MirrorEngine that processes the converted events
            event_loop: Event loop to schedule async tasks
        """
        super().__init__()
        self.pair = pair
        self.engine = engine
        self.event_loop = event_loop
        # Dispatch tasks, kept referenced until they finish
        self._tasks: Set[asyncio.Task] = set()

        self.stats = {
            "events_received": 0,
            "events_dispatched": 0,
            "events_ignored": 0,
        }

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Handle any file system event (called on the watchdog thread)."""
        self.stats["events_received"] += 1
        try:
            change = self._convert_event(event)
            if change is None:
                self.stats["events_ignored"] += 1
                return

            # Schedule async processing using thread-safe method
            self.event_loop.call_soon_threadsafe(self._dispatch, change)
            self.stats["events_dispatched"] += 1

        except Exception as e:
            logger.error(f"Error handling file system event: {e}")

    def _dispatch(self, change: ChangeEvent) -> None:
        """Start one engine task per event (runs on the event loop)."""
        task = asyncio.create_task(self.engine.handle(change))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _convert_event(self, event: FileSystemEvent) -> Optional[ChangeEvent]:
        """Convert a watchdog event into a change event.

        Args:
            event: Raw watchdog event

        Returns:
            ChangeEvent, or None if the event is not relevant for mirroring
        """
        src_path = Path(event.src_path)

        if event.is_directory:
            if event.event_type == EVENT_TYPE_DELETED and src_path == self.pair.source_dir:
                return WatchError(FileNotFoundError(f"Watched folder was removed: {src_path}"))
            return None

        if event.event_type == EVENT_TYPE_MOVED:
            dest_path = Path(event.dest_path)
            src_watched = self._is_watched_file(src_path)
            dest_watched = self._is_watched_file(dest_path)
            if src_watched and dest_watched:
                return Renamed(old_path=src_path, new_path=dest_path)
            if src_watched:
                return Deleted(src_path)
            if dest_watched:
                return Created(dest_path)
            return None

        if not self._is_watched_file(src_path):
            return None

        if event.event_type == EVENT_TYPE_CREATED:
            return Created(src_path)
        if event.event_type == EVENT_TYPE_MODIFIED:
            return Modified(src_path)
        if event.event_type == EVENT_TYPE_DELETED:
            return Deleted(src_path)

        # opened / closed notifications carry no change
        return None

    def _is_watched_file(self, file_path: Path) -> bool:
        """Check that a path sits directly in the source folder.

        Args:
            file_path: Path to check

        Returns:
            True if events for this path should be mirrored
        """
        return file_path.parent == self.pair.source_dir


class FolderWatcher:
    """Watches the source folder and feeds change events to the mirror engine."""

    def __init__(self, config: MirrorConfig, engine: MirrorEngine):
        """Initialize folder watcher.

        Args:
            config: Application configuration
            engine: MirrorEngine that processes change events
        """
        self.config = config
        self.engine = engine
        self.observer = Observer()
        self.handler: Optional[MirrorEventHandler] = None
        self.running = False
        self.event_loop: Optional[asyncio.AbstractEventLoop] = None
        self._health_task: Optional[asyncio.Task] = None

        # Statistics
        self._stats = {"observer_restarts": 0}

    async def start(self) -> None:
        """Start watching the source folder."""
        if self.running:
            logger.warning("Folder watcher is already running")
            return

        # Get the current event loop
        self.event_loop = asyncio.get_running_loop()

        logger.info("Starting folder watcher")

        self._schedule_watch()
        self.observer.start()
        self.running = True

        self._health_task = asyncio.create_task(self._health_check())

        logger.info(f"Folder watcher started, watching {self.engine.pair.source_dir}")

    async def stop(self) -> None:
        """Stop watching and release the observer."""
        if not self.running:
            return

        logger.info("Stopping folder watcher")
        self.running = False

        if self._health_task:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
            self._health_task = None

        # Stop the observer; a replacement that failed to start has no thread to join
        self.observer.stop()
        if self.observer.is_alive():
            self.observer.join(timeout=5)

        self.handler = None

        logger.info("Folder watcher stopped")

    def _schedule_watch(self) -> None:
        """Create the event handler and register it with the observer."""
        if not self.event_loop:
            raise RuntimeError("Event loop not available. Call start() first.")

        source_dir = self.engine.pair.source_dir
        self.handler = MirrorEventHandler(self.engine.pair, self.engine, self.event_loop)
        # Flat mirroring: subfolders are not watched
        self.observer.schedule(self.handler, str(source_dir), recursive=False)
        logger.info(f"Added watch for folder: {source_dir}")

    async def _health_check(self) -> None:
        """Restart the observer if its thread dies."""
        try:
            while self.running:
                await asyncio.sleep(self.config.health_check_interval)

                if self.running and not self.observer.is_alive():
                    await self._recover()

        except asyncio.CancelledError:
            logger.debug("Health check task cancelled")
            raise

    async def _recover(self) -> None:
        """Report the dead observer to the engine and start a new one."""
        await self.engine.handle(WatchError(RuntimeError("Watchdog observer stopped unexpectedly")))

        try:
            self.observer = Observer()
            self._schedule_watch()
            self.observer.start()
            self._stats["observer_restarts"] += 1
            logger.info("Folder watcher observer restarted")
        except Exception as e:
            logger.error(f"Error restarting folder watcher: {e}")

    def get_statistics(self) -> dict:
        """Get watcher statistics.

        Returns:
            Dictionary with watcher statistics
        """
        handler_stats = self.handler.stats if self.handler else {}
        return {
            "running": self.running,
            "observer_alive": self.observer.is_alive(),
            **handler_stats,
            **self._stats,
        }

    def is_running(self) -> bool:
        """Check if folder watcher is running.

        Returns:
            True if running, False otherwise
        """
        return self.running
