"""Reconciliation engine that mirrors change events into the destination folder."""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Set

from dir_mirror.core.file_ops import copy_file, delete_file, move_file, same_length
from dir_mirror.core.in_flight import InFlightRegistry
from dir_mirror.core.readiness import ReadinessPoller
from dir_mirror.models.change_event import (
    ChangeEvent,
    Created,
    Deleted,
    EventType,
    Modified,
    Renamed,
    WatchedPair,
    WatchError,
)

logger = logging.getLogger(__name__)


class MirrorEngine:
    """Maps each change event to a copy, delete or move in the destination folder.

    Handlers may run concurrently, one task per event. The in-flight registry is
    the only shared state: it keeps notifications caused by a creation copy from
    being processed as independent changes.
    """

    def __init__(
        self,
        pair: WatchedPair,
        registry: Optional[InFlightRegistry] = None,
        poller: Optional[ReadinessPoller] = None,
    ):
        """Initialize mirror engine.

        Args:
            pair: Source and destination folders
            registry: Registry of names with a creation copy in progress
            poller: Readiness poller used before copying created files
        """
        self.pair = pair
        self.registry = registry if registry is not None else InFlightRegistry()
        self.poller = poller or ReadinessPoller()

        # Background copies spawned by create events
        self._copy_tasks: Set[asyncio.Task] = set()

        self._handlers: Dict[EventType, Callable[[ChangeEvent], Awaitable[None]]] = {
            EventType.CREATED: self._on_created,
            EventType.MODIFIED: self._on_modified,
            EventType.DELETED: self._on_deleted,
            EventType.RENAMED: self._on_renamed,
            EventType.ERROR: self._on_error,
        }

        self._stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            "events_handled": 0,
            "files_copied": 0,
            "files_deleted": 0,
            "files_moved": 0,
            "files_recopied": 0,
            "modifications_ignored": 0,
            "watch_errors": 0,
            "errors": 0,
        }

    async def handle(self, event: ChangeEvent) -> None:
        """Process a single change event.

        Failures are logged and counted; they never propagate to the caller.

        Args:
            event: Notification from the watched folder
        """
        handler = self._handlers.get(event.event_type)
        if handler is None:
            logger.warning(f"No handler for event: {event}")
            return

        self._stats["events_handled"] += 1
        try:
            await handler(event)
        except Exception as e:
            logger.error(f"Error processing {event}: {e}")
            self._stats["errors"] += 1

    async def _on_created(self, event: Created) -> None:
        name = event.name
        if not name:
            return

        if not self.registry.add(name):
            logger.warning(f"Overlapping create events for {name}, a copy is already in flight")

        task = asyncio.create_task(self._copy_when_ready(event.path, name))
        self._copy_tasks.add(task)
        task.add_done_callback(self._copy_tasks.discard)
        logger.info(f"Created: {name} (waiting until ready)")

    async def _copy_when_ready(self, path: Path, name: str) -> None:
        """Wait for the writer to finish, then copy the created file."""
        try:
            await self.poller.wait_until_ready(path)
            destination = self.pair.destination_for(name)
            copied = await copy_file(path, destination)
            self._stats["files_copied"] += 1
            logger.info(f"Copied: {name} ({copied} bytes) -> {destination}")
        except asyncio.CancelledError:
            logger.info(f"Cancelled pending copy for {name}")
            raise
        except Exception as e:
            logger.error(f"Failed to copy created file {path}: {e}")
            self._stats["errors"] += 1
        finally:
            if not self.registry.remove(name):
                logger.warning(f"In-flight registry inconsistency: {name} was not registered")

    async def _on_modified(self, event: Modified) -> None:
        name = event.name
        if self.registry.contains(name):
            logger.info(f"File is being copied, ignoring modification: {name}")
            self._stats["modifications_ignored"] += 1
            return

        destination = self.pair.destination_for(name)
        copied = await copy_file(event.path, destination)
        self._stats["files_copied"] += 1
        logger.info(f"Modified: {name} ({copied} bytes) -> {destination}")

    async def _on_deleted(self, event: Deleted) -> None:
        name = event.name
        if await delete_file(self.pair.destination_for(name)):
            self._stats["files_deleted"] += 1
            logger.info(f"Deleted: {name}")
        else:
            logger.info(f"Deleted: {name} (not present in destination)")

    async def _on_renamed(self, event: Renamed) -> None:
        old_destination = self.pair.destination_for(event.old_name)
        new_destination = self.pair.destination_for(event.new_name)
        logger.info(f"Renamed: {event.old_name} -> {event.new_name}")

        # Equal length is taken to mean the destination copy is current.
        # Two different files of the same size are moved, not recopied.
        if await same_length(event.new_path, old_destination):
            await move_file(old_destination, new_destination)
            self._stats["files_moved"] += 1
            logger.info(f"Moved: {old_destination} -> {new_destination}")
            return

        await delete_file(old_destination)
        copied = await copy_file(event.new_path, new_destination)
        self._stats["files_recopied"] += 1
        logger.info(f"Recopied: {event.new_name} ({copied} bytes) -> {new_destination}")

    async def _on_error(self, event: WatchError) -> None:
        self._stats["watch_errors"] += 1
        logger.error(f"Watcher error: {event.cause}", exc_info=event.cause)

    @property
    def pending_copies(self) -> int:
        """Number of creation copies still waiting or running."""
        return len(self._copy_tasks)

    async def shutdown(self, wait: bool = False) -> None:
        """Stop outstanding creation copies.

        Args:
            wait: Let pending copies finish instead of cancelling them
        """
        tasks = list(self._copy_tasks)
        if not tasks:
            return

        if wait:
            logger.info(f"Waiting for {len(tasks)} pending copies")
        else:
            logger.info(f"Cancelling {len(tasks)} pending copies")
            for task in tasks:
                task.cancel()

        await asyncio.gather(*tasks, return_exceptions=True)

    def get_statistics(self) -> dict:
        """Get current statistics.

        Returns:
            Dictionary with current statistics
        """
        return {**self._stats, "in_flight": len(self.registry), "pending_copies": self.pending_copies}

    def reset_statistics(self) -> None:
        """Reset statistics counters."""
        self._stats = self._empty_stats()
