"""Registry of file names whose creation copy is still running."""

import threading
from typing import Set


class InFlightRegistry:
    """Thread-safe set of base names currently being copied after a create event.

    Every operation runs under a single lock so handlers for different files
    can call it concurrently from the event loop or from worker threads.
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._names: Set[str] = set()
        self._guard = threading.Lock()

    def add(self, name: str) -> bool:
        """Register a name as in flight.

        Args:
            name: Base name of the file being copied

        Returns:
            True if the name was added, False if it was already registered
        """
        with self._guard:
            if name in self._names:
                return False
            self._names.add(name)
            return True

    def remove(self, name: str) -> bool:
        """Unregister a name once its copy is finished.

        Args:
            name: Base name of the file

        Returns:
            True if the name was removed, False if it was not registered
        """
        with self._guard:
            if name not in self._names:
                return False
            self._names.discard(name)
            return True

    def contains(self, name: str) -> bool:
        with self._guard:
            return name in self._names

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.contains(name)

    def __len__(self) -> int:
        with self._guard:
            return len(self._names)
