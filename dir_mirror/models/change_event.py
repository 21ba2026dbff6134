"""Change notifications consumed by the mirror engine."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union


class EventType(Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    ERROR = "error"


def _is_subpath(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
        return True
    except ValueError:
        return False


@dataclass(frozen=True)
class WatchedPair:
    """Source folder and the destination folder that mirrors it."""

    source_dir: Path
    destination_dir: Path

    @classmethod
    def create(cls, source_dir: Path, destination_dir: Path) -> "WatchedPair":
        """Resolve both folders, create them if absent and build the pair.

        Args:
            source_dir: Folder to watch
            destination_dir: Folder that receives the mirrored files

        Returns:
            WatchedPair with absolute paths

        Raises:
            ValueError: If the folders are the same or one lives inside the other
        """
        source = Path(source_dir).expanduser().resolve()
        destination = Path(destination_dir).expanduser().resolve()

        if source == destination:
            raise ValueError("Source and destination folders must be different.")
        if _is_subpath(destination, source):
            raise ValueError("Destination folder must NOT be inside source folder (would cause loops).")
        if _is_subpath(source, destination):
            raise ValueError("Source folder must NOT be inside destination folder.")

        source.mkdir(parents=True, exist_ok=True)
        destination.mkdir(parents=True, exist_ok=True)
        return cls(source_dir=source, destination_dir=destination)

    def destination_for(self, name: str) -> Path:
        return self.destination_dir / name


@dataclass(frozen=True)
class Created:
    path: Path
    event_type: EventType = field(default=EventType.CREATED, init=False)

    @property
    def name(self) -> str:
        return self.path.name

    def __str__(self):
        return f"{self.event_type.value}: {self.path}"


@dataclass(frozen=True)
class Modified:
    path: Path
    event_type: EventType = field(default=EventType.MODIFIED, init=False)

    @property
    def name(self) -> str:
        return self.path.name

    def __str__(self):
        return f"{self.event_type.value}: {self.path}"


@dataclass(frozen=True)
class Deleted:
    path: Path
    event_type: EventType = field(default=EventType.DELETED, init=False)

    @property
    def name(self) -> str:
        return self.path.name

    def __str__(self):
        return f"{self.event_type.value}: {self.path}"


@dataclass(frozen=True)
class Renamed:
    old_path: Path
    new_path: Path
    event_type: EventType = field(default=EventType.RENAMED, init=False)

    @property
    def old_name(self) -> str:
        return self.old_path.name

    @property
    def new_name(self) -> str:
        return self.new_path.name

    def __str__(self):
        return f"{self.event_type.value}: {self.old_path} -> {self.new_path}"


@dataclass(frozen=True)
class WatchError:
    cause: BaseException
    event_type: EventType = field(default=EventType.ERROR, init=False)

    def __str__(self):
        return f"{self.event_type.value}: {self.cause!r}"


ChangeEvent = Union[Created, Modified, Deleted, Renamed, WatchError]
