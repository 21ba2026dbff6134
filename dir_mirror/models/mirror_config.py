"""Simple YAML configuration for Dir Mirror."""

from pathlib import Path
from typing import Any, Dict

import yaml

from dir_mirror.models.change_event import WatchedPair


class MirrorConfig:
    """Simple configuration class using YAML."""

    def __init__(self, **kwargs):
        """Initialize configuration with default values."""
        # Mirrored folders
        self.source_dir: Path = Path(kwargs.get("source_dir", str(Path.home() / "DirMirror" / "source")))
        self.destination_dir: Path = Path(
            kwargs.get("destination_dir", str(Path.home() / "DirMirror" / "destination"))
        )

        # Seconds between exclusive-open attempts while a new file is still being written
        self.ready_poll_interval: float = float(kwargs.get("ready_poll_interval", 1.0))

        # Seconds between checks that the watchdog observer thread is still alive
        self.health_check_interval: float = float(kwargs.get("health_check_interval", 5.0))

        self.log_level: str = str(kwargs.get("log_level", "INFO")).upper()

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "MirrorConfig":
        """Load configuration from YAML file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def save_to_yaml(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2)

    def watched_pair(self) -> WatchedPair:
        """Build the validated source/destination pair, creating both folders.

        Returns:
            WatchedPair with absolute paths

        Raises:
            ValueError: If the folders overlap
        """
        return WatchedPair.create(self.source_dir, self.destination_dir)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "source_dir": str(self.source_dir),
            "destination_dir": str(self.destination_dir),
            "ready_poll_interval": self.ready_poll_interval,
            "health_check_interval": self.health_check_interval,
            "log_level": self.log_level,
        }
