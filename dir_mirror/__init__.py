"""Dir Mirror - Event-driven one-way mirroring of a source folder into a destination folder."""

__version__ = "0.1.0"
__author__ = "Dir Mirror Team"
__description__ = "Keeps a destination folder mirrored to a source folder by reacting to filesystem notifications"

# Simple imports only - complex modules imported on demand
__all__ = []
