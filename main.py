"""Dir Mirror main entry point."""

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from dir_mirror.core.folder_watcher import FolderWatcher
from dir_mirror.core.mirror_engine import MirrorEngine
from dir_mirror.core.readiness import ReadinessPoller
from dir_mirror.models.mirror_config import MirrorConfig

# Set up logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

CONFIG_PATH = Path("config.yaml")
STATUS_INTERVAL = 300


class MirrorApp:
    """Main Dir Mirror application."""

    def __init__(self, config: MirrorConfig):
        """Initialize application."""
        self.config = config
        logging.getLogger().setLevel(self.config.log_level)

        pair = self.config.watched_pair()
        self.engine = MirrorEngine(pair, poller=ReadinessPoller(interval=self.config.ready_poll_interval))
        self.folder_watcher = FolderWatcher(self.config, self.engine)
        self.running = False
        self.shutdown_event = asyncio.Event()

    async def start(self):
        """Start the application."""
        logger.info("Starting Dir Mirror...")
        logger.info(f"Source: {self.engine.pair.source_dir}")
        logger.info(f"Destination: {self.engine.pair.destination_dir}")

        try:
            self._setup_signal_handlers()

            await self.folder_watcher.start()
            logger.info("✅ Folder Watcher started")

            self.running = True
            logger.info("🚀 Dir Mirror started successfully")

            # Main status loop - show mirror statistics
            while self.running:
                try:
                    await asyncio.wait_for(self.shutdown_event.wait(), timeout=STATUS_INTERVAL)
                    break  # Shutdown event was set
                except asyncio.TimeoutError:
                    logger.info(f"📊 Mirror Status: {self.engine.get_statistics()}")
                    continue

        except KeyboardInterrupt:
            logger.info("Received interrupt signal")
        except Exception as e:
            logger.error(f"Unexpected error: {e}", exc_info=True)
        finally:
            await self.shutdown()

    async def shutdown(self):
        """Shutdown the application."""
        logger.info("Shutting down Dir Mirror...")
        self.running = False

        try:
            await self.folder_watcher.stop()
            logger.info("✅ Folder Watcher stopped")
        except Exception as e:
            logger.error(f"Error stopping folder watcher: {e}", exc_info=True)

        try:
            await self.engine.shutdown()
            logger.info("✅ Pending copies cancelled")
        except Exception as e:
            logger.error(f"Error cancelling pending copies: {e}", exc_info=True)

        logger.info(f"📊 Final Status: {self.engine.get_statistics()}")
        logger.info("🛑 Dir Mirror stopped successfully")

    def _setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum, _):
            logger.info(f"Received signal {signum}")
            self.running = False
            # Wake up the main loop from whichever thread received the signal
            loop.call_soon_threadsafe(self.shutdown_event.set)

        # Setup signal handlers based on platform
        if os.name == "nt":  # Windows
            # Windows only supports SIGINT and SIGTERM
            signal.signal(signal.SIGINT, signal_handler)
            # SIGTERM is not supported on Windows, but SIGBREAK is similar
            try:
                signal.signal(signal.SIGBREAK, signal_handler)
            except AttributeError:
                # SIGBREAK might not be available on all Windows versions
                pass
        else:  # Unix-like (macOS, Linux)
            signal.signal(signal.SIGINT, signal_handler)
            signal.signal(signal.SIGTERM, signal_handler)


async def main(config_path: Path = CONFIG_PATH):
    """Main entry point."""
    if not config_path.exists():
        logger.error(f"Configuration file not found at {config_path}")
        logger.info("Creating example configuration...")

        example_config = MirrorConfig(
            source_dir=str(Path.cwd() / "source"),
            destination_dir=str(Path.cwd() / "destination"),
        )
        example_config.save_to_yaml(config_path)

        logger.info(f"Example configuration created at {config_path}")
        logger.info("Please edit the configuration file with your folders and restart.")
        return 1

    try:
        config = MirrorConfig.load_from_yaml(config_path)
        app = MirrorApp(config)
    except Exception as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    await app.start()
    return 0


def sync_main():
    """Synchronous main entry point for setuptools."""
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Application interrupted")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    sync_main()
