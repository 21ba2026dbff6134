"""
End-to-end mirroring with a real watchdog observer.
Files are written into the source folder the way other programs would and the
destination folder is checked as events arrive.
"""

import asyncio
import tempfile
import time
from pathlib import Path

import pytest

from dir_mirror.core.folder_watcher import FolderWatcher
from dir_mirror.core.mirror_engine import MirrorEngine
from dir_mirror.core.readiness import ReadinessPoller
from dir_mirror.models.change_event import WatchedPair
from dir_mirror.models.mirror_config import MirrorConfig


async def wait_for(predicate, timeout: float = 10.0) -> bool:
    """Poll predicate until it holds or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.05)
    return predicate()


def folder_state(folder: Path) -> dict:
    return {p.name: p.read_bytes() for p in folder.iterdir() if p.is_file()}


@pytest.fixture
def pair():
    """Create temporary source and destination folders."""
    with tempfile.TemporaryDirectory() as temp_dir:
        temp_path = Path(temp_dir)
        yield WatchedPair.create(temp_path / "source", temp_path / "destination")


@pytest.fixture
async def running_mirror(pair):
    """Engine and watcher wired together and watching the source folder."""
    config = MirrorConfig(
        source_dir=str(pair.source_dir),
        destination_dir=str(pair.destination_dir),
        ready_poll_interval=0.05,
        health_check_interval=0.5,
    )
    engine = MirrorEngine(pair, poller=ReadinessPoller(interval=config.ready_poll_interval))
    watcher = FolderWatcher(config, engine)
    await watcher.start()
    try:
        yield engine
    finally:
        await watcher.stop()
        await engine.shutdown()


class TestLiveMirroring:
    """Test the destination following real filesystem activity."""

    async def test_destination_follows_source(self, pair, running_mirror):
        """Test create, slow write, modify, rename and delete against a live watcher."""
        engine = running_mirror
        source = pair.source_dir
        destination = pair.destination_dir

        # A report written slowly is not copied until its writer closes it
        with open(source / "report.csv", "wb") as writer:
            assert await wait_for(lambda: "report.csv" in engine.registry)
            await asyncio.sleep(0.3)
            assert not (destination / "report.csv").exists()

            writer.write(b"r" * 500)
            writer.flush()
            await asyncio.sleep(0.3)
            assert not (destination / "report.csv").exists()

        assert await wait_for(
            lambda: (destination / "report.csv").exists()
            and (destination / "report.csv").stat().st_size == 500
            and "report.csv" not in engine.registry
        )

        # A small file written in one go, then edited
        (source / "config.json").write_text("{}")
        assert await wait_for(
            lambda: (destination / "config.json").exists()
            and (destination / "config.json").read_text() == "{}"
            and "config.json" not in engine.registry
        )

        (source / "config.json").write_text('{"debug": true}')
        assert await wait_for(lambda: (destination / "config.json").read_text() == '{"debug": true}')

        # Renamed within the folder, once trailing modify notifications are handled
        await asyncio.sleep(0.3)
        (source / "config.json").rename(source / "settings.json")
        assert await wait_for(
            lambda: (destination / "settings.json").exists() and not (destination / "config.json").exists()
        )
        assert (destination / "settings.json").read_text() == '{"debug": true}'

        # Deleted
        (source / "report.csv").unlink()
        assert await wait_for(lambda: not (destination / "report.csv").exists())

        assert await wait_for(lambda: folder_state(destination) == folder_state(source))
        assert folder_state(destination) == {"settings.json": b'{"debug": true}'}
