# ==============================================
# Pytest Configuration and Fixtures
# ==============================================
#
# Shared fixtures for all tests.
#
# FIXTURES:
# ---------
# - persistence_config  → short save window, files under tmp_path
# - queue               → CoalescingQueue using that window
# - coordinator         → RecordingCoordinator (counts reads/writes)
# - account             → Account wired to the two above
# - stub_account        → bare object with only what the metadata file reads
#
# HELPERS:
# --------
# - wait_for(predicate, timeout) → poll until predicate() is true
#
# NOTES:
# ------
# - Timing tests use real timers with a 50ms window.
# - Use tmp_path for all files.
# ==============================================

import threading
import time
from types import SimpleNamespace

import pytest

from feedmeta.account import Account
from feedmeta.config import PersistenceConfig, reset_config
from feedmeta.persistence.errors import MetadataWriteError
from feedmeta.persistence.file_coordinator import FileCoordinator
from feedmeta.scheduling.coalescing_queue import CoalescingQueue

SAVE_INTERVAL = 0.05


def wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class RecordingCoordinator(FileCoordinator):
    """
    FileCoordinator that counts calls, can fail the first N writes,
    and can hold writes until `release_write` is set.
    """

    def __init__(self, fail_writes: int = 0):
        super().__init__(lock_timeout=1.0)
        self.reads = 0
        self.attempts = []
        self.writes = []
        self.write_started = threading.Event()
        self.release_write = None
        self._fail_writes = fail_writes

    def read_coordinated(self, path):
        self.reads += 1
        return super().read_coordinated(path)

    def write_coordinated(self, path, data):
        self.attempts.append(data)
        self.write_started.set()
        if self.release_write is not None:
            self.release_write.wait(5.0)
        if self._fail_writes > 0:
            self._fail_writes -= 1
            raise MetadataWriteError("No space left on device")
        super().write_coordinated(path, data)
        self.writes.append(data)


@pytest.fixture(autouse=True)
def _fresh_config():
    """Never let one test's environment leak into another's config."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def persistence_config(tmp_path) -> PersistenceConfig:
    return PersistenceConfig(
        save_interval_seconds=SAVE_INTERVAL,
        lock_timeout_seconds=1.0,
        data_dir=str(tmp_path / "accounts"),
    )


@pytest.fixture
def queue():
    q = CoalescingQueue("Test Save Queue", interval=SAVE_INTERVAL)
    yield q
    q.shutdown(perform_pending=False)


@pytest.fixture
def coordinator() -> RecordingCoordinator:
    return RecordingCoordinator()


@pytest.fixture
def account(persistence_config, queue, coordinator) -> Account:
    return Account("OnMyMac", config=persistence_config, queue=queue, coordinator=coordinator)


@pytest.fixture
def stub_account():
    return SimpleNamespace(
        is_deleted=False,
        web_feed_metadata={},
        id_to_web_feed={},
        value_did_change=lambda metadata, key: None,
    )
