# ==============================================
# FileCoordinator
# ==============================================
#
# PURPOSE:
#   Read and write one shared file so that no reader ever sees a
#   half-written file and no two writers interleave, whether they
#   are threads of this process or other cooperating processes.
#
# HOW:
#   1. Process-local lock per resolved path (threads).
#   2. Advisory fcntl.flock on a sidecar "<name>.lock" file
#      (processes). Shared for reads, exclusive for writes.
#      Acquired by non-blocking polling until lock_timeout.
#   3. Writes go to a temp file in the same directory, are fsynced,
#      then os.replace()d over the target.
#
#   Where fcntl is unavailable (Windows) only steps 1 and 3 apply,
#   so cross-process ordering is best-effort; readers still never
#   see a torn file because of the atomic replace.
#
# CLASS: FileCoordinator
# ----------------------
#   - read_coordinated(path) -> bytes | None
#       None if the file does not exist (no lock taken, nothing created).
#   - write_coordinated(path, data: bytes) -> None
#
#   Raises MetadataReadError / MetadataWriteError on I/O failure and
#   CoordinationError when the lock can't be taken in time.
#
# ==============================================

import logging
import os
import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

try:  # pragma: no cover
    import fcntl
except ImportError:  # pragma: no cover
    fcntl = None

from feedmeta.persistence.errors import CoordinationError, MetadataReadError, MetadataWriteError

PathLike = Union[str, Path]

_POLL_INTERVAL_SECONDS = 0.02

_PATH_LOCKS: Dict[str, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path)
    with _PATH_LOCKS_GUARD:
        lock = _PATH_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _PATH_LOCKS[key] = lock
    return lock


def lock_path_for(path: PathLike) -> Path:
    """Sidecar lock file used to coordinate access to `path`."""
    path = Path(path)
    return path.with_name(path.name + ".lock")


class FileCoordinator:
    """Coordinated, atomic access to a single shared file."""

    def __init__(self, lock_timeout: float = 10.0, logger: Optional[logging.Logger] = None):
        """
        Args:
            lock_timeout: Seconds to wait for other participants before
                raising CoordinationError
            logger: Logger for debug traces
        """
        self.lock_timeout = lock_timeout
        self._logger = logger or logging.getLogger(__name__)

    def read_coordinated(self, path: PathLike) -> Optional[bytes]:
        """
        Read the whole file while holding a shared lock.

        Args:
            path: File to read

        Returns:
            File contents, or None if the file does not exist
        """
        path = Path(path).resolve()
        # Writers only ever os.replace() a complete file into place
        if not path.exists():
            return None

        with self._coordinate(path, exclusive=False):
            try:
                return path.read_bytes()
            except FileNotFoundError:
                return None
            except OSError as e:
                raise MetadataReadError(f"Could not read {path}: {e}") from e

    def write_coordinated(self, path: PathLike, data: bytes) -> None:
        """
        Atomically replace the file's contents while holding an exclusive lock.

        Args:
            path: File to write
            data: Complete new contents
        """
        path = Path(path).resolve()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MetadataWriteError(f"Could not create {path.parent}: {e}") from e

        with self._coordinate(path, exclusive=True):
            tmp_path: Optional[Path] = None
            try:
                with tempfile.NamedTemporaryFile(
                    mode="wb",
                    delete=False,
                    dir=str(path.parent),
                    prefix=path.name + ".tmp.",
                ) as handle:
                    tmp_path = Path(handle.name)
                    handle.write(data)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(str(tmp_path), str(path))
                tmp_path = None
            except OSError as e:
                raise MetadataWriteError(f"Could not write {path}: {e}") from e
            finally:
                if tmp_path is not None:
                    tmp_path.unlink(missing_ok=True)

        self._logger.debug("Wrote %d bytes to %s", len(data), path)

    @contextmanager
    def _coordinate(self, path: Path, exclusive: bool) -> Iterator[None]:
        deadline = time.monotonic() + self.lock_timeout

        local_lock = _lock_for(path)
        if not local_lock.acquire(timeout=max(self.lock_timeout, 0)):
            raise CoordinationError(path, self.lock_timeout)
        try:
            with self._file_lock(path, exclusive, deadline):
                yield
        finally:
            local_lock.release()

    @contextmanager
    def _file_lock(self, path: Path, exclusive: bool, deadline: float) -> Iterator[None]:
        if fcntl is None:  # pragma: no cover
            yield
            return

        lock_file = lock_path_for(path)
        try:
            lock_file.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(lock_file), os.O_CREAT | os.O_RDWR, 0o644)
        except OSError as e:
            if exclusive:
                raise MetadataWriteError(f"Could not open lock file {lock_file}: {e}") from e
            raise MetadataReadError(f"Could not open lock file {lock_file}: {e}") from e

        flags = (fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH) | fcntl.LOCK_NB
        try:
            while True:
                try:
                    fcntl.flock(fd, flags)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise CoordinationError(path, self.lock_timeout)
                    time.sleep(_POLL_INTERVAL_SECONDS)
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
