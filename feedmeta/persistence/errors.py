# ==============================================
# Persistence Errors
# ==============================================
#
# PURPOSE:
#   Exception types raised at the file I/O seam. The metadata
#   file catches all of them and logs; none reach the account.
#
# HIERARCHY:
# ----------
# - PersistenceError
#     ├── MetadataReadError   → file unreadable or undecodable
#     ├── MetadataWriteError  → write / replace failed (disk full, EACCES)
#     └── CoordinationError   → lock on the shared file timed out
#
# ==============================================


class PersistenceError(Exception):
    """Base class for all persistence failures."""


class MetadataReadError(PersistenceError):
    """The metadata file exists but could not be read or decoded."""


class MetadataWriteError(PersistenceError):
    """The metadata file could not be written."""


class CoordinationError(PersistenceError):
    """Timed out waiting for other readers/writers of the same file."""

    def __init__(self, path, timeout: float):
        self.path = path
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for lock on {path}")
