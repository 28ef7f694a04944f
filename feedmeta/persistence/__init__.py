# ==============================================
# PERSISTENCE (Feed metadata across restarts)
# ==============================================
#
# This package saves and loads an account's per-feed metadata
# so that custom names, icons and HTTP validators survive restarts.
#
# Modules:
# --------
# - errors.py            → PersistenceError hierarchy
# - file_coordinator.py  → Locked, atomic reads/writes of a shared file
# - metadata_file.py     → Dirty tracking, coalesced saves, load/save
#
# ==============================================

from .errors import CoordinationError, MetadataReadError, MetadataWriteError, PersistenceError
from .file_coordinator import FileCoordinator
from .metadata_file import WebFeedMetadataFile, decode_metadata, encode_metadata

__all__ = [
    "CoordinationError",
    "MetadataReadError",
    "MetadataWriteError",
    "PersistenceError",
    "FileCoordinator",
    "WebFeedMetadataFile",
    "decode_metadata",
    "encode_metadata",
]
