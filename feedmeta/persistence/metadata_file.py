# ==============================================
# WebFeedMetadataFile
# ==============================================
#
# PURPOSE:
#   Keep an account's feed metadata on disk without writing on
#   every change. Mutations only flip a dirty flag; a coalescing
#   queue turns a burst of them into one save a little later.
#
# WHAT IS PERSISTED:
#   account.web_feed_metadata, filtered down to feeds that are still
#   in account.id_to_web_feed, as a binary property list:
#     {web_feed_id: {webFeedID, homePageURL, ...}}
#
# STATE MACHINE (per instance):
#   Clean --mark_as_dirty--> Dirty --flush ok--> Clean
#                            Dirty --flush fails--> Dirty (rescheduled)
#
# DIRTY FLAG:
#   Cleared under the state lock *before* the write, so a mutation
#   that lands during the write sets it again and opens a new window.
#   If the write fails the flag is set again and another flush is
#   queued, so the pending state is retried instead of forgotten.
#   Any exception out of save() counts as a failed write here.
#
# CLASS: WebFeedMetadataFile
# --------------------------
#   - mark_as_dirty() -> None
#   - load() -> None
#   - save() -> bool
#   - flush() -> None        (save now, on the caller's thread)
#   - is_dirty -> bool
#
# ==============================================

import logging
import plistlib
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from feedmeta.config import PersistenceConfig, get_config
from feedmeta.models import WebFeedMetadata
from feedmeta.persistence.errors import MetadataReadError, MetadataWriteError, PersistenceError
from feedmeta.persistence.file_coordinator import FileCoordinator
from feedmeta.scheduling.coalescing_queue import CoalescingQueue

MetadataMapping = Dict[str, WebFeedMetadata]


def encode_metadata(metadata: MetadataMapping) -> bytes:
    """
    Encode a metadata mapping as a binary property list.

    Args:
        metadata: Mapping of web_feed_id -> WebFeedMetadata

    Returns:
        Binary plist bytes
    """
    payload = {feed_id: entry.to_dict() for feed_id, entry in metadata.items()}
    try:
        return plistlib.dumps(payload, fmt=plistlib.FMT_BINARY, sort_keys=True)
    except (TypeError, OverflowError) as e:
        raise MetadataWriteError(f"Metadata is not plist-serializable: {e}") from e


def decode_metadata(data: bytes) -> MetadataMapping:
    """
    Decode bytes written by encode_metadata() (XML plists are accepted too).

    Records that are not dictionaries are skipped. Entries come back
    without a delegate; attaching it is the caller's job.

    Raises:
        MetadataReadError: If the bytes are not a plist of records
    """
    try:
        raw = plistlib.loads(data)
    except Exception as e:
        raise MetadataReadError(f"Invalid metadata plist: {e}") from e

    if not isinstance(raw, dict):
        raise MetadataReadError(f"Expected a dictionary at top level, got {type(raw).__name__}")

    metadata: MetadataMapping = {}
    for feed_id, record in raw.items():
        if not isinstance(record, dict):
            continue
        try:
            metadata[feed_id] = WebFeedMetadata.from_dict(record, web_feed_id=feed_id)
        except (TypeError, ValueError) as e:
            raise MetadataReadError(f"Invalid record for {feed_id!r}: {e}") from e
    return metadata


class WebFeedMetadataFile:
    """
    Debounced, coordinated persistence of one account's feed metadata.

    The account is only referenced through the attributes this class
    needs: is_deleted, web_feed_metadata, id_to_web_feed. It is also
    the delegate attached to every loaded entry.
    """

    def __init__(
        self,
        filename: Union[str, Path],
        account,
        *,
        queue: Optional[CoalescingQueue] = None,
        coordinator: Optional[FileCoordinator] = None,
        logger: Optional[logging.Logger] = None,
        config: Optional[PersistenceConfig] = None,
    ):
        """
        Args:
            filename: Path of the metadata file
            account: Owning account
            queue: Save queue; a private one is created if None
            coordinator: File access coordinator; created from config if None
            logger: Logger for read/write failures
            config: Persistence settings. If None, loads from environment.
        """
        config = config or get_config().persistence

        self.path = Path(filename)
        self._account = account
        self._logger = logger or logging.getLogger(__name__)
        self._queue = queue or CoalescingQueue(
            "Save Queue", interval=config.save_interval_seconds, logger=self._logger
        )
        self._coordinator = coordinator or FileCoordinator(
            lock_timeout=config.lock_timeout_seconds, logger=self._logger
        )

        self._is_dirty = False
        self._state_lock = threading.Lock()
        # Held for the whole clear-snapshot-write sequence: one flush at a time
        self._save_lock = threading.Lock()

    @property
    def is_dirty(self) -> bool:
        with self._state_lock:
            return self._is_dirty

    def mark_as_dirty(self) -> None:
        """Flag unsaved changes and queue a coalesced save. Never blocks on I/O."""
        with self._state_lock:
            self._is_dirty = True
        self._queue.add(self, self._save_to_disk_if_needed)

    def load(self) -> None:
        """
        Replace account.web_feed_metadata with the file's contents.

        A missing, unreadable or undecodable file yields an empty mapping.
        Errors are logged, never raised. Does nothing for a deleted account.
        """
        if self._account.is_deleted:
            return

        try:
            data = self._coordinator.read_coordinated(self.path)
            metadata = decode_metadata(data) if data is not None else {}
        except PersistenceError as e:
            self._logger.error("⚠ Read from disk failed for %s: %s", self.path, e)
            metadata = {}

        self._account.web_feed_metadata = metadata
        for entry in metadata.values():
            entry.delegate = self._account

        self._logger.debug("Loaded metadata for %d feeds from %s", len(metadata), self.path)

    def save(self) -> bool:
        """
        Write the subscribed subset of the metadata now.

        Returns:
            False if the write failed (already logged), True otherwise,
            including the no-op for a deleted account
        """
        try:
            self._save()
        except PersistenceError as e:
            self._logger.error("⚠ Save to disk failed for %s: %s", self.path, e)
            return False
        return True

    def flush(self) -> None:
        """Save pending changes immediately instead of waiting for the queue."""
        self._queue.cancel(self)
        self._save_to_disk_if_needed()

    def _save(self) -> None:
        if self._account.is_deleted:
            return

        metadata = self._metadata_for_only_subscribed_to_feeds()
        data = encode_metadata(metadata)
        self._coordinator.write_coordinated(self.path, data)
        self._logger.debug("Saved metadata for %d feeds to %s", len(metadata), self.path)

    def _save_to_disk_if_needed(self) -> None:
        with self._save_lock:
            with self._state_lock:
                if not self._is_dirty:
                    return
                self._is_dirty = False

            try:
                saved = self.save()
            except Exception:
                self._logger.exception("⚠ Unexpected error saving %s", self.path)
                saved = False

            if not saved:
                self._logger.warning("⚠ Metadata for %s left dirty, retrying later", self.path)
                self.mark_as_dirty()

    def _metadata_for_only_subscribed_to_feeds(self) -> MetadataMapping:
        web_feed_ids = set(self._account.id_to_web_feed.keys())
        return {
            feed_id: entry
            for feed_id, entry in list(self._account.web_feed_metadata.items())
            if entry.web_feed_id in web_feed_ids
        }
