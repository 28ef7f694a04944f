# ==============================================
# Account
# ==============================================
#
# PURPOSE:
#   The owner of the feed metadata. Holds the subscribed feeds and
#   the metadata mapping, acts as delegate for every metadata entry,
#   and tells its WebFeedMetadataFile when something changed.
#
# HOW IT CONNECTS:
#
#   metadata.edited_name = "..."          add_web_feed / remove_web_feed
#            │                                       │
#            ▼                                       ▼
#   Account.value_did_change() ───────────► WebFeedMetadataFile.mark_as_dirty()
#                                                    │ (coalesced)
#                                                    ▼
#                                          save(): filter by id_to_web_feed
#                                                    │
#                                                    ▼
#                                          FileCoordinator.write_coordinated()
#
# CLASS: Account
# --------------
#   Constructor:
#   ------------
#   - __init__(account_id, data_dir=None, *, config, queue, coordinator, logger)
#       Metadata file: <data_dir>/<account_id>/<metadata_filename>
#
#   Public Methods:
#   ---------------
#   - load_metadata() -> None
#   - add_web_feed(web_feed_id, url, name=None) -> WebFeed
#   - remove_web_feed(web_feed_id) -> Optional[WebFeed]
#   - metadata_for_web_feed_id(web_feed_id) -> WebFeedMetadata
#   - value_did_change(metadata, key) -> None      (delegate callback)
#   - delete() -> None
#   - close() -> None
#
# ==============================================

import logging
from pathlib import Path
from typing import Dict, Optional, Union

from feedmeta.config import PersistenceConfig, get_config
from feedmeta.models import WebFeed, WebFeedMetadata
from feedmeta.persistence.file_coordinator import FileCoordinator
from feedmeta.persistence.metadata_file import WebFeedMetadataFile
from feedmeta.scheduling.coalescing_queue import CoalescingQueue


class Account:
    """
    A feed-reading account whose per-feed metadata survives restarts.
    """

    def __init__(
        self,
        account_id: str,
        data_dir: Optional[Union[str, Path]] = None,
        *,
        config: Optional[PersistenceConfig] = None,
        queue: Optional[CoalescingQueue] = None,
        coordinator: Optional[FileCoordinator] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            account_id: Unique id; also the name of the account's folder
            data_dir: Root folder for account data. If None, taken from config.
            config: Persistence settings. If None, loads from environment.
            queue: Save queue shared with other accounts, if any
            coordinator: File coordinator shared with other accounts, if any
            logger: Logger passed down to the metadata file
        """
        config = config or get_config().persistence

        self.account_id = account_id
        self.is_deleted = False
        self.id_to_web_feed: Dict[str, WebFeed] = {}
        self.web_feed_metadata: Dict[str, WebFeedMetadata] = {}

        self._logger = logger or logging.getLogger(__name__)

        folder = Path(data_dir if data_dir is not None else config.data_dir) / account_id
        self._metadata_file = WebFeedMetadataFile(
            folder / config.metadata_filename,
            self,
            queue=queue,
            coordinator=coordinator,
            logger=self._logger,
            config=config,
        )

    @property
    def metadata_path(self) -> Path:
        return self._metadata_file.path

    @property
    def has_unsaved_changes(self) -> bool:
        return self._metadata_file.is_dirty

    def load_metadata(self) -> None:
        """Read metadata from disk, replacing whatever is in memory."""
        self._metadata_file.load()
        self._logger.info("✓ Loaded metadata for %d feeds (account %s)",
                          len(self.web_feed_metadata), self.account_id)

    def add_web_feed(self, web_feed_id: str, url: str, name: Optional[str] = None) -> WebFeed:
        """
        Subscribe to a feed.

        Returns:
            The existing WebFeed if already subscribed, else the new one
        """
        existing = self.id_to_web_feed.get(web_feed_id)
        if existing is not None:
            return existing

        feed = WebFeed(web_feed_id=web_feed_id, url=url, name=name)
        self.id_to_web_feed[web_feed_id] = feed
        self._metadata_file.mark_as_dirty()
        return feed

    def remove_web_feed(self, web_feed_id: str) -> Optional[WebFeed]:
        """
        Unsubscribe from a feed.

        Its metadata stays in memory but is left out of the next save.
        """
        feed = self.id_to_web_feed.pop(web_feed_id, None)
        if feed is not None:
            self._metadata_file.mark_as_dirty()
        return feed

    def metadata_for_web_feed_id(self, web_feed_id: str) -> WebFeedMetadata:
        """
        Get the metadata for a feed, creating an empty record on first use.
        """
        metadata = self.web_feed_metadata.get(web_feed_id)
        if metadata is not None:
            return metadata

        metadata = WebFeedMetadata(web_feed_id=web_feed_id)
        metadata.delegate = self
        self.web_feed_metadata[web_feed_id] = metadata
        self._metadata_file.mark_as_dirty()
        return metadata

    def value_did_change(self, metadata: WebFeedMetadata, key: str) -> None:
        self._metadata_file.mark_as_dirty()

    def delete(self) -> None:
        """Mark the account deleted. Its metadata file is never written again."""
        self.is_deleted = True
        self._logger.info("Account %s marked deleted", self.account_id)

    def close(self) -> None:
        """Write any pending metadata changes now."""
        self._metadata_file.flush()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
