# ==============================================
# Feed Metadata Persistence
# ==============================================
#
# Package Structure:
#
# feedmeta/
# ├── scheduling/       # Coalescing save queue
# ├── persistence/      # Coordinated file access + metadata file
# ├── models.py         # WebFeed, WebFeedMetadata
# ├── account.py        # Account: owns feeds and metadata
# └── config.py         # Configuration management
#
# ==============================================

import logging
from typing import Optional

from feedmeta.config import get_config

__version__ = "0.1.0"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Send feedmeta's log records to stderr. For applications, not library code.

    Args:
        level: Level name; defaults to FEEDMETA_LOG_LEVEL via get_config()
    """
    if level is None:
        level = get_config().log_level

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    logger = logging.getLogger("feedmeta")
    logger.addHandler(handler)
    logger.setLevel(level)
