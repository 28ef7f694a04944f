# ==============================================
# Configuration Management
# ==============================================
#
# PURPOSE:
#   Load configuration from environment variables / .env file.
#   Provides typed config objects to all other modules.
#
# CLASSES:
# --------
# - PersistenceConfig (dataclass)
#     save_interval_seconds: float  (default 0.5)
#     lock_timeout_seconds: float   (default 10.0)
#     data_dir: str                 (default "accounts/")
#     metadata_filename: str        (default "FeedMetadata.plist")
#
# - AppConfig (dataclass)
#     persistence: PersistenceConfig
#     log_level: str                (default "INFO")
#
# FUNCTIONS:
# ----------
# - get_config() -> AppConfig
#     Load .env using python-dotenv, construct AppConfig.
#     Returns the same singleton on repeated calls.
#
# - reset_config() -> None
#     Forget the singleton so the next get_config() re-reads the env.
#
# USAGE:
# ------
#   from feedmeta.config import get_config
#   config = get_config()
#   print(config.persistence.save_interval_seconds)
#
# ==============================================

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


@dataclass
class PersistenceConfig:
    """Settings for the metadata file and its save queue."""
    save_interval_seconds: float = 0.5
    lock_timeout_seconds: float = 10.0
    data_dir: str = "accounts/"
    metadata_filename: str = "FeedMetadata.plist"


@dataclass
class AppConfig:
    """Main application configuration."""
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    log_level: str = "INFO"


# Singleton instance
_config_instance: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Load configuration from environment variables / .env file.
    Returns the same singleton instance on repeated calls.

    Returns:
        AppConfig: Application configuration
    """
    global _config_instance

    if _config_instance is not None:
        return _config_instance

    # Load .env file from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    persistence_config = PersistenceConfig(
        save_interval_seconds=float(os.getenv("FEEDMETA_SAVE_INTERVAL", "0.5")),
        lock_timeout_seconds=float(os.getenv("FEEDMETA_LOCK_TIMEOUT", "10.0")),
        data_dir=os.getenv("FEEDMETA_DATA_DIR", "accounts/"),
        metadata_filename=os.getenv("FEEDMETA_METADATA_FILENAME", "FeedMetadata.plist"),
    )

    _config_instance = AppConfig(
        persistence=persistence_config,
        log_level=os.getenv("FEEDMETA_LOG_LEVEL", "INFO").upper(),
    )

    return _config_instance


def reset_config() -> None:
    """Drop the cached configuration (used by tests)."""
    global _config_instance
    _config_instance = None
