"""
KV-Snapshot Configuration Settings

This module contains all configuration constants for the KV-Snapshot server.
Values are read from the environment once, at import time.
"""

import os
import tempfile
from dataclasses import dataclass


@dataclass
class Settings:
    """Server configuration settings."""

    # Network settings
    HOST: str = os.environ.get("KV_SNAP_HOST", "0.0.0.0")
    PORT: int = int(os.environ.get("PORT", os.environ.get("KV_SNAP_PORT", "8080")))
    MAX_LINE_LENGTH: int = int(os.environ.get("KV_SNAP_MAX_LINE_LENGTH", str(1024 * 1024)))  # Bytes per request line

    # Persistence settings
    PERSIST_INTERVAL: int = int(os.environ.get("KV_SNAP_PERSIST_INTERVAL", "300"))  # Seconds between snapshots
    SNAPSHOT_DIR: str = os.environ.get("KV_SNAP_SNAPSHOT_DIR", tempfile.gettempdir())
    SNAPSHOT_PREFIX: str = os.environ.get("KV_SNAP_SNAPSHOT_PREFIX", "KVSNAP")
    SNAPSHOT_QUEUE_SIZE: int = 10

    # Store actor settings
    OPERATION_QUEUE_SIZE: int = 100
    REQUEST_TIMEOUT: float = float(os.environ.get("KV_SNAP_REQUEST_TIMEOUT", "0"))  # 0 means wait forever

    # Logging settings
    DEBUG: bool = os.environ.get("KV_SNAP_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("KV_SNAP_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
