"""Persistence module for KV-Snapshot."""

from .engine import PersistenceEngine
from .errors import RestoreError, SnapshotCorruptError, SnapshotNotFoundError
from .fnv import fnv1a_32

__all__ = [
    "PersistenceEngine",
    "RestoreError",
    "SnapshotCorruptError",
    "SnapshotNotFoundError",
    "fnv1a_32",
]
