"""Exceptions raised when restoring a snapshot at startup."""


class RestoreError(Exception):
    """Base class for snapshot restore failures."""


class SnapshotNotFoundError(RestoreError):
    """No file matching the snapshot naming convention exists."""


class SnapshotCorruptError(RestoreError):
    """The latest snapshot could not be read or decoded."""
