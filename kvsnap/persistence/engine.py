"""
Snapshot Persistence Module

This module periodically snapshots the key-value mapping to disk and restores
the most recent snapshot at startup.

Pipeline for each snapshot handed over by the StoreActor:
    serialize -> hash-compare -> write -> rotate

Snapshot files are named ``<prefix>-<unix-seconds>.json`` and hold a single
JSON object of string keys to string values. After a successful write every
other file following that convention is deleted, so at most one snapshot is
kept on disk.
"""

import asyncio
import contextlib
import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Callable, Dict, Optional, Any

from ..config.settings import settings
from .errors import RestoreError, SnapshotCorruptError, SnapshotNotFoundError
from .fnv import fnv1a_32

logger = logging.getLogger(__name__)


class PersistenceEngine:
    """
    Timer-driven snapshot writer with hash deduplication and rotation.

    The engine owns three things:
    - a ticker task that puts a timestamp on ``ticks`` every interval
    - a bounded ``snapshots`` queue fed by the StoreActor on each tick
    - a writer task draining that queue through ``persist()``

    Only the writer task calls ``persist()``, so the last written hash has a
    single mutator and needs no locking. File I/O runs in a worker thread to
    keep the event loop (and so request latency) independent of the disk.

    Usage:
        engine = PersistenceEngine(directory="/var/tmp")
        mapping = engine.restore()      # may raise RestoreError
        await engine.start()
        engine.configure(300)

    Attributes:
        directory: Where snapshot files live
        prefix: Fixed filename prefix of snapshot files
        interval: Seconds between ticks (None until configured)
        ticks: Queue of tick timestamps, read by the StoreActor
        snapshots: Queue of mapping copies waiting to be persisted
    """

    def __init__(
            self,
            directory: str = None,
            prefix: str = None,
            queue_size: int = None,
            clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the engine.

        Args:
            directory: Snapshot directory (default from settings.SNAPSHOT_DIR)
            prefix: Snapshot filename prefix (default from settings.SNAPSHOT_PREFIX)
            queue_size: Depth of the snapshot queue (default from settings)
            clock: Returns the current Unix time, used for filenames
        """
        self.directory = Path(directory if directory is not None else settings.SNAPSHOT_DIR)
        self.prefix = prefix if prefix is not None else settings.SNAPSHOT_PREFIX
        self.interval: Optional[float] = None
        self._clock = clock
        self._pattern = re.compile(rf"^{re.escape(self.prefix)}-(\d+)\.json$")
        self._leftover = re.compile(rf"^{re.escape(self.prefix)}-\d+\.json\.tmp$")

        # A pending tick already captures the newest state, so depth 1 is enough
        self.ticks: "asyncio.Queue[float]" = asyncio.Queue(maxsize=1)
        self.snapshots: "asyncio.Queue[Dict[str, str]]" = asyncio.Queue(
            maxsize=queue_size if queue_size is not None else settings.SNAPSHOT_QUEUE_SIZE
        )

        self._last_hash: Optional[int] = None
        self._last_file: Optional[str] = None
        self._ticker_task: Optional[asyncio.Task] = None
        self._writer_task: Optional[asyncio.Task] = None

        self._writes = 0
        self._skipped = 0
        self._failures = 0
        self._dropped = 0

    @property
    def last_hash(self) -> Optional[int]:
        """Hash of the last successfully written snapshot."""
        return self._last_hash

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the writer task consuming the snapshot queue."""
        if self._writer_task is None:
            self._writer_task = asyncio.create_task(self._run_writer())

    def configure(self, interval: float) -> None:
        """
        Establish (or replace) the recurring timer.

        Args:
            interval: Seconds between ticks, must be positive

        Raises:
            ValueError: If interval is not positive
        """
        if interval <= 0:
            raise ValueError(f"persist interval must be positive, got {interval}")

        if self._ticker_task is not None:
            self._ticker_task.cancel()
        self.interval = interval
        self._ticker_task = asyncio.create_task(self._run_ticker())
        logger.debug(f"Persistence ticker configured every {interval}s")

    async def stop(self) -> None:
        """Cancel the ticker and writer tasks and wait for them to finish."""
        tasks = [t for t in (self._ticker_task, self._writer_task) if t is not None]
        self._ticker_task = None
        self._writer_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run_ticker(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.signal_tick()

    def signal_tick(self) -> bool:
        """
        Publish one tick to the StoreActor.

        Returns:
            True if the tick was queued, False if one was already pending
        """
        try:
            self.ticks.put_nowait(self._clock())
            return True
        except asyncio.QueueFull:
            logger.debug("Persistence tick dropped, previous tick still pending")
            return False

    async def _run_writer(self) -> None:
        while True:
            mapping = await self.snapshots.get()
            logger.debug(f"Received snapshot at {self._clock()}. size:{len(mapping)}")
            try:
                await asyncio.to_thread(self.persist, mapping)
            except Exception as exc:  # Log unexpected errors but keep the writer alive
                logger.exception(f"Unexpected error while persisting snapshot: {exc}")

    def offer(self, mapping: Dict[str, str]) -> bool:
        """
        Hand a snapshot copy to the writer without ever blocking.

        When the queue is full the oldest queued snapshot is dropped; it is
        superseded by the newer one anyway.

        Returns:
            True if queued without dropping anything, False otherwise
        """
        try:
            self.snapshots.put_nowait(mapping)
            return True
        except asyncio.QueueFull:
            self.snapshots.get_nowait()
            self._dropped += 1
            logger.warning(
                f"Snapshot queue full ({self.snapshots.maxsize}), dropped oldest pending snapshot"
            )
            self.snapshots.put_nowait(mapping)
            return False

    # ------------------------------------------------------------------
    # Snapshot pipeline
    # ------------------------------------------------------------------

    @staticmethod
    def serialize(mapping: Dict[str, str]) -> bytes:
        """Encode a mapping as canonical JSON bytes (sorted keys, compact)."""
        return json.dumps(
            mapping, sort_keys=True, separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")

    def snapshot_path(self, timestamp: int) -> Path:
        """Return the snapshot path for a Unix timestamp."""
        return self.directory / f"{self.prefix}-{timestamp}.json"

    def persist(self, mapping: Dict[str, str]) -> Optional[str]:
        """
        Write a snapshot of ``mapping`` unless it matches the last one.

        Args:
            mapping: A copy of the key-value mapping

        Returns:
            Path of the written file, or None when the write was skipped
            (same content) or failed (already logged)

        Note: an empty mapping is persisted too, so DELETE_ALL survives
        a restart.
        """
        try:
            payload = self.serialize(mapping)
        except (TypeError, ValueError) as exc:
            logger.error(f"Snapshot serialization failed: {exc}")
            self._failures += 1
            return None

        digest = fnv1a_32(payload)
        logger.debug(f"Hash values: current snapshot {digest}, last persisted {self._last_hash}")
        if digest == self._last_hash:
            self._skipped += 1
            return None

        path = self.snapshot_path(int(self._clock()))
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            with open(tmp_path, "wb") as fh:
                fh.write(payload + b"\n")
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            logger.error(f"Writing snapshot {path} failed: {exc}")
            self._failures += 1
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            return None

        self._last_hash = digest
        self._last_file = str(path)
        self._writes += 1
        logger.info(f"Snapshot ({len(payload)} bytes) persisted into {path}")
        self.rotate(str(path))
        return str(path)

    def rotate(self, keep_filename: str) -> int:
        """
        Delete every snapshot file except ``keep_filename``.

        Temp files left behind by an interrupted write are deleted too.
        Deletion failures are logged and do not stop the scan.

        Returns:
            Number of files deleted
        """
        keep = Path(keep_filename).name
        try:
            entries = list(self.directory.iterdir())
        except OSError as exc:
            logger.warning(f"Cannot read snapshot directory {self.directory}: {exc}")
            return 0

        deleted = 0
        for entry in entries:
            if entry.name == keep or not entry.is_file():
                continue
            if not (self._pattern.match(entry.name) or self._leftover.match(entry.name)):
                continue
            try:
                entry.unlink()
            except OSError as exc:
                logger.error(f"Cannot delete file {entry}: {exc}")
                continue
            deleted += 1
            logger.info(f"Deleted file {entry}")
        return deleted

    def latest_snapshot(self) -> Optional[Path]:
        """
        Find the snapshot file with the largest embedded timestamp.

        On equal timestamps the first one encountered wins.

        Raises:
            RestoreError: If the snapshot directory cannot be read
        """
        try:
            entries = list(self.directory.iterdir())
        except OSError as exc:
            logger.warning(f"Cannot read snapshot directory {self.directory}: {exc}")
            raise RestoreError(f"cannot read snapshot directory {self.directory}") from exc

        latest: Optional[Path] = None
        latest_ts = -1
        for entry in entries:
            match = self._pattern.match(entry.name)
            if not match or not entry.is_file():
                continue
            ts = int(match.group(1))
            if ts > latest_ts:
                latest_ts = ts
                latest = entry
        return latest

    def restore(self) -> Dict[str, str]:
        """
        Load the most recent snapshot.

        Returns:
            The restored mapping

        Raises:
            SnapshotNotFoundError: No snapshot file exists
            SnapshotCorruptError: The latest file is unreadable or not a
                JSON object of strings to strings
        """
        path = self.latest_snapshot()
        if path is None:
            logger.info(f"Cannot find any {self.prefix}-*.json file in {self.directory}")
            raise SnapshotNotFoundError(f"no {self.prefix}-*.json file in {self.directory}")

        try:
            data: Any = json.loads(path.read_bytes())
        except OSError as exc:
            logger.error(f"Cannot read {path}: {exc}")
            raise SnapshotCorruptError(f"cannot read {path}") from exc
        except ValueError as exc:
            logger.error(f"Cannot decode {path}: {exc}")
            raise SnapshotCorruptError(f"cannot decode {path}") from exc

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            logger.error(f"Snapshot {path} is not an object of strings")
            raise SnapshotCorruptError(f"{path} is not an object of strings")

        logger.debug(f"Restored snapshot {path}. size:{len(data)}")
        return data

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the persistence engine.

        Returns:
            Dictionary containing write/skip/failure/drop counters, the
            last written hash and file, and the configured interval.
        """
        return {
            "interval": self.interval,
            "directory": str(self.directory),
            "writes": self._writes,
            "skipped": self._skipped,
            "failures": self._failures,
            "dropped_snapshots": self._dropped,
            "pending_snapshots": self.snapshots.qsize(),
            "last_hash": self._last_hash,
            "last_file": self._last_file,
        }
