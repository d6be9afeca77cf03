"""
Key-Value Service Module

Composes the StoreActor and the PersistenceEngine into one service with a
small coroutine API used by the request layer.
"""

import logging
from typing import Dict, Optional, Any

from .config.settings import settings
from .persistence.engine import PersistenceEngine
from .persistence.errors import RestoreError
from .protocol.operations import Operation
from .store.actor import StoreActor

logger = logging.getLogger(__name__)


class KVService:
    """
    In-memory key-value service with periodic snapshots.

    On construction the latest snapshot is restored; if none exists or it
    cannot be read, the service starts empty and only logs why.

    Usage:
        service = KVService(interval=60)
        await service.start()
        await service.create("key1", "value1")
        await service.get("key1")       # {"key1": "value1"}
        await service.stop()
    """

    def __init__(
            self,
            interval: Optional[float] = None,
            snapshot_dir: Optional[str] = None,
            engine: Optional[PersistenceEngine] = None,
            request_timeout: Optional[float] = None,
    ):
        """
        Initialize the service and restore the latest snapshot.

        Args:
            interval: Seconds between snapshots (default settings.PERSIST_INTERVAL)
            snapshot_dir: Snapshot directory (default settings.SNAPSHOT_DIR)
            engine: A preconfigured PersistenceEngine (overrides snapshot_dir)
            request_timeout: Seconds to wait for each reply, 0 or None
                waits forever (default settings.REQUEST_TIMEOUT)
        """
        self.interval = interval if interval is not None else settings.PERSIST_INTERVAL
        self.engine = engine if engine is not None else PersistenceEngine(directory=snapshot_dir)
        timeout = request_timeout if request_timeout is not None else settings.REQUEST_TIMEOUT
        self.request_timeout = timeout or None

        initial: Dict[str, str] = {}
        try:
            initial = self.engine.restore()
            logger.info(f"Data recovered from {self.engine.directory}. size:{len(initial)}")
        except RestoreError as exc:
            logger.warning(f"Starting with an empty store: {exc}")

        self.actor = StoreActor(self.engine, initial=initial)

    async def start(self) -> None:
        """Start the snapshot writer, the ticker and the actor loop."""
        await self.engine.start()
        self.engine.configure(self.interval)
        await self.actor.start()

    async def stop(self) -> None:
        """Stop the actor first, then the persistence tasks."""
        await self.actor.stop()
        await self.engine.stop()

    async def create(self, key: str, value: str) -> bool:
        """Insert or overwrite ``key``. Always acknowledged with True."""
        return await self.actor.submit(Operation.create(key, value), self.request_timeout)

    async def get(self, key: str) -> Optional[Dict[str, str]]:
        """
        Look up ``key``.

        Returns:
            ``{key: value}`` if present, None on a miss
        """
        operation = Operation.get(key)
        if await self.actor.submit(operation, self.request_timeout):
            return await operation.result
        return None

    async def delete_all(self) -> bool:
        """Remove every key. Always acknowledged with True."""
        return await self.actor.submit(Operation.delete_all(), self.request_timeout)

    def get_stats(self) -> Dict[str, Any]:
        """Combined actor and persistence statistics."""
        return {
            "store": self.actor.get_stats(),
            "persistence": self.engine.get_stats(),
        }
