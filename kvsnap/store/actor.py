"""
Store Actor Module

This module implements the single owner of the key-value mapping.

All reads and mutations go through one asyncio task that takes Operation
messages off a queue and applies them one at a time. The same task handles
persistence ticks by handing a copy of the mapping to the PersistenceEngine,
so a snapshot never observes a partially applied operation. The mapping is
never shared by reference and needs no lock.
"""

import asyncio
import contextlib
import logging
from typing import Dict, Optional, Any

from ..config.settings import settings
from ..persistence.engine import PersistenceEngine
from ..protocol.operations import Operation, OperationKind

logger = logging.getLogger(__name__)


class StoreActor:
    """
    Single-writer actor owning the key-value mapping.

    The loop multiplexes two event sources:
    - the operation queue fed by ``submit()``
    - the tick queue of the PersistenceEngine

    Each event is processed to completion before the next one is taken.
    Operations are O(1) in memory, so a submitter waits roughly as long as
    the operations queued ahead of it.

    Usage:
        actor = StoreActor(engine, initial={"a": "1"})
        await actor.start()
        op = Operation.get("a")
        if await actor.submit(op):
            pair = await op.result

    Attributes:
        engine: The PersistenceEngine receiving snapshots on each tick
    """

    def __init__(
            self,
            engine: PersistenceEngine,
            initial: Optional[Dict[str, str]] = None,
            queue_size: int = None,
    ):
        """
        Initialize the actor.

        Args:
            engine: PersistenceEngine to receive tick snapshots
            initial: Initial mapping, typically from a restored snapshot
            queue_size: Depth of the operation queue (default from settings)
        """
        self.engine = engine
        self._data: Dict[str, str] = dict(initial) if initial else {}
        self._operations: "asyncio.Queue[Operation]" = asyncio.Queue(
            maxsize=queue_size if queue_size is not None else settings.OPERATION_QUEUE_SIZE
        )
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

        self._processed = 0
        self._discarded = 0
        self._snapshots_offered = 0

    async def start(self) -> None:
        """Start the actor loop in a background task."""
        self._stopped = False
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """
        Cancel the actor loop and wait for it to finish.

        Operations still queued are failed with RuntimeError, and so is any
        submit() made until the actor is started again.
        """
        self._stopped = True
        if self._task is not None:
            task, self._task = self._task, None
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._fail_pending()

    def _fail_pending(self) -> None:
        while not self._operations.empty():
            self._operations.get_nowait().fail(RuntimeError("store actor is not running"))

    def is_running(self) -> bool:
        """Check if the actor loop is running."""
        return self._task is not None and not self._task.done()

    async def submit(self, operation: Operation, timeout: Optional[float] = None) -> bool:
        """
        Enqueue an operation and wait for its acknowledgement.

        Args:
            operation: The Operation to apply
            timeout: Seconds to wait for the reply (None waits forever)

        Returns:
            The acknowledgement: True on success, False on a lookup miss

        Raises:
            asyncio.TimeoutError: If no reply arrived in time. The operation
                is then abandoned and its reply will be discarded.
            RuntimeError: If the actor has been stopped.
        """
        if self._stopped:
            raise RuntimeError("store actor is not running")
        await self._operations.put(operation)
        if self._stopped:
            # stop() ran while put() waited for room in the queue
            self._fail_pending()
        if timeout is None:
            return await operation.ack
        return await asyncio.wait_for(operation.ack, timeout)

    async def _run(self) -> None:
        op_getter: Optional[asyncio.Future] = None
        tick_getter: Optional[asyncio.Future] = None
        try:
            while True:
                if op_getter is None:
                    op_getter = asyncio.ensure_future(self._operations.get())
                if tick_getter is None:
                    tick_getter = asyncio.ensure_future(self.engine.ticks.get())

                done, _ = await asyncio.wait(
                    {op_getter, tick_getter}, return_when=asyncio.FIRST_COMPLETED
                )

                if tick_getter in done:
                    tick = tick_getter.result()
                    tick_getter = None
                    self._handle_tick(tick)

                if op_getter in done:
                    operation = op_getter.result()
                    op_getter = None
                    self._handle(operation)
        finally:
            if op_getter is not None and op_getter.done() and not op_getter.cancelled():
                # Dequeued but never handled
                op_getter.result().fail(RuntimeError("store actor is not running"))
            for getter in (op_getter, tick_getter):
                if getter is not None:
                    getter.cancel()

    def _handle_tick(self, tick: float) -> None:
        logger.debug(
            f"Persistence timer tick at {tick}. Sending current mapping, size:{len(self._data)}"
        )
        self.engine.offer(dict(self._data))
        self._snapshots_offered += 1

    def _handle(self, operation: Operation) -> None:
        """Apply one operation and deliver its reply."""
        if operation.cancelled:
            # Submitter gave up before we got to it; skip it entirely
            self._discarded += 1
            logger.debug(f"Skipping abandoned {operation.kind.name} operation")
            return

        self._processed += 1

        if operation.kind == OperationKind.CREATE:
            self._data[operation.key] = operation.value
            delivered = operation.reply(True)
        elif operation.kind == OperationKind.GET:
            if operation.key in self._data:
                delivered = operation.reply(True, {operation.key: self._data[operation.key]})
            else:
                delivered = operation.reply(False)
        elif operation.kind == OperationKind.DELETE_ALL:
            self._data = {}
            delivered = operation.reply(True)
        else:
            logger.error(f"Unknown operation kind: {operation.kind}")
            delivered = operation.reply(False)

        if not delivered:
            self._discarded += 1
            logger.debug(f"Discarded reply for abandoned {operation.kind.name} operation")

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the actor.

        Returns:
            Dictionary containing:
            - total_keys: Keys currently in the mapping
            - processed: Operations applied
            - discarded_replies: Replies dropped because the submitter left
            - pending_operations: Operations waiting in the queue
            - snapshots_offered: Snapshots handed to the persistence engine
        """
        return {
            "total_keys": len(self._data),
            "processed": self._processed,
            "discarded_replies": self._discarded,
            "pending_operations": self._operations.qsize(),
            "snapshots_offered": self._snapshots_offered,
        }
