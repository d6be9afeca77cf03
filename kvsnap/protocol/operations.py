"""
Store Operation Definitions

An Operation is the only way callers talk to the StoreActor. Each one carries
a one-shot acknowledgement future and, for GET, a one-shot result future.
Both are resolved at most once by the actor and awaited once by the submitter.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Optional


class OperationKind(Enum):
    """Enumeration of store operation kinds."""
    CREATE = auto()
    GET = auto()
    DELETE_ALL = auto()


@dataclass
class Operation:
    """
    A single request to the StoreActor.

    Must be created inside a running event loop, since the reply futures
    are bound to it.

    Attributes:
        kind: What to do (CREATE, GET, DELETE_ALL)
        key: The key for CREATE and GET
        value: The value for CREATE
        ack: Resolved with True/False once the operation is processed
        result: For GET only, resolved with {key: value} before ack
    """
    kind: OperationKind
    key: str = ""
    value: str = ""
    ack: "asyncio.Future[bool]" = field(init=False, repr=False)
    result: "Optional[asyncio.Future[Dict[str, str]]]" = field(init=False, repr=False, default=None)

    def __post_init__(self):
        loop = asyncio.get_running_loop()
        self.ack = loop.create_future()
        if self.kind == OperationKind.GET:
            self.result = loop.create_future()

    @classmethod
    def create(cls, key: str, value: str) -> "Operation":
        """Create a CREATE operation (insert or overwrite)."""
        return cls(kind=OperationKind.CREATE, key=key, value=value)

    @classmethod
    def get(cls, key: str) -> "Operation":
        """Create a GET operation."""
        return cls(kind=OperationKind.GET, key=key)

    @classmethod
    def delete_all(cls) -> "Operation":
        """Create a DELETE_ALL operation."""
        return cls(kind=OperationKind.DELETE_ALL)

    @property
    def cancelled(self) -> bool:
        """True once the submitter has given up waiting for the reply."""
        return self.ack.cancelled()

    def reply(self, success: bool, data: Optional[Dict[str, str]] = None) -> bool:
        """
        Deliver the reply for this operation.

        The data reply (if any) is set before the acknowledgement so a
        submitter that sees ack=True can read the result immediately.
        Replies to an abandoned operation are discarded.

        Returns:
            True if the reply was delivered, False if it was discarded
        """
        if self.ack.done():
            return False
        if data is not None and self.result is not None and not self.result.done():
            self.result.set_result(data)
        self.ack.set_result(success)
        return True

    def fail(self, exc: BaseException) -> None:
        """Fail an operation that will never be processed."""
        if not self.ack.done():
            self.ack.set_exception(exc)
        if self.result is not None:
            self.result.cancel()
