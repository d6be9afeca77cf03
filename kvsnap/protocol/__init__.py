"""Protocol module for KV-Snapshot."""

from .commands import Command, CommandType, Response, ResponseStatus
from .operations import Operation, OperationKind
from .parser import ProtocolParser

__all__ = [
    "Command",
    "CommandType",
    "Operation",
    "OperationKind",
    "Response",
    "ResponseStatus",
    "ProtocolParser",
]
