"""
Protocol Command and Response Definitions

This module defines the data structures for wire protocol commands and
responses handled by the TCP front end.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class CommandType(Enum):
    """Enumeration of supported command types."""
    PUT = auto()
    GET = auto()
    DELETEALL = auto()
    QUIT = auto()
    UNKNOWN = auto()


class ResponseStatus(Enum):
    """Enumeration of response statuses."""
    OK = "OK"
    ERROR = "ERROR"


@dataclass
class Command:
    """
    Represents a parsed protocol command.

    Attributes:
        type: The type of command (PUT, GET, DELETEALL, QUIT, UNKNOWN)
        key: The key for PUT and GET
        value: The value for PUT (empty for other commands)
        raw: The original raw command string
    """
    type: CommandType
    key: str = ""
    value: str = ""
    raw: str = ""

    @property
    def is_valid(self) -> bool:
        """Check if the command is valid for its type."""
        if self.type in (CommandType.QUIT, CommandType.DELETEALL):
            return True
        if self.type == CommandType.GET:
            return bool(self.key)
        if self.type == CommandType.PUT:
            return bool(self.key) and bool(self.value)
        return False


@dataclass
class Response:
    """
    Represents a protocol response.

    Attributes:
        status: OK or ERROR
        message: Response message, error description or GET payload
    """
    status: ResponseStatus
    message: str = ""

    @classmethod
    def ok(cls, message: str = "") -> "Response":
        """Create a successful response."""
        return cls(status=ResponseStatus.OK, message=message)

    @classmethod
    def error(cls, message: str) -> "Response":
        """Create an error response."""
        return cls(status=ResponseStatus.ERROR, message=message)

    @classmethod
    def stored(cls) -> "Response":
        return cls.ok(message="stored")

    @classmethod
    def deleted(cls) -> "Response":
        return cls.ok(message="deleted")

    @classmethod
    def key_not_found(cls) -> "Response":
        return cls.error(message="key not found")

    @classmethod
    def pair_response(cls, payload: Optional[str]) -> "Response":
        """Create a GET response carrying the JSON-encoded pair."""
        return cls.ok(message=payload or "")
