"""
Protocol Parser Module

This module handles parsing of raw protocol lines into Command objects and
formatting of Response objects back into protocol lines.
"""

import json
from typing import Dict

from .commands import Command, CommandType, Response


class ProtocolParser:
    """
    Parser for the KV-Snapshot text protocol.

    Protocol Format:
        Request:  <COMMAND> [ARGS...]\\n
        Response: <STATUS> [DATA]\\n

    Commands:
        PUT <key> <value...>   -> OK stored
        GET <key>              -> OK {"<key>":"<value>"} | ERROR key not found
        DELETEALL              -> OK deleted
        QUIT                   -> (connection closed)

    Keys contain no whitespace. The value of a PUT is the remainder of
    the line, so it may contain spaces.
    """

    def parse_request(self, data: str) -> Command:
        """
        Parse a raw request string into a Command object.

        Returns a Command with type=UNKNOWN for invalid/malformed requests.

        Examples:
            >>> parser = ProtocolParser()
            >>> cmd = parser.parse_request("PUT greeting hello world")
            >>> cmd.type == CommandType.PUT
            True
            >>> cmd.value
            'hello world'
        """
        raw = data.strip()
        if not raw:
            return Command(type=CommandType.UNKNOWN, raw=raw)

        parts = raw.split(maxsplit=2)
        command_name = parts[0].upper()

        if command_name == "PUT":
            if len(parts) != 3:
                return Command(type=CommandType.UNKNOWN, raw=raw)
            return Command(type=CommandType.PUT, key=parts[1], value=parts[2].strip(), raw=raw)
        if command_name == "GET":
            if len(parts) != 2:
                return Command(type=CommandType.UNKNOWN, raw=raw)
            return Command(type=CommandType.GET, key=parts[1], raw=raw)
        if command_name in ("DELETEALL", "QUIT"):
            # Neither takes arguments
            if len(parts) == 1:
                return Command(type=CommandType[command_name], raw=raw)
            return Command(type=CommandType.UNKNOWN, raw=raw)

        return Command(type=CommandType.UNKNOWN, raw=raw)

    @staticmethod
    def encode_pair(pair: Dict[str, str]) -> str:
        """Encode a GET result mapping as a single-line JSON object."""
        return json.dumps(pair, separators=(",", ":"), ensure_ascii=False)

    def format_response(self, response: Response) -> str:
        """
        Format a Response object into a protocol string.

        Examples:
            >>> parser = ProtocolParser()
            >>> parser.format_response(Response.stored())
            'OK stored\\n'
            >>> parser.format_response(Response.error("key not found"))
            'ERROR key not found\\n'
        """
        prefix = response.status.value
        if response.message:
            return f"{prefix} {response.message}\n"
        return f"{prefix}\n"
