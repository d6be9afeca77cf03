"""
Async TCP Server Module

This module implements the line-oriented TCP front end for KV-Snapshot.

It only parses lines, forwards them to the KVService as store operations,
and formats the replies. It never touches the key-value mapping itself.
"""

import asyncio
import logging
import time
import uuid
from asyncio import StreamReader, StreamWriter
from typing import Optional

from ..config.settings import settings
from ..protocol.commands import Command, CommandType, Response
from ..protocol.parser import ProtocolParser
from ..service import KVService

logger = logging.getLogger(__name__)


class KVServer:
    """
    Asynchronous TCP server for the KV-Snapshot service.

    Each client connection is handled in its own coroutine. All of them
    share one KVService, whose StoreActor serializes their operations.

    Usage:
        server = KVServer(host='0.0.0.0', port=8080)
        await server.start()  # Runs forever

    Attributes:
        host: Server bind address (e.g., '0.0.0.0')
        port: Server port number (e.g., 8080)
        service: The KVService shared by all connections
        parser: The ProtocolParser for parsing commands
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            service: KVService = None,
            max_line_length: int = None,
    ):
        """
        Initialize the server.

        Args:
            host: Bind address (default from settings)
            port: Port number (default from settings)
            service: KVService instance (creates new one if not provided)
            max_line_length: Longest accepted request line in bytes (default from settings)
        """
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.service = service if service is not None else KVService()
        self.max_line_length = (
            max_line_length if max_line_length is not None else settings.MAX_LINE_LENGTH
        )
        self.parser = ProtocolParser()

        # Server state
        self._server: Optional[asyncio.Server] = None
        self._running = False
        self._connection_count = 0
        self._total_requests = 0

    async def handle_client(
            self,
            reader: StreamReader,
            writer: StreamWriter
    ) -> None:
        """
        Handle a single client connection.

        Reads commands line by line until the client disconnects or sends
        QUIT. Every request is tagged with a fresh request id in the logs.
        """
        addr = writer.get_extra_info('peername')
        self._connection_count += 1
        logger.debug(f"Client connected: {addr}")

        try:
            while True:
                data = await self._read_line(reader)
                if data is None:
                    logger.warning(f"Request line from {addr} exceeds {self.max_line_length} bytes")
                    response = Response.error("line too long")
                    writer.write(self.parser.format_response(response).encode())
                    await writer.drain()
                    continue
                if not data:
                    logger.debug(f"Client disconnected: {addr}")
                    break

                request_id = uuid.uuid4()
                start = time.monotonic()

                try:
                    raw = data.decode().rstrip('\r\n')
                except UnicodeDecodeError:
                    response = Response.error("invalid encoding")
                    writer.write(self.parser.format_response(response).encode())
                    await writer.drain()
                    continue

                command = self.parser.parse_request(raw)
                logger.debug(f"Request {request_id} received from {addr}: {command.type.name}")

                if command.type == CommandType.QUIT:
                    logger.debug(f"Client requested quit: {addr}")
                    break

                if not command.is_valid:
                    response = Response.error("invalid command")
                else:
                    self._total_requests += 1
                    response = await self._execute_command(command, request_id)

                writer.write(self.parser.format_response(response).encode())
                await writer.drain()
                logger.debug(
                    f"Request {request_id} completed in {(time.monotonic() - start) * 1000:.1f}ms"
                )

        except ConnectionResetError:
            logger.debug(f"Connection reset by client: {addr}")
        except Exception as exc:  # Log unexpected errors but keep server alive
            logger.exception(f"Error handling client {addr}: {exc}")
        finally:
            try:
                writer.close()
                await writer.wait_closed()
            except Exception:
                pass

    @staticmethod
    async def _read_line(reader: StreamReader) -> Optional[bytes]:
        """
        Read one request line.

        Returns:
            The line (b'' at EOF), or None if it was longer than the
            reader's limit. The rest of an oversized line is discarded.
        """
        try:
            return await reader.readuntil(b'\n')
        except asyncio.IncompleteReadError as exc:
            return exc.partial
        except asyncio.LimitOverrunError as exc:
            consumed = exc.consumed

        while True:
            await reader.readexactly(consumed)
            try:
                await reader.readuntil(b'\n')
                return None
            except asyncio.IncompleteReadError:
                return None
            except asyncio.LimitOverrunError as exc:
                consumed = exc.consumed

    async def _execute_command(self, command: Command, request_id: uuid.UUID) -> Response:
        """
        Execute a parsed command against the service.

        Args:
            command: A valid Command
            request_id: Tag used in log lines for this request

        Returns:
            Response object with the result
        """
        try:
            if command.type == CommandType.PUT:
                await self.service.create(command.key, command.value)
                logger.info(f"Create completed. RequestId: {request_id}")
                return Response.stored()

            if command.type == CommandType.GET:
                pair = await self.service.get(command.key)
                if pair is None:
                    logger.info(f"Get missed. RequestId: {request_id}")
                    return Response.key_not_found()
                logger.info(f"Get completed. RequestId: {request_id}")
                return Response.pair_response(self.parser.encode_pair(pair))

            if command.type == CommandType.DELETEALL:
                await self.service.delete_all()
                logger.info(f"DeleteAll completed. RequestId: {request_id}")
                return Response.deleted()
        except asyncio.TimeoutError:
            logger.error(f"{command.type.name} timed out. RequestId: {request_id}")
            return Response.error("timeout")
        except RuntimeError as exc:
            logger.error(f"{command.type.name} failed: {exc}. RequestId: {request_id}")
            return Response.error("unavailable")

        return Response.error("invalid command")

    async def start(self) -> None:
        """
        Start the service and begin accepting connections.

        Runs forever (or until cancelled).

        Example:
            server = KVServer(port=8080)
            asyncio.run(server.start())
        """
        if self._running:
            return

        await self.service.start()
        self._server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port,
            limit=self.max_line_length,
        )
        self._running = True

        addrs = ', '.join(str(sock.getsockname()) for sock in self._server.sockets or [])
        logger.info(f"Serving on {addrs}")

        try:
            async with self._server:
                await self._server.serve_forever()
        except asyncio.CancelledError:
            # Expected during shutdown/fixture cleanup
            logger.debug("Server start cancelled")
        finally:
            self._running = False

    async def stop(self) -> None:
        """
        Stop the server and the service gracefully.
        """
        if self._server is not None:
            self._server.close()
            try:
                await self._server.wait_closed()
            finally:
                self._server = None
                self._running = False

        await self.service.stop()

    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running

    def get_stats(self) -> dict:
        """
        Get server statistics.

        Returns:
            Dictionary with server stats including connection counts,
            request counts, and service statistics.
        """
        return {
            "running": self._running,
            "host": self.host,
            "port": self.port,
            "total_connections": self._connection_count,
            "total_requests": self._total_requests,
            "service_stats": self.service.get_stats(),
        }
