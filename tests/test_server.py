"""
Tests for the Async TCP Server

These tests verify the KVServer class:
- Server starts and accepts connections
- Commands are forwarded to the service
- Multiple concurrent clients share one store
- Disconnections and bad input are handled gracefully

Run with: python -m pytest tests/test_server.py -v
"""

import asyncio
import json
import pytest

from kvsnap.network.tcp_server import KVServer
from kvsnap.service import KVService


@pytest.mark.asyncio
class TestServerConnection:
    """Test server connection handling."""

    async def test_server_accepts_connection(self, server, client_factory):
        async with client_factory() as client:
            assert client.reader is not None
            assert client.writer is not None

    async def test_server_handles_disconnect(self, server, server_port, client_factory):
        """Test server handles client disconnect gracefully."""
        reader, writer = await asyncio.open_connection('127.0.0.1', server_port)

        writer.write(b"PUT key value\n")
        await writer.drain()
        assert await reader.readline() == b"OK stored\n"

        writer.close()
        await writer.wait_closed()

        # Server should still accept new connections
        async with client_factory() as client:
            assert await client.send_command("GET key") == 'OK {"key":"value"}'

    async def test_server_handles_quit(self, server, server_port):
        """Test QUIT makes the server close the connection."""
        reader, writer = await asyncio.open_connection('127.0.0.1', server_port)

        writer.write(b"QUIT\n")
        await writer.drain()

        assert await asyncio.wait_for(reader.read(), timeout=1) == b""
        writer.close()
        await writer.wait_closed()

    async def test_server_is_running(self, server):
        assert server.is_running()


@pytest.mark.asyncio
class TestServerCommands:
    """Test command execution through server."""

    async def test_put_command(self, server, client_factory):
        async with client_factory() as client:
            assert await client.send_command("PUT key1 value1") == "OK stored"

    async def test_get_command_found(self, server, client_factory):
        async with client_factory() as client:
            await client.send_command("PUT key1 value1")
            response = await client.send_command("GET key1")

        status, payload = response.split(" ", 1)
        assert status == "OK"
        assert json.loads(payload) == {"key1": "value1"}

    async def test_get_command_not_found(self, server, client_factory):
        async with client_factory() as client:
            assert await client.send_command("GET nope") == "ERROR key not found"

    async def test_value_with_spaces(self, server, client_factory):
        async with client_factory() as client:
            await client.send_command("PUT greeting hello world")
            assert await client.send_command("GET greeting") == 'OK {"greeting":"hello world"}'

    async def test_deleteall_command(self, server, client_factory):
        async with client_factory() as client:
            await client.send_command("PUT key1 value1")
            assert await client.send_command("DELETEALL") == "OK deleted"
            assert await client.send_command("GET key1") == "ERROR key not found"

    async def test_invalid_command(self, server, client_factory):
        async with client_factory() as client:
            assert await client.send_command("DELETE key1") == "ERROR invalid command"
            # Connection stays usable
            assert await client.send_command("PUT k v") == "OK stored"

    async def test_invalid_encoding(self, server, server_port):
        reader, writer = await asyncio.open_connection('127.0.0.1', server_port)
        writer.write(b"PUT k \xff\xfe\n")
        await writer.drain()

        assert await reader.readline() == b"ERROR invalid encoding\n"
        writer.close()
        await writer.wait_closed()

    async def test_stats_count_requests(self, server, client_factory):
        async with client_factory() as client:
            await client.send_command("PUT a 1")
            await client.send_command("GET a")

        stats = server.get_stats()
        assert stats["total_requests"] == 2
        assert stats["service_stats"]["store"]["total_keys"] == 1


@pytest.mark.asyncio
class TestServerConcurrency:
    """Test multiple simultaneous clients."""

    async def test_concurrent_clients_distinct_keys(self, server, client_factory):
        """Test N clients writing distinct keys all succeed."""
        async def worker(i):
            async with client_factory() as client:
                return await client.send_command(f"PUT key{i} value{i}")

        results = await asyncio.gather(*(worker(i) for i in range(20)))
        assert results == ["OK stored"] * 20

        async with client_factory() as client:
            for i in range(20):
                assert await client.send_command(f"GET key{i}") == f'OK {{"key{i}":"value{i}"}}'

    async def test_clients_share_state(self, server, client_factory):
        async with client_factory() as client1:
            async with client_factory() as client2:
                await client1.send_command("PUT shared value")
                assert await client2.send_command("GET shared") == 'OK {"shared":"value"}'


@pytest.mark.asyncio
class TestServerLongLines:
    """Test request lines near and above the line limit."""

    async def test_large_value_round_trip(self, server, client_factory):
        value = "x" * 5000
        async with client_factory() as client:
            assert await client.send_command(f"PUT big {value}") == "OK stored"
            response = await client.send_command("GET big")
            assert json.loads(response[3:]) == {"big": value}

    async def test_line_too_long_keeps_connection(self, server_port, snapshot_dir, client_factory):
        """Test an oversized line gets an error reply and the next line is served."""
        srv = KVServer(
            host='127.0.0.1',
            port=server_port,
            service=KVService(interval=300, snapshot_dir=str(snapshot_dir)),
            max_line_length=64,
        )
        task = asyncio.create_task(srv.start())
        await asyncio.sleep(0.1)
        try:
            async with client_factory() as client:
                assert await client.send_command("PUT big " + "x" * 5000) == "ERROR line too long"
                assert await client.send_command("PUT small value") == "OK stored"
                assert await client.send_command("GET small") == 'OK {"small":"value"}'
                assert await client.send_command("GET big") == "ERROR key not found"
        finally:
            await srv.stop()
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


@pytest.mark.asyncio
class TestServerShutdown:
    """Test requests arriving after the store has stopped."""

    async def test_request_after_service_stop_gets_error(self, server, client_factory):
        async with client_factory() as client:
            assert await client.send_command("PUT k v") == "OK stored"
            await server.service.actor.stop()
            assert await asyncio.wait_for(client.send_command("GET k"), 1.0) == "ERROR unavailable"
